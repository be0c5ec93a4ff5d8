"""
Test di autenticazione: token JWT e AuthService.
"""

import uuid
from unittest.mock import MagicMock

import pytest
from fastapi import HTTPException

from app.core.exceptions import DuplicateError
from app.core.security import (
    create_access_token,
    create_refresh_token,
    decode_token,
    hash_password,
    verify_password,
)
from app.schemas.user import UserCreate, UserLogin
from app.services.auth_service import AuthService


def _result(value):
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    return result


# ============================================================
# Token
# ============================================================


class TestTokens:

    def test_access_token_roundtrip(self):
        """Test token di accesso decodificato con sub e tipo."""
        user_id = str(uuid.uuid4())

        payload = decode_token(create_access_token(user_id))

        assert payload.sub == user_id
        assert payload.type == "access"

    def test_refresh_token_type(self):
        """Test token di refresh."""
        assert decode_token(create_refresh_token("abc")).type == "refresh"

    def test_invalid_token(self):
        """Test token malformato → 401."""
        with pytest.raises(HTTPException) as exc_info:
            decode_token("non-es-un-token")

        assert exc_info.value.status_code == 401

    def test_password_hash(self):
        """Test hash e verifica password."""
        hashed = hash_password("Secreta123")

        assert hashed != "Secreta123"
        assert verify_password("Secreta123", hashed)
        assert not verify_password("otra", hashed)


# ============================================================
# AuthService
# ============================================================


class TestAuthService:

    def test_password_needs_digit(self):
        """Test password senza cifre rifiutata."""
        with pytest.raises(ValueError):
            UserCreate(email="nuevo@empresa.mx", password="sinnumeros", display_name="Nuevo")

    @pytest.mark.anyio
    async def test_register_duplicate(self, mock_db, mock_user):
        """Test email già registrata → DuplicateError."""
        mock_db.execute.return_value = _result(mock_user)
        data = UserCreate(email="vendedor@empresa.mx", password="Secreta123", display_name="Laura")

        with pytest.raises(DuplicateError):
            await AuthService().register(mock_db, data)

    @pytest.mark.anyio
    async def test_register(self, mock_db):
        """Test registrazione con email normalizzata."""
        mock_db.execute.return_value = _result(None)
        data = UserCreate(email="Nuevo@Empresa.mx", password="Secreta123", display_name=" Nuevo ")

        user = await AuthService().register(mock_db, data)

        assert user.email == "nuevo@empresa.mx"
        assert user.display_name == "Nuevo"
        assert verify_password("Secreta123", user.hashed_password)
        mock_db.add.assert_called_once_with(user)

    @pytest.mark.anyio
    async def test_login_wrong_password(self, mock_db, mock_user):
        """Test password errata → 401."""
        mock_user.hashed_password = hash_password("Secreta123")
        mock_db.execute.return_value = _result(mock_user)

        with pytest.raises(HTTPException) as exc_info:
            await AuthService().login(mock_db, UserLogin(email="vendedor@empresa.mx", password="Otra1234"))

        assert exc_info.value.status_code == 401

    @pytest.mark.anyio
    async def test_login(self, mock_db, mock_user):
        """Test login valido: coppia di token per l'utente."""
        mock_user.hashed_password = hash_password("Secreta123")
        mock_db.execute.return_value = _result(mock_user)

        tokens = await AuthService().login(mock_db, UserLogin(email="vendedor@empresa.mx", password="Secreta123"))

        assert decode_token(tokens.access_token).sub == str(mock_user.id)
        assert decode_token(tokens.refresh_token).type == "refresh"

    @pytest.mark.anyio
    async def test_refresh_rejects_access_token(self, mock_db):
        """Test il refresh richiede un token di refresh."""
        with pytest.raises(HTTPException) as exc_info:
            await AuthService().refresh(mock_db, create_access_token(str(uuid.uuid4())))

        assert exc_info.value.status_code == 401

    @pytest.mark.anyio
    async def test_refresh(self, mock_db, mock_user):
        """Test refresh valido."""
        mock_db.get.return_value = mock_user

        tokens = await AuthService().refresh(mock_db, create_refresh_token(str(mock_user.id)))

        assert decode_token(tokens.access_token).sub == str(mock_user.id)
