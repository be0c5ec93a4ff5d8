"""
Configurazione Database - SQLAlchemy 2.0 Async
Progetto: Gestionale Preventivi (Quotation Manager)

Engine, session factory e dependency injection per FastAPI.
Gli errori del driver vengono convertiti in PersistenceError così che
il client li tratti come ripetibili.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings
from app.core.exceptions import PersistenceError

logger = logging.getLogger(__name__)

# ------------------------------------------------------------
# Engine Async SQLAlchemy 2.0
# ------------------------------------------------------------
engine: AsyncEngine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_pre_ping=True,
    pool_size=settings.db_pool_size,
    max_overflow=settings.db_max_overflow,
)


# ------------------------------------------------------------
# Session Factory
# ------------------------------------------------------------
AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency injection per FastAPI.

    Una sessione per richiesta; rollback automatico in caso di errore.
    Le SQLAlchemyError non gestite diventano PersistenceError (503).

    Yields:
        AsyncSession: Sessione database async
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error("Errore database, rollback eseguito: %s", e)
            raise PersistenceError() from e
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Verifica che il database sia raggiungibile all'avvio."""
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Connessione al database stabilita con successo")
    except Exception as e:
        logger.error("Errore connessione database: %s", e)
        raise


async def reset_schema() -> None:
    """Elimina e ricrea tutte le tabelle dei modelli registrati."""
    from app.models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        logger.info("Tabelle eliminate")
        await conn.run_sync(Base.metadata.create_all)
        logger.info("Tabelle create: %s", ", ".join(sorted(Base.metadata.tables)))


async def close_db() -> None:
    """Chiude il pool di connessioni (shutdown applicazione)."""
    await engine.dispose()
    logger.info("Connessioni database chiuse")
