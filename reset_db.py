import asyncio
import logging
import sys
import os

# Aggiungi backend/ alla PYTHONPATH per importare app.*
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "backend"))

from app.core.database import close_db, reset_schema


async def reset():
    print("Connessione al database del gestionale preventivi...")
    await reset_schema()
    await close_db()
    print("Database resettato con successo: utenti, clienti, aziende e preventivi ricreati.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(reset())
