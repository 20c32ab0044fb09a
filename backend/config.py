"""
Configuration et utilitaires partagés
"""

import os
import uuid
from datetime import datetime, timezone
from typing import Optional
from motor.motor_asyncio import AsyncIOMotorClient
from dotenv import load_dotenv
from pathlib import Path

from errors import ConfigurationError

# Charger .env
ROOT_DIR = Path(__file__).parent
load_dotenv(ROOT_DIR / '.env')

APP_NAME = os.environ.get('APP_NAME', 'EcoProRenov')
APP_VERSION = os.environ.get('APP_VERSION', 'unknown')
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')

# Modèle de statut chantier:
#   unified -> les chantiers partagent le vocabulaire des projets
#   legacy  -> vocabulaire chantier dédié (PLANIFIE, EN_COURS, ...) + table de correspondance
CHANTIER_STATUS_MODELS = ("unified", "legacy")
CHANTIER_STATUS_MODEL = os.environ.get('CHANTIER_STATUS_MODEL', 'unified').strip().lower()

if CHANTIER_STATUS_MODEL not in CHANTIER_STATUS_MODELS:
    raise ConfigurationError(
        f"CHANTIER_STATUS_MODEL invalide: {CHANTIER_STATUS_MODEL} (attendu: unified | legacy)"
    )


# ==================== MONGODB ====================

_client: Optional[AsyncIOMotorClient] = None


def get_db():
    """
    Retourne la base MongoDB (client créé une seule fois).
    MONGO_URL et DB_NAME sont obligatoires: leur absence lève une
    ConfigurationError au premier accès, pas à l'import.
    """
    global _client

    mongo_url = os.environ.get('MONGO_URL')
    db_name = os.environ.get('DB_NAME')
    missing = [name for name, value in (("MONGO_URL", mongo_url), ("DB_NAME", db_name)) if not value]
    if missing:
        raise ConfigurationError(f"Configuration base de données manquante: {', '.join(missing)}")

    if _client is None:
        _client = AsyncIOMotorClient(mongo_url)
    return _client[db_name]


def close_db():
    global _client
    if _client is not None:
        _client.close()
        _client = None


# ==================== HELPERS ====================

def new_id() -> str:
    return str(uuid.uuid4())


def now_iso() -> str:
    """Retourne la date/heure actuelle en ISO"""
    return datetime.now(timezone.utc).isoformat()


def parse_iso(value) -> Optional[datetime]:
    """Parse une date ISO (str ou datetime). None si vide ou invalide."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
