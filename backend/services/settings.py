"""
EcoProRenov - Service Settings

Paramètres par organisation (collection settings, un document par org_id).
Les valeurs absentes reprennent la table DEFAULT_ORGANIZATION_SETTINGS;
aucune valeur n'est partagée entre organisations.

Settings disponibles:
- prime_bonification: facteur appliqué à toutes les valorisations CEE
- building_types / building_usages: listes proposées sur les projets
- backup_webhook_url / backup_daily_enabled / backup_time: sauvegardes
- project_statuses: libellés et couleurs des statuts projet
"""

import copy
import logging
import math
from typing import Optional, Dict, Any

from config import now_iso
from errors import ValidationError
from services.backup_service import validate_webhook_url
from services.status_order import DEFAULT_PROJECT_STATUSES

logger = logging.getLogger("settings")

DEFAULT_PRIME_BONIFICATION = 1.0

DEFAULT_BUILDING_TYPES = [
    "Commerce",
    "Hôtellerie",
    "Enseignement",
    "Santé",
    "Entrepôts",
    "Bureaux",
    "Restauration",
    "Autres",
]

DEFAULT_BUILDING_USAGES = [
    "Commercial",
    "Stockage",
    "Agricole",
    "Production",
]

DEFAULT_ORGANIZATION_SETTINGS = {
    "prime_bonification": DEFAULT_PRIME_BONIFICATION,
    "building_types": DEFAULT_BUILDING_TYPES,
    "building_usages": DEFAULT_BUILDING_USAGES,
    "backup_webhook_url": None,
    "backup_daily_enabled": False,
    "backup_time": "02:00",
    "project_statuses": DEFAULT_PROJECT_STATUSES,
}


async def get_organization_settings(repo, org_id: str) -> Dict[str, Any]:
    """Settings de l'organisation fusionnés sur les valeurs par défaut"""
    settings = copy.deepcopy(DEFAULT_ORGANIZATION_SETTINGS)
    stored = await repo.get_settings(org_id)
    if stored:
        settings.update({k: v for k, v in stored.items() if v is not None})
    settings["org_id"] = org_id
    return settings


def resolve_prime_bonification(value, default: float = DEFAULT_PRIME_BONIFICATION) -> float:
    """Valeur absente ou non numérique -> défaut; négative -> 0"""
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
        return default
    return max(0.0, float(value))


async def update_organization_settings(repo, org_id: str, data: Dict[str, Any], updated_by: str = "system") -> Dict:
    """Valide puis enregistre les champs fournis"""
    data = {k: v for k, v in data.items() if v is not None}

    if "prime_bonification" in data:
        bonification = data["prime_bonification"]
        if not math.isfinite(bonification) or bonification < 0:
            raise ValidationError("La bonification doit être un nombre positif")

    if "backup_webhook_url" in data:
        data["backup_webhook_url"] = validate_webhook_url(data["backup_webhook_url"])

    if "backup_time" in data:
        _validate_time(data["backup_time"])

    for key in ("building_types", "building_usages"):
        if key in data:
            data[key] = [v.strip() for v in data[key] if v and v.strip()]

    data["updated_at"] = now_iso()
    data["updated_by"] = updated_by
    await repo.upsert_settings(org_id, data)
    logger.info(f"[SETTINGS] org={org_id} updated: {sorted(k for k in data if k not in ('updated_at', 'updated_by'))}")
    return await get_organization_settings(repo, org_id)


def _validate_time(value: Optional[str]):
    try:
        hours, minutes = value.split(":")
        if not (0 <= int(hours) <= 23 and 0 <= int(minutes) <= 59):
            raise ValueError(value)
    except (AttributeError, ValueError):
        raise ValidationError("Heure de sauvegarde invalide (format HH:MM)")
