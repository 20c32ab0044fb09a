"""
EcoProRenov - Event Logger

Journal d'audit (collection event_log) des actions sensibles:
changements de statut, rollbacks, générations de facture, sauvegardes.
"""

import logging
from typing import Optional

from config import new_id, now_iso

logger = logging.getLogger("event_log")


async def log_event(
    repo,
    action: str,
    entity_type: str,
    entity_id: str,
    org_id: str,
    user: str = "system",
    details: dict = None,
    related: dict = None,
    level: str = "info",
):
    """
    Écrit un événement dans event_log.

    Args:
        action: ex. project_status_change, chantier_status_rollback_failed
        entity_type: project | chantier | invoice | backup | settings
        entity_id: ID de l'entité principale
        org_id: organisation concernée
        user: identifiant de l'utilisateur (ou "system")
        details: dict libre (ancienne / nouvelle valeur, erreur, ...)
        related: IDs liés (project_id, chantier_id, ...)
        level: info | warning | critical
    """
    await repo.insert_event({
        "id": new_id(),
        "action": action,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "org_id": org_id,
        "user": user,
        "level": level,
        "details": details or {},
        "related": related or {},
        "created_at": now_iso(),
    })


async def log_event_safe(repo, action: str, entity_type: str, entity_id: str, org_id: str, **kwargs) -> Optional[str]:
    """
    Variante pour les chemins d'erreur et les journaux écrits après commit:
    un échec d'écriture du journal est tracé dans les logs sans masquer
    l'erreur métier en cours ni annuler une écriture déjà faite.
    """
    try:
        await log_event(repo, action, entity_type, entity_id, org_id, **kwargs)
        return None
    except Exception as e:
        logger.error(f"[EVENT_LOG] Impossible d'écrire {action} pour {entity_type}={entity_id}: {e}")
        return str(e)
