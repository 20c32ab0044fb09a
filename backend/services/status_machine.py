"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  EcoProRenov - STATUS MACHINE (projets / chantiers)                          ║
║                                                                              ║
║  RÈGLES:                                                                     ║
║  1. Un statut projet ne recule jamais (ordre canonique)                      ║
║  2. Seul le statut cible est strictement contrôlé; un statut courant vide    ║
║     (création) est accepté                                                   ║
║  3. Une modification manuelle ne peut pas placer le projet derrière son      ║
║     chantier le plus avancé                                                  ║
║  4. La synchronisation chantiers -> projet ne fait qu'avancer (cliquet)      ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Optional, List, Dict

from config import now_iso
from errors import ValidationError, NotFoundError
from services.status_order import (
    PROJECT_STATUS_ORDER,
    normalize_status,
    get_project_status_index,
    chantier_statuses,
    chantier_to_project_status,
    get_chantier_status_index,
)

logger = logging.getLogger("status_sync")


# ════════════════════════════════════════════════════════════════════════
# GUARDS
# ════════════════════════════════════════════════════════════════════════

def ensure_project_status_transition(current: Optional[str], next_status: Optional[str]):
    """
    Valide current -> next. Lève ValidationError si:
      - next inconnu
      - current renseigné mais inconnu
      - next est avant current dans l'ordre canonique
    """
    current = normalize_status(current)
    next_status = normalize_status(next_status)

    if get_project_status_index(next_status) == -1:
        raise ValidationError(f"Statut projet inconnu: {next_status}")

    if not current:
        return

    if get_project_status_index(current) == -1:
        raise ValidationError(f"Statut projet actuel inconnu: {current}")

    if get_project_status_index(next_status) < get_project_status_index(current):
        raise ValidationError("Impossible de revenir à un statut projet précédent")


def ensure_chantier_status_transition(current: Optional[str], next_status: Optional[str], model: str = None):
    """Même règle que pour les projets, sur le vocabulaire chantier du modèle actif"""
    current = normalize_status(current)
    next_status = normalize_status(next_status)

    if next_status not in chantier_statuses(model):
        raise ValidationError(f"Statut chantier inconnu: {next_status}")

    if not current:
        return

    if current not in chantier_statuses(model):
        raise ValidationError(f"Statut chantier actuel inconnu: {current}")

    if get_chantier_status_index(next_status, model) < get_chantier_status_index(current, model):
        raise ValidationError("Impossible de revenir à un statut chantier précédent")


# ════════════════════════════════════════════════════════════════════════
# DÉRIVATION CHANTIERS -> PROJET
# ════════════════════════════════════════════════════════════════════════

def derive_project_status_from_chantiers(chantiers: List[Dict], model: str = None) -> Optional[str]:
    """
    Statut projet impliqué par le chantier le plus avancé.
    None si aucun chantier (ou aucun statut reconnu).
    """
    best = None
    best_index = -1
    for chantier in chantiers or []:
        equivalent = chantier_to_project_status(chantier.get("status"), model)
        index = get_project_status_index(equivalent)
        if index > best_index:
            best, best_index = equivalent, index
    return best


def ensure_project_status_not_behind_chantiers(next_status: Optional[str], chantiers: List[Dict], model: str = None):
    """Refuse un statut projet manuel antérieur au chantier le plus avancé"""
    floor = derive_project_status_from_chantiers(chantiers, model)
    if floor is None:
        return
    if get_project_status_index(next_status) < get_project_status_index(floor):
        raise ValidationError(
            f"Le statut projet ne peut pas être antérieur à celui de ses chantiers ({floor})"
        )


async def sync_project_status_with_chantiers(repo, org_id: str, project: Dict, model: str = None) -> Dict:
    """
    Remonte le statut projet si un chantier est plus avancé.
    Ne fait jamais reculer le projet; sans changement -> projet inchangé.
    """
    chantiers = await repo.list_sites(org_id, project["id"])
    derived = derive_project_status_from_chantiers(chantiers, model)
    if derived is None:
        return project

    current = project.get("status")
    if get_project_status_index(derived) <= get_project_status_index(current):
        return project

    updated = await repo.update_project(org_id, project["id"], {
        "status": derived,
        "updated_at": now_iso(),
    })
    if not updated:
        raise NotFoundError("Projet introuvable lors de la synchronisation des statuts")

    logger.info(f"[STATUS_SYNC] project={project['id']} {current or '-'} -> {derived} (chantiers)")
    return updated


__all__ = [
    "PROJECT_STATUS_ORDER",
    "ensure_project_status_transition",
    "ensure_chantier_status_transition",
    "derive_project_status_from_chantiers",
    "ensure_project_status_not_behind_chantiers",
    "sync_project_status_with_chantiers",
]
