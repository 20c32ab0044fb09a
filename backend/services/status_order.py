"""
EcoProRenov - Ordre des statuts projet / chantier

Table de référence pure (aucun accès base).

Ordre canonique projet: 18 valeurs. Les 9 valeurs de l'ancien ordre court
(NOUVEAU, ETUDE, DEVIS_ENVOYE, ACCEPTE, A_PLANIFIER, EN_COURS, LIVRE,
CLOTURE, ANNULE) en sont un sous-ensemble dans le même ordre relatif.

Chantiers:
  - modèle "unified": même vocabulaire que les projets
  - modèle "legacy":  PLANIFIE / EN_PREPARATION / EN_COURS / SUSPENDU /
                      TERMINE / LIVRE, rangés selon le statut projet
                      auquel ils correspondent
"""

from typing import Optional, List, Dict

from config import CHANTIER_STATUS_MODEL
from models.chantier import LegacyChantierStatus
from models.project import ProjectStatus


PROJECT_STATUS_ORDER: List[str] = [status.value for status in ProjectStatus]

_PROJECT_STATUS_INDEX: Dict[str, int] = {status: i for i, status in enumerate(PROJECT_STATUS_ORDER)}

LEGACY_PROJECT_STATUS_ORDER: List[str] = [
    ProjectStatus.NOUVEAU.value,
    ProjectStatus.ETUDE.value,
    ProjectStatus.DEVIS_ENVOYE.value,
    ProjectStatus.ACCEPTE.value,
    ProjectStatus.A_PLANIFIER.value,
    ProjectStatus.EN_COURS.value,
    ProjectStatus.LIVRE.value,
    ProjectStatus.CLOTURE.value,
    ProjectStatus.ANNULE.value,
]

# Chantier legacy -> statut projet équivalent
LEGACY_CHANTIER_TO_PROJECT: Dict[str, str] = {
    LegacyChantierStatus.PLANIFIE.value: ProjectStatus.A_PLANIFIER.value,
    LegacyChantierStatus.EN_PREPARATION.value: ProjectStatus.A_PLANIFIER.value,
    LegacyChantierStatus.EN_COURS.value: ProjectStatus.EN_COURS.value,
    LegacyChantierStatus.SUSPENDU.value: ProjectStatus.EN_COURS.value,
    LegacyChantierStatus.TERMINE.value: ProjectStatus.LIVRE.value,
    LegacyChantierStatus.LIVRE.value: ProjectStatus.LIVRE.value,
}

LEGACY_CHANTIER_STATUS_ORDER: List[str] = [status.value for status in LegacyChantierStatus]

INITIAL_CHANTIER_STATUS: Dict[str, str] = {
    "unified": ProjectStatus.CHANTIER_PLANIFIE.value,
    "legacy": LegacyChantierStatus.PLANIFIE.value,
}

# Libellés / couleurs par défaut (surchargeables par organisation)
DEFAULT_PROJECT_STATUSES: List[Dict[str, str]] = [
    {"value": "NOUVEAU", "label": "Nouveau", "color": "#3B82F6"},
    {"value": "ETUDE", "label": "Étude", "color": "#6366F1"},
    {"value": "DEVIS_ENVOYE", "label": "Devis envoyé", "color": "#0EA5E9"},
    {"value": "DEVIS_SIGNE", "label": "Devis signé", "color": "#22C55E"},
    {"value": "ACCEPTE", "label": "Accepté", "color": "#16A34A"},
    {"value": "VISITE_TECHNIQUE", "label": "Visite technique", "color": "#F97316"},
    {"value": "A_PLANIFIER", "label": "À planifier", "color": "#EAB308"},
    {"value": "CHANTIER_PLANIFIE", "label": "Chantier planifié", "color": "#FACC15"},
    {"value": "EN_COURS", "label": "En cours", "color": "#2563EB"},
    {"value": "CHANTIER_EN_COURS", "label": "Chantier en cours", "color": "#2563EB"},
    {"value": "CHANTIER_TERMINE", "label": "Chantier terminé", "color": "#8B5CF6"},
    {"value": "LIVRE", "label": "Livré", "color": "#14B8A6"},
    {"value": "FACTURE_ENVOYEE", "label": "Facture envoyée", "color": "#F59E0B"},
    {"value": "AH", "label": "AH", "color": "#0EA5E9"},
    {"value": "AAF", "label": "AAF", "color": "#F472B6"},
    {"value": "CLOTURE", "label": "Clôturé", "color": "#475569"},
    {"value": "ANNULE", "label": "Annulé", "color": "#94A3B8"},
    {"value": "ABANDONNE", "label": "Abandonné", "color": "#A855F7"},
]


def normalize_status(status: Optional[str]) -> str:
    return (status or "").strip().upper()


def get_project_status_index(status: Optional[str]) -> int:
    """Index dans l'ordre canonique, -1 si inconnu"""
    return _PROJECT_STATUS_INDEX.get(normalize_status(status), -1)


def is_known_project_status(status: Optional[str]) -> bool:
    return get_project_status_index(status) != -1


def chantier_statuses(model: str = None) -> List[str]:
    """Vocabulaire chantier du modèle actif"""
    model = model or CHANTIER_STATUS_MODEL
    if model == "legacy":
        return LEGACY_CHANTIER_STATUS_ORDER
    return PROJECT_STATUS_ORDER


def chantier_to_project_status(status: Optional[str], model: str = None) -> Optional[str]:
    """Statut projet équivalent d'un statut chantier (None si inconnu)"""
    model = model or CHANTIER_STATUS_MODEL
    status = normalize_status(status)
    if model == "legacy":
        return LEGACY_CHANTIER_TO_PROJECT.get(status)
    return status if status in _PROJECT_STATUS_INDEX else None


def get_chantier_status_index(status: Optional[str], model: str = None) -> int:
    """Rang d'un statut chantier = rang du statut projet équivalent (-1 si inconnu)"""
    return get_project_status_index(chantier_to_project_status(status, model))


def initial_chantier_status(model: str = None) -> str:
    return INITIAL_CHANTIER_STATUS[model or CHANTIER_STATUS_MODEL]
