"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  EcoProRenov - Modèle Projet                                                 ║
║                                                                              ║
║  Un projet = un client + des produits + un délégataire + un statut           ║
║  RÈGLE: le statut projet ne recule jamais (ordre canonique, voir             ║
║  services/status_order.py)                                                   ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Optional
from pydantic import BaseModel
from enum import Enum


class ProjectStatus(str, Enum):
    """Statuts projet, dans l'ordre canonique"""
    NOUVEAU = "NOUVEAU"
    ETUDE = "ETUDE"
    DEVIS_ENVOYE = "DEVIS_ENVOYE"
    DEVIS_SIGNE = "DEVIS_SIGNE"
    ACCEPTE = "ACCEPTE"
    VISITE_TECHNIQUE = "VISITE_TECHNIQUE"
    A_PLANIFIER = "A_PLANIFIER"
    CHANTIER_PLANIFIE = "CHANTIER_PLANIFIE"
    EN_COURS = "EN_COURS"
    CHANTIER_EN_COURS = "CHANTIER_EN_COURS"
    CHANTIER_TERMINE = "CHANTIER_TERMINE"
    LIVRE = "LIVRE"
    FACTURE_ENVOYEE = "FACTURE_ENVOYEE"
    AH = "AH"
    AAF = "AAF"
    CLOTURE = "CLOTURE"
    ANNULE = "ANNULE"
    ABANDONNE = "ABANDONNE"


class ProjectStatusUpdate(BaseModel):
    """Statut cible, casse libre (normalisé par le service)"""
    status: Optional[str] = None
