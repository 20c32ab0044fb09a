"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  EcoProRenov - Modèle Chantier (site)                                        ║
║                                                                              ║
║  Un chantier appartient à un seul projet.                                    ║
║  Ses champs de coûts alimentent le calcul de rentabilité.                    ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

from typing import Optional, List, Any
from pydantic import BaseModel, ConfigDict, Field
from enum import Enum


class LegacyChantierStatus(str, Enum):
    """Vocabulaire chantier du modèle legacy"""
    PLANIFIE = "PLANIFIE"
    EN_PREPARATION = "EN_PREPARATION"
    EN_COURS = "EN_COURS"
    SUSPENDU = "SUSPENDU"
    TERMINE = "TERMINE"
    LIVRE = "LIVRE"


class TravauxChoice(str, Enum):
    """Financement des travaux non subventionnés"""
    NA = "NA"
    CLIENT = "CLIENT"
    MARGE = "MARGE"
    PARTAGE = "PARTAGE"


class AdditionalCost(BaseModel):
    model_config = ConfigDict(extra="ignore")

    label: Optional[str] = ""
    amount_ht: Optional[Any] = 0
    montant_tva: Optional[Any] = 0
    amount_ttc: Optional[Any] = None
    attachment: Optional[str] = None


class StartChantierInput(BaseModel):
    """
    Démarrage d'un chantier depuis un projet.
    Les champs absents reprennent les valeurs du projet.
    """
    site_ref: Optional[str] = None
    date_debut: Optional[str] = None
    date_fin_prevue: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    product_name: Optional[str] = None
    notes: Optional[str] = None
    team_members: Optional[List[Any]] = None
    subcontractor_id: Optional[str] = None


class ChantierStatusUpdate(BaseModel):
    status: Optional[str] = None


class RentabilityFieldsUpdate(BaseModel):
    """Champs du chantier qui influencent la rentabilité"""
    revenue: Optional[Any] = None
    cout_main_oeuvre_m2_ht: Optional[Any] = None
    cout_isolation_m2: Optional[Any] = None
    isolation_utilisee_m2: Optional[Any] = None
    surface_facturee: Optional[Any] = None
    nb_luminaires: Optional[Any] = None
    commission_active: Optional[bool] = None
    montant_commission: Optional[Any] = None
    commission_eur_per_m2_enabled: Optional[bool] = None
    commission_eur_per_m2: Optional[Any] = None
    valorisation_cee: Optional[Any] = None
    additional_costs: Optional[List[AdditionalCost]] = None
    travaux_choice: Optional[str] = None
    travaux_non_subventionnes_description: Optional[str] = None
    travaux_non_subventionnes_montant: Optional[Any] = None
    subcontractor_id: Optional[str] = None
    subcontractor_payment_confirmed: Optional[bool] = None
    subcontractor_payment_rate: Optional[Any] = None
    subcontractor_payment_amount: Optional[Any] = None
    subcontractor_base_units: Optional[Any] = None
    product_name: Optional[str] = None
