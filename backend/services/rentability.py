"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  EcoProRenov - CALCUL DE RENTABILITÉ CHANTIER                                ║
║                                                                              ║
║  main d'oeuvre   = coût MO €/unité × unités posées                           ║
║  matériau        = coût matériau €/unité × unités posées                     ║
║  commission      = montant fixe si active                                    ║
║  commission/unité = taux × unités de base si activée                         ║
║  sous-traitant   = taux × unités de base si paiement confirmé                ║
║  travaux non sub = montant si choix != NA                                    ║
║  frais annexes   = Σ (HT + TVA) des lignes avec libellé                      ║
║                                                                              ║
║  CA         = CA saisi + prime CEE du chantier                               ║
║  marge      = CA - coûts totaux                                              ║
║  taux marge = marge / CA (0 si CA <= 0)                                      ║
║  marge/unité = marge / unités facturées (0 si aucune)                        ║
║                                                                              ║
║  Unités: m² (isolation) ou luminaire (éclairage)                             ║
║  Toute valeur non numérique compte pour 0.                                   ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import math
import re
from typing import Dict, Any, List, Optional

from models.chantier import TravauxChoice
from services.product_params import strip_accents

TRAVAUX_CHOICES = tuple(choice.value for choice in TravauxChoice)

UNIT_SURFACE = "m²"
UNIT_LUMINAIRE = "luminaire"

RENTABILITY_FIELDS = (
    "revenue",
    "cout_main_oeuvre_m2_ht",
    "cout_isolation_m2",
    "isolation_utilisee_m2",
    "surface_facturee",
    "nb_luminaires",
    "commission_active",
    "montant_commission",
    "additional_costs",
    "travaux_choice",
    "travaux_non_subventionnes_description",
    "travaux_non_subventionnes_montant",
    "product_name",
    "valorisation_cee",
    "commission_eur_per_m2_enabled",
    "commission_eur_per_m2",
    "subcontractor_payment_rate",
    "subcontractor_payment_amount",
    "subcontractor_base_units",
    "subcontractor_payment_confirmed",
)


def sanitize_number(value) -> float:
    """Nombre fini, sinon 0 (chaînes '12,5' acceptées)"""
    if isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0
    if isinstance(value, str):
        try:
            parsed = float(value.strip().replace(" ", "").replace(",", "."))
        except ValueError:
            return 0.0
        return parsed if math.isfinite(parsed) else 0.0
    return 0.0


def _positive(value) -> float:
    return max(0.0, sanitize_number(value))


def to_boolean(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("true", "t", "1", "oui", "yes", "on")
    return False


def normalize_travaux_choice(value) -> str:
    normalized = str(value or "").strip().upper()
    if normalized == "MOITIE":
        return "PARTAGE"
    return normalized if normalized in TRAVAUX_CHOICES else "NA"


def is_lighting_product(product_name: Optional[str], category: Optional[str] = None) -> bool:
    """Produit LED / luminaire, ou catégorie éclairage"""
    if category and "eclair" in strip_accents(category).lower():
        return True
    if not product_name:
        return False
    words = re.sub(r"[^a-z0-9]+", " ", strip_accents(product_name).lower()).split()
    return any(w.startswith("led") or w.startswith("luminaire") for w in words)


def additional_costs_total(additional_costs: Optional[List[Any]]) -> float:
    """
    Σ (montant HT + TVA) des frais annexes.
    Les lignes sans libellé (ligne de saisie incomplète) sont ignorées.
    """
    total = 0.0
    for cost in additional_costs or []:
        if cost is None:
            continue
        if not isinstance(cost, dict):
            cost = cost.model_dump()
        if not str(cost.get("label") or "").strip():
            continue
        amount_ht = _positive(cost.get("amount_ht"))
        if cost.get("montant_tva") is None and cost.get("amount_ttc") is not None:
            total += max(amount_ht, _positive(cost.get("amount_ttc")))
            continue
        total += amount_ht + _positive(cost.get("montant_tva"))
    return total


def subcontractor_rate(data: Dict[str, Any], base_units: float) -> float:
    """Taux €/unité: taux saisi, sinon montant payé / unités de base"""
    rate = _positive(data.get("subcontractor_payment_rate"))
    if rate > 0:
        return rate
    amount = _positive(data.get("subcontractor_payment_amount"))
    if amount > 0 and base_units > 0:
        return amount / base_units
    return 0.0


def calculate_rentability(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rentabilité d'un chantier.

    data: champs du chantier (voir RENTABILITY_FIELDS) + "is_lighting"
    optionnel. Retourne revenue, total_costs, margin_total, margin_rate,
    margin_per_unit, unit_label, units_used, additional_costs_total, la
    part sous-traitant et le détail des coûts.

    Les travaux non subventionnés sont toujours un coût (jamais du CA):
    le choix ne décide que s'ils sont comptés (tout sauf NA).
    """
    lighting = bool(data.get("is_lighting")) or is_lighting_product(data.get("product_name"))

    if lighting:
        unit_label = UNIT_LUMINAIRE
        installed_units = _positive(data.get("nb_luminaires"))
        units_used = installed_units
    else:
        unit_label = UNIT_SURFACE
        installed_units = _positive(data.get("isolation_utilisee_m2"))
        units_used = _positive(data.get("surface_facturee")) or installed_units

    # Unités de base: posées, sinon facturées
    base_units = installed_units or units_used

    labor = _positive(data.get("cout_main_oeuvre_m2_ht")) * installed_units
    material = _positive(data.get("cout_isolation_m2")) * installed_units
    commission = _positive(data.get("montant_commission")) if to_boolean(data.get("commission_active")) else 0.0

    commission_per_unit = 0.0
    if to_boolean(data.get("commission_eur_per_m2_enabled")):
        commission_per_unit = _positive(data.get("commission_eur_per_m2")) * base_units

    subcontractor_units = _positive(data.get("subcontractor_base_units")) or base_units
    rate = subcontractor_rate(data, subcontractor_units)
    subcontractor_estimated = rate * subcontractor_units
    subcontractor_confirmed = to_boolean(data.get("subcontractor_payment_confirmed"))
    subcontractor = subcontractor_estimated if subcontractor_confirmed else 0.0

    travaux_choice = normalize_travaux_choice(data.get("travaux_choice"))
    travaux_amount = _positive(data.get("travaux_non_subventionnes_montant"))
    travaux_cost = travaux_amount if travaux_choice != TravauxChoice.NA.value else 0.0

    additional = additional_costs_total(data.get("additional_costs"))

    prime_cee = _positive(data.get("valorisation_cee"))
    revenue = _positive(data.get("revenue")) + prime_cee
    total_costs = labor + material + commission + commission_per_unit + subcontractor + travaux_cost + additional
    margin_total = revenue - total_costs
    margin_rate = margin_total / revenue if revenue > 0 else 0.0
    margin_per_unit = margin_total / units_used if units_used > 0 else 0.0

    return {
        "revenue": revenue,
        "prime_cee": prime_cee,
        "total_costs": total_costs,
        "margin_total": margin_total,
        "margin_rate": margin_rate,
        "margin_per_unit": margin_per_unit,
        "unit_label": unit_label,
        "units_used": units_used,
        "additional_costs_total": additional,
        "travaux_choice": travaux_choice,
        "subcontractor_rate": rate,
        "subcontractor_base_units": subcontractor_units,
        "subcontractor_estimated_cost": subcontractor_estimated,
        "subcontractor_payment_confirmed": subcontractor_confirmed,
        "cost_breakdown": {
            "labor": labor,
            "material": material,
            "commission": commission,
            "commission_per_unit": commission_per_unit,
            "subcontractor": subcontractor,
            "travaux": travaux_cost,
            "additional": additional,
        },
    }


def build_rentability_input_from_site(site: Dict[str, Any], project: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Champs utiles d'un chantier (+ catégorie / produit du projet)"""
    data = {key: site.get(key) for key in RENTABILITY_FIELDS}
    project = project or {}
    if not data.get("product_name"):
        data["product_name"] = project.get("product_name")
    data["is_lighting"] = is_lighting_product(data.get("product_name"), project.get("category"))
    return data


def rentability_persisted_fields(result: Dict[str, Any]) -> Dict[str, Any]:
    """Métriques enregistrées sur le chantier (arrondies au centime pour l'affichage liste)"""
    return {
        "rentability_total_costs": round(result["total_costs"], 2),
        "rentability_margin_total": round(result["margin_total"], 2),
        "rentability_margin_per_unit": round(result["margin_per_unit"], 2),
        "rentability_margin_rate": round(result["margin_rate"], 4),
        "rentability_unit_label": result["unit_label"],
        "rentability_unit_count": result["units_used"],
        "rentability_additional_costs_total": round(result["additional_costs_total"], 2),
        "rentability_subcontractor_cost": round(result["cost_breakdown"]["subcontractor"], 2),
    }
