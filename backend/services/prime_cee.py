"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  EcoProRenov - CALCUL PRIME CEE                                              ║
║                                                                              ║
║  Par ligne produit:                                                          ║
║    valorisation_unitaire_MWh = kWh cumac × bonification / 1000               ║
║    valorisation_totale_MWh   = unitaire_MWh × quantité × multiplicateur      ║
║    valorisation_EUR          = MWh × tarif délégataire (€/MWh)               ║
║  Prime CEE = Σ valorisation_totale_EUR                                       ║
║                                                                              ║
║  - Produits ECO* exclus                                                      ║
║  - Coefficient absent pour le type de bâtiment -> liste "missing_kwh"        ║
║  - Aucun arrondi ici (présentation = appelant)                               ║
║  - None si délégataire, type de bâtiment ou lignes éligibles manquants       ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from typing import Optional, List, Dict, Any, Tuple

from pydantic import ValidationError as SchemaError

from errors import NotFoundError
from models.product import CatalogProduct, Delegate
from services.product_params import (
    get_schema_fields,
    normalize_for_comparison,
    get_dynamic_field_numeric_value,
    to_number,
)
from services.settings import (
    DEFAULT_PRIME_BONIFICATION,
    get_organization_settings,
    resolve_prime_bonification,
)

logger = logging.getLogger("prime_cee")

EXCLUDED_PREFIXES = ("ECO",)

# Ordre de priorité des champs dynamiques servant de multiplicateur
DYNAMIC_FIELD_PRIORITIES = [
    (["surface_isolee", "surface isolée"], "Surface isolée"),
    (["nombre_led", "nombre de led"], "Nombre de LED"),
    (["quantity", "quantité"], "Quantité"),
    (["surface_facturee", "surface facturée"], "Surface facturée"),
    (["nombre_de_luminaire", "nombre de luminaire", "nombre_luminaire"], "Nombre de luminaire"),
    (["surface"], "Surface"),
]

# Catégorie -> champ multiplicateur par défaut
CATEGORY_MULTIPLIER_KEYS = {
    "isolation": "surface_isolee",
    "eclairage": "nombre_led",
    "lighting": "nombre_led",
}

DEFAULT_LED_WATT = 250.0
LED_WATT_KEYS = ["led_watt", "puissance_led", "watt_led"]


# ════════════════════════════════════════════════════════════════════════
# CATALOGUE
# ════════════════════════════════════════════════════════════════════════

def _line_value(line, key: str, default=None):
    if isinstance(line, dict):
        return line.get(key, default)
    return getattr(line, key, default)


def is_product_excluded(product) -> bool:
    """Catégorie ou code commençant par ECO (produit validé ou brut)"""
    category = str(_line_value(product, "category") or "").upper()
    code = str(_line_value(product, "code") or "").upper()
    return any(category.startswith(p) or code.startswith(p) for p in EXCLUDED_PREFIXES)


def get_kwh_cumac(product, building_type: str) -> Optional[float]:
    """Coefficient kWh cumac du produit pour ce type de bâtiment (casse ignorée)"""
    target = (building_type or "").strip().lower()
    for entry in product.kwh_cumac_values:
        if (entry.building_type or "").strip().lower() != target:
            continue
        value = to_number(entry.kwh_cumac)
        if value is not None and value > 0:
            return value
    return None


def _field_matches(field, targets: List[str]) -> bool:
    normalized = [normalize_for_comparison(t) for t in targets]
    name = normalize_for_comparison(field.name or "")
    label = normalize_for_comparison(field.label or "")
    return name in normalized or (label and label in normalized)


def resolve_multiplier(product, dynamic_params) -> Tuple[float, str]:
    """
    Multiplicateur d'une ligne (surface, nombre de LED, ...).

    - premier champ du schéma correspondant (priorités ci-dessus), valeur > 0
    - champ présent mais valeur absente / non numérique -> 0
    - aucun champ multiplicateur dans le schéma -> 1 (la quantité suffit)
    """
    fields = get_schema_fields(product.params_schema)
    params = dynamic_params if isinstance(dynamic_params, dict) else {}

    priorities = list(DYNAMIC_FIELD_PRIORITIES)
    config = product.cee_config
    preferred = (config.multiplier_key if config else None) or CATEGORY_MULTIPLIER_KEYS.get(
        normalize_for_comparison((config.category if config else None) or product.category or "").replace(" ", "_")
    )
    if preferred:
        priorities.insert(0, ([preferred], preferred))

    first_match = None
    for targets, fallback_label in priorities:
        for field in fields:
            if not _field_matches(field, targets):
                continue
            label = field.label or fallback_label
            first_match = first_match or label
            value = to_number(params.get(field.name))
            if value is not None and value > 0:
                return value, label

    if first_match:
        return 0.0, first_match
    return 1.0, "Quantité"


def _effective_kwh(product, kwh: float, dynamic_params) -> float:
    """Formule éclairage LED: coefficient × puissance LED / 250 W"""
    if not product.cee_config or product.cee_config.formula_template != "lighting-led":
        return kwh
    watt = get_dynamic_field_numeric_value(product.params_schema, dynamic_params, LED_WATT_KEYS)
    if watt is None or watt <= 0:
        watt = DEFAULT_LED_WATT
    return kwh * watt / DEFAULT_LED_WATT


# ════════════════════════════════════════════════════════════════════════
# CALCUL
# ════════════════════════════════════════════════════════════════════════

def compute_prime_cee(
    products: List[Any],
    product_map: Dict[str, Any],
    building_type: Optional[str],
    delegate: Optional[Any],
    prime_bonification: Optional[float] = None,
    default_bonification: float = DEFAULT_PRIME_BONIFICATION,
) -> Optional[Dict]:
    """
    Calcule la Prime CEE des lignes produit d'un projet.

    products: lignes {product_id, quantity, dynamic_params}
    product_map: product_id -> produit catalogue (dict ou CatalogProduct)
    prime_bonification: None -> default_bonification. Une valeur négative
        doit être ramenée à 0 par l'appelant (resolve_prime_bonification).

    Retourne None si le calcul n'est pas encore possible (pas de
    délégataire, pas de type de bâtiment, aucune ligne éligible).
    """
    if not delegate or not building_type or not products:
        return None

    if not isinstance(delegate, Delegate):
        delegate = Delegate.model_validate(delegate)
    price = to_number(delegate.price_eur_per_mwh) or 0.0

    bonification = to_number(prime_bonification)
    if bonification is None:
        bonification = default_bonification

    results = []
    missing = []
    eligible = 0

    for line in products:
        product_id = _line_value(line, "product_id")
        product = product_map.get(product_id) if product_id else None
        if product is None:
            continue
        if is_product_excluded(product):
            continue
        if not isinstance(product, CatalogProduct):
            try:
                product = CatalogProduct.model_validate(product)
            except SchemaError as e:
                # Fiche catalogue mal formée: signalée comme coefficient manquant
                eligible += 1
                missing.append({
                    "product_id": _line_value(product, "id") or product_id,
                    "code": _line_value(product, "code"),
                    "name": _line_value(product, "name"),
                })
                logger.warning(f"[PRIME_CEE] produit {product_id} illisible, ignoré: {e.error_count()} erreur(s)")
                continue

        eligible += 1
        dynamic_params = _line_value(line, "dynamic_params") or {}

        kwh = get_kwh_cumac(product, building_type)
        if kwh is None:
            missing.append({"product_id": product.id, "code": product.code, "name": product.name})
            continue

        raw_quantity = _line_value(line, "quantity", 1)
        quantity = 1.0 if raw_quantity is None else (to_number(raw_quantity) or 0.0)
        multiplier, multiplier_label = resolve_multiplier(product, dynamic_params)

        per_unit_mwh = _effective_kwh(product, kwh, dynamic_params) * bonification / 1000
        total_mwh = per_unit_mwh * quantity * multiplier

        results.append({
            "project_product_id": _line_value(line, "id") or product_id,
            "product_id": product.id,
            "product_code": product.code,
            "product_name": product.name,
            "kwh_cumac": kwh,
            "quantity": quantity,
            "multiplier": multiplier,
            "multiplier_label": multiplier_label,
            "valorisation_per_unit_mwh": per_unit_mwh,
            "valorisation_total_mwh": total_mwh,
            "valorisation_per_unit_eur": per_unit_mwh * price,
            "valorisation_total_eur": total_mwh * price,
        })

    if eligible == 0:
        return None

    if missing:
        logger.warning(
            f"[PRIME_CEE] kWh cumac manquant pour '{building_type}': "
            f"{[m['code'] or m['name'] for m in missing]}"
        )

    return {
        "products": results,
        "total_prime": sum(r["valorisation_total_eur"] for r in results),
        "total_valorisation_mwh": sum(r["valorisation_total_mwh"] for r in results),
        "bonification": bonification,
        "price_eur_per_mwh": price,
        "missing_kwh": missing,
    }


# ════════════════════════════════════════════════════════════════════════
# PROJET
# ════════════════════════════════════════════════════════════════════════

PRECONDITION_MESSAGES = {
    "delegate": "Sélectionnez un délégataire pour calculer la prime CEE",
    "building_type": "Sélectionnez un type de bâtiment pour calculer la prime CEE",
    "products": "Ajoutez au moins un produit éligible pour calculer la prime CEE",
}


async def compute_project_prime_cee(repo, org_id: str, project_id: str) -> Dict:
    """
    Prime CEE d'un projet enregistré.

    Retourne {"prime_cee": résultat | None, "missing_preconditions": [...]}.
    Les préconditions manquantes sont informatives (pas une erreur).
    """
    project = await repo.get_project(org_id, project_id)
    if not project:
        raise NotFoundError("Projet introuvable")

    lines = project.get("products") or []
    product_ids = [line.get("product_id") for line in lines if line.get("product_id")]
    catalog = await repo.list_products(org_id, product_ids) if product_ids else []
    product_map = {p["id"]: p for p in catalog}

    delegate = None
    if project.get("delegate_id"):
        delegate = await repo.get_delegate(org_id, project["delegate_id"])

    settings = await get_organization_settings(repo, org_id)
    bonification = resolve_prime_bonification(settings.get("prime_bonification"))

    result = compute_prime_cee(
        products=lines,
        product_map=product_map,
        building_type=project.get("building_type"),
        delegate=delegate,
        prime_bonification=bonification,
    )

    missing_preconditions = []
    if result is None:
        if not delegate:
            missing_preconditions.append("delegate")
        if not project.get("building_type"):
            missing_preconditions.append("building_type")
        if not missing_preconditions:
            missing_preconditions.append("products")

    return {
        "prime_cee": result,
        "missing_preconditions": [
            {"code": code, "message": PRECONDITION_MESSAGES[code]} for code in missing_preconditions
        ],
    }
