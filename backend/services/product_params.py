"""
EcoProRenov - Paramètres dynamiques produit

Le catalogue décrit chaque produit par un schéma de champs typés
(models/product.py). Les valeurs saisies par ligne de projet sont
validées ici, à l'entrée de l'API, avant d'atteindre les calculs.
"""

import unicodedata
import re
from typing import Optional, List, Dict, Any

from pydantic import BaseModel, TypeAdapter
from pydantic import ValidationError as SchemaError

from errors import ValidationError
from models.product import ParamField, normalize_schema_fields, to_number

_FIELDS_ADAPTER = TypeAdapter(List[ParamField])

TRUE_VALUES = {"true", "1", "oui", "yes", "on"}
FALSE_VALUES = {"false", "0", "non", "no", "off", ""}


def strip_accents(value: str) -> str:
    return "".join(
        c for c in unicodedata.normalize("NFD", value)
        if unicodedata.category(c) != "Mn"
    )


def normalize_for_comparison(value: str) -> str:
    """'Surface isolée (m²)' -> 'surface isolee m'"""
    value = strip_accents(value).lower()
    return re.sub(r"[^a-z0-9]+", " ", value).strip()


def get_schema_fields(params_schema) -> List[Any]:
    """Schéma brut (liste ou {fields: [...]}) -> descripteurs typés"""
    fields = normalize_schema_fields(params_schema)
    if all(isinstance(f, BaseModel) for f in fields):
        return fields
    return _FIELDS_ADAPTER.validate_python([
        f.model_dump() if isinstance(f, BaseModel) else f for f in fields
    ])


def get_dynamic_field_entries(params_schema, dynamic_params) -> List[Dict]:
    """Valeurs renseignées, dans l'ordre du schéma"""
    if not isinstance(dynamic_params, dict):
        return []

    entries = []
    for field in get_schema_fields(params_schema):
        raw = dynamic_params.get(field.name)
        if raw is None or raw == "":
            continue
        if isinstance(raw, list):
            raw = ", ".join(str(v) for v in raw)
        entries.append({
            "name": field.name,
            "label": field.label or field.name,
            "value": raw,
            "unit": field.unit,
        })
    return entries


def _matches_target(value: Optional[str], targets: List[str]) -> bool:
    if not value:
        return False
    normalized = normalize_for_comparison(value)
    return any(normalized == t or normalized.startswith(f"{t} ") for t in targets)


def get_dynamic_field_numeric_value(params_schema, dynamic_params, targets: List[str]) -> Optional[float]:
    """Première valeur numérique dont le nom ou le libellé correspond à une cible"""
    normalized_targets = [t for t in (normalize_for_comparison(t) for t in targets or []) if t]
    if not normalized_targets:
        return None

    for entry in get_dynamic_field_entries(params_schema, dynamic_params):
        if _matches_target(entry["name"], normalized_targets) or _matches_target(entry["label"], normalized_targets):
            numeric = to_number(entry["value"])
            if numeric is not None:
                return numeric
    return None


# ════════════════════════════════════════════════════════════════════════
# VALIDATION À LA FRONTIÈRE
# ════════════════════════════════════════════════════════════════════════

def _coerce_value(field, raw) -> Any:
    """Valeur brute -> valeur typée selon le champ. Lève ValueError si incompatible."""
    kind = field.type

    if kind == "number":
        number = to_number(raw)
        if number is None:
            raise ValueError("nombre attendu")
        if field.min is not None and number < field.min:
            raise ValueError(f"minimum {field.min}")
        if field.max is not None and number > field.max:
            raise ValueError(f"maximum {field.max}")
        return number

    if kind == "checkbox":
        if isinstance(raw, bool):
            return raw
        if isinstance(raw, str) and raw.strip().lower() in TRUE_VALUES:
            return True
        if isinstance(raw, str) and raw.strip().lower() in FALSE_VALUES:
            return False
        raise ValueError("booléen attendu")

    if kind == "select":
        value = str(raw)
        if field.options and value not in field.options:
            raise ValueError(f"valeur hors liste ({', '.join(field.options)})")
        return value

    # text / textarea
    if isinstance(raw, (dict, list)):
        raise ValueError("texte attendu")
    return str(raw)


def validate_dynamic_params(params_schema, values: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Vérifie les valeurs d'une ligne produit contre le schéma du produit.

    - clés inconnues refusées
    - valeurs converties selon le type du champ
    - défaut appliqué si la valeur est absente
    - champ requis sans valeur ni défaut -> erreur

    Retourne le dictionnaire nettoyé, lève ValidationError sinon.
    """
    values = values or {}
    if not isinstance(values, dict):
        raise ValidationError("Paramètres produit invalides")

    try:
        fields = get_schema_fields(params_schema)
    except SchemaError:
        raise ValidationError("Schéma de paramètres produit invalide")
    known = {f.name for f in fields}
    errors = [f"{key}: champ inconnu" for key in values if key not in known]

    cleaned = {}
    for field in fields:
        raw = values.get(field.name)
        if raw is None or raw == "":
            if field.default is not None:
                cleaned[field.name] = field.default
            elif field.required:
                errors.append(f"{field.label or field.name}: valeur requise")
            continue
        try:
            cleaned[field.name] = _coerce_value(field, raw)
        except ValueError as e:
            errors.append(f"{field.label or field.name}: {e}")

    if errors:
        raise ValidationError("Paramètres produit invalides: " + "; ".join(errors))
    return cleaned
