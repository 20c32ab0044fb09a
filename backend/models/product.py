"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  EcoProRenov - Modèle Produit (catalogue)                                    ║
║                                                                              ║
║  params_schema = liste ordonnée de champs typés:                             ║
║    text | number | select | textarea | checkbox                              ║
║  Chaque champ: name, label, unit, default                                    ║
║  kwh_cumac_values = coefficient kWh cumac par type de bâtiment               ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import math
import re
from typing import Optional, List, Dict, Any, Union, Literal, Annotated
from pydantic import BaseModel, ConfigDict, Field, field_validator


PARAM_FIELD_TYPES = ("text", "number", "select", "textarea", "checkbox")


def to_number(value) -> Optional[float]:
    """Nombre fini ou None. Accepte '1 234,5'."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        cleaned = re.sub(r"\s+", "", value).replace(",", ".")
        if not cleaned:
            return None
        try:
            parsed = float(cleaned)
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def normalize_schema_fields(params_schema) -> List[Dict[str, Any]]:
    """
    Schéma brut -> liste de champs exploitable.
    Accepte une liste ou {"fields": [...]}; ignore les entrées sans nom.
    Type absent ou inconnu -> text.
    """
    if not params_schema:
        return []
    if isinstance(params_schema, dict):
        params_schema = params_schema.get("fields") or []
    if not isinstance(params_schema, list):
        return []

    fields = []
    for raw in params_schema:
        if isinstance(raw, BaseModel):
            fields.append(raw)
            continue
        if not isinstance(raw, dict) or not isinstance(raw.get("name"), str) or not raw["name"].strip():
            continue
        field = dict(raw)
        if field.get("type") not in PARAM_FIELD_TYPES:
            field["type"] = "text"
        fields.append(field)
    return fields


class _BaseParamField(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    label: Optional[str] = None
    unit: Optional[str] = None
    required: bool = False


class TextParamField(_BaseParamField):
    type: Literal["text"] = "text"
    default: Optional[str] = None


class TextAreaParamField(_BaseParamField):
    type: Literal["textarea"] = "textarea"
    default: Optional[str] = None


class NumberParamField(_BaseParamField):
    type: Literal["number"] = "number"
    default: Optional[float] = None
    min: Optional[float] = None
    max: Optional[float] = None

    @field_validator("default", "min", "max", mode="before")
    @classmethod
    def _coerce_number(cls, value):
        return to_number(value)


class SelectParamField(_BaseParamField):
    type: Literal["select"] = "select"
    options: List[str] = Field(default_factory=list)
    default: Optional[str] = None


class CheckboxParamField(_BaseParamField):
    type: Literal["checkbox"] = "checkbox"
    default: Optional[bool] = None


ParamField = Annotated[
    Union[TextParamField, TextAreaParamField, NumberParamField, SelectParamField, CheckboxParamField],
    Field(discriminator="type"),
]


class KwhCumacValue(BaseModel):
    model_config = ConfigDict(extra="ignore")

    building_type: str
    kwh_cumac: Optional[float] = None

    @field_validator("kwh_cumac", mode="before")
    @classmethod
    def _coerce_kwh(cls, value):
        return to_number(value)


class ProductCeeConfig(BaseModel):
    """Configuration CEE d'un produit (catégorie, formule, champ multiplicateur)"""
    model_config = ConfigDict(extra="ignore")

    category: Optional[str] = None
    formula_template: Literal["standard", "lighting-led"] = "standard"
    multiplier_key: Optional[str] = None


class CatalogProduct(BaseModel):
    """Produit du catalogue tel que consommé par le calcul Prime CEE"""
    model_config = ConfigDict(extra="ignore")

    id: str
    org_id: Optional[str] = None
    code: Optional[str] = ""
    name: Optional[str] = ""
    category: Optional[str] = ""
    is_active: bool = True
    params_schema: List[ParamField] = Field(default_factory=list)
    kwh_cumac_values: List[KwhCumacValue] = Field(default_factory=list)
    cee_config: Optional[ProductCeeConfig] = None

    @field_validator("params_schema", mode="before")
    @classmethod
    def _normalize_schema(cls, value):
        return normalize_schema_fields(value)


class Delegate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    name: Optional[str] = ""
    price_eur_per_mwh: Optional[float] = None

    @field_validator("price_eur_per_mwh", mode="before")
    @classmethod
    def _coerce_price(cls, value):
        return to_number(value)


class ParamsValidationRequest(BaseModel):
    params_schema: Any = None
    values: Optional[Dict[str, Any]] = None
