"""
EcoProRenov - Paramètres dynamiques produit
"""

import pytest

from errors import ValidationError
from services.product_params import (
    to_number,
    normalize_for_comparison,
    get_dynamic_field_entries,
    get_dynamic_field_numeric_value,
    validate_dynamic_params,
)

SCHEMA = [
    {"name": "surface_isolee", "label": "Surface isolée", "type": "number", "unit": "m²", "min": 0, "required": True},
    {"name": "epaisseur", "label": "Épaisseur", "type": "select", "options": ["100", "200"], "default": "100"},
    {"name": "pare_vapeur", "label": "Pare-vapeur", "type": "checkbox"},
    {"name": "remarque", "type": "textarea"},
]


class TestHelpers:

    def test_to_number(self):
        assert to_number("1 234,5") == 1234.5
        assert to_number(3) == 3.0
        assert to_number("") is None
        assert to_number("x") is None
        assert to_number(True) is None
        assert to_number(float("nan")) is None

    def test_normalize_for_comparison(self):
        assert normalize_for_comparison("Surface isolée (m²)") == "surface isolee m"

    def test_entries_follow_schema_order(self):
        entries = get_dynamic_field_entries(SCHEMA, {"remarque": "ok", "surface_isolee": 12, "pare_vapeur": ""})
        assert [e["name"] for e in entries] == ["surface_isolee", "remarque"]
        assert entries[0]["unit"] == "m²"

    def test_numeric_value_by_label(self):
        assert get_dynamic_field_numeric_value(SCHEMA, {"surface_isolee": "80,5"}, ["surface isolée"]) == 80.5
        assert get_dynamic_field_numeric_value(SCHEMA, {"surface_isolee": "80"}, []) is None

    def test_schema_wrapped_in_fields_key(self):
        entries = get_dynamic_field_entries({"fields": SCHEMA}, {"surface_isolee": 5})
        assert entries[0]["value"] == 5


class TestValidateDynamicParams:

    def test_valid_values_coerced(self):
        cleaned = validate_dynamic_params(SCHEMA, {"surface_isolee": "12,5", "pare_vapeur": "oui", "remarque": 42})
        assert cleaned == {"surface_isolee": 12.5, "epaisseur": "100", "pare_vapeur": True, "remarque": "42"}

    def test_unknown_key_refused(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_dynamic_params(SCHEMA, {"surface_isolee": 1, "couleur": "rouge"})
        assert exc_info.value.message.startswith("Paramètres produit invalides: ")
        assert "couleur: champ inconnu" in exc_info.value.message

    def test_required_missing(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_dynamic_params(SCHEMA, {})
        assert "Surface isolée: valeur requise" in exc_info.value.message

    def test_number_bounds(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_dynamic_params(SCHEMA, {"surface_isolee": -4})
        assert "minimum" in exc_info.value.message

    def test_select_outside_options(self):
        with pytest.raises(ValidationError):
            validate_dynamic_params(SCHEMA, {"surface_isolee": 1, "epaisseur": "300"})

    def test_checkbox_garbage(self):
        with pytest.raises(ValidationError):
            validate_dynamic_params(SCHEMA, {"surface_isolee": 1, "pare_vapeur": "peut-être"})

    def test_non_dict_values(self):
        with pytest.raises(ValidationError):
            validate_dynamic_params(SCHEMA, ["surface_isolee"])

    def test_unknown_type_treated_as_text(self):
        cleaned = validate_dynamic_params([{"name": "couleur", "type": "color"}], {"couleur": "bleu"})
        assert cleaned == {"couleur": "bleu"}

    def test_malformed_schema_refused(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_dynamic_params([{"name": "e", "type": "select", "options": "a,b"}], {"e": "a"})
        assert exc_info.value.message == "Schéma de paramètres produit invalide"

    def test_non_numeric_default_ignored(self):
        schema = [{"name": "surface", "type": "number", "default": "abc", "required": True}]
        with pytest.raises(ValidationError) as exc_info:
            validate_dynamic_params(schema, {})
        assert "surface: valeur requise" in exc_info.value.message

    def test_numeric_default_with_spaces(self):
        cleaned = validate_dynamic_params([{"name": "surface", "type": "number", "default": "1 234"}], {})
        assert cleaned == {"surface": 1234}
