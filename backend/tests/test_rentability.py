"""
EcoProRenov - Rentabilité chantier
Coûts, marge, taux et marge par unité (m² ou luminaire).
"""

import pytest

from services.rentability import (
    calculate_rentability,
    additional_costs_total,
    sanitize_number,
    normalize_travaux_choice,
    is_lighting_product,
    build_rentability_input_from_site,
    rentability_persisted_fields,
)


def _base(**fields):
    data = {
        "revenue": 10000,
        "cout_main_oeuvre_m2_ht": 20,
        "cout_isolation_m2": 30,
        "isolation_utilisee_m2": 100,
        "surface_facturee": 100,
        "commission_active": True,
        "montant_commission": 500,
        "product_name": "Isolation toiture",
    }
    data.update(fields)
    return data


class TestCalculateRentability:

    def test_reference_example(self):
        """10000 € - (2000 MO + 3000 matériau + 500 commission) = 4500 €"""
        result = calculate_rentability(_base())

        assert result["total_costs"] == 5500
        assert result["margin_total"] == 4500
        assert result["margin_rate"] == pytest.approx(0.45)
        assert result["units_used"] == 100
        assert result["margin_per_unit"] == 45
        assert result["unit_label"] == "m²"
        assert result["cost_breakdown"] == {
            "labor": 2000,
            "material": 3000,
            "commission": 500,
            "commission_per_unit": 0,
            "subcontractor": 0,
            "travaux": 0,
            "additional": 0,
        }

    def test_inactive_commission_ignored(self):
        result = calculate_rentability(_base(commission_active=False))
        assert result["total_costs"] == 5000

    def test_zero_revenue_rate_is_zero(self):
        result = calculate_rentability(_base(revenue=0))
        assert result["margin_rate"] == 0
        assert result["margin_total"] == -5500

    def test_no_units_margin_per_unit_zero(self):
        result = calculate_rentability(_base(isolation_utilisee_m2=0, surface_facturee=0))
        assert result["margin_per_unit"] == 0

    def test_billed_surface_falls_back_to_installed(self):
        result = calculate_rentability(_base(surface_facturee=None, isolation_utilisee_m2=50))
        assert result["units_used"] == 50

    def test_garbage_values_count_as_zero(self):
        result = calculate_rentability({
            "revenue": "abc",
            "cout_main_oeuvre_m2_ht": float("nan"),
            "isolation_utilisee_m2": None,
            "montant_commission": 300,
            "commission_active": "oui",
        })
        assert result["revenue"] == 0
        assert result["total_costs"] == 300
        assert result["margin_rate"] == 0

    def test_lighting_uses_luminaires(self):
        result = calculate_rentability({
            "revenue": 2000,
            "cout_main_oeuvre_m2_ht": 10,
            "cout_isolation_m2": 40,
            "nb_luminaires": 20,
            "product_name": "Luminaire LED haute baie",
        })
        assert result["unit_label"] == "luminaire"
        assert result["total_costs"] == 1000
        assert result["margin_per_unit"] == 50

    def test_additional_costs_added(self):
        result = calculate_rentability(_base(additional_costs=[
            {"label": "Nacelle", "amount_ht": 400, "montant_tva": 34},
            {"label": "", "amount_ht": 999},
        ]))
        assert result["additional_costs_total"] == 434
        assert result["total_costs"] == 5934

    def test_travaux_client_is_a_cost_only(self):
        result = calculate_rentability(_base(travaux_choice="client", travaux_non_subventionnes_montant=1000))
        assert result["revenue"] == 10000
        assert result["total_costs"] == 6500
        assert result["margin_total"] == 3500

    def test_travaux_marge_absorbed(self):
        result = calculate_rentability(_base(travaux_choice="MARGE", travaux_non_subventionnes_montant=1000))
        assert result["revenue"] == 10000
        assert result["margin_total"] == 3500

    def test_travaux_partage_counted_in_full(self):
        result = calculate_rentability(_base(travaux_choice="MOITIE", travaux_non_subventionnes_montant=1000))
        assert result["travaux_choice"] == "PARTAGE"
        assert result["revenue"] == 10000
        assert result["cost_breakdown"]["travaux"] == 1000
        assert result["margin_total"] == 3500

    def test_travaux_na_ignored(self):
        result = calculate_rentability(_base(travaux_choice="NA", travaux_non_subventionnes_montant=1000))
        assert result["total_costs"] == 5500


class TestRentabilityExtras:

    def test_prime_cee_added_to_revenue(self):
        result = calculate_rentability(_base(valorisation_cee="2 000"))
        assert result["prime_cee"] == 2000
        assert result["revenue"] == 12000
        assert result["margin_total"] == 6500

    def test_commission_per_unit(self):
        result = calculate_rentability(_base(commission_eur_per_m2_enabled=True, commission_eur_per_m2=2.5))
        assert result["cost_breakdown"]["commission_per_unit"] == 250
        assert result["total_costs"] == 5750

    def test_commission_per_unit_disabled(self):
        result = calculate_rentability(_base(commission_eur_per_m2_enabled=False, commission_eur_per_m2=2.5))
        assert result["cost_breakdown"]["commission_per_unit"] == 0

    def test_subcontractor_counted_when_confirmed(self):
        result = calculate_rentability(_base(subcontractor_payment_rate=8, subcontractor_payment_confirmed=True))
        assert result["subcontractor_estimated_cost"] == 800
        assert result["cost_breakdown"]["subcontractor"] == 800
        assert result["margin_total"] == 3700

    def test_subcontractor_ignored_until_confirmed(self):
        result = calculate_rentability(_base(subcontractor_payment_rate=8, subcontractor_payment_confirmed=False))
        assert result["subcontractor_estimated_cost"] == 800
        assert result["cost_breakdown"]["subcontractor"] == 0
        assert result["margin_total"] == 4500

    def test_subcontractor_rate_from_paid_amount(self):
        result = calculate_rentability(_base(
            subcontractor_payment_amount=600,
            subcontractor_base_units=60,
            subcontractor_payment_confirmed="oui",
        ))
        assert result["subcontractor_rate"] == 10
        assert result["subcontractor_base_units"] == 60
        assert result["cost_breakdown"]["subcontractor"] == 600

    def test_subcontractor_lighting_units(self):
        result = calculate_rentability({
            "revenue": 2000,
            "nb_luminaires": 20,
            "product_name": "Réglette LED",
            "subcontractor_payment_rate": 15,
            "subcontractor_payment_confirmed": True,
        })
        assert result["cost_breakdown"]["subcontractor"] == 300


class TestHelpers:

    def test_sanitize_number(self):
        assert sanitize_number("12,5") == 12.5
        assert sanitize_number("1 000") == 1000
        assert sanitize_number(True) == 0
        assert sanitize_number(float("inf")) == 0
        assert sanitize_number([1]) == 0

    def test_travaux_choice_unknown(self):
        assert normalize_travaux_choice("autre") == "NA"
        assert normalize_travaux_choice(None) == "NA"

    def test_additional_costs_ttc_only(self):
        assert additional_costs_total([{"label": "Benne", "amount_ht": 100, "amount_ttc": 108.5}]) == 108.5

    def test_lighting_detection(self):
        assert is_lighting_product("Réglette LED")
        assert is_lighting_product("Produit", category="Éclairage")
        assert not is_lighting_product("Isolation combles")
        assert not is_lighting_product(None)

    def test_site_input_uses_project_product(self):
        data = build_rentability_input_from_site({"revenue": 10}, {"product_name": "Luminaire", "category": None})
        assert data["product_name"] == "Luminaire"
        assert data["is_lighting"] is True

    def test_persisted_fields_rounded(self):
        fields = rentability_persisted_fields(calculate_rentability(_base(revenue=10000.456)))
        assert fields["rentability_margin_total"] == 4500.46
        assert fields["rentability_unit_label"] == "m²"
