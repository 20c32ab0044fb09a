"""
EcoProRenov - Modèle Devis (contenu PDF)

Le contenu imprimable d'un devis est stocké en JSON dans quotes.notes
(ou quotes.pdf). Plusieurs noms de clés coexistent selon l'origine du
devis: les AliasChoices les acceptent tous.
"""

import math
import re
from typing import Optional, List

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

DEFAULT_VAT_RATE = 0.085
DEFAULT_PRIME_CEE_TEXT = (
    "Le montant de la prime CEE est soumis à validation définitive des certificats d'économie d'énergie."
)
DEFAULT_PAYMENT_TERMS = "Par prélèvement ou par virement bancaire à réception de facture."


def parse_amount(value):
    """'1 234,50 €' -> 1234.5; None / '' laissés tels quels"""
    if value is None or value == "" or isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        cleaned = re.sub(r"[^0-9,.\-]", "", value).replace(",", ".")
        try:
            parsed = float(cleaned)
        except ValueError:
            return value
        if math.isfinite(parsed):
            return parsed
    return value


class _QuotePart(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, str_strip_whitespace=True)


class QuotePdfItem(_QuotePart):
    code: Optional[str] = Field(None, validation_alias=AliasChoices("code", "item_code", "reference"))
    title: str = Field(..., min_length=1, validation_alias=AliasChoices("title", "item_title", "description", "name"))
    long_description: Optional[str] = Field(
        None, validation_alias=AliasChoices("long_description", "item_long_description", "longDescription", "details")
    )
    unit_price_ht: float = Field(..., validation_alias=AliasChoices("unit_price_ht", "unitPrice", "unit_price", "price"))
    quantity: float = Field(0, validation_alias=AliasChoices("quantity", "qty"))

    @field_validator("unit_price_ht", "quantity", mode="before")
    @classmethod
    def _amount(cls, v, info):
        if v is None and info.field_name == "quantity":
            return 0
        return parse_amount(v)

    @field_validator("code", mode="before")
    @classmethod
    def _code(cls, v):
        return None if v is None else str(v)


class QuotePdfClient(_QuotePart):
    company_name: str = Field(..., validation_alias=AliasChoices("company_name", "companyName", "raison_sociale"))
    siret_or_siren: str = Field(..., validation_alias=AliasChoices("siret_or_siren", "siret", "siren"))
    address_line1: str = Field(..., validation_alias=AliasChoices("address_line1", "address", "addressLine1"))
    address_line2: Optional[str] = Field(None, validation_alias=AliasChoices("address_line2", "addressLine2"))
    city_postcode: str = Field(
        ..., validation_alias=AliasChoices("city_postcode", "city", "postcode_city", "postal_city")
    )
    contact_name: Optional[str] = Field(None, validation_alias=AliasChoices("contact_name", "contact", "signatory_name"))
    contact_role: Optional[str] = Field(None, validation_alias=AliasChoices("contact_role", "signatory_role"))
    phone: Optional[str] = Field(None, validation_alias=AliasChoices("phone", "telephone"))
    email: Optional[str] = None


class QuotePdfBuilding(_QuotePart):
    type: str = Field("", validation_alias=AliasChoices("type", "building_type"))
    usage: str = Field("", validation_alias=AliasChoices("usage", "building_usage"))
    surface_total_m2: float = Field(0, validation_alias=AliasChoices("surface_total_m2", "surfaceTotal", "surface"))
    surface_operation_m2: float = Field(
        0, validation_alias=AliasChoices("surface_operation_m2", "surfaceOperation", "surface_operation")
    )

    @field_validator("surface_total_m2", "surface_operation_m2", mode="before")
    @classmethod
    def _surface(cls, v):
        return 0 if v is None or v == "" else parse_amount(v)


class QuotePdfCompany(_QuotePart):
    label: str = Field("ECOPRORENOVE", validation_alias=AliasChoices("label", "name"))
    address1: str = Field("104C Avenue Raymond Vergès", validation_alias=AliasChoices("address1", "address"))
    postcode_city: str = Field("97400 Saint-Denis", validation_alias=AliasChoices("postcode_city", "postal_city"))
    phone: str = "09 70 34 64 23"
    legal_footer: str = Field(
        "Ecoprorenove (EB.CONSEILS), SAS au capital de 1000 € - SIRET : 89497510900058 - "
        "RCS : Saint-Denis de La Réunion - APE : 7112B - TVA intracommunautaire : FR 90 894975109",
        validation_alias=AliasChoices("legal_footer", "legalFooter"),
    )
    bank_bic: str = "AGRIFRPP880"
    bank_iban: str = "FR76 3000 4012 3400 0100 6755 701"


class QuotePdfNotes(_QuotePart):
    prime_cee_text: str = Field(DEFAULT_PRIME_CEE_TEXT, validation_alias=AliasChoices("prime_cee_text", "primeCeeText"))
    payment_terms: str = Field(DEFAULT_PAYMENT_TERMS, validation_alias=AliasChoices("payment_terms", "paymentTerms"))


class QuotePdfDocument(_QuotePart):
    """Contenu complet d'un devis imprimable"""
    quote_number: str = Field(..., validation_alias=AliasChoices("quote_number", "number", "quoteNumber"))
    quote_date_city: str = Field("", validation_alias=AliasChoices("quote_date_city", "city"))
    quote_date: Optional[str] = Field(None, validation_alias=AliasChoices("quote_date", "date"))
    valid_until: Optional[str] = None
    scheduled_date: Optional[str] = Field(None, validation_alias=AliasChoices("scheduled_date", "scheduledDate"))
    discount_amount: float = Field(0, validation_alias=AliasChoices("discount_amount", "discount"))
    cee_prime_amount: float = Field(0, validation_alias=AliasChoices("cee_prime_amount", "prime_cee_amount"))
    vat_rate: float = Field(DEFAULT_VAT_RATE, validation_alias=AliasChoices("vat_rate", "vatRate"))
    client: QuotePdfClient = Field(..., validation_alias=AliasChoices("client", "customer"))
    building: QuotePdfBuilding = Field(default_factory=QuotePdfBuilding)
    company: QuotePdfCompany = Field(default_factory=QuotePdfCompany)
    items: List[QuotePdfItem] = Field(default_factory=list)
    notes: QuotePdfNotes = Field(default_factory=QuotePdfNotes)

    @field_validator("quote_number", mode="before")
    @classmethod
    def _number(cls, v):
        return None if v is None else str(v)

    @field_validator("discount_amount", "cee_prime_amount", "vat_rate", mode="before")
    @classmethod
    def _amounts(cls, v, info):
        if v is None or v == "":
            return DEFAULT_VAT_RATE if info.field_name == "vat_rate" else 0
        return parse_amount(v)

    @field_validator("building", "company", "notes", mode="before")
    @classmethod
    def _optional_block(cls, v):
        return v if isinstance(v, (dict, BaseModel)) else {}
