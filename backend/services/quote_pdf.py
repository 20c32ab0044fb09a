"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  EcoProRenov - DEVIS PDF                                                     ║
║                                                                              ║
║  total lignes = Σ arrondi(prix HT × quantité)                                ║
║  total HT     = total lignes + remise (remise négative)                      ║
║  TVA          = total HT × taux                                              ║
║  TTC          = total HT + TVA                                               ║
║  net à payer  = TTC + prime CEE (montant négatif)                            ║
║  Chaque étape arrondie au centime.                                           ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import asyncio
import io
import json
import logging
import re
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Optional
from xml.sax.saxutils import escape

from pydantic import ValidationError as PydanticValidationError
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.units import cm
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer

from config import parse_iso
from errors import NotFoundError, UnprocessableError
from models.quote import QuotePdfDocument

logger = logging.getLogger("quotes_pdf")

_DMY = re.compile(r"^(\d{1,2})[-/](\d{1,2})[-/](\d{4})$")


# ==================== FORMAT ====================

def bank_round(value: float) -> float:
    """Arrondi au centime, demi vers le haut"""
    return float(Decimal(str(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def format_number(value: float, decimals: int = 2) -> str:
    """1234.5 -> '1 234,50'"""
    text = f"{value:,.{decimals}f}"
    return text.replace(",", " ").replace(".", ",")


def format_currency(value: float) -> str:
    return f"{format_number(value, 2)} €"


def format_quantity(value: float) -> str:
    return format_number(value, 0 if float(value).is_integer() else 2)


def format_percentage(rate: float) -> str:
    return f"{format_number(rate * 100, 1)} %"


def format_date(value: Optional[str], fallback: str = "-") -> str:
    if not value:
        return fallback
    match = _DMY.match(value.strip())
    if match:
        day, month, year = match.groups()
        return f"{int(day):02d}/{int(month):02d}/{year}"
    parsed = parse_iso(value)
    return parsed.strftime("%d/%m/%Y") if parsed else fallback


# ==================== CALCULS ====================

def compute_quote_totals(document: QuotePdfDocument) -> Dict:
    lines = [bank_round(item.unit_price_ht * item.quantity) for item in document.items]
    lines_total = sum(lines)
    total_ht = bank_round(lines_total + document.discount_amount)
    vat_amount = bank_round(total_ht * document.vat_rate)
    total_ttc = bank_round(total_ht + vat_amount)
    net_to_pay = bank_round(total_ttc + document.cee_prime_amount)
    return {
        "lines": lines,
        "lines_total": bank_round(lines_total),
        "total_ht": total_ht,
        "vat_amount": vat_amount,
        "total_ttc": total_ttc,
        "discount_amount": document.discount_amount,
        "cee_prime_amount": document.cee_prime_amount,
        "net_to_pay": net_to_pay,
    }


# ==================== CHARGEMENT ====================

def parse_quote_document(quote: Dict) -> QuotePdfDocument:
    """
    Construit le contenu PDF depuis l'enregistrement devis.
    Contenu absent / JSON invalide / champs manquants -> UnprocessableError.
    """
    raw = quote.get("pdf") or quote.get("notes")
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise UnprocessableError("Le champ notes du devis contient un JSON invalide")
    if not isinstance(raw, dict):
        raise UnprocessableError("Le devis ne contient pas les informations nécessaires pour générer le PDF")

    payload = raw.get("pdf") or raw.get("quote") or raw
    if not isinstance(payload, dict):
        raise UnprocessableError("Le contenu du devis est invalide")

    payload = dict(payload)
    if not any(payload.get(k) is not None for k in ("quote_number", "number", "quoteNumber")):
        payload["quote_number"] = quote.get("quote_ref")
    if not payload.get("valid_until"):
        payload["valid_until"] = quote.get("valid_until")

    try:
        document = QuotePdfDocument.model_validate(payload)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise UnprocessableError(f"Contenu du devis invalide ({location}): {first['msg']}")

    if not document.items:
        raise UnprocessableError("Les lignes du devis sont manquantes")
    return document


async def load_quote_document(repo, org_id: str, quote_id: str) -> QuotePdfDocument:
    quote = await repo.get_quote(org_id, quote_id)
    if not quote:
        raise NotFoundError(f"Aucun devis trouvé pour l'identifiant {quote_id}")
    return parse_quote_document(quote)


# ==================== RENDU ====================

def render_quote_pdf(document: QuotePdfDocument) -> bytes:
    """Rendu reportlab (synchrone)"""
    buffer = io.BytesIO()
    totals = compute_quote_totals(document)

    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        title=f"Devis {document.quote_number}",
        author=document.company.label,
        leftMargin=1.5 * cm,
        rightMargin=1.5 * cm,
        topMargin=1.5 * cm,
        bottomMargin=1.5 * cm,
    )

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        'QuoteTitle',
        parent=styles['Heading1'],
        fontSize=16,
        spaceAfter=8,
        textColor=colors.HexColor("#1f4e79"),
    )
    normal_style = ParagraphStyle('QuoteNormal', parent=styles['Normal'], fontSize=9, leading=12)
    small_style = ParagraphStyle('QuoteSmall', parent=styles['Normal'], fontSize=7, leading=9, textColor=colors.grey)

    def p(text, style=normal_style):
        return Paragraph(escape(text or "").replace("\n", "<br/>"), style)

    company = document.company
    client = document.client
    content = []

    # En-tête
    header = Table(
        [[
            p(f"{company.label}\n{company.address1}\n{company.postcode_city}\nTél : {company.phone}"),
            p(
                "\n".join(filter(None, [
                    client.company_name,
                    f"SIRET/SIREN : {client.siret_or_siren}",
                    client.address_line1,
                    client.address_line2,
                    client.city_postcode,
                    client.contact_name and f"Contact : {client.contact_name}"
                    + (f" ({client.contact_role})" if client.contact_role else ""),
                    client.phone,
                    client.email,
                ]))
            ),
        ]],
        colWidths=[9 * cm, 9 * cm],
    )
    header.setStyle(TableStyle([('VALIGN', (0, 0), (-1, -1), 'TOP')]))
    content.append(header)
    content.append(Spacer(1, 0.6 * cm))

    content.append(Paragraph(escape(f"Devis n° {document.quote_number}"), title_style))
    city = f"{document.quote_date_city}, le " if document.quote_date_city else "Le "
    content.append(p(
        f"{city}{format_date(document.quote_date)}\n"
        f"Valable jusqu'au {format_date(document.valid_until)}\n"
        f"Date prévisionnelle des travaux : {format_date(document.scheduled_date)}"
    ))
    content.append(Spacer(1, 0.4 * cm))

    building = document.building
    content.append(p(
        f"Bâtiment : {building.type or '-'} / {building.usage or '-'}\n"
        f"Surface totale : {format_quantity(building.surface_total_m2)} m² - "
        f"Surface concernée : {format_quantity(building.surface_operation_m2)} m²"
    ))
    content.append(Spacer(1, 0.5 * cm))

    # Lignes
    data = [["Code", "Désignation", "PU HT", "Qté", "Montant HT"]]
    for item, amount in zip(document.items, totals["lines"]):
        designation = item.title if not item.long_description else f"{item.title}\n{item.long_description}"
        data.append([
            item.code or "-",
            p(designation),
            format_currency(item.unit_price_ht),
            format_quantity(item.quantity),
            format_currency(amount),
        ])

    lines_table = Table(data, colWidths=[2.2 * cm, 8.3 * cm, 2.7 * cm, 1.6 * cm, 3.2 * cm], repeatRows=1)
    lines_style = TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor("#1f4e79")),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 8),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.grey),
        ('ALIGN', (2, 1), (-1, -1), 'RIGHT'),
        ('VALIGN', (0, 0), (-1, -1), 'TOP'),
    ])
    for row in range(1, len(data)):
        if row % 2 == 0:
            lines_style.add('BACKGROUND', (0, row), (-1, row), colors.HexColor("#f2f2f2"))
    lines_table.setStyle(lines_style)
    content.append(lines_table)
    content.append(Spacer(1, 0.5 * cm))

    # Totaux
    totals_rows = [
        ["Total HT", format_currency(totals["total_ht"])],
        [f"TVA {format_percentage(document.vat_rate)}", format_currency(totals["vat_amount"])],
        ["Total TTC", format_currency(totals["total_ttc"])],
    ]
    if document.discount_amount:
        totals_rows.insert(0, ["Remise", format_currency(document.discount_amount)])
    if document.cee_prime_amount:
        totals_rows.append(["Prime CEE", format_currency(document.cee_prime_amount)])
    totals_rows.append(["Net à payer", format_currency(totals["net_to_pay"])])

    totals_table = Table(totals_rows, colWidths=[4.5 * cm, 3.5 * cm], hAlign='RIGHT')
    totals_table.setStyle(TableStyle([
        ('FONTSIZE', (0, 0), (-1, -1), 9),
        ('ALIGN', (1, 0), (1, -1), 'RIGHT'),
        ('LINEABOVE', (0, -1), (-1, -1), 1, colors.black),
        ('FONTNAME', (0, -1), (-1, -1), 'Helvetica-Bold'),
    ]))
    content.append(totals_table)
    content.append(Spacer(1, 0.6 * cm))

    content.append(p(document.notes.prime_cee_text))
    content.append(p(f"Conditions de paiement : {document.notes.payment_terms}"))
    content.append(p(f"BIC : {company.bank_bic} - IBAN : {company.bank_iban}"))
    content.append(Spacer(1, 0.6 * cm))
    content.append(p(company.legal_footer, small_style))

    doc.build(content)
    return buffer.getvalue()


async def generate_quote_pdf(repo, org_id: str, quote_id: str) -> bytes:
    document = await load_quote_document(repo, org_id, quote_id)
    loop = asyncio.get_running_loop()
    pdf = await loop.run_in_executor(None, render_quote_pdf, document)
    logger.info(f"[QUOTE_PDF] devis={quote_id} généré ({len(pdf)} octets)")
    return pdf
