"""
EcoProRenov - Génération de facture

Une facture DRAFT par appel, à partir du dernier devis et du dernier
chantier du projet. Autorisée uniquement en VISITE_TECHNIQUE ou LIVRE.
Montant: CA du dernier chantier, sinon montant du devis.
"""

import logging
import math
import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, List

from config import new_id, parse_iso
from errors import ForbiddenError, ValidationError
from services.chantier_service import resolve_client_name
from services.event_logger import log_event_safe
from services.project_service import get_project_or_404
from services.status_order import normalize_status

logger = logging.getLogger("invoices")

ALLOWED_INVOICE_STATUSES = ("VISITE_TECHNIQUE", "LIVRE")
INVOICE_INITIAL_STATUS = "DRAFT"
INVOICE_DUE_DAYS = 30

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _to_number(value) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    if isinstance(value, str):
        try:
            parsed = float(value.strip())
        except ValueError:
            return None
        return parsed if math.isfinite(parsed) else None
    return None


def _finite(value) -> Optional[float]:
    """Nombre fini (les chaînes ne comptent pas)"""
    if isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value):
        return float(value)
    return None


def is_allowed_for_invoice(status: Optional[str]) -> bool:
    return normalize_status(status) in ALLOWED_INVOICE_STATUSES


def build_invoice_reference(project_ref: Optional[str], now: datetime = None) -> str:
    """<PROJECTREF>-INV-<timestamp ISO compact>, ex: PRJ-12-INV-20240501103000123"""
    now = now or datetime.now(timezone.utc)
    timestamp = now.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    timestamp = re.sub(r"[-:TZ.]", "", timestamp)
    base = re.sub(r"\s+", "", project_ref or "PROJET").upper()
    return f"{base}-INV-{timestamp}"


def latest_chantier(chantiers: List[Dict]) -> Optional[Dict]:
    """Chantier le plus récemment modifié (updated_at, sinon created_at)"""
    latest = None
    latest_date = None
    for chantier in chantiers or []:
        date = parse_iso(chantier.get("updated_at") or chantier.get("created_at")) or _EPOCH
        if latest is None or date > latest_date:
            latest, latest_date = chantier, date
    return latest


def format_invoice_notes(
    quote_ref: Optional[str] = None,
    quote_amount: Optional[float] = None,
    chantier_ref: Optional[str] = None,
    chantier_status: Optional[str] = None,
    surface_facturee=None,
    valorisation_cee=None,
) -> str:
    segments = []

    if quote_ref:
        if quote_amount is not None:
            segments.append(f"Basé sur le devis {quote_ref} ({quote_amount:.2f} €)")
        else:
            segments.append(f"Basé sur le devis {quote_ref}")

    if chantier_ref:
        if chantier_status:
            segments.append(f"Dernier chantier : {chantier_ref} ({chantier_status})")
        else:
            segments.append(f"Dernier chantier : {chantier_ref}")

    surface = _finite(surface_facturee)
    if surface is not None:
        segments.append(f"Surface facturée : {surface:.2f} m²")

    valorisation = _finite(valorisation_cee)
    if valorisation is not None:
        segments.append(f"Valorisation CEE : {valorisation:.2f} €")

    return "\n".join(segments)


async def generate_invoice_for_project(repo, org_id: str, project_id: str, user: str = "system") -> Dict:
    """
    Crée la facture brouillon d'un projet.
    NotFoundError / ForbiddenError / ValidationError avant toute écriture.
    """
    project = await get_project_or_404(repo, org_id, project_id)

    if not is_allowed_for_invoice(project.get("status")):
        raise ForbiddenError(
            "La génération de facture est uniquement autorisée pour les projets en visite technique ou livrés"
        )

    quotes = await repo.list_quotes(org_id, project_id)
    chantiers = await repo.list_sites(org_id, project_id)

    quote = quotes[0] if quotes else None
    if not quote:
        raise ValidationError("Aucun devis n'est associé à ce projet")

    chantier = latest_chantier(chantiers)
    revenue = _to_number(chantier.get("revenue")) if chantier else None
    quote_amount = _to_number(quote.get("amount"))
    amount = revenue if revenue is not None else quote_amount

    if amount is None or amount <= 0:
        raise ValidationError("Impossible de générer une facture sans montant valide")

    now = datetime.now(timezone.utc)
    invoice = await repo.insert_invoice({
        "id": new_id(),
        "org_id": org_id,
        "project_id": project_id,
        "user_id": project.get("user_id"),
        "quote_id": quote.get("id"),
        "invoice_ref": build_invoice_reference(project.get("project_ref"), now),
        "client_name": resolve_client_name(project),
        "client_first_name": project.get("client_first_name"),
        "client_last_name": project.get("client_last_name"),
        "amount": amount,
        "status": INVOICE_INITIAL_STATUS,
        "due_date": (now + timedelta(days=INVOICE_DUE_DAYS)).isoformat(),
        "notes": format_invoice_notes(
            quote_ref=quote.get("quote_ref"),
            quote_amount=quote_amount,
            chantier_ref=chantier.get("site_ref") if chantier else None,
            chantier_status=chantier.get("status") if chantier else None,
            surface_facturee=chantier.get("surface_facturee") if chantier else None,
            valorisation_cee=chantier.get("valorisation_cee") if chantier else None,
        ) or None,
        "created_at": now.isoformat(),
        "updated_at": now.isoformat(),
    })

    logger.info(f"[INVOICE] {invoice['invoice_ref']} créée pour project={project_id} ({amount:.2f} €)")
    await log_event_safe(
        repo, "invoice_generated", "invoice", invoice["id"], org_id,
        user=user,
        details={"invoice_ref": invoice["invoice_ref"], "amount": amount},
        related={"project_id": project_id, "quote_id": quote.get("id")},
    )
    return {"invoice": invoice}
