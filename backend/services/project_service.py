"""
EcoProRenov - Service Projets

- Détail d'un projet (chantiers, devis, factures)
- Changement de statut projet (garde + plancher chantiers + cascade)
- Bundle d'export d'un projet (sauvegarde unitaire)
"""

import hashlib
import json
import logging
from typing import Dict, List, Optional

from config import APP_NAME, APP_VERSION, CHANTIER_STATUS_MODEL, now_iso, parse_iso
from errors import NotFoundError, ValidationError
from services.event_logger import log_event_safe
from services.status_machine import (
    ensure_project_status_transition,
    ensure_project_status_not_behind_chantiers,
)
from services.status_order import normalize_status

logger = logging.getLogger("projects")


async def get_project_or_404(repo, org_id: str, project_id: str) -> Dict:
    project = await repo.get_project(org_id, project_id)
    if not project:
        raise NotFoundError("Projet introuvable")
    return project


async def get_project_details(repo, org_id: str, project_id: str) -> Dict:
    project = await get_project_or_404(repo, org_id, project_id)
    chantiers = await repo.list_sites(org_id, project_id)
    quotes = await repo.list_quotes(org_id, project_id)
    invoices = await repo.list_invoices(org_id, project_id)
    return {
        "project": project,
        "chantiers": chantiers,
        "quotes": quotes,
        "invoices": invoices,
    }


async def update_project_status(
    repo,
    org_id: str,
    project_id: str,
    next_status: Optional[str],
    user: str = "system",
    model: str = None,
) -> Dict:
    """
    Changement manuel de statut projet.

    1. statut cible connu, pas de retour en arrière
    2. pas derrière le chantier le plus avancé
    3. écriture projet
    4. modèle unified: statut recopié sur tous les chantiers du projet;
       en cas d'échec, chaque chantier reprend son statut précédent
       puis le statut projet précédent est réécrit
    """
    model = model or CHANTIER_STATUS_MODEL
    status = normalize_status(next_status)
    if not status:
        raise ValidationError("Statut projet manquant")

    project = await get_project_or_404(repo, org_id, project_id)
    previous = project.get("status") or ""

    ensure_project_status_transition(previous, status)

    chantiers = await repo.list_sites(org_id, project_id)
    ensure_project_status_not_behind_chantiers(status, chantiers, model)

    updated = await repo.update_project(org_id, project_id, {"status": status, "updated_at": now_iso()})
    if not updated:
        raise NotFoundError("Projet introuvable")

    synced_chantiers: List[Dict] = chantiers
    if model == "unified" and chantiers:
        try:
            synced_chantiers = await repo.update_sites_for_project(
                org_id, project_id, {"status": status, "updated_at": now_iso()}
            )
        except Exception as e:
            logger.error(f"[PROJECT_STATUS] project={project_id} cascade chantiers échouée: {e}, rollback -> {previous}")
            await _rollback_project_status(repo, org_id, project_id, previous, status, chantiers, e, user)
            raise

    await log_event_safe(
        repo, "project_status_change", "project", project_id, org_id,
        user=user, details={"old_status": previous, "new_status": status},
    )
    logger.info(f"[PROJECT_STATUS] project={project_id} {previous or '-'} -> {status}")

    return {"project": updated, "chantiers": synced_chantiers}


async def _rollback_project_status(repo, org_id, project_id, previous, attempted, chantiers, error, user):
    """Réécrit le statut de chaque chantier (instantané avant cascade) puis celui du projet"""
    failures = []
    for chantier in chantiers:
        try:
            await repo.update_site(org_id, chantier["id"], {
                "status": chantier.get("status"),
                "updated_at": chantier.get("updated_at") or now_iso(),
            })
        except Exception as site_error:
            failures.append(f"chantier {chantier['id']}: {site_error}")

    try:
        await repo.update_project(org_id, project_id, {"status": previous or None, "updated_at": now_iso()})
    except Exception as project_error:
        failures.append(f"projet: {project_error}")

    if not failures:
        logger.warning(f"[PROJECT_STATUS] project={project_id} statut restauré à {previous or '-'} ({len(chantiers)} chantier(s))")
        return

    rollback_error = "; ".join(failures)
    logger.critical(
        f"[DATA_CONSISTENCY] project={project_id} rollback statut incomplet "
        f"(attendu {previous}, écrit {attempted}): {rollback_error}"
    )
    await log_event_safe(
        repo, "project_status_rollback_failed", "project", project_id, org_id,
        user=user, level="critical",
        details={
            "expected_status": previous,
            "written_status": attempted,
            "error": str(error),
            "rollback_error": rollback_error,
        },
    )


# ════════════════════════════════════════════════════════════════════════
# EXPORT D'UN PROJET
# ════════════════════════════════════════════════════════════════════════

def _latest_iso(values) -> Optional[str]:
    dates = [d for d in (parse_iso(v) for v in values) if d is not None]
    return max(dates).isoformat() if dates else None


def _activity_dates(docs: List[Dict]) -> List[Optional[str]]:
    return [doc.get("updated_at") or doc.get("created_at") for doc in docs]


async def export_project_bundle(repo, org_id: str, project_id: str) -> Dict:
    """
    Projet complet + métadonnées d'export.
    checksum = SHA-256 du JSON (clés triées) de {meta, project} sans checksum.
    """
    details = await get_project_details(repo, org_id, project_id)
    project = {
        **details["project"],
        "sites": details["chantiers"],
        "quotes": details["quotes"],
        "invoices": details["invoices"],
    }

    latest_sites = _latest_iso(_activity_dates(details["chantiers"]))
    latest_quotes = _latest_iso(_activity_dates(details["quotes"]))
    latest_invoices = _latest_iso(_activity_dates(details["invoices"]))
    project_updated = _latest_iso([project.get("updated_at")])

    meta = {
        "exported_at": now_iso(),
        "app": APP_NAME,
        "version": APP_VERSION,
        "project_id": project_id,
        "org_id": org_id,
        "project_created_at": _latest_iso([project.get("created_at")]),
        "project_updated_at": project_updated,
        "last_activity_at": _latest_iso([project_updated, latest_sites, latest_quotes, latest_invoices]),
        "latest_invoice_activity_at": latest_invoices,
        "sites_count": len(details["chantiers"]),
        "quotes_count": len(details["quotes"]),
        "invoices_count": len(details["invoices"]),
    }

    base = {"meta": meta, "project": project}
    encoded = json.dumps(base, sort_keys=True, separators=(",", ":"), default=str, ensure_ascii=False)
    meta["checksum"] = hashlib.sha256(encoded.encode("utf-8")).hexdigest()
    return base
