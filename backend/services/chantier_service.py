"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  EcoProRenov - SERVICE CHANTIERS                                             ║
║                                                                              ║
║  - Démarrage d'un chantier depuis un projet                                  ║
║  - Changement de statut chantier + synchronisation du projet                 ║
║                                                                              ║
║  RÈGLE: statut chantier et statut projet ne divergent jamais.                ║
║  Écriture chantier puis sync projet; si la sync échoue, le statut chantier   ║
║  précédent est réécrit. Si cette réécriture échoue aussi: alerte             ║
║  DATA_CONSISTENCY (log critical + event_log) puis l'erreur remonte.          ║
║  Démarrage: si la sync projet échoue, le chantier créé est supprimé.         ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Dict, List, Any

from config import CHANTIER_STATUS_MODEL, new_id, now_iso, parse_iso
from errors import NotFoundError, ValidationError
from models.chantier import StartChantierInput
from services.event_logger import log_event_safe
from services.project_service import get_project_or_404
from services.rentability import (
    RENTABILITY_FIELDS,
    calculate_rentability,
    build_rentability_input_from_site,
    rentability_persisted_fields,
)
from services.status_machine import (
    ensure_chantier_status_transition,
    sync_project_status_with_chantiers,
)
from services.status_order import initial_chantier_status, normalize_status

logger = logging.getLogger("chantiers")


# ==================== HELPERS ====================

def _normalize_date(value: Optional[str], message: str, default_now: bool = False) -> Optional[str]:
    if not value:
        return datetime.now(timezone.utc).isoformat() if default_now else None
    parsed = parse_iso(value)
    if parsed is None:
        raise ValidationError(message)
    return parsed.isoformat()


def resolve_client_name(project: Dict) -> str:
    """Prénom + nom, sinon nom client, sinon société, sinon 'Client'"""
    first = (project.get("client_first_name") or "").strip()
    last = (project.get("client_last_name") or "").strip()
    combined = f"{first} {last}".strip()
    if combined:
        return combined
    for key in ("client_name", "company"):
        value = (project.get(key) or "").strip()
        if value:
            return value
    return "Client"


def normalize_team_members(value: Any) -> List[str]:
    """Liste d'IDs non vides (chaînes ou objets {id})"""
    if not isinstance(value, list):
        return []
    members = []
    for entry in value:
        if isinstance(entry, str):
            member = entry.strip()
        elif isinstance(entry, dict) and isinstance(entry.get("id"), str):
            member = entry["id"].strip()
        else:
            member = ""
        if member:
            members.append(member)
    return members


def _pick(*values) -> str:
    """Première valeur non vide, nettoyée"""
    for value in values:
        if value is not None and str(value).strip():
            return str(value).strip()
    return ""


async def get_chantier_or_404(repo, org_id: str, chantier_id: str) -> Dict:
    chantier = await repo.get_site(org_id, chantier_id)
    if not chantier:
        raise NotFoundError("Chantier introuvable")
    return chantier


# ==================== DÉMARRAGE ====================

async def start_chantier(repo, org_id: str, project_id: str, data: StartChantierInput, model: str = None) -> Dict:
    """Crée le chantier d'un projet puis synchronise le statut projet"""
    model = model or CHANTIER_STATUS_MODEL
    project = await get_project_or_404(repo, org_id, project_id)

    site_ref = _pick(data.site_ref, f"{project.get('project_ref') or ''}-CHANTIER")
    if len(site_ref) < 3:
        raise ValidationError("La référence chantier doit contenir au moins 3 caractères")

    address = _pick(data.address, project.get("address"), project.get("hq_address"))
    city = _pick(data.city, project.get("city"))
    postal_code = _pick(data.postal_code, project.get("postal_code"))

    if not address:
        raise ValidationError("L'adresse du chantier est requise")
    if not city:
        raise ValidationError("La ville du chantier est requise")
    if not postal_code:
        raise ValidationError("Le code postal du chantier est requis")

    date_debut = _normalize_date(data.date_debut, "Date de début de chantier invalide", default_now=True)
    date_fin_prevue = _normalize_date(data.date_fin_prevue, "Date de fin prévisionnelle invalide")
    subcontractor_id = (data.subcontractor_id or "").strip() or None

    now = now_iso()
    chantier = await repo.insert_site({
        "id": new_id(),
        "org_id": org_id,
        "project_id": project_id,
        "project_ref": project.get("project_ref"),
        "site_ref": site_ref,
        "client_name": resolve_client_name(project),
        "client_first_name": project.get("client_first_name"),
        "client_last_name": project.get("client_last_name"),
        "product_name": _pick(data.product_name) or project.get("product_name"),
        "address": address,
        "city": city,
        "postal_code": postal_code,
        "status": initial_chantier_status(model),
        "date_debut": date_debut,
        "date_fin_prevue": date_fin_prevue,
        "team_members": normalize_team_members(data.team_members),
        "notes": (data.notes or "").strip() or None,
        "subcontractor_id": subcontractor_id,
        "user_id": project.get("user_id"),
        "created_at": now,
        "updated_at": now,
    })

    logger.info(f"[CHANTIER] {site_ref} créé pour project={project_id} ({chantier['status']})")
    try:
        synced = await sync_project_status_with_chantiers(repo, org_id, project, model)
    except Exception as e:
        logger.error(f"[CHANTIER] sync projet échouée après création de {site_ref}: {e}, suppression du chantier")
        await _discard_started_chantier(repo, org_id, chantier, e)
        raise
    return {"chantier": chantier, "project": synced}


async def _discard_started_chantier(repo, org_id: str, chantier: Dict, error: Exception):
    chantier_id = chantier["id"]
    try:
        await repo.delete_site(org_id, chantier_id)
    except Exception as delete_error:
        logger.critical(
            f"[DATA_CONSISTENCY] chantier={chantier_id} project={chantier.get('project_id')} "
            f"créé sans synchronisation projet, suppression impossible: {delete_error}"
        )
        await log_event_safe(
            repo, "chantier_start_rollback_failed", "chantier", chantier_id, org_id,
            level="critical",
            details={"sync_error": str(error), "rollback_error": str(delete_error)},
            related={"project_id": chantier.get("project_id")},
        )


# ==================== STATUT ====================

async def update_chantier_status(
    repo,
    org_id: str,
    chantier_id: str,
    next_status: Optional[str],
    user: str = "system",
    model: str = None,
) -> Dict:
    """
    Change le statut d'un chantier et remonte le projet si besoin.
    Échec de la sync projet -> rollback du statut chantier, puis l'erreur remonte.
    """
    model = model or CHANTIER_STATUS_MODEL
    chantier = await get_chantier_or_404(repo, org_id, chantier_id)

    status = normalize_status(next_status)
    if not status:
        raise ValidationError("Statut chantier manquant")

    previous = chantier.get("status")
    ensure_chantier_status_transition(previous, status, model)

    updated = await repo.update_site(org_id, chantier_id, {"status": status, "updated_at": now_iso()})
    if not updated:
        raise NotFoundError("Chantier introuvable")

    project = None
    if chantier.get("project_id"):
        try:
            project = await repo.get_project(org_id, chantier["project_id"])
            if project:
                project = await sync_project_status_with_chantiers(repo, org_id, project, model)
        except Exception as e:
            logger.error(
                f"[CHANTIER] sync projet échouée pour chantier={chantier_id} ({previous} -> {status}): {e}, rollback"
            )
            await _rollback_chantier_status(repo, org_id, chantier, status, e, user)
            raise

    await log_event_safe(
        repo, "chantier_status_change", "chantier", chantier_id, org_id,
        user=user,
        details={"old_status": previous, "new_status": status},
        related={"project_id": chantier.get("project_id")},
    )
    return {"chantier": updated, "project": project}


async def _rollback_chantier_status(repo, org_id: str, chantier: Dict, attempted: str, error: Exception, user: str):
    chantier_id = chantier["id"]
    previous = chantier.get("status")
    try:
        await repo.update_site(org_id, chantier_id, {
            "status": previous,
            "updated_at": chantier.get("updated_at") or now_iso(),
        })
        logger.warning(f"[CHANTIER] chantier={chantier_id} statut restauré à {previous}")
    except Exception as rollback_error:
        logger.critical(
            f"[DATA_CONSISTENCY] chantier={chantier_id} project={chantier.get('project_id')} "
            f"statut chantier {attempted} écrit mais projet non synchronisé, rollback impossible: {rollback_error}"
        )
        await log_event_safe(
            repo, "chantier_status_rollback_failed", "chantier", chantier_id, org_id,
            user=user, level="critical",
            details={
                "expected_status": previous,
                "written_status": attempted,
                "sync_error": str(error),
                "rollback_error": str(rollback_error),
            },
            related={"project_id": chantier.get("project_id")},
        )


# ==================== RENTABILITÉ ====================

async def get_chantier_rentability(repo, org_id: str, chantier_id: str) -> Dict:
    chantier = await get_chantier_or_404(repo, org_id, chantier_id)
    project = None
    if chantier.get("project_id"):
        project = await repo.get_project(org_id, chantier["project_id"])
    return calculate_rentability(build_rentability_input_from_site(chantier, project))


async def update_chantier_rentability(repo, org_id: str, chantier_id: str, fields: Dict[str, Any]) -> Dict:
    """Met à jour les champs de coûts, recalcule et enregistre les métriques"""
    chantier = await get_chantier_or_404(repo, org_id, chantier_id)
    changes = {k: v for k, v in fields.items() if k in RENTABILITY_FIELDS or k.startswith("subcontractor_")}

    merged = {**chantier, **changes}
    project = None
    if chantier.get("project_id"):
        project = await repo.get_project(org_id, chantier["project_id"])
    result = calculate_rentability(build_rentability_input_from_site(merged, project))

    updated = await repo.update_site(org_id, chantier_id, {
        **changes,
        **rentability_persisted_fields(result),
        "updated_at": now_iso(),
    })
    if not updated:
        raise NotFoundError("Chantier introuvable")
    return {"chantier": updated, "rentability": result}
