"""
EcoProRenov - Routes Projets

- Détail projet (chantiers, devis, factures)
- Changement de statut (garde + cascade chantiers)
- Prime CEE du projet
- Export / sync du projet vers le webhook de sauvegarde
"""

from typing import Optional

from fastapi import APIRouter, Depends

from models import ProjectStatusUpdate, BackupRequest
from routes.deps import get_current_user, get_repository
from services.backup_service import sync_project_to_webhook
from services.prime_cee import compute_project_prime_cee
from services.project_service import (
    get_project_details,
    update_project_status,
    export_project_bundle,
)
from services.settings import get_organization_settings

router = APIRouter(prefix="/projects", tags=["Projects"])


@router.get("/{project_id}")
async def get_project(project_id: str, user: dict = Depends(get_current_user), repo=Depends(get_repository)):
    return await get_project_details(repo, user["org_id"], project_id)


@router.patch("/{project_id}/status")
async def change_project_status(
    project_id: str,
    data: ProjectStatusUpdate,
    user: dict = Depends(get_current_user),
    repo=Depends(get_repository),
):
    """Retourne le projet et, en modèle unified, les chantiers synchronisés"""
    return await update_project_status(repo, user["org_id"], project_id, data.status, user=user["id"])


@router.get("/{project_id}/prime-cee")
async def get_project_prime_cee(project_id: str, user: dict = Depends(get_current_user), repo=Depends(get_repository)):
    return await compute_project_prime_cee(repo, user["org_id"], project_id)


@router.post("/{project_id}/backup/export")
async def export_project(project_id: str, user: dict = Depends(get_current_user), repo=Depends(get_repository)):
    return await export_project_bundle(repo, user["org_id"], project_id)


@router.post("/{project_id}/backup/sync")
async def sync_project(
    project_id: str,
    data: Optional[BackupRequest] = None,
    user: dict = Depends(get_current_user),
    repo=Depends(get_repository),
):
    """Envoie le projet au webhook (URL du corps, sinon celle de l'organisation)"""
    webhook_url = data.webhook_url if data else None
    if not webhook_url:
        settings = await get_organization_settings(repo, user["org_id"])
        webhook_url = settings.get("backup_webhook_url")
    return await sync_project_to_webhook(repo, user["org_id"], project_id, webhook_url)
