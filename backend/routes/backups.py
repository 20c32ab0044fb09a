"""
EcoProRenov - Routes Sauvegardes

Les deux actions utilisent l'URL du corps si fournie, sinon l'URL
enregistrée dans les paramètres de l'organisation.
"""

from typing import Optional

from fastapi import APIRouter, Depends

from models import BackupRequest
from routes.deps import get_current_user, get_repository
from services import backup_service
from services.settings import get_organization_settings

router = APIRouter(prefix="/backups", tags=["Backups"])


async def _resolve_webhook_url(repo, org_id: str, data: Optional[BackupRequest]) -> Optional[str]:
    if data and data.webhook_url:
        return data.webhook_url
    settings = await get_organization_settings(repo, org_id)
    return settings.get("backup_webhook_url")


@router.post("/test")
async def test_webhook(
    data: Optional[BackupRequest] = None,
    user: dict = Depends(get_current_user),
    repo=Depends(get_repository),
):
    webhook_url = await _resolve_webhook_url(repo, user["org_id"], data)
    return await backup_service.test_backup_webhook(webhook_url)


@router.post("/export")
async def export_backup(
    data: Optional[BackupRequest] = None,
    user: dict = Depends(get_current_user),
    repo=Depends(get_repository),
):
    webhook_url = await _resolve_webhook_url(repo, user["org_id"], data)
    chunk_size = data.chunk_size if data else None
    return await backup_service.export_organization_backup(repo, user["org_id"], webhook_url, chunk_size)
