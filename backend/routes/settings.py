"""
EcoProRenov - Routes Settings

Paramètres de l'organisation courante (bonification CEE, listes de
bâtiments, webhook de sauvegarde, statuts projet).
"""

from fastapi import APIRouter, Depends

from models import OrganizationSettingsUpdate
from routes.deps import get_current_user, get_repository
from services.settings import get_organization_settings, update_organization_settings

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("")
async def get_settings(user: dict = Depends(get_current_user), repo=Depends(get_repository)):
    return await get_organization_settings(repo, user["org_id"])


@router.put("")
async def update_settings(
    data: OrganizationSettingsUpdate,
    user: dict = Depends(get_current_user),
    repo=Depends(get_repository),
):
    return await update_organization_settings(
        repo, user["org_id"], data.model_dump(exclude_unset=True), updated_by=user["id"]
    )
