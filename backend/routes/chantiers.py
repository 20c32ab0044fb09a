"""
EcoProRenov - Routes Chantiers

- Démarrage d'un chantier depuis un projet
- Changement de statut (sync projet + rollback)
- Rentabilité (lecture / mise à jour des coûts)
"""

from fastapi import APIRouter, Depends

from models import StartChantierInput, ChantierStatusUpdate, RentabilityFieldsUpdate
from routes.deps import get_current_user, get_repository
from services.chantier_service import (
    start_chantier,
    update_chantier_status,
    get_chantier_rentability,
    update_chantier_rentability,
)

router = APIRouter(prefix="/chantiers", tags=["Chantiers"])


@router.post("/{project_id}/start", status_code=201)
async def start_project_chantier(
    project_id: str,
    data: StartChantierInput,
    user: dict = Depends(get_current_user),
    repo=Depends(get_repository),
):
    return await start_chantier(repo, user["org_id"], project_id, data)


@router.patch("/{chantier_id}/status")
async def change_chantier_status(
    chantier_id: str,
    data: ChantierStatusUpdate,
    user: dict = Depends(get_current_user),
    repo=Depends(get_repository),
):
    return await update_chantier_status(repo, user["org_id"], chantier_id, data.status, user=user["id"])


@router.get("/{chantier_id}/rentability")
async def get_rentability(chantier_id: str, user: dict = Depends(get_current_user), repo=Depends(get_repository)):
    return await get_chantier_rentability(repo, user["org_id"], chantier_id)


@router.patch("/{chantier_id}/rentability")
async def update_rentability(
    chantier_id: str,
    data: RentabilityFieldsUpdate,
    user: dict = Depends(get_current_user),
    repo=Depends(get_repository),
):
    """Enregistre les champs fournis puis les métriques recalculées"""
    return await update_chantier_rentability(repo, user["org_id"], chantier_id, data.model_dump(exclude_unset=True))
