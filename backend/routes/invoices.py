"""
EcoProRenov - Routes Factures
"""

from fastapi import APIRouter, Depends

from routes.deps import get_current_user, get_repository
from services.invoice_service import generate_invoice_for_project

router = APIRouter(prefix="/invoices", tags=["Invoices"])


@router.post("/{project_id}/generate", status_code=201)
async def generate_invoice(project_id: str, user: dict = Depends(get_current_user), repo=Depends(get_repository)):
    """Facture brouillon depuis le dernier devis / chantier du projet"""
    return await generate_invoice_for_project(repo, user["org_id"], project_id, user=user["id"])
