"""
EcoProRenov - Routes Devis
"""

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from routes.deps import get_current_user, get_repository
from services.quote_pdf import generate_quote_pdf

router = APIRouter(prefix="/quotes", tags=["Quotes"])


@router.get("/{quote_id}/pdf")
async def download_quote_pdf(quote_id: str, user: dict = Depends(get_current_user), repo=Depends(get_repository)):
    """404 devis absent, 422 contenu inexploitable"""
    pdf = await generate_quote_pdf(repo, user["org_id"], quote_id)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="Devis-{quote_id}.pdf"'},
    )
