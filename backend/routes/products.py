"""
EcoProRenov - Routes Produits
"""

from fastapi import APIRouter, Depends

from models import ParamsValidationRequest
from routes.deps import get_current_user
from services.product_params import validate_dynamic_params

router = APIRouter(prefix="/products", tags=["Products"])


@router.post("/params/validate")
async def validate_params(data: ParamsValidationRequest, user: dict = Depends(get_current_user)):
    """Valeurs nettoyées (défauts appliqués) ou 400 avec la liste des erreurs"""
    return {"values": validate_dynamic_params(data.params_schema, data.values)}
