"""
EcoProRenov - Dépendances communes des routes

- get_repository: repository MongoDB de la requête
- get_organization_id: en-tête x-organization-id (ou x-organisation-id)
- get_current_user: session Bearer + appartenance à l'organisation
"""

from typing import Dict

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from config import get_db
from errors import ForbiddenError, UnauthorizedError
from services.repository import ProjectRepository

security = HTTPBearer(auto_error=False)

AUTH_ERROR_MESSAGE = "Authentification requise"
ORG_HEADERS = ("x-organization-id", "x-organisation-id")


def get_repository() -> ProjectRepository:
    return ProjectRepository(get_db())


def get_organization_id(request: Request) -> str:
    for header in ORG_HEADERS:
        value = (request.headers.get(header) or "").strip()
        if value:
            return value
    raise UnauthorizedError(AUTH_ERROR_MESSAGE)


async def get_current_user(
    org_id: str = Depends(get_organization_id),
    credentials: HTTPAuthorizationCredentials = Depends(security),
    repo: ProjectRepository = Depends(get_repository),
) -> Dict:
    """Utilisateur de la session, membre de l'organisation demandée"""
    if not credentials or not (credentials.credentials or "").strip():
        raise UnauthorizedError(AUTH_ERROR_MESSAGE)

    session = await repo.get_session(credentials.credentials.strip())
    if not session or not session.get("user_id"):
        raise UnauthorizedError(AUTH_ERROR_MESSAGE)

    if not await repo.has_membership(org_id, session["user_id"]):
        raise ForbiddenError("Accès refusé")

    return {"id": session["user_id"], "org_id": org_id}
