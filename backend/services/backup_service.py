"""
╔══════════════════════════════════════════════════════════════════════════════╗
║  EcoProRenov - SAUVEGARDE WEBHOOK                                            ║
║                                                                              ║
║  Export organisation:                                                        ║
║    - projets paginés par lots de chunk_size (défaut 50)                      ║
║    - 1 POST JSON par lot: {meta: {chunkIndex, totalChunks, exportedAt,       ║
║      count}, projects: [...]}                                                ║
║    - 3 tentatives par lot, attente base × 2^(tentative-1)                    ║
║    - un lot en échec est noté dans failed_chunks, les suivants partent       ║
║                                                                              ║
║  Test webhook: validation URL + ping unique                                  ║
║  Sync projet: bundle d'un projet, timeout 60 s                               ║
╚══════════════════════════════════════════════════════════════════════════════╝
"""

import asyncio
import logging
import math
from contextlib import asynccontextmanager
from typing import Optional, Dict, Any, Callable, Awaitable

import httpx

from config import APP_NAME, now_iso
from errors import ApiError, ValidationError
from services.event_logger import log_event_safe
from services.project_service import export_project_bundle

logger = logging.getLogger("backup")

DEFAULT_CHUNK_SIZE = 50
MAX_RETRY_ATTEMPTS = 3
RETRY_BASE_DELAY = 0.25  # secondes
WEBHOOK_TIMEOUT = 30.0
PROJECT_SYNC_TIMEOUT = 60.0

Sleep = Callable[[float], Awaitable[Any]]


class WebhookDeliveryError(Exception):
    """Envoi webhook en échec après toutes les tentatives"""


def validate_webhook_url(url: Optional[str]) -> str:
    """URL http(s) avec hôte, sinon ValidationError"""
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("URL du webhook de sauvegarde requise")
    url = url.strip()
    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL:
        raise ValidationError("URL du webhook de sauvegarde invalide")
    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise ValidationError("URL du webhook de sauvegarde invalide")
    return url


def validate_chunk_size(chunk_size) -> int:
    if chunk_size is None:
        return DEFAULT_CHUNK_SIZE
    if isinstance(chunk_size, bool) or not isinstance(chunk_size, int) or chunk_size <= 0:
        raise ValidationError("La taille des lots doit être un entier positif")
    return chunk_size


def retry_delay(attempt: int, base_delay: float = RETRY_BASE_DELAY) -> float:
    """Délai avant la tentative suivante (attempt commence à 1)"""
    return base_delay * (2 ** (attempt - 1))


def _error_from_response(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = None
    if isinstance(data, dict):
        for key in ("error", "message"):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
    return f"Le webhook a répondu avec le statut {response.status_code}"


@asynccontextmanager
async def _http_client(client: Optional[httpx.AsyncClient], timeout: float):
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(timeout=timeout) as own_client:
        yield own_client


async def post_with_retry(
    client: httpx.AsyncClient,
    url: str,
    payload: Dict,
    max_attempts: int = MAX_RETRY_ATTEMPTS,
    base_delay: float = RETRY_BASE_DELAY,
    sleep: Sleep = asyncio.sleep,
) -> httpx.Response:
    """
    POST JSON avec retry exponentiel.
    Lève WebhookDeliveryError (dernier message d'erreur) si tout échoue.
    """
    last_error = "Erreur inconnue"
    for attempt in range(1, max_attempts + 1):
        try:
            response = await client.post(url, json=payload)
            if response.is_success:
                return response
            last_error = _error_from_response(response)
        except httpx.TimeoutException:
            last_error = "Délai d'attente dépassé"
        except httpx.HTTPError as e:
            last_error = str(e) or type(e).__name__

        logger.warning(f"[BACKUP] Tentative {attempt}/{max_attempts} échouée: {last_error}")
        if attempt < max_attempts:
            await sleep(retry_delay(attempt, base_delay))

    raise WebhookDeliveryError(last_error)


# ════════════════════════════════════════════════════════════════════════
# EXPORT ORGANISATION
# ════════════════════════════════════════════════════════════════════════

async def export_organization_backup(
    repo,
    org_id: str,
    webhook_url: Optional[str],
    chunk_size: Optional[int] = DEFAULT_CHUNK_SIZE,
    client: Optional[httpx.AsyncClient] = None,
    sleep: Sleep = asyncio.sleep,
) -> Dict:
    """
    Envoie tous les projets de l'organisation au webhook, lot par lot.
    Tous les lots sont tentés; success = aucun lot en échec.
    """
    url = validate_webhook_url(webhook_url)
    chunk_size = validate_chunk_size(chunk_size)

    total_projects = await repo.count_projects(org_id)
    total_chunks = math.ceil(total_projects / chunk_size)
    exported_at = now_iso()
    failed_chunks = []
    sent_projects = 0

    logger.info(f"[BACKUP] org={org_id} export de {total_projects} projets en {total_chunks} lots")

    async with _http_client(client, WEBHOOK_TIMEOUT) as http:
        for index in range(total_chunks):
            chunk_index = index + 1
            projects = await repo.fetch_projects_page(org_id, index * chunk_size, chunk_size)
            if not projects:
                break

            payload = {
                "meta": {
                    "chunkIndex": chunk_index,
                    "totalChunks": total_chunks,
                    "exportedAt": exported_at,
                    "count": len(projects),
                },
                "projects": projects,
            }
            try:
                await post_with_retry(http, url, payload, sleep=sleep)
                sent_projects += len(projects)
            except WebhookDeliveryError as e:
                logger.error(f"[BACKUP] org={org_id} lot {chunk_index}/{total_chunks} abandonné: {e}")
                failed_chunks.append({"chunkIndex": chunk_index, "error": str(e)})

    result = {
        "total_chunks": total_chunks,
        "total_projects": total_projects,
        "sent_projects": sent_projects,
        "failed_chunks": failed_chunks,
        "exported_at": exported_at,
        "success": len(failed_chunks) == 0,
    }

    await log_event_safe(
        repo, "backup_export", "backup", org_id, org_id,
        level="info" if result["success"] else "warning",
        details={k: v for k, v in result.items() if k != "exported_at"},
    )
    return result


async def test_backup_webhook(
    webhook_url: Optional[str],
    client: Optional[httpx.AsyncClient] = None,
    sleep: Sleep = asyncio.sleep,
) -> Dict:
    """Ping du webhook. Échec -> ApiError 502 avec le dernier message."""
    url = validate_webhook_url(webhook_url)
    payload = {"ping": True, "app": APP_NAME, "timestamp": now_iso()}

    async with _http_client(client, WEBHOOK_TIMEOUT) as http:
        try:
            response = await post_with_retry(http, url, payload, sleep=sleep)
        except WebhookDeliveryError as e:
            raise ApiError(f"Le webhook de sauvegarde ne répond pas: {e}", 502)

    return {"success": True, "status_code": response.status_code}


# ════════════════════════════════════════════════════════════════════════
# SYNC D'UN PROJET
# ════════════════════════════════════════════════════════════════════════

async def sync_project_to_webhook(
    repo,
    org_id: str,
    project_id: str,
    webhook_url: Optional[str],
    client: Optional[httpx.AsyncClient] = None,
) -> Dict:
    """
    Envoie le bundle d'un projet au webhook (une tentative, 60 s max).
    Timeout / erreur réseau -> {"synced": False, "error": ...}, pas d'exception.
    """
    url = validate_webhook_url(webhook_url)
    bundle = await export_project_bundle(repo, org_id, project_id)

    error = None
    async with _http_client(client, PROJECT_SYNC_TIMEOUT) as http:
        try:
            response = await http.post(url, json=bundle, timeout=PROJECT_SYNC_TIMEOUT)
            if not response.is_success:
                error = _error_from_response(response)
        except httpx.TimeoutException:
            error = f"Délai de {int(PROJECT_SYNC_TIMEOUT)} secondes dépassé lors de l'envoi du projet"
        except httpx.HTTPError as e:
            error = f"Envoi du projet impossible: {str(e) or type(e).__name__}"

    if error:
        logger.error(f"[BACKUP] project={project_id} sync échouée: {error}")
        return {"synced": False, "project_id": project_id, "error": error}

    logger.info(f"[BACKUP] project={project_id} synchronisé")
    return {"synced": True, "project_id": project_id, "checksum": bundle["meta"]["checksum"]}
