"""
EcoProRenov - API Backend
Projets, chantiers, prime CEE, rentabilité, factures, sauvegardes

Démarre avec:
    uvicorn server:app --host 0.0.0.0 --port 8001 --reload
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from config import APP_NAME, APP_VERSION, CORS_ORIGINS, LOG_LEVEL, CHANTIER_STATUS_MODEL, get_db, close_db
from errors import ApiError, UnexpectedError

# Configuration logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger("ecoprorenov")

# Créer l'app
app = FastAPI(
    title=f"{APP_NAME} API",
    description="Statuts projets / chantiers, prime CEE, rentabilité, factures et sauvegardes",
    version=APP_VERSION,
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== ERREURS ====================

@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        logger.error(f"[API] {request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"[API] {request.method} {request.url.path} erreur inattendue: {exc}")
    error = UnexpectedError()
    return JSONResponse(status_code=error.status_code, content={"message": error.message})


# ==================== IMPORT DES ROUTES ====================

from routes import projects, chantiers, invoices, backups, quotes, products, settings  # noqa: E402

# Routes avec préfixe /api
app.include_router(projects.router, prefix="/api")
app.include_router(chantiers.router, prefix="/api")
app.include_router(invoices.router, prefix="/api")
app.include_router(backups.router, prefix="/api")
app.include_router(quotes.router, prefix="/api")
app.include_router(products.router, prefix="/api")
app.include_router(settings.router, prefix="/api")


# ==================== ROUTE RACINE ====================

@app.get("/")
async def root():
    return {
        "name": f"{APP_NAME} API",
        "version": APP_VERSION,
        "status": "running",
        "chantier_status_model": CHANTIER_STATUS_MODEL,
        "docs": "/docs"
    }


# ==================== STARTUP / SHUTDOWN ====================

@app.on_event("startup")
async def startup():
    from services.repository import create_indexes

    logger.info(f"{APP_NAME} {APP_VERSION} démarré (chantiers: {CHANTIER_STATUS_MODEL})")
    await create_indexes(get_db())
    logger.info("Index MongoDB créés")


@app.on_event("shutdown")
async def shutdown():
    close_db()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8001)
