import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from file_ingestion.api.health import router as health_router
from file_ingestion.api.ingestion import router as ingestion_router
from file_ingestion.config import settings
from file_ingestion.errors import register_error_handlers
from file_ingestion.logging import configure_logging
from file_ingestion.web import router as web_router

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="File Ingestion API")

_cors_origins = settings.cors_origin_list
app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials="*" not in _cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_error_handlers(app)

app.include_router(health_router)
app.include_router(ingestion_router)
app.include_router(web_router)

logger.info(
    "File ingestion API configured upload_dir=%s issuer=%s",
    settings.upload_dir,
    settings.oidc_issuer_url or "<shared secret>",
)
