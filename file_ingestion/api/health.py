from fastapi import APIRouter

from file_ingestion.schemas.ingestion import HealthRead

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthRead)
def health():
    return {"status": "Healthy"}


@router.get("/healthcheck", response_model=HealthRead, include_in_schema=False)
def healthcheck():
    return {"status": "Healthy"}
