"""
Carrier Lookup Routes.

Search the FMCSA registry, import results in the background, follow or cancel
the import, browse saved lookup results and manage the FMCSA web key.
"""

import logging
from datetime import datetime
from typing import Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status

from models.carrier_lookup import CarrierLookupFilters
from models.import_job import ImportStatus
from models.lookup_request import (
    DETAIL_TYPES,
    ApiKeyRequest,
    FavoriteUpdate,
    SearchRequest,
    SearchResponse,
)
from repositories.carrier_lookup_repository import CarrierLookupRepository
from services.api_key_provider import ApiKeyProvider
from services.carrier_import_service import CarrierImporter
from services.carrier_lookup_service import CarrierLookupService
from services.fmcsa_client import mask_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/carrier-lookup", tags=["carrier-lookup"])

repo = CarrierLookupRepository()
key_provider = ApiKeyProvider()
importer = CarrierImporter(repository=repo, key_provider=key_provider)
lookup_service = CarrierLookupService(key_provider=key_provider, importer=importer)

SEARCH_ERROR_STATUS = {
    "configuration": status.HTTP_400_BAD_REQUEST,
    "validation": status.HTTP_400_BAD_REQUEST,
    "conflict": status.HTTP_409_CONFLICT,
    "registry": status.HTTP_502_BAD_GATEWAY,
}


def get_repository() -> CarrierLookupRepository:
    return repo


def get_key_provider() -> ApiKeyProvider:
    return key_provider


def get_importer() -> CarrierImporter:
    return importer


def get_lookup_service() -> CarrierLookupService:
    return lookup_service


@router.post("/search", response_model=SearchResponse)
async def search_carriers(
    request: SearchRequest,
    background_tasks: BackgroundTasks,
    service: CarrierLookupService = Depends(get_lookup_service)
):
    """Search the FMCSA registry by DOT number, MC number or name.

    When ``save`` is set the results are imported in the background; poll
    ``/carrier-lookup/import/status`` for progress.
    """
    outcome = await service.search_carrier(request, save=request.save, run_import=False)

    if outcome.error and outcome.error_type in SEARCH_ERROR_STATUS:
        raise HTTPException(
            status_code=SEARCH_ERROR_STATUS[outcome.error_type],
            detail=outcome.error
        )

    if outcome.import_started:
        background_tasks.add_task(service.importer.run_batches, outcome.carriers)
        logger.info(f"Queued import of {outcome.total} carriers")

    return SearchResponse(
        **outcome.model_dump(),
        import_status=service.importer.status()
    )


@router.get("/import/status", response_model=ImportStatus)
async def get_import_status(importer: CarrierImporter = Depends(get_importer)):
    """Progress of the current or last carrier import"""
    return importer.status()


@router.post("/import/cancel", response_model=Dict)
async def cancel_import(importer: CarrierImporter = Depends(get_importer)):
    """Ask the running import to stop after the carrier in flight"""
    cancelled = importer.cancel_processing()
    return {
        "cancel_requested": cancelled,
        "status": importer.status().model_dump()
    }


@router.get("/carriers/{dot_number}/{detail_type}", response_model=Dict)
async def get_carrier_details(
    dot_number: str,
    detail_type: str,
    service: CarrierLookupService = Depends(get_lookup_service)
):
    """Fetch one detail section of a carrier straight from the registry"""
    if detail_type not in DETAIL_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown detail type '{detail_type}'. Expected one of: {', '.join(DETAIL_TYPES)}"
        )

    data, error = await service.get_carrier_details(dot_number, detail_type)
    if error:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=error)
    return data


@router.get("/results", response_model=Dict)
async def list_lookup_results(
    search_term: Optional[str] = Query(None, description="Words matched against names, DOT and MC numbers"),
    is_favorite: Optional[bool] = Query(None, description="Filter by favorite flag"),
    operating_status: Optional[str] = Query(None, description="Active or Inactive"),
    start_date: Optional[datetime] = Query(None, description="Created on or after"),
    end_date: Optional[datetime] = Query(None, description="Created on or before"),
    limit: int = Query(50, ge=1, le=1000, description="Number of items to return"),
    offset: int = Query(0, ge=0, description="Number of items to skip"),
    repository: CarrierLookupRepository = Depends(get_repository)
):
    """List saved lookup results, newest first"""
    filters = CarrierLookupFilters(
        search_term=search_term,
        is_favorite=is_favorite,
        operating_status=operating_status,
        start_date=start_date,
        end_date=end_date,
        limit=limit,
        offset=offset
    )
    results, total = repository.search(filters)
    return {"data": results, "count": total}


@router.get("/results/{dot_number}", response_model=Dict)
async def get_lookup_result(
    dot_number: str,
    repository: CarrierLookupRepository = Depends(get_repository)
):
    """Get a saved lookup result by DOT number"""
    result = repository.get_by_dot_number(dot_number)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Carrier lookup result for DOT {dot_number} not found"
        )
    return result


@router.patch("/results/{dot_number}/favorite", response_model=Dict)
async def set_favorite(
    dot_number: str,
    update: FavoriteUpdate,
    repository: CarrierLookupRepository = Depends(get_repository)
):
    """Add a saved carrier to or remove it from favorites"""
    result = repository.set_favorite(dot_number, update.is_favorite)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Carrier lookup result for DOT {dot_number} not found"
        )
    return result


@router.get("/api-key", response_model=Dict)
async def get_api_key_status(provider: ApiKeyProvider = Depends(get_key_provider)):
    """Whether an FMCSA web key is available, masked"""
    api_key = provider.refresh_api_key()
    return {
        "configured": bool(api_key),
        "api_key": mask_key(api_key) if api_key else None,
        "use_db_key": provider.use_db_key
    }


@router.put("/api-key", response_model=Dict)
async def save_api_key(
    request: ApiKeyRequest,
    provider: ApiKeyProvider = Depends(get_key_provider)
):
    """Store the FMCSA web key"""
    if not provider.save_api_key(request.api_key):
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to update API key in database"
        )
    return {"configured": True, "api_key": mask_key(request.api_key)}


@router.delete("/api-key", status_code=status.HTTP_204_NO_CONTENT)
async def remove_api_key(provider: ApiKeyProvider = Depends(get_key_provider)):
    """Forget the FMCSA web key"""
    if not provider.remove_api_key():
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to remove API key from database"
        )
    return None
