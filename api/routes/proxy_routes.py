"""
Pass-through proxy to the FMCSA registry.

``GET /api/carrier-lookup?endpoint=/carriers/123&apiKey=...`` forwards the
request with the given web key and relays the JSON body, or a JSON error with
the registry's status code.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Query
from fastapi.responses import JSONResponse

from services.fmcsa_client import FMCSAApiError, FMCSAClient, mask_key

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/carrier-lookup", tags=["carrier-lookup"])


@router.get("")
async def proxy_carrier_lookup(
    endpoint: Optional[str] = Query(None, description="Registry endpoint path, e.g. /carriers/1234567"),
    apiKey: Optional[str] = Query(None, description="FMCSA web key")
):
    """Forward one GET request to the FMCSA registry"""
    if not apiKey:
        logger.error("API request made without an API key")
        return JSONResponse(status_code=400, content={"error": "Missing API key"})

    if not endpoint:
        logger.error("API request made without an endpoint")
        return JSONResponse(status_code=400, content={"error": "Missing endpoint"})

    logger.info(f"Proxying {endpoint} with key {mask_key(apiKey)}")
    client = FMCSAClient(api_key=apiKey)

    try:
        data = await asyncio.to_thread(client.get, endpoint)
    except FMCSAApiError as e:
        return JSONResponse(status_code=e.status_code or 500, content={"error": e.message})
    finally:
        client.close()

    return JSONResponse(content=data)
