"""
Carrier Lookup Service.

Entry point for registry searches: resolves the web key, queries the FMCSA
registry, normalizes the response shape, checks which carriers are already
stored and hands the result set to the batch importer.
"""

import asyncio
import logging
from typing import Any, Dict, Optional, Tuple

from models.lookup_request import DETAIL_TYPES, CarrierSearchParams, SearchOutcome
from services.api_key_provider import ApiKeyProvider
from services.carrier_import_service import CarrierImporter
from services.carrier_normalizer import extract_carrier_envelopes
from services.fmcsa_client import FMCSAError, mask_key

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "FMCSA API key is not configured. Please add your API key in the settings."
IMPORT_RUNNING_MESSAGE = "A carrier import is already running. Cancel it or wait for it to finish."


class CarrierLookupService:
    """Searches the FMCSA registry and feeds results to the importer."""

    def __init__(self, key_provider: Optional[ApiKeyProvider] = None,
                 importer: Optional[CarrierImporter] = None):
        self.key_provider = key_provider or ApiKeyProvider()
        self.importer = importer or CarrierImporter(key_provider=self.key_provider)

    async def search_carrier(self, params: CarrierSearchParams, save: bool = True,
                             run_import: bool = True) -> SearchOutcome:
        """Search the registry and optionally import the results.

        Args:
            params: Validated search parameters
            save: Whether the results should be imported
            run_import: Run the import inline. When False the importer is only
                moved to the running state and the caller schedules
                ``importer.run_batches(outcome.carriers)``

        Returns:
            SearchOutcome: Always returned; ``error`` carries any failure message
        """
        if save and self.importer.is_saving:
            return SearchOutcome(error=IMPORT_RUNNING_MESSAGE, error_type="conflict")

        client = await asyncio.to_thread(self.key_provider.get_client, True)
        if client is None:
            return SearchOutcome(error=MISSING_KEY_MESSAGE, error_type="configuration")

        logger.info(f"Using API key for search: {mask_key(client.api_key)}")

        try:
            results = await asyncio.to_thread(client.search_carriers, params)
        except FMCSAError as e:
            logger.error(f"Error searching carrier: {e}")
            return SearchOutcome(error=str(e) or "Failed to search carrier", error_type="registry")
        except ValueError as e:
            return SearchOutcome(error=str(e), error_type="validation")

        carriers = extract_carrier_envelopes(results)
        existing = await self.importer.check_existing_carriers(carriers)
        outcome = SearchOutcome(
            results=results if isinstance(results, dict) else None,
            carriers=carriers,
            existing_carriers=existing,
            total=len(carriers),
        )

        if not save or not carriers:
            return outcome

        if run_import:
            status = await self.importer.process_carriers(carriers)
            outcome.import_started = not status.rejected
        else:
            outcome.import_started = self.importer.begin(len(carriers))

        if not outcome.import_started:
            outcome.error = IMPORT_RUNNING_MESSAGE
            outcome.error_type = "conflict"
        return outcome

    async def get_carrier_details(self, dot_number: str,
                                  detail_type: str) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
        """Fetch one detail section of a carrier from the registry.

        Returns:
            tuple: (data, None) on success, (None, error message) otherwise
        """
        if detail_type not in DETAIL_TYPES:
            return None, f"Unknown detail type '{detail_type}'. Expected one of: {', '.join(DETAIL_TYPES)}"

        client = await asyncio.to_thread(self.key_provider.get_client, True)
        if client is None:
            return None, MISSING_KEY_MESSAGE

        try:
            data = await asyncio.to_thread(client.get_carrier_details, dot_number, detail_type)
        except FMCSAError as e:
            logger.error(f"Error fetching carrier {detail_type}: {e}")
            return None, str(e) or f"Failed to fetch carrier {detail_type}"
        return data, None
