"""
Carrier Import Service.

Saves FMCSA lookup results into the store: docket-number enrichment,
normalization, change detection and a cancellable batch loop that processes
carriers one at a time in small windows.
"""

import asyncio
import logging
import threading
from typing import Any, Dict, List, Optional

from config import settings
from models.import_job import ImportState, ImportStatus, SaveResult
from repositories.carrier_lookup_repository import CarrierLookupRepository
from services.api_key_provider import ApiKeyProvider
from services.carrier_normalizer import build_lookup_record, get_dot_number, needs_update

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cooperative cancellation flag, safe to set from any thread."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self):
        self._event.set()

    def reset(self):
        self._event.clear()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


class CarrierImporter:
    """Batch importer for carrier lookup results.

    One instance owns the progress counters, the existence map and the
    cancellation token; only its own steps mutate them. Carriers are written
    strictly one after another. A second run is rejected while one is active.
    """

    def __init__(self, repository: Optional[CarrierLookupRepository] = None,
                 key_provider: Optional[ApiKeyProvider] = None,
                 batch_size: Optional[int] = None,
                 batch_delay: Optional[float] = None,
                 token: Optional[CancellationToken] = None):
        self.repository = repository or CarrierLookupRepository()
        self.key_provider = key_provider or ApiKeyProvider()
        self.batch_size = batch_size or settings.import_batch_size
        self.batch_delay = settings.import_batch_delay_seconds if batch_delay is None else batch_delay
        self.token = token or CancellationToken()

        self.state = ImportState.IDLE
        self.is_saved = False
        self.processing_progress = 0
        self.total_to_process = 0
        self.succeeded = 0
        self.failed = 0
        self.save_error: Optional[str] = None
        self.existing_carriers: Dict[str, bool] = {}

    @property
    def is_saving(self) -> bool:
        return self.state == ImportState.RUNNING

    def status(self) -> ImportStatus:
        """Snapshot of the current progress"""
        return ImportStatus(
            state=self.state,
            is_saving=self.is_saving,
            is_saved=self.is_saved,
            processing_progress=self.processing_progress,
            total_to_process=self.total_to_process,
            succeeded=self.succeeded,
            failed=self.failed,
            save_error=self.save_error,
            existing_carriers=dict(self.existing_carriers),
        )

    def cancel_processing(self) -> bool:
        """Ask the running import to stop.

        The carrier being written finishes its own cancellation checks; no
        further carriers are started afterwards.

        Returns:
            bool: False when no import is running
        """
        if not self.is_saving:
            logger.info("Cancel requested but no carrier import is running")
            return False
        logger.info("Cancelling carrier processing...")
        self.token.cancel()
        return True

    async def check_existing_carriers(self, envelopes: List[Dict[str, Any]]) -> Dict[str, bool]:
        """Find which envelopes already have a stored record.

        Uses a single IN-list query. Envelopes without a DOT number are skipped.
        The importer's existence map is replaced unless an import is running.

        Returns:
            dict: DOT number -> True for every stored carrier
        """
        existing_map: Dict[str, bool] = {}
        dot_numbers = [dot for dot in (get_dot_number(e) for e in envelopes or []) if dot]

        if dot_numbers:
            try:
                found = await asyncio.to_thread(self.repository.get_existing_dot_numbers, dot_numbers)
            except Exception as e:
                logger.error(f"Error checking existing carriers: {e}")
                return existing_map
            for dot_number in found:
                existing_map[str(dot_number)] = True

        if not self.is_saving:
            self.existing_carriers = dict(existing_map)
        logger.info(f"{len(existing_map)} of {len(dot_numbers)} carriers already stored")
        return existing_map

    async def _fetch_docket_number(self, dot_number: str) -> Optional[str]:
        client = self.key_provider.get_client()
        if client is None:
            logger.warning("FMCSA API key is not configured. Cannot fetch docket numbers.")
            return None
        try:
            return await asyncio.to_thread(client.fetch_docket_number, dot_number)
        except Exception as e:
            logger.error(f"Error fetching docket numbers for DOT {dot_number}: {e}")
            return None

    async def save_carrier(self, envelope: Dict[str, Any]) -> SaveResult:
        """Normalize one carrier envelope and write it with as little churn as possible.

        New carriers are inserted. Stored carriers are rewritten only when a
        significant field changed; otherwise only their lookup date is touched.
        Cancellation is checked before the docket lookup, after it, and
        before the write.
        """
        if self.token.cancelled:
            logger.info("Carrier save cancelled")
            return SaveResult(cancelled=True)

        if not isinstance(envelope, dict) or not isinstance(envelope.get("carrier"), dict):
            return SaveResult(error="No carrier data to save")

        self.save_error = None
        dot_number = get_dot_number(envelope)

        mc_number = None
        if dot_number:
            mc_number = await self._fetch_docket_number(dot_number)
            logger.info(f"Fetched MC number for DOT {dot_number}: {mc_number or 'None found'}")
        else:
            logger.info("Cannot fetch docket numbers: DOT number is not available")

        if self.token.cancelled:
            logger.info("Carrier save cancelled after docket number fetch")
            return SaveResult(cancelled=True, dot_number=dot_number)

        if not dot_number:
            self.save_error = "Carrier has no DOT number"
            return SaveResult(error=self.save_error)

        try:
            record = build_lookup_record(envelope, mc_number)
            existing = await asyncio.to_thread(self.repository.get_by_dot_number, dot_number)

            if self.token.cancelled:
                logger.info("Carrier save cancelled before database operation")
                return SaveResult(cancelled=True, dot_number=dot_number)

            if existing:
                if needs_update(existing, record):
                    await asyncio.to_thread(self.repository.update, dot_number, record)
                    action = "updated"
                    logger.info(f"Updated carrier record. DOT: {dot_number}, MC: {record.mc_mx_ff_number}")
                else:
                    await asyncio.to_thread(self.repository.touch, dot_number, record.lookup_date)
                    action = "touched"
                    logger.info(f"No updates needed for carrier. DOT: {dot_number}")
            else:
                await asyncio.to_thread(self.repository.create, record)
                action = "inserted"
                logger.info(f"Inserted new carrier record. DOT: {dot_number}, MC: {record.mc_mx_ff_number}")
        except Exception as e:
            logger.error(f"Error saving carrier data for DOT {dot_number}: {e}")
            self.save_error = str(e) or "Failed to save carrier data"
            return SaveResult(error=self.save_error, dot_number=dot_number)

        self.existing_carriers[dot_number] = True
        return SaveResult(success=True, dot_number=dot_number, action=action)

    def begin(self, total: int) -> bool:
        """Move to the running state and reset the counters.

        Returns:
            bool: False if an import is already running
        """
        if self.is_saving:
            logger.warning("Carrier import already running, rejecting new batch")
            return False

        self.token.reset()
        self.state = ImportState.RUNNING
        self.is_saved = False
        self.processing_progress = 0
        self.total_to_process = total
        self.succeeded = 0
        self.failed = 0
        self.save_error = None
        return True

    async def run_batches(self, envelopes: List[Dict[str, Any]]) -> ImportStatus:
        """Save envelopes window by window until done or cancelled.

        Must follow a successful ``begin``. Progress advances once per carrier
        whatever its outcome; failed carriers are not retried.
        """
        total = len(envelopes)
        try:
            for start in range(0, total, self.batch_size):
                if self.token.cancelled:
                    break

                end = min(start + self.batch_size, total)
                logger.info(f"Processing batch {start // self.batch_size + 1}: carriers {start + 1} to {end}")

                for envelope in envelopes[start:end]:
                    if self.token.cancelled:
                        logger.info("Carrier processing cancelled during batch")
                        break

                    result = await self.save_carrier(envelope)
                    if result.success:
                        self.succeeded += 1
                    elif not result.cancelled:
                        self.failed += 1
                    self.processing_progress += 1

                # Yield between windows
                if end < total and not self.token.cancelled:
                    await asyncio.sleep(self.batch_delay)
        finally:
            self._finish()

        return self.status()

    async def process_carriers(self, envelopes: List[Dict[str, Any]]) -> ImportStatus:
        """Run a full import of the given envelopes; rejected while another is running."""
        if not self.begin(len(envelopes)):
            status = self.status()
            status.rejected = True
            return status
        return await self.run_batches(envelopes)

    def _finish(self):
        cancelled = self.token.cancelled
        self.state = ImportState.CANCELLED if cancelled else ImportState.COMPLETED
        self.is_saved = not cancelled
        self.token.reset()

        if cancelled:
            logger.info(
                f"Batch processing cancelled after {self.processing_progress}/{self.total_to_process} carriers"
            )
        else:
            logger.info(
                f"Batch processing completed. Processed: {self.processing_progress}, "
                f"Saved: {self.succeeded}, Errors: {self.failed}"
            )
