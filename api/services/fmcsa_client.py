"""
FMCSA QCMobile API client for carrier search and docket-number lookups.
Implements rate limiting, retries, and error-message mapping.
"""

import json
import time
import logging
from typing import Dict, Optional, Any
from urllib.parse import quote

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from config import settings

logger = logging.getLogger(__name__)

NAME_SEARCH_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 25


class FMCSAError(Exception):
    """Base error for FMCSA registry calls."""


class FMCSAConfigurationError(FMCSAError):
    """Raised when the client has no web key to call the registry with."""


class FMCSAApiError(FMCSAError):
    """Non-2xx or unusable response from the registry.

    ``message`` is safe to show to the user.
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


def mask_key(api_key: Optional[str]) -> str:
    """Show only the first four characters of a key."""
    if not api_key:
        return "<none>"
    return f"{api_key[:4]}..."


def error_message_for(status_code: int, body: str) -> str:
    """Map a failed registry response to a user-facing message."""
    if status_code in (401, 403):
        return "Invalid or unauthorized API key. Please check your API key and try again."
    if status_code == 404 and "Webkey not found" in (body or ""):
        return "API key not recognized. Please verify your API key is correct."

    message = f"API error: {status_code}"
    try:
        error_data = json.loads(body)
        if isinstance(error_data, dict) and isinstance(error_data.get("content"), str) and error_data["content"]:
            message = error_data["content"]
    except ValueError:
        if body:
            message = body
    return message


class FMCSAClient:
    """Client for the FMCSA carrier registry.

    Every call passes the web key as the ``webKey`` query parameter. Responses
    are returned decoded but otherwise untouched; shape handling lives in
    ``services.carrier_normalizer``.
    """

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: Optional[float] = None, rate_limit_delay: Optional[float] = None):
        """Initialize the FMCSA client.

        Args:
            api_key: FMCSA web key. Falls back to the FMCSA_API_KEY setting
            base_url: Registry base URL
            timeout: Seconds per request
            rate_limit_delay: Minimum seconds between requests
        """
        self.api_key = api_key or settings.fmcsa_api_key
        if not self.api_key:
            raise FMCSAConfigurationError(
                "FMCSA API key is not configured. Please add your API key in the settings."
            )

        self.base_url = (base_url or settings.fmcsa_base_url).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.fmcsa_request_timeout
        self.headers = {"Accept": "application/json"}

        # Configure session with retry strategy
        self.session = requests.Session()
        retry_strategy = Retry(
            total=3,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

        # Rate limiting configuration
        self.rate_limit_delay = rate_limit_delay if rate_limit_delay is not None else settings.fmcsa_rate_limit_delay
        self.last_request_time = 0.0

    def close(self):
        """Release the pooled connections of the session"""
        self.session.close()

    def _rate_limit(self):
        """Implement rate limiting to respect API limits."""
        if not self.rate_limit_delay:
            return
        current_time = time.time()
        time_since_last_request = current_time - self.last_request_time

        if time_since_last_request < self.rate_limit_delay:
            sleep_time = self.rate_limit_delay - time_since_last_request
            logger.debug(f"Rate limiting: sleeping for {sleep_time:.2f} seconds")
            time.sleep(sleep_time)

        self.last_request_time = time.time()

    def _make_request(self, endpoint: str) -> Dict[str, Any]:
        """Make a rate-limited GET request to the registry.

        Args:
            endpoint: Endpoint path, optionally with its own query string

        Returns:
            dict: Decoded JSON response

        Raises:
            FMCSAApiError: On transport failure, non-2xx status or invalid JSON
        """
        self._rate_limit()

        separator = "&" if "?" in endpoint else "?"
        url = f"{self.base_url}{endpoint}{separator}webKey={quote(self.api_key, safe='')}"
        logger.info(f"Making request to FMCSA endpoint {endpoint} (key {mask_key(self.api_key)})")

        try:
            response = self.session.get(url, headers=self.headers, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error(f"Request to {endpoint} failed: {e}")
            raise FMCSAApiError("Failed to fetch carrier data") from e

        logger.debug(f"FMCSA response status for {endpoint}: {response.status_code}")

        if not response.ok:
            message = error_message_for(response.status_code, response.text)
            logger.error(f"FMCSA API error {response.status_code} for {endpoint}: {message}")
            raise FMCSAApiError(message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"Invalid JSON from FMCSA for {endpoint}: {e}")
            raise FMCSAApiError("Invalid JSON response from API", status_code=500) from e

    def get(self, endpoint: str) -> Dict[str, Any]:
        """Fetch any registry endpoint relative to the base URL."""
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"
        return self._make_request(endpoint)

    @staticmethod
    def build_search_endpoint(params) -> str:
        """Select the endpoint for a search request.

        DOT number wins over MC number, which wins over name. Name searches are
        paginated with a default page size of 100; other lookups default to 25.

        Args:
            params: CarrierSearchParams

        Returns:
            str: Endpoint path

        Raises:
            ValueError: If no identifier is set
        """
        page_size = params.size or (NAME_SEARCH_PAGE_SIZE if params.name else DEFAULT_PAGE_SIZE)

        if params.dot_number:
            return f"/carriers/{quote(str(params.dot_number), safe='')}"
        if params.mc_number:
            return f"/carriers/docket-number/{quote(str(params.mc_number), safe='')}"
        if params.name:
            if params.start is not None:
                pagination = f"?start={params.start}&size={page_size}"
            else:
                pagination = f"?size={page_size}"
            logger.debug(f"Name search with page size: {page_size}")
            return f"/carriers/name/{quote(params.name, safe='')}{pagination}"
        raise ValueError("At least one search parameter is required")

    def search_carriers(self, params) -> Dict[str, Any]:
        """Search the registry by DOT number, MC number or name.

        Returns:
            dict: ``{"content": {"carrier": {...}}}`` for identifier lookups or
            ``{"content": [{"carrier": {...}}, ...]}`` for name searches
        """
        endpoint = self.build_search_endpoint(params)
        logger.info(f"Searching carriers with endpoint: {endpoint}")
        return self._make_request(endpoint)

    def get_carrier_details(self, dot_number: str, detail_type: str) -> Dict[str, Any]:
        """Fetch one detail section (basics, oos, authority, ...) for a carrier."""
        endpoint = f"/carriers/{quote(str(dot_number), safe='')}/{detail_type}"
        logger.info(f"Getting {detail_type} details for DOT {dot_number}")
        return self._make_request(endpoint)

    def get_docket_numbers(self, dot_number: str) -> Dict[str, Any]:
        """Fetch the docket numbers registered for a DOT number."""
        return self.get_carrier_details(dot_number, "docket-numbers")

    def fetch_docket_number(self, dot_number: str) -> Optional[str]:
        """Resolve the MC number for a DOT number.

        Best effort: returns the ``mcNumber`` of the first docket entry, or None
        when there is none or the call fails for any reason.
        """
        try:
            data = self.get_docket_numbers(dot_number)
        except FMCSAError as e:
            logger.error(f"Failed to fetch docket numbers for DOT {dot_number}: {e}")
            return None

        content = data.get("content") if isinstance(data, dict) else None
        if isinstance(content, list) and content:
            first = content[0]
            mc_number = first.get("mcNumber") if isinstance(first, dict) else None
            return str(mc_number) if mc_number else None

        logger.info(f"No docket numbers found for DOT {dot_number}")
        return None
