"""
Scryfall async card lookup client.

Cards are addressed by set + collector number, or by exact name.
HTTP status codes are mapped onto the enrichment error taxonomy:
404 -> CardNotFoundError, 429 -> RateLimitedError, 5xx -> TransientServiceError,
any other non-2xx or an unusable body -> FatalServiceError.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote

import aiohttp

from ... import constants
from ...errors import (
    CardNotFoundError,
    FatalServiceError,
    MalformedRecordError,
    RateLimitedError,
    TransientServiceError,
)
from ...models import LookupRequest
from ..abstract import AbstractProvider, Throttle
from . import sf_utils

LOGGER = logging.getLogger(__name__)


class ScryfallClient(AbstractProvider):
    """
    Async Scryfall client.

    Handles:
    - Lookup by printing, then unpadded printing, then exact name
    - Status code classification (not found, rate limited, transient, fatal)
    - Owning its aiohttp session, unless one is injected
    """

    class_id: str = "sf"

    def __init__(
        self,
        api_url: str = constants.SCRYFALL_API_URL,
        user_agent: Optional[str] = None,
        timeout: float = 30.0,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> None:
        super().__init__(session)
        self.api_url = api_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self._owns_session = False
        self._headers: Optional[Dict[str, str]] = None

    def _build_http_header(self) -> Dict[str, str]:
        if self._headers is None:
            self._headers = sf_utils.build_http_header(self.user_agent)
        return self._headers

    async def __aenter__(self) -> "ScryfallClient":
        if self.session is None:
            self.session = aiohttp.ClientSession(
                headers=self._build_http_header(),
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
            self._owns_session = True
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.close()

    async def close(self) -> None:
        """
        Close the HTTP session if this client opened it
        """
        if self._owns_session and self.session is not None:
            await self.session.close()
        if self._owns_session:
            self.session = None
            self._owns_session = False

    def _lookup_steps(self, request: LookupRequest) -> List[Tuple[str, Dict[str, str]]]:
        steps: List[Tuple[str, Dict[str, str]]] = []
        if request.has_printing:
            set_code = quote(str(request.set_code), safe="")
            steps.append(
                (f"/cards/{set_code}/{quote(str(request.collector_number), safe='')}", {})
            )
            raw_number = request.raw_collector_number
            if raw_number and raw_number.lower() != request.collector_number:
                steps.append((f"/cards/{set_code}/{quote(raw_number, safe='')}", {}))
        if request.name:
            steps.append(("/cards/named", {"exact": request.name}))
        return steps

    async def fetch_card(
        self, request: LookupRequest, throttle: Optional[Throttle] = None
    ) -> Dict[str, Any]:
        """
        Resolve a lookup, trying the most specific address first.
        Every follow-up request waits on the throttle so fallbacks respect the rate limit.
        :param request: What to look up
        :param throttle: Awaited before each fallback request
        :return: Scryfall card object
        """
        steps = self._lookup_steps(request)
        if not steps:
            raise MalformedRecordError(f"Nothing to look up for {request.key}")

        not_found: Optional[CardNotFoundError] = None
        for step_number, (path, params) in enumerate(steps):
            if step_number and throttle is not None:
                await throttle()
            try:
                return await self.download(path, params)
            except CardNotFoundError as error:
                LOGGER.debug(f"{request.display_name}: {error}, trying next lookup")
                not_found = error

        raise not_found or CardNotFoundError(request.display_name)

    async def download(
        self, path: str, params: Optional[Dict[str, str]] = None
    ) -> Dict[str, Any]:
        """
        Download a single card object from Scryfall
        :param path: API path (Ex: /cards/lea/1)
        :param params: Query string parameters
        :return: Scryfall card object
        """
        if self.session is None:
            raise RuntimeError("Client not initialized. Use async context manager.")

        url = f"{self.api_url}{path}"
        async with self.session.get(
            url, params=params or None, headers=self._build_http_header()
        ) as response:
            self.log_download(url, response.status)
            if response.status == 404:
                raise CardNotFoundError(f"{url} not found")
            if response.status == 429:
                raise RateLimitedError(
                    f"Rate limited by Scryfall on {url}",
                    retry_after=sf_utils.parse_retry_after(
                        response.headers.get("Retry-After")
                    ),
                )
            if response.status >= 500:
                raise TransientServiceError(
                    f"Scryfall {response.status} on {url}", status=response.status
                )
            if response.status >= 400:
                raise FatalServiceError(
                    f"Scryfall {response.status} on {url}", status=response.status
                )

            try:
                data = await response.json(content_type=None)
            except ValueError as error:
                raise FatalServiceError(
                    f"Unable to convert response to JSON for URL: {url} -> {error}"
                ) from error

        if not isinstance(data, dict) or data.get("object") == "error":
            raise FatalServiceError(f"Unexpected Scryfall response for {url}: {data}")
        if "name" not in data:
            raise FatalServiceError(f"Scryfall response for {url} is not a card")

        return data
