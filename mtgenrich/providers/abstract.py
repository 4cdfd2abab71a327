"""
API for how card-data providers need to interact with the enrichment pipeline
"""

import abc
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import aiohttp

from ..models import LookupRequest

LOGGER = logging.getLogger(__name__)

Throttle = Callable[[], Awaitable[None]]


class AbstractProvider(abc.ABC):
    """
    Abstract class to indicate what card-data providers should provide
    """

    class_id: str = ""
    session: Optional[aiohttp.ClientSession]

    def __init__(self, session: Optional[aiohttp.ClientSession] = None) -> None:
        super().__init__()
        self.session = session

    # Abstract Methods
    @abc.abstractmethod
    def _build_http_header(self) -> Dict[str, str]:
        """
        Construct the HTTP headers every request carries
        :return: HTTP headers
        """

    @abc.abstractmethod
    async def fetch_card(
        self, request: LookupRequest, throttle: Optional[Throttle] = None
    ) -> Dict[str, Any]:
        """
        Resolve one lookup request to canonical card data
        :param request: What to look up
        :param throttle: Awaited before every follow-up request of the same lookup
        :return: Canonical card data
        """

    def set_session(self, session: Any) -> None:
        """
        Override the HTTP session (primarily for test injection).
        :param session: Custom session to use for HTTP requests
        """
        self.session = session

    # Class Methods
    @classmethod
    def get_class_name(cls) -> str:
        """
        Get the name of the calling class
        :return: Calling class name
        """
        return cls.__name__

    @classmethod
    def get_class_id(cls) -> str:
        """
        Grab the class ID for logging purposes
        :return Class ID
        """
        return cls.class_id

    @staticmethod
    def log_download(url: str, status: int) -> None:
        """
        Log how the URL was acquired
        :param url: URL requested
        :param status: HTTP status returned
        """
        LOGGER.debug(f"Downloaded {url} (Status = {status})")
