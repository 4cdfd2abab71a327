"""Pytest configuration and fixtures for MTGEnrich tests."""

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import pytest

from mtgenrich.enrichment import BatchOrchestrator, EnrichmentSettings, SessionCache
from mtgenrich.enrichment.clock import Clock
from mtgenrich.errors import CardNotFoundError
from mtgenrich.models import LookupRequest
from mtgenrich.providers.abstract import AbstractProvider, Throttle

FIXTURES_DIR = Path(__file__).parent / "fixtures" / "scryfall"


def load_fixture(name: str) -> Dict[str, Any]:
    """Load a JSON fixture file and return parsed data."""
    return json.loads((FIXTURES_DIR / f"{name}.json").read_text(encoding="utf-8"))


class FakeClock(Clock):
    """
    Deterministic clock: sleeping advances time instantly and yields once.
    """

    def __init__(self, start: float = 0.0) -> None:
        self.time = start
        self.sleeps: List[float] = []

    def now(self) -> float:
        return self.time

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        if seconds > 0:
            self.time += seconds
        await asyncio.sleep(0)


Scripted = Union[Dict[str, Any], BaseException]


class FakeProvider(AbstractProvider):
    """
    Card provider answering from a per-key script.
    Each call consumes the next scripted answer; the last one repeats.
    Unknown keys are not found.
    """

    class_id = "fake"

    def __init__(self, scripts: Optional[Dict[str, List[Scripted]]] = None) -> None:
        super().__init__()
        self.scripts = {key: list(answers) for key, answers in (scripts or {}).items()}
        self.calls: List[LookupRequest] = []

    def _build_http_header(self) -> Dict[str, str]:
        return {}

    def calls_for(self, key: str) -> int:
        return sum(1 for request in self.calls if request.key == key)

    async def fetch_card(
        self, request: LookupRequest, throttle: Optional[Throttle] = None
    ) -> Dict[str, Any]:
        self.calls.append(request)
        await asyncio.sleep(0)
        answers = self.scripts.get(request.key)
        if not answers:
            raise CardNotFoundError(f"{request.key} not found")
        answer = answers.pop(0) if len(answers) > 1 else answers[0]
        if isinstance(answer, BaseException):
            raise answer
        return dict(answer)


class FakeResponse:
    """Just enough of aiohttp.ClientResponse for the Scryfall client."""

    def __init__(
        self,
        status: int = 200,
        payload: Any = None,
        headers: Optional[Dict[str, str]] = None,
        invalid_json: bool = False,
    ) -> None:
        self.status = status
        self.payload = payload
        self.headers = headers or {}
        self.invalid_json = invalid_json

    async def json(self, content_type: Optional[str] = "application/json") -> Any:
        if self.invalid_json:
            raise json.JSONDecodeError("Expecting value", "<html>", 0)
        return self.payload

    async def __aenter__(self) -> "FakeResponse":
        return self

    async def __aexit__(self, *args: object) -> None:
        return None


class FakeSession:
    """
    Session stand-in keyed by URL, or URL?exact=name for name lookups.
    Unknown routes answer 404.
    """

    def __init__(self, routes: Optional[Dict[str, FakeResponse]] = None) -> None:
        self.routes = routes or {}
        self.requests: List[Tuple[str, Optional[Dict[str, str]]]] = []
        self.headers: List[Optional[Dict[str, str]]] = []
        self.closed = False

    def get(
        self,
        url: str,
        params: Optional[Dict[str, str]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> FakeResponse:
        self.requests.append((url, params))
        self.headers.append(headers)
        route = url
        if params and "exact" in params:
            route = f"{url}?exact={params['exact']}"
        return self.routes.get(route, FakeResponse(404, load_fixture("not_found")))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_clock() -> FakeClock:
    """Fresh deterministic clock."""
    return FakeClock()


@pytest.fixture
def fast_settings() -> EnrichmentSettings:
    """Settings with small delays; time is faked anyway."""
    return EnrichmentSettings(
        max_requests_per_second=10,
        max_concurrency=4,
        max_attempts=4,
        base_delay=0.5,
        backoff_multiplier=2.0,
        max_delay=10.0,
        chunk_size=50,
        chunk_pause=0.15,
    )


@pytest.fixture
def session_cache() -> SessionCache:
    """Isolated session cache per test."""
    return SessionCache(max_entries=100, expiry_hours=24)


@pytest.fixture
def make_orchestrator(fake_clock, fast_settings, session_cache):
    """Factory wiring a provider into an orchestrator with the test clock and cache."""

    def _make(
        provider: AbstractProvider, **overrides: Any
    ) -> BatchOrchestrator:
        settings = fast_settings.with_overrides(**overrides)
        return BatchOrchestrator(
            provider, session_cache=session_cache, settings=settings, clock=fake_clock
        )

    return _make


@pytest.fixture
def reset_config_singleton():
    """Reset the EnrichConfig singleton between tests."""
    from mtgenrich.enrich_config import EnrichConfig

    if hasattr(EnrichConfig, "_instance"):
        EnrichConfig._instance = None
    yield
    if hasattr(EnrichConfig, "_instance"):
        EnrichConfig._instance = None
