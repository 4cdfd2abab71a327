"""Test the Scryfall client against a fake HTTP session."""

import pytest
from conftest import FakeResponse, FakeSession, load_fixture

from mtgenrich import constants
from mtgenrich.errors import (
    CardNotFoundError,
    FatalServiceError,
    RateLimitedError,
    TransientServiceError,
)
from mtgenrich.models import LookupRequest
from mtgenrich.providers import ScryfallClient
from mtgenrich.providers.scryfall import sf_utils

API = constants.SCRYFALL_API_URL


def _printing_request(collector_number="270", raw=None, name="Sol Ring") -> LookupRequest:
    return LookupRequest(
        key=f"lea:{collector_number}",
        name=name,
        set_code="lea",
        collector_number=collector_number,
        raw_collector_number=raw or collector_number,
    )


class ThrottleSpy:
    """Counts how often the client waits on the rate limit."""

    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self) -> None:
        self.calls += 1


class TestFetchCard:
    """Test the lookup cascade."""

    @pytest.mark.asyncio
    async def test_printing_lookup(self):
        session = FakeSession({f"{API}/cards/lea/270": FakeResponse(200, load_fixture("sol_ring"))})
        client = ScryfallClient(session=session)
        throttle = ThrottleSpy()

        card = await client.fetch_card(_printing_request(), throttle)

        assert card["name"] == "Sol Ring"
        assert session.requests == [(f"{API}/cards/lea/270", None)]
        assert throttle.calls == 0

    @pytest.mark.asyncio
    async def test_falls_back_to_raw_collector_number(self):
        session = FakeSession({f"{API}/cards/lea/001": FakeResponse(200, load_fixture("sol_ring"))})
        client = ScryfallClient(session=session)
        throttle = ThrottleSpy()

        card = await client.fetch_card(_printing_request("1", raw="001"), throttle)

        assert card["name"] == "Sol Ring"
        assert [url for url, _ in session.requests] == [
            f"{API}/cards/lea/1",
            f"{API}/cards/lea/001",
        ]
        assert throttle.calls == 1

    @pytest.mark.asyncio
    async def test_falls_back_to_exact_name(self):
        session = FakeSession(
            {f"{API}/cards/named?exact=Sol Ring": FakeResponse(200, load_fixture("sol_ring"))}
        )
        client = ScryfallClient(session=session)
        throttle = ThrottleSpy()

        card = await client.fetch_card(_printing_request("999"), throttle)

        assert card["set"] == "lea"
        assert session.requests[-1] == (f"{API}/cards/named", {"exact": "Sol Ring"})
        assert throttle.calls == 1

    @pytest.mark.asyncio
    async def test_name_only_lookup(self):
        session = FakeSession(
            {
                f"{API}/cards/named?exact=Lightning Bolt": FakeResponse(
                    200, load_fixture("lightning_bolt")
                )
            }
        )
        client = ScryfallClient(session=session)

        card = await client.fetch_card(
            LookupRequest(key="name:lightning bolt", name="Lightning Bolt")
        )
        assert card["name"] == "Lightning Bolt"
        assert len(session.requests) == 1

    @pytest.mark.asyncio
    async def test_not_found_after_every_step(self):
        client = ScryfallClient(session=FakeSession())
        with pytest.raises(CardNotFoundError):
            await client.fetch_card(_printing_request("1", raw="001"))

    @pytest.mark.asyncio
    async def test_rate_limit_stops_the_cascade(self):
        session = FakeSession(
            {
                f"{API}/cards/lea/270": FakeResponse(
                    429, load_fixture("not_found"), headers={"Retry-After": "2"}
                )
            }
        )
        client = ScryfallClient(session=session)

        with pytest.raises(RateLimitedError) as error:
            await client.fetch_card(_printing_request())

        assert error.value.retry_after == 2.0
        assert len(session.requests) == 1


class TestDownload:
    """Test status code and body handling."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status, error_type",
        [
            (404, CardNotFoundError),
            (500, TransientServiceError),
            (503, TransientServiceError),
            (400, FatalServiceError),
            (403, FatalServiceError),
        ],
    )
    async def test_status_mapping(self, status, error_type):
        client = ScryfallClient(
            session=FakeSession({f"{API}/cards/lea/1": FakeResponse(status, {})})
        )
        with pytest.raises(error_type):
            await client.download("/cards/lea/1")

    @pytest.mark.asyncio
    async def test_invalid_json_is_fatal(self):
        client = ScryfallClient(
            session=FakeSession({f"{API}/cards/lea/1": FakeResponse(200, invalid_json=True)})
        )
        with pytest.raises(FatalServiceError):
            await client.download("/cards/lea/1")

    @pytest.mark.asyncio
    async def test_error_object_is_fatal(self):
        client = ScryfallClient(
            session=FakeSession(
                {f"{API}/cards/lea/1": FakeResponse(200, load_fixture("not_found"))}
            )
        )
        with pytest.raises(FatalServiceError):
            await client.download("/cards/lea/1")

    @pytest.mark.asyncio
    async def test_requires_a_session(self):
        with pytest.raises(RuntimeError):
            await ScryfallClient().download("/cards/lea/1")

    @pytest.mark.asyncio
    async def test_injected_session_is_not_closed(self):
        session = FakeSession()
        async with ScryfallClient(session=session) as client:
            assert client.session is session
        assert not session.closed

    @pytest.mark.asyncio
    async def test_injected_session_gets_identifying_headers(self):
        session = FakeSession(
            {f"{API}/cards/named?exact=Sol Ring": FakeResponse(200, load_fixture("sol_ring"))}
        )
        client = ScryfallClient(user_agent="MyCollection/2.0", session=session)

        await client.fetch_card(_printing_request("1", raw="001"))

        assert len(session.headers) == 3
        for headers in session.headers:
            assert headers == {"User-Agent": "MyCollection/2.0", "Accept": "application/json"}

    @pytest.mark.asyncio
    async def test_set_session(self, reset_config_singleton):
        session = FakeSession({f"{API}/cards/lea/270": FakeResponse(200, load_fixture("sol_ring"))})
        client = ScryfallClient()
        client.set_session(session)
        card = await client.fetch_card(_printing_request())
        assert card["collector_number"] == "270"
        assert session.headers[0]["Accept"] == "application/json"
        assert session.headers[0]["User-Agent"]


class TestScryfallUtils:
    """Test header construction and Retry-After parsing."""

    def test_explicit_user_agent(self):
        headers = sf_utils.build_http_header("MyCollection/2.0")
        assert headers == {"User-Agent": "MyCollection/2.0", "Accept": "application/json"}

    def test_configured_user_agent(self, reset_config_singleton):
        headers = sf_utils.build_http_header()
        assert headers["User-Agent"]
        assert headers["Accept"] == "application/json"

    @pytest.mark.parametrize(
        "value, expected",
        [("2", 2.0), ("0.5", 0.5), ("-3", 0.0), (None, None), ("", None), ("soon", None)],
    )
    def test_parse_retry_after(self, value, expected):
        assert sf_utils.parse_retry_after(value) == expected
