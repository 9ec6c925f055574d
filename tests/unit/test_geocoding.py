from __future__ import annotations

import httpx
from sqlalchemy.orm import Session

from dreamsaver.core.config import get_settings
from dreamsaver.services.addresses import AddressInput, create_address, list_addresses
from dreamsaver.services.geocoding import Coordinates, NominatimGeocoder, geocode_address
from tests.conftest import CUSTOMER_ID


class ScriptedGeocoder:
    def __init__(self, answers: dict[str, Coordinates | None]) -> None:
        self.answers = answers
        self.queries: list[str] = []

    def geocode(self, query: str) -> Coordinates | None:
        self.queries.append(query)
        return self.answers.get(query)


def _geocoder(handler) -> NominatimGeocoder:
    return NominatimGeocoder(settings=get_settings(), client=httpx.Client(transport=httpx.MockTransport(handler)))


def test_nominatim_geocoder_parses_first_match() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/search"
        assert request.url.params["format"] == "json"
        assert request.url.params["limit"] == "1"
        assert request.url.params["q"] == "Lahore, Pakistan"
        assert request.headers["User-Agent"] == get_settings().geocoder_user_agent
        return httpx.Response(200, json=[{"lat": "31.5204", "lon": "74.3587"}])

    assert _geocoder(handler).geocode("Lahore, Pakistan") == Coordinates(latitude=31.5204, longitude=74.3587)


def test_nominatim_geocoder_failures_resolve_to_none() -> None:
    assert _geocoder(lambda request: httpx.Response(200, json=[])).geocode("Nowhere") is None
    assert _geocoder(lambda request: httpx.Response(503)).geocode("Lahore") is None
    assert _geocoder(lambda request: httpx.Response(200, json=[{"lat": "x"}])).geocode("Lahore") is None


def test_geocode_address_falls_back_to_city() -> None:
    geocoder = ScriptedGeocoder({"Karachi, Pakistan": Coordinates(24.86, 67.01)})

    result = geocode_address(geocoder, street="Plot 7", city="Karachi", state="Sindh", country="Pakistan")

    assert result == Coordinates(24.86, 67.01)
    assert geocoder.queries == ["Plot 7, Karachi, Sindh, Pakistan", "Karachi, Pakistan"]


def test_create_address_applies_defaults_and_geocodes(db_session: Session) -> None:
    geocoder = ScriptedGeocoder({"9 Mall Road, Lahore, Pakistan": Coordinates(31.55, 74.34)})

    address = create_address(
        db_session,
        user_id=CUSTOMER_ID,
        payload=AddressInput(name="Office", street="9 Mall Road", city="Lahore"),
        geocoder=geocoder,
    )

    assert address.country == "Pakistan"
    assert address.zip == "00000"
    assert (address.latitude, address.longitude) == (31.55, 74.34)
    assert [item.id for item in list_addresses(db_session, user_id=CUSTOMER_ID)] == [address.id]


def test_create_address_keeps_supplied_coordinates_and_tolerates_misses(db_session: Session) -> None:
    geocoder = ScriptedGeocoder({})

    pinned = create_address(
        db_session,
        user_id=CUSTOMER_ID,
        payload=AddressInput(name="Pin", street="A", city="B", latitude=1.5, longitude=2.5),
        geocoder=geocoder,
    )
    unknown = create_address(
        db_session,
        user_id=CUSTOMER_ID,
        payload=AddressInput(name="Lost", street="Unknown lane", city="Atlantis"),
        geocoder=geocoder,
    )

    assert (pinned.latitude, pinned.longitude) == (1.5, 2.5)
    assert unknown.latitude is None and unknown.longitude is None
    assert geocoder.queries == ["Unknown lane, Atlantis, Pakistan", "Atlantis, Pakistan"]
