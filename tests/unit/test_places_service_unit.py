import pytest
import requests

from turnright.core import overpass_service, places_service
from turnright.core.errors import ProviderUnavailable
from turnright.core.overpass_service import OverpassService, build_query
from turnright.core.places_service import GooglePlacesService


class FakeResponse:
    def __init__(self, payload, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self.payload


NEARBY_RESULT = {
    "place_id": "gp_narodowe",
    "name": "Muzeum Narodowe",
    "geometry": {"location": {"lat": 52.2316, "lng": 21.0247}},
    "types": ["museum", "point_of_interest"],
    "rating": 4.7,
    "user_ratings_total": 12000,
    "business_status": "OPERATIONAL",
    "vicinity": "Aleje Jerozolimskie 3",
    "photos": [{"photo_reference": "ref_1"}],
}


class RecordedCalls(list):
    """Requests made through the patched requests.get, plus queued replies."""

    def __init__(self):
        super().__init__()
        self.responses = []


@pytest.fixture
def calls(monkeypatch):
    recorded = RecordedCalls()
    responses = recorded.responses

    def fake_get(url, params=None, timeout=None):
        recorded.append({"url": url, "params": params, "timeout": timeout})
        response = responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(places_service.requests, "get", fake_get)
    return recorded


@pytest.fixture
def service():
    return GooglePlacesService("test-key", timeout=7)


def test_requires_api_key():
    with pytest.raises(ValueError):
        GooglePlacesService("")


def test_search_by_category_maps_results(service, calls):
    calls.responses.append(FakeResponse({"status": "OK", "results": [NEARBY_RESULT]}))

    places = service.search_by_category(52.23, 21.01, 5000, "museum")

    assert calls[0]["url"].endswith("/nearbysearch/json")
    assert calls[0]["params"]["type"] == "museum"
    assert calls[0]["params"]["radius"] == 5000
    assert calls[0]["timeout"] == 7
    place = places[0]
    assert place.place_id == "gp_narodowe"
    assert place.lon == 21.0247
    assert place.review_count == 12000
    assert place.address == "Aleje Jerozolimskie 3"
    assert place.photo_references == ["ref_1"]
    assert place.source == "primary"


def test_radius_is_capped_at_fifty_km(service, calls):
    calls.responses.append(FakeResponse({"status": "ZERO_RESULTS", "results": []}))
    assert service.search_by_keyword("museum", 52.23, 21.01, 80_000) == []
    assert calls[0]["params"]["radius"] == 50000
    assert calls[0]["params"]["query"] == "museum"


def test_error_status_raises_provider_unavailable(service, calls):
    calls.responses.append(FakeResponse({"status": "OVER_QUERY_LIMIT"}))
    with pytest.raises(ProviderUnavailable):
        service.search_by_category(52.23, 21.01, 5000, "museum")


def test_network_error_raises_provider_unavailable(service, calls):
    calls.responses.append(requests.Timeout("read timed out"))
    with pytest.raises(ProviderUnavailable) as exc:
        service.search_by_keyword("bar", 52.23, 21.01, 5000)
    assert exc.value.provider == "google"


def test_place_details(service, calls):
    result = dict(NEARBY_RESULT, editorial_summary={"overview": "National art collection"})
    result["opening_hours"] = {"weekday_text": ["Monday: Closed"]}
    calls.responses.append(FakeResponse({"status": "OK", "result": result}))

    place = service.get_place_details("gp_narodowe")

    assert "user_ratings_total" in calls[0]["params"]["fields"]
    assert place.editorial_summary == "National art collection"
    assert place.opening_hours == ["Monday: Closed"]


def test_place_details_not_found(service, calls):
    calls.responses.append(FakeResponse({"status": "NOT_FOUND"}))
    assert service.get_place_details("gp_gone") is None


def test_geocode(service, calls):
    calls.responses.append(
        FakeResponse(
            {"status": "OK", "results": [{"geometry": {"location": {"lat": 52.25, "lng": 21.0}}}]}
        )
    )
    calls.responses.append(FakeResponse({"status": "ZERO_RESULTS", "results": []}))

    assert service.geocode("Plac Zamkowy").lat == 52.25
    assert service.geocode("Nowhere") is None


def test_build_overpass_query():
    query = build_query(52.23, 21.01, 5000, ["tourism=viewpoint"], 10)
    assert query.startswith("[out:json][timeout:10];")
    assert 'node["tourism"="viewpoint"]["name"](around:5000,52.23,21.01);' in query
    assert query.endswith("out center tags;")


def test_overpass_search_by_tags(monkeypatch):
    payload = {
        "elements": [
            {
                "type": "node",
                "id": 42,
                "lat": 52.24,
                "lon": 21.03,
                "tags": {"name": "Taras widokowy", "tourism": "viewpoint"},
            },
            {
                "type": "way",
                "id": 7,
                "center": {"lat": 52.22, "lon": 21.0},
                "tags": {"name": "Skarpa Park", "leisure": "park"},
            },
            {"type": "node", "id": 9, "lat": 52.2, "lon": 21.0, "tags": {"tourism": "viewpoint"}},
        ]
    }
    monkeypatch.setattr(
        overpass_service.requests, "post", lambda url, data=None, timeout=None: FakeResponse(payload)
    )

    places = OverpassService().search_by_tags(52.23, 21.01, 5000, ["tourism=viewpoint", "leisure=park"])

    assert [p.place_id for p in places] == ["osm:node/42", "osm:way/7"]
    assert places[0].types == ["scenic_point", "osm:tourism=viewpoint"]
    assert places[1].lat == 52.22
    assert all(p.source == "open_data" for p in places)


def test_overpass_failure_raises(monkeypatch):
    def fail(url, data=None, timeout=None):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(overpass_service.requests, "post", fail)
    with pytest.raises(ProviderUnavailable):
        OverpassService().search_by_tags(52.23, 21.01, 5000, ["tourism=viewpoint"])


def test_rejected_page_token_retries_are_bounded(calls, monkeypatch):
    monkeypatch.setattr(places_service.time, "sleep", lambda seconds: None)
    service = GooglePlacesService("test-key", max_pages=3)
    calls.responses.append(
        FakeResponse({"status": "OK", "results": [NEARBY_RESULT], "next_page_token": "t1"})
    )
    for _ in range(places_service.MAX_PAGE_TOKEN_RETRIES + 1):
        calls.responses.append(FakeResponse({"status": "INVALID_REQUEST"}))

    places = service.search_by_category(52.23, 21.01, 5000, "museum")

    assert [p.place_id for p in places] == ["gp_narodowe"]
    assert len(calls) == places_service.MAX_PAGE_TOKEN_RETRIES + 2
    assert calls[1]["params"] == {"pagetoken": "t1", "key": "test-key"}
