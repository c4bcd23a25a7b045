from datetime import datetime, timezone

import pytest

from conftest import DIRECT_RESPONSE, TRANSIT_RESPONSE, FakeResponse, FakeSession, fixed_clock
from mcp_tools_transport.core.cache import FileCache
from mcp_tools_transport.core.config import SINGAPORE_TZ
from mcp_tools_transport.core.errors import APIError, ConfigurationError, RateLimitError
from mcp_tools_transport.core.schemas import Location, RouteOptions
from mcp_tools_transport.services.onemap import OneMapClient, is_postal_code

SEARCH_RESULT = {
    "found": 2,
    "totalNumPages": 1,
    "pageNum": 1,
    "results": [
        {
            "SEARCHVAL": "MARINA BAY SANDS",
            "BLK_NO": "10",
            "ROAD_NAME": "BAYFRONT AVENUE",
            "BUILDING": "MARINA BAY SANDS",
            "ADDRESS": "10 BAYFRONT AVENUE MARINA BAY SANDS SINGAPORE 018956",
            "POSTAL": "018956",
            "LATITUDE": "1.2834",
            "LONGITUDE": "103.8607",
        },
        {"SEARCHVAL": "BROKEN", "LATITUDE": "n/a", "LONGITUDE": "103.8"},
    ],
}

ORIGIN = Location(latitude=1.3521, longitude=103.8198, name="Origin")
DESTINATION = Location(latitude=1.2834, longitude=103.8607, name="Marina Bay Sands")


def test_is_postal_code():
    assert is_postal_code("018956")
    assert is_postal_code(" 238801 ")
    assert not is_postal_code("12345")
    assert not is_postal_code("Orchard")


def test_search_maps_results():
    session = FakeSession({"elastic/search": FakeResponse(SEARCH_RESULT)})
    results = OneMapClient(session=session).search("marina bay sands")

    assert len(results) == 1
    loc = results[0]
    assert loc.name == "MARINA BAY SANDS"
    assert loc.postal_code == "018956"
    assert (loc.latitude, loc.longitude) == (1.2834, 103.8607)
    assert session.calls[0][2]["params"]["searchVal"] == "marina bay sands"


def test_search_nil_fields_and_empty_query():
    nil = {"found": 1, "results": [{"SEARCHVAL": "123 ROAD", "BUILDING": "NIL", "POSTAL": "NIL", "ADDRESS": "123 ROAD", "LATITUDE": "1.3", "LONGITUDE": "103.8"}]}
    client = OneMapClient(session=FakeSession({"elastic/search": FakeResponse(nil)}))

    loc = client.search("123 road")[0]
    assert loc.name == "123 ROAD"
    assert loc.postal_code is None
    assert client.search("   ") == []


def test_geocode_swallows_api_errors_into_none():
    client = OneMapClient(session=FakeSession({"elastic/search": FakeResponse({}, status_code=500)}))
    assert client.geocode("anything") is None

    client = OneMapClient(session=FakeSession({"elastic/search": FakeResponse({"found": 0, "results": []})}))
    assert client.geocode("nowhere") is None


def test_search_rate_limited():
    client = OneMapClient(session=FakeSession({"elastic/search": FakeResponse({}, status_code=429)}))
    with pytest.raises(RateLimitError):
        client.search("x")


def test_route_requires_credentials():
    client = OneMapClient(session=FakeSession({}))
    with pytest.raises(ConfigurationError):
        client.plan_route(ORIGIN, DESTINATION, RouteOptions(mode="WALK"))


def test_public_transport_route_params():
    session = FakeSession({"routingsvc/route": FakeResponse(TRANSIT_RESPONSE)})
    client = OneMapClient(token="tok", clock=fixed_clock(), session=session)

    raw = client.plan_route(ORIGIN, DESTINATION, RouteOptions(max_walk_distance=500))

    assert raw == TRANSIT_RESPONSE
    _, _, kwargs = session.calls[0]
    assert kwargs["headers"] == {"Authorization": "tok"}
    params = kwargs["params"]
    assert params["routeType"] == "pt"
    assert params["mode"] == "TRANSIT"
    assert params["maxWalkDistance"] == 500
    assert params["date"] == "03-04-2024"
    assert params["time"] == "08:30:00"
    assert params["arriveBy"] == "false"


def test_arrive_by_uses_singapore_time():
    session = FakeSession({"routingsvc/route": FakeResponse(TRANSIT_RESPONSE)})
    client = OneMapClient(token="tok", session=session)
    # 17:00 UTC is 01:00 the next day in Singapore
    arrive = datetime(2024, 3, 3, 17, 0, tzinfo=timezone.utc)

    client.plan_route(ORIGIN, DESTINATION, RouteOptions(arrival_time=arrive))

    params = session.calls[0][2]["params"]
    assert params["arriveBy"] == "true"
    assert params["date"] == "03-04-2024"
    assert params["time"] == "01:00:00"


def test_walk_route_has_no_transit_params():
    session = FakeSession({"routingsvc/route": FakeResponse(DIRECT_RESPONSE)})
    OneMapClient(token="tok", session=session).plan_route(ORIGIN, DESTINATION, RouteOptions(mode="WALK"))
    params = session.calls[0][2]["params"]
    assert params["routeType"] == "walk"
    assert "mode" not in params


def test_no_route_is_none():
    session = FakeSession({"routingsvc/route": FakeResponse({"status": 0, "plan": {"itineraries": []}})})
    assert OneMapClient(token="tok", session=session).plan_route(ORIGIN, DESTINATION, RouteOptions()) is None

    session = FakeSession({"routingsvc/route": FakeResponse({"status": 404, "status_message": "Found no route"})})
    assert OneMapClient(token="tok", session=session).plan_route(ORIGIN, DESTINATION, RouteOptions(mode="DRIVE")) is None


def test_route_cached_unless_time_given(tmp_path):
    session = FakeSession({"routingsvc/route": FakeResponse(DIRECT_RESPONSE)})
    client = OneMapClient(token="tok", cache=FileCache(str(tmp_path)), session=session)
    options = RouteOptions(mode="WALK")

    client.plan_route(ORIGIN, DESTINATION, options)
    client.plan_route(ORIGIN, DESTINATION, options)
    assert len(session.calls) == 1

    timed = RouteOptions(departure_time=datetime(2024, 3, 4, 9, 0, tzinfo=SINGAPORE_TZ))
    client.plan_route(ORIGIN, DESTINATION, timed)
    client.plan_route(ORIGIN, DESTINATION, timed)
    assert len(session.calls) == 3


def test_token_from_credentials_is_reused():
    session = FakeSession(
        {
            "getToken": FakeResponse({"access_token": "fresh", "expiry_timestamp": "4102444800"}),
            "routingsvc/route": FakeResponse(DIRECT_RESPONSE),
        }
    )
    client = OneMapClient(email="a@b.sg", password="pw", session=session)

    client.plan_route(ORIGIN, DESTINATION, RouteOptions(mode="WALK"))
    client.plan_route(ORIGIN, DESTINATION, RouteOptions(mode="DRIVE"))

    methods = [(m, url.rsplit("/", 1)[-1]) for m, url, _ in session.calls]
    assert methods == [("POST", "getToken"), ("GET", "route"), ("GET", "route")]
    assert session.calls[1][2]["headers"] == {"Authorization": "fresh"}


def test_token_failure():
    session = FakeSession({"getToken": FakeResponse({}, status_code=401)})
    client = OneMapClient(email="a@b.sg", password="wrong", session=session)
    with pytest.raises(APIError) as exc:
        client.plan_route(ORIGIN, DESTINATION, RouteOptions(mode="WALK"))
    assert exc.value.code == "AUTH_FAILED"


def test_non_json_search_body():
    client = OneMapClient(session=FakeSession({"elastic/search": FakeResponse(ValueError("Expecting value"))}))
    with pytest.raises(APIError) as exc:
        client.search("orchard")
    assert exc.value.code == "ONEMAP_API_ERROR"
    assert client.geocode("orchard") is None


def test_geocode_without_configuration_is_none():
    def refuse(url, **kw):
        return ConfigurationError("not configured")

    client = OneMapClient(session=FakeSession({"elastic/search": refuse}))
    assert client.geocode("orchard") is None


@pytest.mark.parametrize("payload", [{"error": "bad credentials"}, ["not", "a", "dict"], ValueError("Expecting value")])
def test_token_payload_without_access_token(payload):
    session = FakeSession({"getToken": FakeResponse(payload)})
    client = OneMapClient(email="a@b.sg", password="pw", session=session)
    with pytest.raises(APIError) as exc:
        client.plan_route(ORIGIN, DESTINATION, RouteOptions(mode="WALK"))
    assert exc.value.code == "AUTH_FAILED"


def test_resolve_postal_code_needs_exact_match():
    near_miss = {"found": 1, "results": [dict(SEARCH_RESULT["results"][0], POSTAL="018957")]}
    client = OneMapClient(session=FakeSession({"elastic/search": FakeResponse(SEARCH_RESULT)}))
    assert client.resolve_postal_code("018956").name == "MARINA BAY SANDS"

    client = OneMapClient(session=FakeSession({"elastic/search": FakeResponse(near_miss)}))
    assert client.resolve_postal_code("018956") is None
    with pytest.raises(ValueError):
        client.resolve_postal_code("1234")


def test_reverse_geocode():
    info = {
        "GeocodeInfo": [
            {"BUILDINGNAME": "null", "BLOCK": "2", "ROAD": "ORCHARD TURN", "POSTALCODE": "238801", "LATITUDE": "1.3050", "LONGITUDE": "103.8320"},
            {"BUILDINGNAME": "ION ORCHARD", "BLOCK": "2", "ROAD": "ORCHARD TURN", "POSTALCODE": "238801", "LATITUDE": "1.3041", "LONGITUDE": "103.8318"},
            {"BUILDINGNAME": "BROKEN", "LATITUDE": "", "LONGITUDE": ""},
        ]
    }
    session = FakeSession({"revgeocode": FakeResponse(info)})
    places = OneMapClient(token="tok", session=session).reverse_geocode(1.3040, 103.8318, radius_m=200)

    assert [p.name for p in places] == ["ION ORCHARD", "2 ORCHARD TURN"]
    assert places[0].address == "2 ORCHARD TURN"
    assert places[0].distance_m < places[1].distance_m
    _, _, kwargs = session.calls[0]
    assert kwargs["params"]["location"] == "1.304,103.8318"
    assert kwargs["params"]["buffer"] == 200
    assert kwargs["headers"] == {"Authorization": "tok"}


def test_theme_features_within_radius():
    rows = {
        "SrchResults": [
            {"FeatCount": 3, "Theme_Name": "Hawker Centres"},
            {"NAME": "Maxwell Food Centre", "ADDRESSSTREETNAME": "Kadayanallur Street", "ADDRESSPOSTALCODE": "069184", "LatLng": "1.2803,103.8448"},
            {"NAME": "Far Away Centre", "LatLng": "1.2900,103.8448"},
        ]
    }
    session = FakeSession({"retrieveTheme": FakeResponse(rows)})
    places = OneMapClient(token="tok", session=session).theme_features("hawkercentre", 1.2800, 103.8450, radius_m=500)

    assert [p.name for p in places] == ["Maxwell Food Centre"]
    assert places[0].category == "hawkercentre"
    assert places[0].postal_code == "069184"
    assert session.calls[0][2]["params"]["queryName"] == "hawkercentre"
