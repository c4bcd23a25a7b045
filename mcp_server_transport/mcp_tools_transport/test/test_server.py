import asyncio
from datetime import datetime

from mcp_tools_transport.core.config import SINGAPORE_TZ
from mcp_tools_transport.core.schemas import BusStop, Coordinates, WeatherConditions
from mcp_tools_transport.mcp import server


def test_tools_registered():
    names = {tool.name for tool in asyncio.run(server.mcp.list_tools())}
    assert names == {
        "plan_comprehensive_journey",
        "search_location",
        "get_weather_conditions",
        "get_bus_arrivals",
        "get_train_service_status",
        "get_traffic_conditions",
        "get_nearby_taxis",
        "find_bus_stops",
        "get_bus_stop_details",
        "reverse_geocode",
        "resolve_postal_code",
        "find_landmarks_and_facilities",
        "get_weather_advisory",
    }


def test_parse_time():
    assert server._parse_time(None) is None
    naive = server._parse_time("2024-03-04T08:30:00")
    assert naive.tzinfo is SINGAPORE_TZ
    aware = server._parse_time("2024-03-04T00:30:00+00:00")
    assert aware.astimezone(SINGAPORE_TZ).hour == 8


def test_get_nearby_taxis(monkeypatch):
    class FakeLTA:
        def taxi_availability(self):
            return [Coordinates(lat=1.3000, lng=103.8000), Coordinates(lat=1.4000, lng=103.9000)]

    monkeypatch.setattr(server, "_lta", lambda cache: FakeLTA())
    monkeypatch.setattr(server, "_cache", lambda: None)

    result = server.get_nearby_taxis(1.3001, 103.8, radius_m=500)
    assert result["count"] == 1
    assert result["taxis"][0]["distance_m"] == 11


def test_train_status_filters_by_line(monkeypatch):
    from mcp_tools_transport.core.schemas import TrainServiceAlert

    class FakeLTA:
        def train_service_alerts(self):
            return [TrainServiceAlert(line="EWL", line_name="East West Line")]

    monkeypatch.setattr(server, "_lta", lambda cache: FakeLTA())
    monkeypatch.setattr(server, "_cache", lambda: None)

    assert server.get_train_service_status("ewl")["overall_status"] == "Disrupted"
    assert server.get_train_service_status("NSL") == {"overall_status": "Normal", "alerts": []}


def test_find_bus_stops(monkeypatch):
    class FakeLTA:
        def bus_stops(self):
            return [
                BusStop(code="09022", road_name="Orchard Rd", description="Orchard Stn", coordinates=Coordinates(lat=1.3040, lng=103.8320)),
                BusStop(code="01012", road_name="Victoria St", description="Hotel Grand Pacific", coordinates=Coordinates(lat=1.2967, lng=103.8527)),
            ]

    monkeypatch.setattr(server, "_lta", lambda cache: FakeLTA())
    monkeypatch.setattr(server, "_cache", lambda: None)

    stops = server.find_bus_stops(1.3048, 103.8318, radius_m=500)
    assert [s.code for s in stops] == ["09022"]
    assert stops[0].distance_m < 100


def test_get_weather_advisory(monkeypatch):
    class FakeWeather:
        def __init__(self, cache=None, timeout_s=30):
            pass

        def conditions_for(self, lat, lng):
            return WeatherConditions(
                temperature_c=33.0,
                rainfall_mm=12.0,
                humidity_pct=70.0,
                wind_speed_kmh=5.0,
                wind_direction_deg=0.0,
                location=Coordinates(lat=lat, lng=lng),
                timestamp=datetime(2024, 3, 4, 8, 30, tzinfo=SINGAPORE_TZ),
            )

    monkeypatch.setattr(server, "WeatherClient", FakeWeather)
    monkeypatch.setattr(server, "_cache", lambda: None)

    advice = server.get_weather_advisory()
    assert [a["type"] for a in advice["advisories"]] == ["rain", "heat"]
    assert advice["walking_time_multiplier"] == 1.5
    assert advice["preferred_modes"] == ["MRT", "Covered Bus Stops", "Air-conditioned transport"]
