import pytest

from mcp_tools_transport.services.classifier import ResponseKind, classify
from mcp_tools_transport.services.instructions import (
    format_meters,
    map_direct_mode,
    map_transit_mode,
    normalize_instructions,
    parse_coordinate_string,
)


@pytest.mark.parametrize("raw", [None, {}, {"plan": {}}, {"plan": {"itineraries": []}}, {"route_instructions": []}, "nope"])
def test_classify_invalid(raw):
    assert classify(raw) is ResponseKind.INVALID
    assert normalize_instructions(raw) == []


def test_classify_shapes(transit_response, direct_response):
    assert classify(transit_response) is ResponseKind.TRANSIT
    assert classify(direct_response) is ResponseKind.DIRECT
    # transit wins when a payload carries both
    both = dict(direct_response, plan=transit_response["plan"])
    assert classify(both) is ResponseKind.TRANSIT


def test_response_types():
    assert ResponseKind.TRANSIT.response_type == "PUBLIC_TRANSPORT"
    assert ResponseKind.DIRECT.response_type == "DIRECT_ROUTING"
    assert ResponseKind.INVALID.response_type == "ERROR"


def test_mode_mapping():
    assert map_transit_mode("RAIL") == "SUBWAY"
    assert map_transit_mode("subway") == "SUBWAY"
    assert map_transit_mode("TRAM") == "SUBWAY"
    assert map_transit_mode("BUS") == "BUS"
    assert map_transit_mode("FERRY") == "WALK"
    assert map_direct_mode("driving") == "TAXI"
    assert map_direct_mode("walking") == "WALK"
    assert map_direct_mode(None) == "WALK"


def test_parse_coordinate_string():
    c = parse_coordinate_string("1.3521,103.8198")
    assert (c.lat, c.lng) == (1.3521, 103.8198)
    assert parse_coordinate_string("bad") is None
    assert parse_coordinate_string("1,2,3") is None
    assert parse_coordinate_string("a,b") is None
    assert parse_coordinate_string(None) is None


def test_format_meters():
    assert format_meters(120.4) == "120m"
    assert format_meters(0) == "0m"


def test_transit_walk_legs_expand_into_steps(transit_response):
    steps = normalize_instructions(transit_response)

    assert [s.step for s in steps] == [1, 2, 3, 4]
    assert [s.type for s in steps] == ["transit_walk", "transit_walk", "transit", "transit_walk"]
    assert [s.mode for s in steps] == ["WALK", "WALK", "BUS", "WALK"]

    assert steps[0].instruction == "DEPART on Orchard Road for 120m"
    assert steps[0].street_name == "Orchard Road"
    assert steps[0].coordinates.lat == 1.3521
    assert steps[1].instruction == "LEFT for 80m"
    assert steps[1].street_name is None


def test_transit_ride_leg(transit_response):
    bus = normalize_instructions(transit_response)[2]

    assert bus.instruction == "Take 36 from Bus Stop A to Bus Stop B"
    assert bus.service == "36"
    assert bus.operator == "SBST"
    assert bus.distance == 3000
    assert bus.duration == 900
    assert bus.from_stop.stop_code == "09022"
    assert bus.to_stop.name == "Bus Stop B"
    assert [s.name for s in bus.intermediate_stops] == ["Mid Stop"]
    assert bus.coordinates == bus.from_stop.coordinates


def test_walk_leg_without_steps(transit_response):
    last = normalize_instructions(transit_response)[-1]
    assert last.instruction == "Walk 250m to Marina Bay Sands"
    assert last.duration == 200


def test_ride_leg_without_intermediate_stops_key(transit_response):
    legs = transit_response["plan"]["itineraries"][0]["legs"]
    del legs[1]["intermediateStops"]
    legs[1]["mode"] = "SUBWAY"
    del legs[1]["routeShortName"]

    ride = normalize_instructions(transit_response)[2]
    assert ride.intermediate_stops is None
    assert ride.mode == "SUBWAY"
    assert ride.instruction == "Take Subway from Bus Stop A to Bus Stop B"


def test_ride_leg_with_empty_intermediate_stops(transit_response):
    transit_response["plan"]["itineraries"][0]["legs"][1]["intermediateStops"] = []

    ride = normalize_instructions(transit_response)[2]
    assert ride.intermediate_stops == []


def test_walk_steps_carry_a_duration(transit_response):
    steps = normalize_instructions(transit_response)
    assert steps[0].duration == 0.0
    assert steps[1].duration == 0.0

    transit_response["plan"]["itineraries"][0]["legs"][0]["steps"][0]["duration"] = 95
    assert normalize_instructions(transit_response)[0].duration == 95


def test_sparse_transit_leg_does_not_raise():
    raw = {"plan": {"itineraries": [{"legs": [{"mode": "WALK"}, {"mode": "BUS", "distance": -5}]}]}}
    steps = normalize_instructions(raw)

    assert steps[0].instruction == "Walk 0m to destination"
    assert steps[0].coordinates is None
    assert steps[1].distance == 0.0
    assert steps[1].instruction == "Take Bus"


def test_transit_itinerary_without_legs():
    assert normalize_instructions({"plan": {"itineraries": [{"duration": 60}]}}) == []


def test_direct_instructions(direct_response):
    steps = normalize_instructions(direct_response)

    assert [s.step for s in steps] == [1, 2, 3]
    assert all(s.type == "direct" for s in steps)
    assert steps[0].instruction == "Head on Orchard Road"
    assert steps[0].coordinates.lng == 103.825
    assert steps[0].duration == 30
    # empty text falls back to a synthesized sentence
    assert steps[1].instruction == "Left on SCOTTS ROAD for 301m"
    # short tuple: missing mode, unparseable coordinates
    assert steps[2].mode == "WALK"
    assert steps[2].coordinates is None
    assert steps[2].instruction == "Right for 50m"


def test_direct_driving_maps_to_taxi(direct_response):
    direct_response["route_instructions"][0][8] = "driving"
    assert normalize_instructions(direct_response)[0].mode == "TAXI"


def test_direct_non_list_tuple_still_yields_a_step():
    steps = normalize_instructions({"route_instructions": [None]})
    assert len(steps) == 1
    assert steps[0].instruction == "Continue for 0m"


def test_direct_scenario_with_string_numbers():
    raw = {
        "route_instructions": [
            ["Left", "Jurong East St", "150", "1.333,103.742", "30", "150m", "N", "W", "walking", "Turn left onto Jurong East St"]
        ]
    }
    (step,) = normalize_instructions(raw)

    assert step.step == 1
    assert step.mode == "WALK"
    assert step.distance == 150
    assert step.duration == 30
    assert step.instruction == "Turn left onto Jurong East St"


def test_walk_bus_walk_scenario():
    raw = {
        "plan": {
            "itineraries": [
                {
                    "legs": [
                        {"mode": "WALK", "distance": 200, "to": {"name": "Bugis MRT"}},
                        {"mode": "BUS", "routeShortName": "21", "from": {"name": "A"}, "to": {"name": "B"}},
                        {"mode": "WALK", "distance": 100, "to": {"name": "Home"}},
                    ]
                }
            ]
        }
    }
    steps = normalize_instructions(raw)

    assert [(s.step, s.mode) for s in steps] == [(1, "WALK"), (2, "BUS"), (3, "WALK")]
    assert steps[0].instruction == "Walk 200m to Bugis MRT"
    assert steps[1].instruction == "Take 21 from A to B"
    assert steps[1].intermediate_stops is None
