from conftest import fixed_clock
from mcp_tools_transport.core.schemas import Coordinates, TrafficIncident
from mcp_tools_transport.services.traffic import (
    alternative_routes,
    assess_traffic,
    estimated_delay,
    overall_condition,
    severity,
)


def incident(message, type_="Accident"):
    return TrafficIncident(type=type_, message=message, coordinates=Coordinates(lat=1.33, lng=103.85))


def test_overall_condition():
    assert [overall_condition(n) for n in (0, 2, 5, 6)] == ["smooth", "light", "moderate", "heavy"]


def test_incident_classification():
    crash = incident("(4/3)08:12 Accident on PIE (towards Changi) after Adam Rd Exit. 2 lanes blocked.")
    assert severity(crash) == "moderate"
    assert estimated_delay(crash) == "15-30 minutes"
    assert alternative_routes(crash) == ["Consider ECP or CTE as alternatives"]

    closure = incident("Road closure on Bukit Timah Road", type_="Road Block")
    assert severity(closure) == "severe"
    assert estimated_delay(closure) == "30+ minutes"
    assert alternative_routes(closure) == ["Use alternative roads and local routes"]

    works = incident("Roadworks on Jalan Bukit Merah", type_="Roadwork")
    assert severity(works) == "minor"
    assert estimated_delay(works) == "5-10 minutes"


def test_assess_traffic_filters_and_summarizes():
    incidents = [
        incident("Accident on PIE (towards Tuas) at Thomson Rd Exit."),
        incident("Roadworks on CTE (towards SLE) after Ang Mo Kio Ave 1.", type_="Roadwork"),
    ]
    report = assess_traffic(incidents, road="pie", clock=fixed_clock(hour=8))

    assert report["overall_condition"] == "light"
    assert report["road"] == "pie"
    assert report["area"] == "Island-wide"
    assert report["summary"] == "Light traffic conditions - 1 incident reported"
    assert len(report["major_incidents"]) == 1
    assert report["major_incidents"][0]["severity"] == "moderate"
    assert "Peak hour traffic - expect longer journey times" in report["recommendations"]
    assert report["expressway_summary"]["PIE"] == {"condition": "light", "incidents": 1, "major_issues": 1}
    assert report["expressway_summary"]["CTE"]["incidents"] == 0
    assert report["timestamp"].startswith("2024-03-04T08:30:00")


def test_no_incidents():
    report = assess_traffic([], clock=fixed_clock(hour=23))
    assert report["overall_condition"] == "smooth"
    assert report["summary"].endswith("no incidents reported")
    assert report["major_incidents"] == []
    assert "Off-peak hours - generally lighter traffic" in report["recommendations"]
