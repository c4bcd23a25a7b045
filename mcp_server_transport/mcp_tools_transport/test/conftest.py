import copy
from datetime import datetime

import pytest

from mcp_tools_transport.core.config import SINGAPORE_TZ

# Two legs' worth of geometry from the Google polyline docs example
GEOM_A = "_p~iF~ps|U_ulLnnqC"
GEOM_B = "_ulLnnqC_mqNvxq`@"
GEOM_FULL = "_p~iF~ps|U_ulLnnqC_mqNvxq`@"

TRANSIT_RESPONSE = {
    "plan": {
        "itineraries": [
            {
                "duration": 1800,
                "walkDistance": 450.5,
                "transfers": 1,
                "fare": "2.50",
                "legs": [
                    {
                        "mode": "WALK",
                        "distance": 200.4,
                        "duration": 180,
                        "from": {"name": "Origin", "lat": 1.3521, "lon": 103.8198},
                        "to": {"name": "Bus Stop A", "lat": 1.3530, "lon": 103.8200},
                        "steps": [
                            {
                                "relativeDirection": "DEPART",
                                "streetName": "Orchard Road",
                                "distance": 120.4,
                                "lat": 1.3521,
                                "lon": 103.8198,
                            },
                            {"relativeDirection": "LEFT", "streetName": "", "distance": 80, "lat": 1.3525, "lon": 103.8199},
                        ],
                        "legGeometry": {"points": GEOM_A},
                    },
                    {
                        "mode": "BUS",
                        "routeShortName": "36",
                        "agencyName": "SBST",
                        "distance": 3000,
                        "duration": 900,
                        "from": {"name": "Bus Stop A", "stopCode": "09022", "lat": 1.3530, "lon": 103.8200},
                        "to": {"name": "Bus Stop B", "stopCode": "01012", "lat": 1.2800, "lon": 103.8500},
                        "intermediateStops": [{"name": "Mid Stop", "stopCode": "08031", "lat": 1.30, "lon": 103.83}],
                        "legGeometry": {"points": GEOM_B},
                    },
                    {
                        "mode": "WALK",
                        "distance": 250,
                        "duration": 200,
                        "from": {"name": "Bus Stop B", "lat": 1.28, "lon": 103.85},
                        "to": {"name": "Marina Bay Sands", "lat": 1.2834, "lon": 103.8607},
                    },
                ],
            }
        ]
    }
}

DIRECT_RESPONSE = {
    "status": 0,
    "route_instructions": [
        ["Head", "ORCHARD ROAD", 150, "1.305,103.825", 30, "150m", "North", "N", "walking", "Head on Orchard Road"],
        ["Left", "SCOTTS ROAD", 300.6, "1.306,103.829", 60, "301m", "West", "W", "walking", ""],
        ["Right", "", 50, "bad", 10],
    ],
    "route_summary": {"total_time": 100, "total_distance": 500.6},
    "route_geometry": GEOM_FULL,
}


def fixed_clock(hour=8, minute=30):
    moment = datetime(2024, 3, 4, hour, minute, tzinfo=SINGAPORE_TZ)
    return lambda: moment


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self.payload = payload
        self.status_code = status_code

    def json(self):
        if isinstance(self.payload, Exception):
            raise self.payload
        return self.payload


class FakeSession:
    """Stands in for requests.Session; ``routes`` maps a URL substring to a response or callable."""

    def __init__(self, routes):
        self.routes = routes
        self.calls = []

    def _dispatch(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        for fragment, response in self.routes.items():
            if fragment in url:
                if callable(response):
                    response = response(url, **kwargs)
                if isinstance(response, Exception):
                    raise response
                return response
        raise AssertionError(f"unexpected request: {method} {url}")

    def get(self, url, **kwargs):
        return self._dispatch("GET", url, **kwargs)

    def post(self, url, **kwargs):
        return self._dispatch("POST", url, **kwargs)


@pytest.fixture
def transit_response():
    return copy.deepcopy(TRANSIT_RESPONSE)


@pytest.fixture
def direct_response():
    return copy.deepcopy(DIRECT_RESPONSE)


@pytest.fixture
def clock():
    return fixed_clock()
