"""
Test Configuration
==================

Pytest fixtures and test helpers for swim-relay.
"""

from typing import Dict, List, Optional, Union

import pytest
import requests


def precip_xml(
    grid: str = "5,3 0,2 -1,1",
    rows: Optional[int] = 3,
    cols: Optional[int] = 2,
    product_id: int = 9850,
    extra: str = "",
    grid_first: bool = False,
) -> str:
    """Build a precipitation product message."""
    dims = ""
    if rows is not None:
        dims += f"<prcp_nrows>{rows}</prcp_nrows>"
    if cols is not None:
        dims += f"<prcp_ncols>{cols}</prcp_ncols>"
    payload = f"<prcp_grid_compressed>{grid}</prcp_grid_compressed>"
    body = payload + dims if grid_first else dims + payload

    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<itws:prcp_product xmlns:itws="urn:example:itws">'
        f"<product_msg_id>{product_id}</product_msg_id>"
        "<product_msg_name>TRACON Precip</product_msg_name>"
        "<product_header_itws_sites>N90</product_header_itws_sites>"
        "<product_header_airports>JFK</product_header_airports>"
        "<prcp_TRP_latitude>40639751</prcp_TRP_latitude>"
        "<prcp_TRP_longitude>-73778925</prcp_TRP_longitude>"
        "<prcp_xoffset>-100000</prcp_xoffset>"
        "<prcp_yoffset>-90000</prcp_yoffset>"
        "<prcp_dx>1000</prcp_dx>"
        "<prcp_dy>1000</prcp_dy>"
        "<prcp_rotation>12500</prcp_rotation>"
        "<prcp_grid_compression_encoding_scheme>RLE</prcp_grid_compression_encoding_scheme>"
        "<prcp_grid_max_precip_level>5</prcp_grid_max_precip_level>"
        f"{extra}{body}"
        "</itws:prcp_product>"
    )


class FakeResponse:
    def __init__(self, status_code: int, text: str = "") -> None:
        self.status_code = status_code
        self.text = text


class FakeSession:
    """
    Stand-in for requests.Session.

    Each POST consumes the next scripted result: an int status code or an
    exception instance to raise.
    """

    def __init__(self, results: List[Union[int, Exception]]) -> None:
        self._results = list(results)
        self.calls: List[Dict] = []
        self.closed = False

    def post(self, url, data=None, headers=None, timeout=None):
        self.calls.append({
            "url": url,
            "data": data,
            "headers": dict(headers or {}),
            "timeout": timeout,
        })
        result = self._results.pop(0) if self._results else 200
        if isinstance(result, Exception):
            raise result
        return FakeResponse(result, text=f"status {result}")

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def sample_precip_xml() -> str:
    """A valid 3x2 precipitation message."""
    return precip_xml()


@pytest.fixture
def sample_track_xml() -> str:
    """A track message with namespaced elements."""
    return (
        '<?xml version="1.0"?>'
        '<ns2:TATrackAndFlightPlan xmlns:ns2="urn:example:tais">'
        "<record><track>"
        "<ns2:trackNum>1234</ns2:trackNum>"
        "<acAddress> A1B2C3 </acAddress>"
        "<reportedBeaconCode>1200</reportedBeaconCode>"
        "</track><flightPlan>"
        "<acid>AAL123</acid>"
        "<assignedBeaconCode>4521</assignedBeaconCode>"
        "<flightRules>I</flightRules>"
        "<rawFlightRules>E</rawFlightRules>"
        "<departureAirport>KJFK</departureAirport>"
        "<destinationAirport>   </destinationAirport>"
        "</flightPlan></record>"
        "</ns2:TATrackAndFlightPlan>"
    )


@pytest.fixture
def no_sleep():
    """Sleep replacement that records requested delays."""
    delays: List[float] = []

    def sleep(seconds: float) -> None:
        delays.append(seconds)

    sleep.delays = delays
    return sleep


@pytest.fixture
def connection_error() -> Exception:
    return requests.ConnectionError("connection refused")
