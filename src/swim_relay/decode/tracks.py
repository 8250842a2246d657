"""
Track Field Extraction
======================

Flat-field extraction for surveillance track messages.

A small fixed set of elements is captured as trimmed text; there is no
streaming payload. The flight-rule normalizer turns the primary rules code
and the raw fallback code into a display label.
"""

import logging
from typing import Dict, List, Optional

from xml.sax.handler import ContentHandler

from swim_relay.decode.extractor import create_parser, feed_in_chunks, local_name
from swim_relay.models.frame import TrackFields


logger = logging.getLogger(__name__)


# Element local name -> TrackFields attribute
TRACK_TAGS: Dict[str, str] = {
    "acid": "callsign",
    "acAddress": "aircraft_address",
    "trackNum": "track_number",
    "assignedBeaconCode": "assigned_beacon_code",
    "reportedBeaconCode": "reported_beacon_code",
    "flightRules": "flight_rules",
    "rawFlightRules": "raw_flight_rules",
    "departureAirport": "departure_airport",
    "destinationAirport": "destination_airport",
}

PRIMARY_RULES = {
    "I": "IFR",
    "IFR": "IFR",
    "V": "VFR",
    "VFR": "VFR",
    "D": "DVFR",
    "DVFR": "DVFR",
}

FALLBACK_RULES = {
    "E": "IFR",
    "V": "VFR",
    "P": "VFR-ON-TOP",
}

UNKNOWN_RULES = "UNKNOWN"


def normalize_flight_rules(
    flight_rules: Optional[str],
    raw_flight_rules: Optional[str],
) -> str:
    """
    Map flight-rule codes to a label.

    The primary code is tried first, then the raw fallback code. Never
    raises; unrecognized input yields "UNKNOWN".

    Example:
        normalize_flight_rules("I", None)   # "IFR"
        normalize_flight_rules(None, "P")   # "VFR-ON-TOP"
        normalize_flight_rules("X", "Z")    # "UNKNOWN"
    """
    if flight_rules is not None:
        label = PRIMARY_RULES.get(flight_rules.strip().upper())
        if label:
            return label
    if raw_flight_rules is not None:
        label = FALLBACK_RULES.get(raw_flight_rules.strip().upper())
        if label:
            return label
    return UNKNOWN_RULES


class TrackFieldExtractor(ContentHandler):
    """SAX handler capturing the wanted track elements."""

    def __init__(self) -> None:
        super().__init__()
        self.fields: Dict[str, str] = {}
        self._key: Optional[str] = None
        self._text: Optional[List[str]] = None

    def startElement(self, name, attrs) -> None:
        tag = local_name(name)
        if tag in TRACK_TAGS:
            self._key = tag
            self._text = []
        else:
            self._key = None
            self._text = None

    def characters(self, content: str) -> None:
        if self._text is not None:
            self._text.append(content)

    def endElement(self, name) -> None:
        tag = local_name(name)
        if self._key == tag and self._text is not None:
            value = "".join(self._text).strip()
            if value:
                self.fields[tag] = value
        self._key = None
        self._text = None


def extract_track_fields(body: bytes) -> TrackFields:
    """
    Extract the flat track fields from one message.

    Raises:
        FrameDecodeError: If the body is not well-formed XML
    """
    handler = TrackFieldExtractor()
    parser = create_parser()
    parser.setContentHandler(handler)
    feed_in_chunks(parser, body)

    return TrackFields(**{
        TRACK_TAGS[tag]: value for tag, value in handler.fields.items()
    })
