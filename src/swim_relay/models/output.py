"""
Output Document Models
======================

JSON documents POSTed to the ingest endpoints.

Key names and key order are a wire contract with the downstream service.

Precipitation document:
    {
        "receivedAt": "2026-10-18T12:00:00.123456Z",
        "productId": 9850,
        "productName": "TRACON Precip",
        "site": "N90",
        "airport": "JFK",
        "rows": 3,
        "cols": 2,
        "trp": {"latDeg": 40.639751, "lonDeg": -73.778925},
        "gridGeom": {
            "xOffsetM": -100000, "yOffsetM": -100000,
            "dxM": 1000, "dyM": 1000, "rotationDeg": 0.0
        },
        "special": {
            "attenuated": 7, "apDetected": 8, "badValue": 9, "noCoverage": 15
        },
        "compression": "RLE",
        "maxPrecipLevel": 5,
        "filledCells": 6,
        "layout": "row-major",
        "cells": [5, 5, 5, 0, 0, 0]
    }

`cellsTruncated: true` is appended only when `cells` was cut short.

Track document:
    {
        "receivedAt": "...",
        "callsign": "AAL123",
        "icao24": "A1B2C3",
        "trackNum": "1234",
        "beaconCode": "4521",
        "flightRules": "I",
        "rulesLabel": "IFR"
    }

Optional track keys are omitted when absent; `rulesLabel` is always present.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class TerminalReferencePoint(BaseModel):
    """Grid reference point in decimal degrees."""

    model_config = ConfigDict(populate_by_name=True)

    lat_deg: float = Field(..., alias="latDeg", description="Latitude (deg)")
    lon_deg: float = Field(..., alias="lonDeg", description="Longitude (deg)")


class GridGeometry(BaseModel):
    """
    Placement of the grid relative to the reference point.

    Offsets and spacing are meters; rotation is degrees.
    """

    model_config = ConfigDict(populate_by_name=True)

    x_offset_m: int = Field(..., alias="xOffsetM")
    y_offset_m: int = Field(..., alias="yOffsetM")
    dx_m: int = Field(..., alias="dxM")
    dy_m: int = Field(..., alias="dyM")
    rotation_deg: float = Field(..., alias="rotationDeg")


class SpecialCodes(BaseModel):
    """Sentinel codes that were mapped to level 0."""

    model_config = ConfigDict(populate_by_name=True)

    attenuated: int
    ap_detected: int = Field(..., alias="apDetected")
    bad_value: int = Field(..., alias="badValue")
    no_coverage: int = Field(..., alias="noCoverage")


class PrecipDocument(BaseModel):
    """
    Complete precipitation frame document.

    Attributes:
        filled_cells: Cells actually written by the decoder; may be below
            rows * cols when the encoded runs under-specify the grid
        cells: Row-major levels, possibly truncated
        cells_truncated: True only when cells was truncated
    """

    model_config = ConfigDict(populate_by_name=True)

    received_at: str = Field(..., alias="receivedAt")
    product_id: int = Field(..., alias="productId")
    product_name: str = Field(default="", alias="productName")
    site: str = ""
    airport: str = ""
    rows: int = Field(..., gt=0)
    cols: int = Field(..., gt=0)
    trp: TerminalReferencePoint
    grid_geom: GridGeometry = Field(..., alias="gridGeom")
    special: SpecialCodes
    compression: str = ""
    max_precip_level: int = Field(default=-1, alias="maxPrecipLevel")
    filled_cells: int = Field(default=-1, alias="filledCells")
    layout: str = "row-major"
    cells: List[int] = Field(default_factory=list)
    cells_truncated: Optional[bool] = Field(default=None, alias="cellsTruncated")


class TrackDocument(BaseModel):
    """Flat track document with the normalized flight-rules label."""

    model_config = ConfigDict(populate_by_name=True)

    received_at: str = Field(..., alias="receivedAt")
    callsign: Optional[str] = None
    icao24: Optional[str] = None
    track_num: Optional[str] = Field(default=None, alias="trackNum")
    beacon_code: Optional[str] = Field(default=None, alias="beaconCode")
    flight_rules: Optional[str] = Field(default=None, alias="flightRules")
    raw_flight_rules: Optional[str] = Field(default=None, alias="rawFlightRules")
    departure_airport: Optional[str] = Field(default=None, alias="departureAirport")
    destination_airport: Optional[str] = Field(
        default=None, alias="destinationAirport"
    )
    rules_label: str = Field(..., alias="rulesLabel")
