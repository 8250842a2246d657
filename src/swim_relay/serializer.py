"""
JSON Serializer
===============

Renders completed records into the UTF-8 JSON bodies that are POSTed.

Unit conversions happen here and nowhere else:
    - micro-degrees   -> degrees  (value / 1_000_000)
    - milli-degrees   -> degrees  (value / 1000)

Truncation:
    max_cells_out > 0 keeps at most that many cells and adds
    "cellsTruncated": true when anything was cut. max_cells_out <= 0 emits
    the whole grid and omits the key.
"""

import logging
from typing import Optional

from swim_relay.decode.assembler import utc_now_iso
from swim_relay.decode.tracks import normalize_flight_rules
from swim_relay.models.frame import PrecipFrame, TrackFields
from swim_relay.models.output import (
    GridGeometry,
    PrecipDocument,
    SpecialCodes,
    TerminalReferencePoint,
    TrackDocument,
)


logger = logging.getLogger(__name__)


MICRO_DEGREES = 1_000_000
MILLI_DEGREES = 1000


def build_precip_document(frame: PrecipFrame, max_cells_out: int = 0) -> PrecipDocument:
    """
    Build the output document for a validated frame.

    Args:
        frame: Frame returned by FrameAssembler.finalize (grid allocated)
        max_cells_out: Maximum number of cells to emit (<= 0 = all)

    Returns:
        PrecipDocument ready for serialization
    """
    if frame.grid is None:
        raise ValueError(f"Frame has no grid: {frame!r}")

    total = len(frame.grid)
    limit = min(total, max_cells_out) if max_cells_out > 0 else total

    return PrecipDocument(
        received_at=frame.received_at,
        product_id=frame.product_id,
        product_name=frame.product_name,
        site=frame.site,
        airport=frame.airport,
        rows=frame.rows,
        cols=frame.cols,
        trp=TerminalReferencePoint(
            lat_deg=frame.trp_lat_micro_deg / MICRO_DEGREES,
            lon_deg=frame.trp_lon_micro_deg / MICRO_DEGREES,
        ),
        grid_geom=GridGeometry(
            x_offset_m=frame.x_offset_m,
            y_offset_m=frame.y_offset_m,
            dx_m=frame.dx_m,
            dy_m=frame.dy_m,
            rotation_deg=frame.rotation_milli_deg / MILLI_DEGREES,
        ),
        special=SpecialCodes(
            attenuated=frame.special.attenuated,
            ap_detected=frame.special.ap_detected,
            bad_value=frame.special.bad_value,
            no_coverage=frame.special.no_coverage,
        ),
        compression=frame.compression,
        max_precip_level=frame.max_precip_level,
        filled_cells=frame.filled_cells,
        cells=frame.grid[:limit].tolist(),
        cells_truncated=True if limit < total else None,
    )


def build_precip_json(frame: PrecipFrame, max_cells_out: int = 0) -> bytes:
    """Serialize a validated frame to UTF-8 JSON bytes."""
    document = build_precip_document(frame, max_cells_out)
    return document.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")


def build_track_document(
    fields: TrackFields,
    received_at: Optional[str] = None,
) -> TrackDocument:
    """Build the output document for one track message."""
    return TrackDocument(
        received_at=received_at or utc_now_iso(),
        callsign=fields.callsign,
        icao24=fields.aircraft_address,
        track_num=fields.track_number,
        beacon_code=fields.beacon_code,
        flight_rules=fields.flight_rules,
        raw_flight_rules=fields.raw_flight_rules,
        departure_airport=fields.departure_airport,
        destination_airport=fields.destination_airport,
        rules_label=normalize_flight_rules(
            fields.flight_rules, fields.raw_flight_rules
        ),
    )


def build_track_json(fields: TrackFields, received_at: Optional[str] = None) -> bytes:
    """Serialize track fields to UTF-8 JSON bytes."""
    document = build_track_document(fields, received_at)
    return document.model_dump_json(by_alias=True, exclude_none=True).encode("utf-8")
