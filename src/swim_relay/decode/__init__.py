"""
Decode Module
=============

XML scanning and grid decoding for incoming telemetry messages.

Components:
    - GridDecoder: Streaming RLE decoder for the precipitation grid
    - FrameAssembler: Frame record with ordering-safe grid allocation
    - PrecipFieldExtractor: SAX handler for precipitation products
    - extract_track_fields / normalize_flight_rules: Track messages

Example:
    from swim_relay.decode import decode_precip

    frame = decode_precip(body, target_product_id=9850)
    if frame is not None:
        print(frame.rows, frame.cols, frame.filled_cells)
"""

from swim_relay.decode.grid import DecoderState, GridDecoder, map_level
from swim_relay.decode.assembler import FrameAssembler, parse_int, safe_grid_size
from swim_relay.decode.extractor import (
    FrameDecodeError,
    PrecipFieldExtractor,
    decode_precip,
)
from swim_relay.decode.tracks import extract_track_fields, normalize_flight_rules


__all__ = [
    "DecoderState",
    "GridDecoder",
    "map_level",
    "FrameAssembler",
    "parse_int",
    "safe_grid_size",
    "FrameDecodeError",
    "PrecipFieldExtractor",
    "decode_precip",
    "extract_track_fields",
    "normalize_flight_rules",
]
