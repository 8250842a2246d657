"""
Frame Assembler
===============

Owns one PrecipFrame while its XML message is scanned.

Scalar fields arrive through a fixed tag dispatch table. The grid buffer can
only be sized once both `rows` and `cols` are known, but the payload element
may open before, between, or after those fields. Allocation is driven by two
triggers:

    payload opened    -> allocate if dims are known and no buffer exists
    dimension closed  -> allocate if the payload was already seen, dims are
                         known and no buffer exists

Once allocated, the buffer is never resized. Payload text that arrives while
no buffer exists is dropped (there is no replay).
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

import numpy as np

from swim_relay.decode.grid import GridDecoder
from swim_relay.models.frame import (
    MAX_GRID_CELLS,
    GridAllocation,
    PrecipFrame,
    SpecialValues,
)


logger = logging.getLogger(__name__)


GRID_DTYPE = np.int8

DIMENSION_TAGS = frozenset({"prcp_nrows", "prcp_ncols"})


def parse_int(text: Optional[str], default: int) -> int:
    """
    Parse a scalar field as an integer.

    Any fractional part is dropped ("42.9" -> 42). Blank or unparseable
    text yields the default.
    """
    if text is None or not text.strip():
        return default
    head = text.split(".", 1)[0]
    try:
        return int(head.strip())
    except ValueError:
        return default


def safe_grid_size(rows: int, cols: int) -> int:
    """rows * cols clamped to [0, MAX_GRID_CELLS]."""
    size = rows * cols
    if size <= 0:
        return 0
    return min(size, MAX_GRID_CELLS)


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with a trailing Z."""
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def _set(attr: str, default: int) -> Callable[[PrecipFrame, str], None]:
    def apply(frame: PrecipFrame, text: str) -> None:
        setattr(frame, attr, parse_int(text, default))
    return apply


def _set_text(attr: str) -> Callable[[PrecipFrame, str], None]:
    def apply(frame: PrecipFrame, text: str) -> None:
        setattr(frame, attr, text)
    return apply


def _set_special(attr: str, default: int) -> Callable[[PrecipFrame, str], None]:
    def apply(frame: PrecipFrame, text: str) -> None:
        values = {
            "attenuated": frame.special.attenuated,
            "ap_detected": frame.special.ap_detected,
            "bad_value": frame.special.bad_value,
            "no_coverage": frame.special.no_coverage,
        }
        values[attr] = parse_int(text, default)
        frame.special = SpecialValues(**values)
    return apply


# Precipitation product tag -> field setter
PRECIP_FIELDS: Dict[str, Callable[[PrecipFrame, str], None]] = {
    "product_msg_id": _set("product_id", -1),
    "product_msg_name": _set_text("product_name"),
    "product_header_itws_sites": _set_text("site"),
    "product_header_airports": _set_text("airport"),
    "prcp_TRP_latitude": _set("trp_lat_micro_deg", 0),
    "prcp_TRP_longitude": _set("trp_lon_micro_deg", 0),
    "prcp_xoffset": _set("x_offset_m", 0),
    "prcp_yoffset": _set("y_offset_m", 0),
    "prcp_dx": _set("dx_m", 0),
    "prcp_dy": _set("dy_m", 0),
    "prcp_rotation": _set("rotation_milli_deg", 0),
    "prcp_nrows": _set("rows", -1),
    "prcp_ncols": _set("cols", -1),
    "prcp_attenuated": _set_special("attenuated", 7),
    "prcp_ap_detected": _set_special("ap_detected", 8),
    "prcp_bad_value": _set_special("bad_value", 9),
    "prcp_no_coverage": _set_special("no_coverage", 15),
    "prcp_grid_compression_encoding_scheme": _set_text("compression"),
    "prcp_grid_max_precip_level": _set("max_precip_level", -1),
}


class FrameAssembler:
    """
    Builds one PrecipFrame from field and payload events.

    Attributes:
        frame: The frame under construction
        decoder: Grid decoder for the payload element, once opened
        payload_seen: Whether the payload element has opened

    Example:
        assembler = FrameAssembler()
        assembler.apply_field("prcp_nrows", "3")
        assembler.apply_field("prcp_ncols", "2")
        decoder = assembler.open_payload()
        decoder.feed("5,6")
        assembler.close_payload()
        frame = assembler.finalize(target_product_id=9850)
    """

    def __init__(self, received_at: Optional[str] = None) -> None:
        self.frame = PrecipFrame(received_at=received_at or utc_now_iso())
        self.decoder: Optional[GridDecoder] = None
        self.payload_seen = False

    @property
    def allocation(self) -> GridAllocation:
        return self.frame.allocation

    def apply_field(self, tag: str, text: str) -> None:
        """
        Apply one closed scalar element to the frame.

        Args:
            tag: Element local name
            text: Trimmed element text
        """
        setter = PRECIP_FIELDS.get(tag)
        if setter is None:
            return
        setter(self.frame, text)

        if tag in DIMENSION_TAGS and self.payload_seen:
            self._allocate()

    def open_payload(self) -> GridDecoder:
        """
        Enter the encoded grid element.

        Returns:
            Decoder bound to the frame's buffer. If no buffer exists yet the
            decoder has no target and drops its input.
        """
        self.payload_seen = True
        self._allocate()

        if self.decoder is None or (
            not self.decoder.has_target and self.frame.grid is not None
        ):
            self.decoder = GridDecoder(self.frame.grid, self.frame.special)
        return self.decoder

    def close_payload(self) -> None:
        """Leave the encoded grid element and flush any pending run."""
        if self.decoder is not None:
            self.decoder.finish()

    def finalize(self, target_product_id: int) -> Optional[PrecipFrame]:
        """
        Validate and release the frame.

        Args:
            target_product_id: The only product id that is accepted

        Returns:
            The completed frame, or None when it must be discarded
        """
        frame = self.frame

        if frame.product_id != target_product_id:
            logger.debug(
                f"Rejecting frame: product_id={frame.product_id}, "
                f"target={target_product_id}"
            )
            return None
        if not frame.dims_known or frame.grid is None:
            logger.debug(f"Rejecting frame without grid: {frame!r}")
            return None

        frame.filled_cells = -1 if self.decoder is None else self.decoder.filled
        return frame

    def _allocate(self) -> None:
        if self.allocation is not GridAllocation.DIMS_KNOWN:
            return
        size = safe_grid_size(self.frame.rows, self.frame.cols)
        self.frame.grid = np.zeros(size, dtype=GRID_DTYPE)
        logger.debug(
            f"Allocated grid {self.frame.cols}x{self.frame.rows} ({size} cells)"
        )
