"""
Frame Records
=============

Internal record types populated by the decoders.

PrecipFrame is filled field-by-field while an XML message is scanned and
handed to the serializer once the document closes. TrackFields is the flat
record produced by the track extractor.

Design Rules:
    - Coordinates stay as micro-degree integers until serialization
    - Rotation stays as a milli-degree integer until serialization
    - The grid buffer is allocated at most once per frame
    - A frame lives for one delivery attempt cycle only
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np


# Largest grid the assembler will allocate (matches a signed 32-bit length)
MAX_GRID_CELLS = 2**31 - 1

# Precipitation levels kept verbatim by the grid decoder
MIN_LEVEL = 0
MAX_LEVEL = 6


class GridAllocation(str, Enum):
    """
    Allocation state of a frame's grid buffer.

    Attributes:
        NO_DIMS: rows and/or cols not yet known
        DIMS_KNOWN: both dimensions positive, buffer not yet allocated
        ALLOCATED: buffer allocated (terminal)
    """

    NO_DIMS = "NO_DIMS"
    DIMS_KNOWN = "DIMS_KNOWN"
    ALLOCATED = "ALLOCATED"


@dataclass(frozen=True, slots=True)
class SpecialValues:
    """
    Sentinel codes meaning "no valid measurement".

    Every sentinel is mapped to level 0 by the grid decoder.
    """

    attenuated: int = 7
    ap_detected: int = 8
    bad_value: int = 9
    no_coverage: int = 15

    def __contains__(self, value: int) -> bool:
        return value in (
            self.attenuated,
            self.ap_detected,
            self.bad_value,
            self.no_coverage,
        )


@dataclass(slots=True)
class PrecipFrame:
    """
    One decoded precipitation product.

    Attributes:
        received_at: ISO-8601 UTC timestamp stamped when the record opened
        product_id: Product message id (-1 until parsed)
        trp_lat_micro_deg: Terminal reference point latitude (1e-6 deg)
        trp_lon_micro_deg: Terminal reference point longitude (1e-6 deg)
        rotation_milli_deg: Grid rotation (1e-3 deg)
        rows, cols: Grid shape (-1 until parsed)
        special: Sentinel codes as currently known
        grid: Row-major level buffer, None until allocated
        filled_cells: Cells written by the decoder (-1 if never attached)
    """

    received_at: str = ""
    product_id: int = -1
    product_name: str = ""
    site: str = ""
    airport: str = ""

    trp_lat_micro_deg: int = 0
    trp_lon_micro_deg: int = 0

    x_offset_m: int = 0
    y_offset_m: int = 0
    dx_m: int = 0
    dy_m: int = 0
    rotation_milli_deg: int = 0

    rows: int = -1
    cols: int = -1

    special: SpecialValues = field(default_factory=SpecialValues)

    compression: str = ""
    max_precip_level: int = -1

    grid: Optional[np.ndarray] = None
    filled_cells: int = -1

    @property
    def dims_known(self) -> bool:
        """Whether both grid dimensions are strictly positive."""
        return self.rows > 0 and self.cols > 0

    @property
    def allocation(self) -> GridAllocation:
        """Current grid allocation state."""
        if self.grid is not None:
            return GridAllocation.ALLOCATED
        if self.dims_known:
            return GridAllocation.DIMS_KNOWN
        return GridAllocation.NO_DIMS

    def non_zero_cells(self) -> int:
        """Count of grid cells with a non-zero level."""
        if self.grid is None:
            return 0
        return int(np.count_nonzero(self.grid))

    def __repr__(self) -> str:
        """Compact repr that doesn't dump the grid."""
        return (
            f"PrecipFrame(product_id={self.product_id}, "
            f"size={self.cols}x{self.rows}, "
            f"allocation={self.allocation.value}, "
            f"filled={self.filled_cells})"
        )


@dataclass(frozen=True, slots=True)
class TrackFields:
    """
    Flat fields captured from one track message.

    Every attribute is the trimmed element text, or None when the element
    was absent or blank.
    """

    callsign: Optional[str] = None
    aircraft_address: Optional[str] = None
    track_number: Optional[str] = None
    assigned_beacon_code: Optional[str] = None
    reported_beacon_code: Optional[str] = None
    flight_rules: Optional[str] = None
    raw_flight_rules: Optional[str] = None
    departure_airport: Optional[str] = None
    destination_airport: Optional[str] = None

    @property
    def beacon_code(self) -> Optional[str]:
        """Assigned beacon code, falling back to the reported one."""
        return self.assigned_beacon_code or self.reported_beacon_code
