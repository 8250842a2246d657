"""
Data Models
===========

Records and output documents for swim-relay.

Models:
    Records:
        - PrecipFrame: Decoded precipitation product (mutable while scanned)
        - SpecialValues: Sentinel codes mapped to level 0
        - GridAllocation: Grid buffer allocation state
        - TrackFields: Flat fields of a track message

    Output:
        - PrecipDocument: JSON document for a precipitation frame
        - TrackDocument: JSON document for a track message
"""

from swim_relay.models.frame import GridAllocation, PrecipFrame, SpecialValues, TrackFields
from swim_relay.models.output import (
    GridGeometry,
    PrecipDocument,
    SpecialCodes,
    TerminalReferencePoint,
    TrackDocument,
)

__all__ = [
    # Records
    "GridAllocation",
    "PrecipFrame",
    "SpecialValues",
    "TrackFields",
    # Output
    "GridGeometry",
    "PrecipDocument",
    "SpecialCodes",
    "TerminalReferencePoint",
    "TrackDocument",
]
