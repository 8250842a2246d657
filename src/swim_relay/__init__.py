"""
swim-relay
==========

Decode-and-forward relay for SWIM telemetry messages.

This package consumes XML telemetry from a message queue, decodes it into
structured records and POSTs JSON documents to an ingest endpoint. Messages
are acknowledged only once their document has been delivered.

Components:
    - decode: Streaming XML extraction and RLE grid decoding
    - models: Frame records and output documents
    - serializer: JSON rendering with unit conversion and truncation
    - delivery: Queue boundary, HTTP retry and acknowledge policy

Example:
    from swim_relay.decode import decode_precip
    from swim_relay.serializer import build_precip_json

    frame = decode_precip(body, target_product_id=9850)
    if frame is not None:
        payload = build_precip_json(frame, max_cells_out=0)
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
