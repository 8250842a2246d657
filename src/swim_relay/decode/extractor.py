"""
Field Extractor
===============

Streaming scan of a precipitation product XML message.

The message body is pushed through an incremental SAX parser in fixed-size
chunks. Scalar elements are buffered (bounded) and applied to the frame when
they close; the text of the encoded grid element is forwarded fragment by
fragment to the grid decoder and never buffered.

Design Rules:
    - Element names are matched on their local name (prefix stripped)
    - Scalar text is capped at SCALAR_TEXT_CAP characters per element
    - DTDs and external entities are never loaded
    - XML syntax errors surface as FrameDecodeError
"""

import logging
from typing import List, Optional
from xml.sax import SAXException, make_parser
from xml.sax.handler import (
    ContentHandler,
    feature_external_ges,
    feature_external_pes,
    feature_namespaces,
)
from xml.sax.xmlreader import IncrementalParser

from swim_relay.decode.assembler import FrameAssembler
from swim_relay.decode.grid import GridDecoder
from swim_relay.models.frame import PrecipFrame


logger = logging.getLogger(__name__)


PAYLOAD_TAG = "prcp_grid_compressed"
SCALAR_TEXT_CAP = 512
DEFAULT_CHUNK_SIZE = 64 * 1024


class FrameDecodeError(Exception):
    """Raised when a message body is not well-formed XML."""
    pass


def local_name(qname: str) -> str:
    """Strip any namespace prefix from an element name."""
    _, _, local = qname.rpartition(":")
    return local


def create_parser() -> IncrementalParser:
    """Incremental SAX parser with external entity loading disabled."""
    parser = make_parser()
    parser.setFeature(feature_namespaces, False)
    parser.setFeature(feature_external_ges, False)
    parser.setFeature(feature_external_pes, False)
    return parser


def feed_in_chunks(
    parser: IncrementalParser,
    body: bytes,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> None:
    """
    Push a message body through an incremental parser.

    Raises:
        FrameDecodeError: If the body is not well-formed XML
    """
    chunk_size = max(1, chunk_size)
    try:
        for start in range(0, len(body), chunk_size):
            parser.feed(body[start:start + chunk_size])
        parser.close()
    except SAXException as e:
        raise FrameDecodeError(f"Malformed XML: {e}") from e


class PrecipFieldExtractor(ContentHandler):
    """
    SAX handler routing precipitation product elements.

    A FrameAssembler is opened with the top-level element and finalized
    when that element closes. Completed (valid) frames are collected in
    `frames`.

    Attributes:
        target_product_id: Product id accepted by finalize
        frames: Valid frames completed so far
        rejected: Number of records discarded at finalize
    """

    def __init__(self, target_product_id: int) -> None:
        super().__init__()
        self.target_product_id = target_product_id
        self.frames: List[PrecipFrame] = []
        self.rejected = 0

        self._assembler: Optional[FrameAssembler] = None
        self._decoder: Optional[GridDecoder] = None
        self._depth = 0
        self._current: Optional[str] = None
        self._text: Optional[List[str]] = None
        self._text_len = 0

    def startElement(self, name, attrs) -> None:
        tag = local_name(name)
        if self._depth == 0:
            self._assembler = FrameAssembler()
        self._depth += 1
        self._current = tag

        if tag == PAYLOAD_TAG:
            self._text = None
            self._decoder = self._assembler.open_payload()
        else:
            self._text = []
            self._text_len = 0

    def characters(self, content: str) -> None:
        if self._current == PAYLOAD_TAG:
            if self._decoder is not None:
                self._decoder.feed(content)
        elif self._text is not None and self._text_len < SCALAR_TEXT_CAP:
            room = SCALAR_TEXT_CAP - self._text_len
            piece = content[:room]
            self._text.append(piece)
            self._text_len += len(piece)

    def endElement(self, name) -> None:
        tag = local_name(name)
        self._depth -= 1

        if tag == PAYLOAD_TAG:
            self._assembler.close_payload()
            self._decoder = None
        elif self._current == tag and self._text is not None:
            self._assembler.apply_field(tag, "".join(self._text).strip())

        self._current = None
        self._text = None

        if self._depth == 0:
            self._close_record()

    def _close_record(self) -> None:
        frame = self._assembler.finalize(self.target_product_id)
        self._assembler = None
        if frame is None:
            self.rejected += 1
        else:
            self.frames.append(frame)


def decode_precip(
    body: bytes,
    target_product_id: int,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> Optional[PrecipFrame]:
    """
    Decode one precipitation product message.

    Args:
        body: Raw XML bytes
        target_product_id: Only frames with this product id are accepted
        chunk_size: Bytes handed to the parser per feed call

    Returns:
        The decoded frame, or None if the record failed validation

    Raises:
        FrameDecodeError: If the body is not well-formed XML
    """
    handler = PrecipFieldExtractor(target_product_id)
    parser = create_parser()
    parser.setContentHandler(handler)
    feed_in_chunks(parser, body, chunk_size)

    if not handler.frames:
        return None
    return handler.frames[0]
