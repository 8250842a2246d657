"""
Delivery Pipeline
=================

Per-message receive -> filter -> decode -> serialize -> POST -> acknowledge.

Acknowledge discipline:
    - Filtered messages (wrong product type) are acknowledged immediately
    - Malformed frames are acknowledged immediately and never retried
    - Valid frames are acknowledged only after the POST succeeded
    - Unexpected exceptions leave the message unacknowledged unless
      ack_on_exception is set; the queue then redelivers it

The loop is single-threaded and blocking: one message is fully handled
before the next receive, so messages are forwarded in receive order. A POST
that keeps failing blocks the loop until it succeeds.
"""

import logging
import sys
import time
from enum import Enum
from typing import Callable, Optional, TextIO

from swim_relay.decode.extractor import FrameDecodeError, decode_precip
from swim_relay.decode.tracks import extract_track_fields
from swim_relay.delivery.messages import (
    MessageSource,
    QueueMessage,
    coerce_int,
    read_body,
    read_body_strict,
)
from swim_relay.delivery.poster import IngestPoster
from swim_relay.serializer import build_precip_json, build_track_json


logger = logging.getLogger(__name__)


PRODUCT_ID_PROPERTY = "productID"


class Outcome(str, Enum):
    """
    Terminal state of one processed message.

    Attributes:
        FILTERED: Not the target product type; acknowledged
        MALFORMED: Failed decoding or validation; acknowledged
        DELIVERED: POSTed successfully; acknowledged
        PRINTED: Emitted locally with no POST configured; acknowledged
        FAILED: Unexpected exception; acknowledged only if configured
    """

    FILTERED = "FILTERED"
    MALFORMED = "MALFORMED"
    DELIVERED = "DELIVERED"
    PRINTED = "PRINTED"
    FAILED = "FAILED"


class PipelineMetrics:
    """Counters for pipeline observability."""

    __slots__ = (
        "received",
        "filtered",
        "malformed",
        "delivered",
        "printed",
        "errors",
        "empty_polls",
    )

    def __init__(self) -> None:
        self.received: int = 0
        self.filtered: int = 0
        self.malformed: int = 0
        self.delivered: int = 0
        self.printed: int = 0
        self.errors: int = 0
        self.empty_polls: int = 0

    def record(self, outcome: Outcome) -> None:
        if outcome is Outcome.FILTERED:
            self.filtered += 1
        elif outcome is Outcome.MALFORMED:
            self.malformed += 1
        elif outcome is Outcome.DELIVERED:
            self.delivered += 1
        elif outcome is Outcome.PRINTED:
            self.printed += 1
        else:
            self.errors += 1

    def to_dict(self) -> dict:
        """Export metrics as dict."""
        return {name: getattr(self, name) for name in self.__slots__}


class MessagePipeline:
    """
    Base pipeline owning the acknowledge policy.

    Subclasses implement `_handle`, which must acknowledge the message on
    every path that returns normally.
    """

    name = "pipeline"

    def __init__(
        self,
        ack_on_exception: bool = False,
        print_json: bool = False,
        output: Optional[TextIO] = None,
    ) -> None:
        self.ack_on_exception = ack_on_exception
        self.print_json = print_json
        self._output = output
        self.metrics = PipelineMetrics()

    def process(self, message: QueueMessage) -> Outcome:
        """
        Process one dequeued message.

        Never raises for per-message failures; the outcome says what
        happened.
        """
        self.metrics.received += 1
        try:
            outcome = self._handle(message)
        except Exception as e:
            logger.exception(f"{self.name}: error processing message: {e}")
            if self.ack_on_exception:
                self._ack_quietly(message)
            outcome = Outcome.FAILED

        self.metrics.record(outcome)
        return outcome

    def _handle(self, message: QueueMessage) -> Outcome:
        raise NotImplementedError

    def _emit(self, body: bytes) -> None:
        if not self.print_json:
            return
        out = self._output or sys.stdout
        out.write(body.decode("utf-8"))
        out.write("\n")
        out.flush()

    @staticmethod
    def _ack_quietly(message: QueueMessage) -> None:
        try:
            message.acknowledge()
        except Exception as e:
            logger.error(f"Acknowledge failed: {e}")


class PrecipPipeline(MessagePipeline):
    """
    Pipeline for precipitation grid products.

    Example:
        poster = IngestPoster(url="http://localhost:8080/api/wx/radar")
        pipeline = PrecipPipeline(poster, target_product_id=9850)
        outcome = pipeline.process(message)
    """

    name = "precip"

    def __init__(
        self,
        poster: IngestPoster,
        target_product_id: int = 9850,
        max_xml_bytes: int = 32 * 1024 * 1024,
        max_cells_out: int = 0,
        ack_on_exception: bool = False,
        print_json: bool = False,
        output: Optional[TextIO] = None,
    ) -> None:
        super().__init__(ack_on_exception, print_json, output)
        self.poster = poster
        self.target_product_id = target_product_id
        self.max_xml_bytes = max_xml_bytes
        self.max_cells_out = max_cells_out

    def _handle(self, message: QueueMessage) -> Outcome:
        # Cheap gate before any parsing
        if message.has_property(PRODUCT_ID_PROPERTY):
            product_id = coerce_int(message.get_property(PRODUCT_ID_PROPERTY), -1)
            if product_id != self.target_product_id:
                message.acknowledge()
                return Outcome.FILTERED

        body = read_body(message, self.max_xml_bytes)
        frame = None
        if body is not None:
            try:
                frame = decode_precip(body, self.target_product_id)
            except FrameDecodeError as e:
                logger.warning(f"Discarding unparseable message: {e}")

        if frame is None:
            # Not our frame or malformed: ack so it cannot poison-loop
            message.acknowledge()
            return Outcome.MALFORMED

        payload = build_precip_json(frame, self.max_cells_out)
        self._emit(payload)

        self.poster.post_with_retry(payload)
        logger.info(
            f"POST OK productId={frame.product_id} "
            f"size={frame.cols}x{frame.rows} "
            f"maxLvl={frame.max_precip_level} "
            f"nonZero={frame.non_zero_cells()} "
            f"filled={frame.filled_cells}"
        )

        # Only after the POST succeeded
        message.acknowledge()
        return Outcome.DELIVERED


class TrackPipeline(MessagePipeline):
    """
    Pipeline for surveillance track messages.

    When no poster is configured, documents are only printed.
    """

    name = "tracks"

    def __init__(
        self,
        poster: Optional[IngestPoster] = None,
        max_bytes: int = 10 * 1024 * 1024,
        ack_on_exception: bool = False,
        print_json: bool = True,
        output: Optional[TextIO] = None,
    ) -> None:
        super().__init__(ack_on_exception, print_json, output)
        self.poster = poster
        self.max_bytes = max_bytes

    def _handle(self, message: QueueMessage) -> Outcome:
        body = read_body_strict(message, self.max_bytes)
        if body is None:
            message.acknowledge()
            return Outcome.MALFORMED

        try:
            fields = extract_track_fields(body)
        except FrameDecodeError as e:
            logger.warning(f"Discarding unparseable track message: {e}")
            message.acknowledge()
            return Outcome.MALFORMED

        payload = build_track_json(fields)
        self._emit(payload)

        if self.poster is None:
            message.acknowledge()
            return Outcome.PRINTED

        self.poster.post_with_retry(payload)
        message.acknowledge()
        return Outcome.DELIVERED


def run_forever(
    source: MessageSource,
    pipeline: MessagePipeline,
    receive_timeout_ms: int = 1000,
    heartbeat_ms: int = 5000,
    should_stop: Callable[[], bool] = lambda: False,
    clock: Callable[[], float] = time.monotonic,
) -> PipelineMetrics:
    """
    Receive and process messages until should_stop() returns True.

    Args:
        source: Queue receiver
        pipeline: Pipeline handling each message
        receive_timeout_ms: Blocking receive timeout per poll
        heartbeat_ms: Minimum interval between "waiting" logs
        should_stop: Checked before every receive
        clock: Monotonic clock in seconds, injectable for tests

    Returns:
        The pipeline metrics when the loop exits
    """
    metrics = pipeline.metrics
    last_beat = clock()

    logger.info(f"{pipeline.name}: consuming")

    while not should_stop():
        message = source.receive(receive_timeout_ms)

        if message is None:
            metrics.empty_polls += 1
            now = clock()
            if (now - last_beat) * 1000.0 >= heartbeat_ms:
                logger.info(
                    f"{pipeline.name}: waiting ({metrics.empty_polls} empty polls)"
                )
                last_beat = now
            continue

        pipeline.process(message)

    logger.info(f"{pipeline.name}: stopped {metrics.to_dict()}")
    return metrics
