"""
Delivery Module
===============

Queue consumption, HTTP delivery and the acknowledge policy.

Components:
    - QueueMessage / MessageSource: Protocols for the queue collaborator
    - InMemorySource: Local source for tests and file replay
    - IngestPoster: HTTP POST with unbounded fixed-delay retry
    - PrecipPipeline / TrackPipeline: Per-message state machines
    - run_forever: Single-threaded receive loop
    - SolaceMessageSource: Solace PubSub+ queue receiver (optional)
"""

from swim_relay.delivery.messages import (
    InMemoryMessage,
    InMemorySource,
    MessageSource,
    QueueMessage,
    coerce_int,
    read_body,
    read_body_strict,
)
from swim_relay.delivery.poster import IngestPoster
from swim_relay.delivery.pipeline import (
    MessagePipeline,
    Outcome,
    PipelineMetrics,
    PrecipPipeline,
    TrackPipeline,
    run_forever,
)

# Solace source imported separately to avoid mandatory dependency
try:
    from swim_relay.delivery.solace_source import SolaceMessageSource
    _SOLACE_AVAILABLE = True
except ImportError:
    _SOLACE_AVAILABLE = False
    SolaceMessageSource = None  # type: ignore

__all__ = [
    "InMemoryMessage",
    "InMemorySource",
    "MessageSource",
    "QueueMessage",
    "coerce_int",
    "read_body",
    "read_body_strict",
    "IngestPoster",
    "MessagePipeline",
    "Outcome",
    "PipelineMetrics",
    "PrecipPipeline",
    "TrackPipeline",
    "run_forever",
    "SolaceMessageSource",
    "_SOLACE_AVAILABLE",
]
