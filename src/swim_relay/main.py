"""
swim-relay Main Entry Point
===========================

Command-line entry point running one feed consumer.

Feeds:
    precip  - weather-radar precipitation grids -> WX_POST_URL
    tracks  - surveillance track flight rules   -> FLIGHTRULES_POST_URL (optional)

Usage:
    swim-relay precip
    swim-relay tracks --config config.yaml
    swim-relay precip --replay ./captures

Exit Codes:
    0 - stopped normally
    2 - configuration error (nothing was consumed)
"""

import argparse
import logging
import signal
import sys
from typing import List, Optional

from swim_relay import __version__
from swim_relay.config import (
    FEEDS,
    ConfigError,
    Settings,
    load_config,
    require_settings,
    setup_logging,
)
from swim_relay.delivery import (
    InMemorySource,
    IngestPoster,
    MessagePipeline,
    MessageSource,
    PrecipPipeline,
    SolaceMessageSource,
    TrackPipeline,
    _SOLACE_AVAILABLE,
    run_forever,
)


logger = logging.getLogger(__name__)


# =============================================================================
# Signal Handlers
# =============================================================================

_shutdown_flag: bool = False


def _handle_sigterm(signum, frame):
    """Handle SIGTERM; the loop exits before the next receive."""
    global _shutdown_flag
    logger.info("Received SIGTERM, stopping after the current message...")
    _shutdown_flag = True


def _should_stop() -> bool:
    return _shutdown_flag


# =============================================================================
# Factories
# =============================================================================

def create_message_source(settings: Settings, feed: str) -> MessageSource:
    """
    Create the queue receiver based on config.

    Fails fast if the Solace backend is requested but unavailable.
    """
    queue = settings.queue

    if queue.backend == "replay":
        logger.info(f"Using replay source: {queue.replay_dir}")
        return InMemorySource.from_directory(queue.replay_dir)

    elif queue.backend == "solace":
        if not _SOLACE_AVAILABLE:
            raise ConfigError(
                "Solace backend requested but solace-pubsubplus not installed. "
                "Install with: pip install 'swim-relay[solace]'"
            )
        endpoint = getattr(queue, feed)
        return SolaceMessageSource(
            host=endpoint.host,
            vpn=endpoint.vpn,
            username=queue.username,
            password=queue.password,
            queue_name=endpoint.queue_name,
            reconnect_attempts=queue.reconnect_attempts,
        )

    else:
        raise ConfigError(f"Unknown queue backend: {queue.backend}")


def create_pipeline(settings: Settings, feed: str) -> MessagePipeline:
    """Create the pipeline for a feed from settings."""
    http = settings.http

    if feed == "precip":
        cfg = settings.precip
        logger.info(f"Posting to: {cfg.post_url}")
        poster = IngestPoster(
            url=cfg.post_url,
            token=cfg.ingest_token,
            token_header=cfg.token_header,
            connect_timeout_ms=http.connect_timeout_ms,
            request_timeout_ms=http.request_timeout_ms,
            retry_sleep_ms=http.retry_sleep_ms,
        )
        return PrecipPipeline(
            poster=poster,
            target_product_id=cfg.target_product_id,
            max_xml_bytes=cfg.max_xml_bytes,
            max_cells_out=cfg.max_cells_out,
            ack_on_exception=cfg.ack_on_exception,
            print_json=cfg.print_json,
        )

    cfg = settings.tracks
    poster = None
    if cfg.post_url:
        logger.info(f"Posting to: {cfg.post_url}")
        poster = IngestPoster(
            url=cfg.post_url,
            token=cfg.ingest_token,
            token_header=cfg.token_header,
            connect_timeout_ms=http.connect_timeout_ms,
            request_timeout_ms=http.request_timeout_ms,
            retry_sleep_ms=http.retry_sleep_ms,
        )
    return TrackPipeline(
        poster=poster,
        max_bytes=cfg.max_bytes,
        ack_on_exception=cfg.ack_on_exception,
        print_json=cfg.print_json,
    )


# =============================================================================
# Main Entry Point
# =============================================================================

def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="swim-relay",
        description="Decode SWIM telemetry messages and forward them as JSON",
    )
    parser.add_argument("feed", choices=FEEDS, help="Feed to consume")
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument(
        "--replay",
        default=None,
        metavar="DIR",
        help="Replay captured XML files from DIR instead of the broker",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_arg_parser().parse_args(argv)

    try:
        settings = load_config(args.config)
    except ConfigError as e:
        logger.error(f"Startup failed: {e}")
        return 2

    if args.replay:
        settings.queue.backend = "replay"
        settings.queue.replay_dir = args.replay
    setup_logging(settings)

    try:
        require_settings(settings, args.feed)
        source = create_message_source(settings, args.feed)
    except (ConfigError, FileNotFoundError) as e:
        logger.error(f"Startup failed: {e}")
        return 2

    pipeline = create_pipeline(settings, args.feed)
    signal.signal(signal.SIGTERM, _handle_sigterm)

    should_stop = _should_stop
    if settings.queue.backend == "replay":
        should_stop = lambda: _shutdown_flag or source.drained

    try:
        run_forever(
            source,
            pipeline,
            receive_timeout_ms=settings.queue.receive_timeout_ms,
            heartbeat_ms=settings.queue.heartbeat_ms,
            should_stop=should_stop,
        )
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        source.close()
        if getattr(pipeline, "poster", None) is not None:
            pipeline.poster.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
