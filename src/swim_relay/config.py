"""
swim-relay Configuration
========================

This module handles configuration loading for the relay.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    SCDS_JMS_URL_ITWS / SCDS_JMS_URL_TAIS  -> queue.precip.host / queue.tracks.host
    SCDS_VPN_ITWS / SCDS_VPN_TAIS          -> queue.precip.vpn / queue.tracks.vpn
    SCDS_QUEUE_ITWS / SCDS_QUEUE_TAIS      -> queue.precip.queue_name / queue.tracks.queue_name
    SCDS_USERNAME / SCDS_PASSWORD          -> queue.username / queue.password
    ITWS_RECEIVE_TIMEOUT_MS                -> queue.receive_timeout_ms
    ITWS_HEARTBEAT_MS                      -> queue.heartbeat_ms
    ITWS_MAX_XML_BYTES                     -> precip.max_xml_bytes
    WX_POST_URL                            -> precip.post_url
    ITWS_INGEST_TOKEN                      -> precip.ingest_token
    ITWS_PRINT_JSON                        -> precip.print_json
    ITWS_ACK_ON_EXCEPTION                  -> precip.ack_on_exception
    ITWS_MAX_CELLS_OUT                     -> precip.max_cells_out
    TAIS_MAX_BYTES                         -> tracks.max_bytes
    FLIGHTRULES_POST_URL                   -> tracks.post_url
    TAIS_INGEST_TOKEN                      -> tracks.ingest_token
    PRINT_JSON                             -> tracks.print_json
    HTTP_CONNECT_TIMEOUT_MS                -> http.connect_timeout_ms
    HTTP_REQUEST_TIMEOUT_MS                -> http.request_timeout_ms
    HTTP_RETRY_SLEEP_MS                    -> http.retry_sleep_ms
    SWIM_RELAY_LOG_LEVEL                   -> logging.level
    SWIM_RELAY_LOG_FORMAT                  -> logging.format

Example:
    from swim_relay.config import load_config, require_settings

    settings = load_config()
    require_settings(settings, "precip")
    print(settings.precip.post_url)
"""

import os
import logging
from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError


logger = logging.getLogger(__name__)


FEEDS = ("precip", "tracks")

_TRUE_VALUES = {"1", "true", "yes", "y"}


class ConfigError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


# =============================================================================
# Configuration Models
# =============================================================================

class FeedQueueConfig(BaseModel):
    """Broker endpoint for one feed."""

    host: str = Field(default="", description="Broker host list (tcp[s]://host:port,...)")
    vpn: str = Field(default="", description="Message VPN name")
    queue_name: str = Field(default="", description="Durable queue to consume")


class QueueConfig(BaseModel):
    """Message queue configuration."""

    backend: str = Field(
        default="solace",
        description="Queue backend: 'solace' or 'replay'",
    )
    username: str = Field(default="", description="Broker username")
    password: str = Field(default="", description="Broker password")
    precip: FeedQueueConfig = Field(default_factory=FeedQueueConfig)
    tracks: FeedQueueConfig = Field(default_factory=FeedQueueConfig)
    receive_timeout_ms: int = Field(
        default=1000,
        gt=0,
        description="Blocking receive timeout per poll",
    )
    heartbeat_ms: int = Field(
        default=5000,
        ge=0,
        description="Minimum interval between 'waiting' logs",
    )
    reconnect_attempts: int = Field(default=5, ge=0, description="Broker reconnect attempts")
    replay_dir: str = Field(
        default="",
        description="Directory of captured XML messages for the replay backend",
    )


class PrecipConfig(BaseModel):
    """Precipitation product pipeline configuration."""

    target_product_id: int = Field(default=9850, description="Accepted product id")
    max_xml_bytes: int = Field(
        default=32 * 1024 * 1024,
        gt=0,
        description="Message bodies are truncated to this size",
    )
    max_cells_out: int = Field(
        default=0,
        description="Maximum grid cells per document (<= 0 = all)",
    )
    print_json: bool = Field(default=False, description="Write documents to stdout")
    ack_on_exception: bool = Field(
        default=False,
        description="Acknowledge messages whose processing raised",
    )
    post_url: str = Field(
        default="http://localhost:8080/api/wx/radar",
        description="Ingest endpoint",
    )
    ingest_token: Optional[str] = Field(default=None, description="Optional ingest token")
    token_header: str = Field(default="X-WX-Token", description="Header carrying the token")


class TrackConfig(BaseModel):
    """Track pipeline configuration."""

    max_bytes: int = Field(
        default=10 * 1024 * 1024,
        gt=0,
        description="Larger message bodies are dropped",
    )
    print_json: bool = Field(default=True, description="Write documents to stdout")
    ack_on_exception: bool = Field(
        default=False,
        description="Acknowledge messages whose processing raised",
    )
    post_url: Optional[str] = Field(default=None, description="Ingest endpoint (optional)")
    ingest_token: Optional[str] = Field(default=None, description="Required with post_url")
    token_header: str = Field(default="X-TAIS-Token", description="Header carrying the token")


class HttpConfig(BaseModel):
    """HTTP delivery configuration."""

    connect_timeout_ms: int = Field(default=1500, gt=0, description="Connect timeout")
    request_timeout_ms: int = Field(default=2500, gt=0, description="Request timeout")
    retry_sleep_ms: int = Field(default=200, ge=0, description="Delay between POST attempts")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for swim-relay.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    queue: QueueConfig = Field(default_factory=QueueConfig)
    precip: PrecipConfig = Field(default_factory=PrecipConfig)
    tracks: TrackConfig = Field(default_factory=TrackConfig)
    http: HttpConfig = Field(default_factory=HttpConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(
    config_path: Optional[str] = None,
    environ: Optional[Dict[str, str]] = None,
) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Settings: Loaded configuration

    Raises:
        ConfigError: If the YAML file or a resulting value is invalid
    """
    env = os.environ if environ is None else environ

    # Find config file
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    # Load from YAML if exists
    config_data: dict = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            try:
                config_data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {config_path}: {e}") from e
        if not isinstance(config_data, dict):
            raise ConfigError(f"Expected a mapping at the top of {config_path}")
    else:
        logger.info("No config file found, using defaults and environment variables")

    # Apply environment variable overrides
    _apply_env_overrides(config_data, env)

    try:
        return Settings.model_validate(config_data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def _parse_int(raw: str, fallback: Optional[int]) -> Optional[int]:
    try:
        return int(raw.strip())
    except ValueError:
        logger.warning(f"Ignoring non-integer value: {raw!r}")
        return fallback


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in _TRUE_VALUES


# env var -> (section path, key, converter)
_ENV_OVERRIDES: List[tuple] = [
    ("SCDS_JMS_URL_ITWS", ("queue", "precip"), "host", str.strip),
    ("SCDS_VPN_ITWS", ("queue", "precip"), "vpn", str.strip),
    ("SCDS_QUEUE_ITWS", ("queue", "precip"), "queue_name", str.strip),
    ("SCDS_JMS_URL_TAIS", ("queue", "tracks"), "host", str.strip),
    ("SCDS_VPN_TAIS", ("queue", "tracks"), "vpn", str.strip),
    ("SCDS_QUEUE_TAIS", ("queue", "tracks"), "queue_name", str.strip),
    ("SCDS_USERNAME", ("queue",), "username", str.strip),
    ("SCDS_PASSWORD", ("queue",), "password", lambda v: v),
    ("ITWS_RECEIVE_TIMEOUT_MS", ("queue",), "receive_timeout_ms", _parse_int),
    ("ITWS_HEARTBEAT_MS", ("queue",), "heartbeat_ms", _parse_int),
    ("ITWS_MAX_XML_BYTES", ("precip",), "max_xml_bytes", _parse_int),
    ("WX_POST_URL", ("precip",), "post_url", str.strip),
    ("ITWS_INGEST_TOKEN", ("precip",), "ingest_token", str.strip),
    ("ITWS_PRINT_JSON", ("precip",), "print_json", _parse_bool),
    ("ITWS_ACK_ON_EXCEPTION", ("precip",), "ack_on_exception", _parse_bool),
    ("ITWS_MAX_CELLS_OUT", ("precip",), "max_cells_out", _parse_int),
    ("TAIS_MAX_BYTES", ("tracks",), "max_bytes", _parse_int),
    ("FLIGHTRULES_POST_URL", ("tracks",), "post_url", str.strip),
    ("TAIS_INGEST_TOKEN", ("tracks",), "ingest_token", str.strip),
    ("PRINT_JSON", ("tracks",), "print_json", _parse_bool),
    ("HTTP_CONNECT_TIMEOUT_MS", ("http",), "connect_timeout_ms", _parse_int),
    ("HTTP_REQUEST_TIMEOUT_MS", ("http",), "request_timeout_ms", _parse_int),
    ("HTTP_RETRY_SLEEP_MS", ("http",), "retry_sleep_ms", _parse_int),
    ("SWIM_RELAY_LOG_LEVEL", ("logging",), "level", str.strip),
    ("SWIM_RELAY_LOG_FORMAT", ("logging",), "format", str.strip),
]


def _apply_env_overrides(config_data: dict, env) -> None:
    """Apply environment variable overrides to config data."""
    for name, path, key, convert in _ENV_OVERRIDES:
        raw = env.get(name)
        if raw is None or not raw.strip():
            continue

        section = config_data
        for part in path:
            section = section.setdefault(part, {})

        if convert is _parse_int:
            value = _parse_int(raw, section.get(key))
            if value is None:
                continue
        else:
            value = convert(raw)
        section[key] = value


# =============================================================================
# Startup Validation
# =============================================================================

def require_settings(settings: Settings, feed: str) -> None:
    """
    Check that everything needed to run a feed is configured.

    Args:
        settings: Loaded settings
        feed: "precip" or "tracks"

    Raises:
        ConfigError: Listing every missing value
    """
    if feed not in FEEDS:
        raise ConfigError(f"Unknown feed: {feed}")

    missing: List[str] = []
    queue = settings.queue

    if queue.backend == "solace":
        endpoint: FeedQueueConfig = getattr(queue, feed)
        suffix = "ITWS" if feed == "precip" else "TAIS"
        required = {
            f"SCDS_JMS_URL_{suffix}": endpoint.host,
            f"SCDS_VPN_{suffix}": endpoint.vpn,
            f"SCDS_QUEUE_{suffix}": endpoint.queue_name,
            "SCDS_USERNAME": queue.username,
            "SCDS_PASSWORD": queue.password,
        }
        missing.extend(name for name, value in required.items() if not value.strip())
    elif queue.backend == "replay":
        if not queue.replay_dir.strip():
            missing.append("queue.replay_dir")
    else:
        raise ConfigError(f"Unknown queue backend: {queue.backend}")

    if feed == "precip" and not settings.precip.post_url.strip():
        missing.append("WX_POST_URL")

    if feed == "tracks" and settings.tracks.post_url:
        token = settings.tracks.ingest_token
        if not token or not token.strip():
            raise ConfigError(
                "FLIGHTRULES_POST_URL is set but TAIS_INGEST_TOKEN is missing"
            )

    if missing:
        raise ConfigError(f"Missing configuration: {', '.join(missing)}")


def normalize_host_list(raw: str) -> str:
    """
    Normalize a comma-separated broker host list.

    JMS-style `smf://` / `smfs://` schemes become `tcp://` / `tcps://`,
    trailing slashes and blank entries are dropped.

    Example:
        normalize_host_list("smfs://a:55443/, tcp://b:55555")
        # "tcps://a:55443,tcp://b:55555"
    """
    if not raw:
        return ""
    schemes = {"smf": "tcp", "smfs": "tcps", "tcp": "tcp", "tcps": "tcps"}
    hosts = []
    for part in raw.split(","):
        token = part.strip()
        if not token:
            continue
        scheme, sep, host_port = token.partition("://")
        if sep and host_port:
            mapped = schemes.get(scheme.lower())
            host_port = host_port.rstrip("/")
            token = f"{mapped}://{host_port}" if mapped else token
        else:
            token = token.rstrip("/")
        if token:
            hosts.append(token)
    return ",".join(hosts) if hosts else raw.strip()


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
