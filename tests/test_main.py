"""
Entry Point Tests
=================

Tests for the factories and the command-line entry point.
"""

import json

import pytest

from conftest import FakeSession, precip_xml
from swim_relay.config import ConfigError, Settings
from swim_relay.delivery import (
    InMemorySource,
    IngestPoster,
    PrecipPipeline,
    TrackPipeline,
)
from swim_relay.main import create_message_source, create_pipeline, main


RELAY_ENV_VARS = [
    "SCDS_JMS_URL_ITWS", "SCDS_VPN_ITWS", "SCDS_QUEUE_ITWS",
    "SCDS_JMS_URL_TAIS", "SCDS_VPN_TAIS", "SCDS_QUEUE_TAIS",
    "SCDS_USERNAME", "SCDS_PASSWORD",
    "FLIGHTRULES_POST_URL", "TAIS_INGEST_TOKEN", "PRINT_JSON",
]


@pytest.fixture
def clean_env(tmp_path, monkeypatch):
    """No relay variables set and no config.yaml in the working directory."""
    for name in RELAY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


class TestFactories:
    """Tests for create_pipeline and create_message_source."""

    def test_precip_pipeline(self):
        settings = Settings()
        settings.precip.max_cells_out = 12
        settings.precip.ingest_token = "wx"
        pipeline = create_pipeline(settings, "precip")

        assert isinstance(pipeline, PrecipPipeline)
        assert pipeline.max_cells_out == 12
        assert pipeline.poster.headers["X-WX-Token"] == "wx"

    def test_track_pipeline_print_only(self):
        pipeline = create_pipeline(Settings(), "tracks")

        assert isinstance(pipeline, TrackPipeline)
        assert pipeline.poster is None
        assert pipeline.print_json is True

    def test_track_pipeline_with_post(self):
        settings = Settings()
        settings.tracks.post_url = "http://ingest/api/flightrules"
        settings.tracks.ingest_token = "tais"
        pipeline = create_pipeline(settings, "tracks")

        assert pipeline.poster.url == "http://ingest/api/flightrules"
        assert pipeline.poster.headers["X-TAIS-Token"] == "tais"

    def test_replay_source(self, tmp_path):
        (tmp_path / "one.xml").write_text("<a/>")
        settings = Settings()
        settings.queue.backend = "replay"
        settings.queue.replay_dir = str(tmp_path)

        source = create_message_source(settings, "precip")
        assert isinstance(source, InMemorySource)
        assert not source.drained

    def test_unknown_backend(self):
        settings = Settings()
        settings.queue.backend = "carrier-pigeon"
        with pytest.raises(ConfigError):
            create_message_source(settings, "precip")


class TestMain:
    """Tests for main."""

    def test_replay_tracks(self, clean_env, capsys, sample_track_xml):
        captures = clean_env / "captures"
        captures.mkdir()
        (captures / "001.xml").write_text(sample_track_xml)
        (captures / "002.xml").write_text("<broken>")

        assert main(["tracks", "--replay", str(captures)]) == 0

        lines = [line for line in capsys.readouterr().out.splitlines() if line]
        assert len(lines) == 1
        assert json.loads(lines[0])["rulesLabel"] == "IFR"

    def test_missing_replay_dir(self, clean_env):
        assert main(["precip", "--replay", str(clean_env / "missing")]) == 2

    def test_missing_broker_settings(self, clean_env):
        assert main(["precip"]) == 2

    def test_track_post_without_token(self, clean_env, monkeypatch):
        captures = clean_env / "captures"
        captures.mkdir()
        monkeypatch.setenv("FLIGHTRULES_POST_URL", "http://ingest/api/flightrules")

        assert main(["tracks", "--replay", str(captures)]) == 2

    def test_replay_precip_unmatched_product(self, clean_env):
        """Frames for other products are acknowledged without any POST."""
        captures = clean_env / "captures"
        captures.mkdir()
        (captures / "001.xml").write_text(precip_xml(product_id=1))

        assert main(["precip", "--replay", str(captures)]) == 0

    def test_invalid_config_value(self, clean_env, monkeypatch):
        captures = clean_env / "captures"
        captures.mkdir()
        monkeypatch.setenv("ITWS_RECEIVE_TIMEOUT_MS", "0")

        assert main(["precip", "--replay", str(captures)]) == 2

    def test_invalid_config_file(self, clean_env):
        config = clean_env / "broken.yaml"
        config.write_text("queue: [unclosed\n")

        assert main(["tracks", "--config", str(config)]) == 2

    def test_poster_session_closed(self, clean_env, monkeypatch, sample_track_xml, no_sleep):
        captures = clean_env / "captures"
        captures.mkdir()
        (captures / "001.xml").write_text(sample_track_xml)

        session = FakeSession([200])
        poster = IngestPoster("http://ingest/api/flightrules", session=session, sleep=no_sleep)
        monkeypatch.setattr(
            "swim_relay.main.create_pipeline",
            lambda settings, feed: TrackPipeline(poster, print_json=False),
        )

        assert main(["tracks", "--replay", str(captures)]) == 0
        assert len(session.calls) == 1
        assert session.closed

    def test_unknown_feed(self):
        with pytest.raises(SystemExit):
            main(["radar"])
