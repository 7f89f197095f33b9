"""
Tests for the stats API.
"""

from unittest.mock import patch

import numpy as np
import pytest
from fastapi.testclient import TestClient

from conftest import FakeClock
from analytics.alerts import AlertLog
from analytics.session import SessionAggregator
from detection.synthetic import SyntheticDetector
from models.config import Config
from pipeline.orchestrator import DetectionOrchestrator
from runtime.context import RuntimeContext, build_runtime, create_detector
from web.app import create_app


@pytest.fixture
def ctx():
    config = Config()
    aggregator = SessionAggregator(config.session)
    alert_log = AlertLog(config.alerts.max_alerts)
    orchestrator = DetectionOrchestrator(
        detector=SyntheticDetector(seed=42),
        aggregator=aggregator,
        config=config,
        alert_log=alert_log,
        memory_reader=lambda: None,
        clock=FakeClock(),
    )
    return RuntimeContext(config=config, orchestrator=orchestrator, aggregator=aggregator, alert_log=alert_log)


@pytest.fixture
def client(ctx):
    return TestClient(create_app(ctx))


def _run_session(ctx, frames=1):
    ctx.orchestrator.start_session()
    clock = ctx.orchestrator._clock
    for _ in range(frames):
        ctx.orchestrator.process_frame(np.zeros((32, 32, 3), dtype=np.uint8))
        clock.advance(1.0)


class TestHealth:
    def test_health(self, client, ctx):
        _run_session(ctx)
        resp = client.get("/api/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["is_mock"] is True
        assert data["session_active"] is True
        assert data["scheduler"]["frames_processed"] == 1

    def test_runtime_not_ready(self):
        client = TestClient(create_app())
        assert client.get("/api/stats").status_code == 503


class TestStats:
    def test_stats(self, client, ctx):
        _run_session(ctx, frames=3)
        data = client.get("/api/stats").json()

        assert data["session_active"] is True
        assert data["is_mock"] is True
        assert 1 <= data["total_detections"] <= 3
        assert data["safety_percentage"] == len(data["detected_items"]) * 100 // 7

    def test_missing(self, client, ctx):
        _run_session(ctx)
        data = client.get("/api/stats/missing").json()
        names = {m["name"] for m in data["missing"]}
        critical = {m["name"] for m in data["critical_missing"]}
        assert critical <= names
        assert all(m["is_critical"] for m in data["critical_missing"])

    def test_classes(self, client, ctx):
        _run_session(ctx)
        data = client.get("/api/stats/classes").json()
        assert data["classes"]
        for entry in data["classes"].values():
            assert entry["total_detections"] >= 1


class TestSessionsAndAlerts:
    def test_sessions(self, client, ctx):
        _run_session(ctx, frames=2)
        ctx.orchestrator.end_session()

        data = client.get("/api/sessions").json()
        assert len(data["sessions"]) == 1
        assert data["sessions"][0]["frames_processed"] == 2

    def test_sessions_limit_validated(self, client):
        assert client.get("/api/sessions?limit=0").status_code == 422

    def test_performance(self, client, ctx):
        _run_session(ctx)
        ctx.orchestrator.end_session()
        data = client.get("/api/performance").json()
        assert data["total_detections"] >= 1
        assert data["scheduler"]["is_mock"] is True

    def test_alerts_newest_first(self, client, ctx):
        _run_session(ctx)
        ctx.orchestrator.end_session()
        alerts = client.get("/api/alerts").json()["alerts"]
        assert alerts[0]["message"].startswith("Detection session ended")
        assert alerts[-1]["message"] == "Detection session started"
        assert alerts[-1]["severity"] == "info"


class TestBuildRuntime:
    def test_missing_model_falls_back_to_synthetic(self, tmp_path):
        config = Config()
        config.model.path = str(tmp_path / "missing.tflite")
        ctx = build_runtime(config)
        assert ctx.orchestrator.is_mock
        assert ctx.get_system_stats_copy()["detector"] == "synthetic"

    def test_missing_runtime_falls_back(self, tmp_path):
        model = tmp_path / "detect.tflite"
        model.write_bytes(b"model")
        config = Config()
        config.model.path = str(model)

        with patch("inference.tflite_backend._load_interpreter_class", side_effect=ImportError("LiteRT is not installed.")):
            detector = create_detector(config)
        assert detector.is_mock

    def test_injected_engine(self, tmp_path):
        from conftest import FakeEngine

        model = tmp_path / "detect.tflite"
        model.write_bytes(b"model")
        config = Config()
        config.model.path = str(model)

        detector = create_detector(config, engine=FakeEngine())
        assert not detector.is_mock
