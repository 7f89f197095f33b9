"""
Tests for the detection orchestrator and detector strategies.
"""

import threading
from unittest.mock import MagicMock

import numpy as np
import pytest

from conftest import FakeClock, FakeEngine, make_output, make_slot
from analytics.session import SessionAggregator
from detection.base import DetectionOutcome, Detector
from detection.model_detector import ModelDetector
from detection.synthetic import SyntheticDetector
from inference.backend import InferenceError, InferenceRunner, OutcomeStatus
from models.alert import AlertSeverity
from models.config import Config
from models.safety import SafetyObject
from pipeline.orchestrator import MEMORY_WARNING_MESSAGE, DetectionOrchestrator, OrchestratorState


OXYGEN_TANK_OUTPUT = make_output(make_slot(0.5, 0.5, 0.2, 0.2, 0.9, 39))


def _model_detector(config, engine):
    runner = InferenceRunner(engine)
    runner.open(b"model")
    return ModelDetector(runner, config.model, config.detection)


def _fail_on_calls(engine, call_numbers, error):
    """Make the engine raise `error` on the given (1-based) run calls."""
    calls = {"n": 0}
    real_run = engine.run

    def flaky_run(handle, tensor):
        calls["n"] += 1
        if calls["n"] in call_numbers:
            engine.inputs.append(tensor.shape)
            raise error
        return real_run(handle, tensor)

    engine.run = flaky_run
    return engine


def _orchestrator(detector, config=None, clock=None, **kwargs):
    config = config or Config()
    kwargs.setdefault("memory_reader", lambda: None)
    kwargs.setdefault("reclaim", MagicMock())
    return DetectionOrchestrator(
        detector=detector,
        aggregator=SessionAggregator(config.session),
        config=config,
        clock=clock or FakeClock(),
        **kwargs,
    )


class TestModelDetector:
    def test_end_to_end_decode(self, config, frame):
        """Class 39 at (0.5, 0.5, 0.2, 0.2) becomes an Oxygen Tank box (0.4, 0.4, 0.6, 0.6)."""
        detector = _model_detector(config, FakeEngine(output=OXYGEN_TANK_OUTPUT))
        outcome = detector.detect(frame)

        assert outcome.status.value == "ok"
        assert len(outcome.results) == 1
        result = outcome.results[0]
        assert result.label == SafetyObject.OXYGEN_TANK.display_name
        assert result.confidence == pytest.approx(0.9, rel=1e-6)
        assert result.bounding_box.as_tuple() == pytest.approx((0.4, 0.4, 0.6, 0.6))
        assert not result.is_mock

    def test_unmapped_classes_dropped(self, config, frame):
        engine = FakeEngine(output=make_output(make_slot(0.5, 0.5, 0.2, 0.2, 0.9, 2)))
        detector = _model_detector(config, engine)
        assert detector.detect(frame).results == ()
        assert detector.mapper.unmapped_count == 1

    def test_input_tensor_shape(self, config, frame):
        engine = FakeEngine(output=OXYGEN_TANK_OUTPUT)
        _model_detector(config, engine).detect(frame)
        assert engine.inputs == [(1, 640, 640, 3)]

    def test_enhanced_runs_ensemble(self, config, frame):
        engine = FakeEngine(output=OXYGEN_TANK_OUTPUT)
        outcome = _model_detector(config, engine).detect(frame, enhanced=True)

        assert outcome.scales_used == (1.0, 0.8, 1.2)
        assert len(engine.inputs) == 3
        assert len(outcome.results) == 1
        # mean(0.9, 0.81, 0.81) * 1.1
        assert outcome.results[0].confidence == pytest.approx(0.924, rel=1e-5)

    def test_failed_ensemble_pass_dropped(self, config, frame):
        engine = _fail_on_calls(FakeEngine(output=OXYGEN_TANK_OUTPUT), {2}, InferenceError("delegate crashed"))
        detector = _model_detector(config, engine)
        outcome = detector.detect(frame, enhanced=True)
        assert outcome.scales_used == (1.0, 1.2)

    def test_exhausted_ensemble_pass_dropped(self, config, frame):
        engine = _fail_on_calls(FakeEngine(output=OXYGEN_TANK_OUTPUT), {2}, MemoryError("aux arena"))
        outcome = _model_detector(config, engine).detect(frame, enhanced=True)

        assert outcome.status is OutcomeStatus.OK
        assert outcome.scales_used == (1.0, 1.2)
        assert len(engine.inputs) == 3
        assert [r.label for r in outcome.results] == ["Oxygen Tank"]
        # mean(0.9, 0.81) * 1.1
        assert outcome.results[0].confidence == pytest.approx(0.9405, rel=1e-5)

    def test_all_ensemble_passes_exhausted_keeps_base_results(self, config, frame):
        engine = _fail_on_calls(FakeEngine(output=OXYGEN_TANK_OUTPUT), {2, 3}, MemoryError("aux arena"))
        outcome = _model_detector(config, engine).detect(frame, enhanced=True)

        assert outcome.status is OutcomeStatus.OK
        assert outcome.scales_used == (1.0,)
        assert [r.label for r in outcome.results] == ["Oxygen Tank"]
        assert outcome.results[0].confidence == pytest.approx(0.9, rel=1e-6)

    def test_exhausted_base_pass_aborts(self, config, frame):
        engine = _fail_on_calls(FakeEngine(output=OXYGEN_TANK_OUTPUT), {1}, MemoryError("arena"))
        outcome = _model_detector(config, engine).detect(frame, enhanced=True)
        assert outcome.status is OutcomeStatus.RESOURCE_EXHAUSTED
        assert outcome.results == ()

    def test_engine_failure(self, config, frame):
        detector = _model_detector(config, FakeEngine(error=InferenceError("boom")))
        outcome = detector.detect(frame)
        assert outcome.status.value == "failed"
        assert outcome.results == ()


class TestSyntheticDetector:
    def test_standard_counts_and_confidence(self):
        detector = SyntheticDetector(rng=np.random.default_rng(7))
        for _ in range(50):
            results = detector.generate(enhanced=False)
            assert 1 <= len(results) <= 3
            assert len({r.label for r in results}) == len(results)
            for r in results:
                assert r.is_mock
                assert 0.65 <= r.confidence < 0.85
                box = r.bounding_box
                assert 0.0 <= box.left <= box.right <= 1.0
                assert 0.0 <= box.top <= box.bottom <= 1.0

    def test_enhanced_counts(self):
        detector = SyntheticDetector(rng=np.random.default_rng(11))
        for _ in range(50):
            results = detector.generate(enhanced=True)
            assert 2 <= len(results) <= 5
            assert all(0.75 <= r.confidence < 0.95 for r in results)

    def test_seeded_is_reproducible(self):
        a = [r.label for r in SyntheticDetector(seed=3).generate()]
        b = [r.label for r in SyntheticDetector(seed=3).generate()]
        assert a == b


class TestAdmission:
    def test_no_session_no_processing(self, frame):
        orch = _orchestrator(SyntheticDetector(seed=1))
        assert orch.process_frame(frame) is None
        assert orch.scheduler_snapshot().total_skips == 1

    def test_interval_admission(self, frame):
        clock = FakeClock()
        orch = _orchestrator(SyntheticDetector(seed=1), clock=clock)
        orch.start_session()

        assert orch.process_frame(frame) is not None
        # zero latency shrinks 500 -> 450 ms
        clock.advance(0.4)
        assert orch.process_frame(frame) is None
        clock.advance(0.1)
        assert orch.process_frame(frame) is not None

    def test_invalid_frames_rejected(self):
        orch = _orchestrator(SyntheticDetector(seed=1))
        orch.start_session()
        assert orch.process_frame(None) is None
        assert orch.process_frame(np.zeros((0, 0, 3), dtype=np.uint8)) is None
        assert orch.process_frame(np.zeros((4, 4, 3, 2), dtype=np.uint8)) is None

        config = Config()
        config.detection.max_frame_bytes = 100
        small_limit = _orchestrator(SyntheticDetector(seed=1), config=config)
        small_limit.start_session()
        assert small_limit.process_frame(np.zeros((10, 10, 3), dtype=np.uint8)) is None

    def test_in_flight_rejects_concurrent_frame(self, frame):
        entered = threading.Event()
        release = threading.Event()

        class BlockingDetector(Detector):
            def detect(self, frame, enhanced=False):
                entered.set()
                release.wait(5)
                return DetectionOutcome.ok([])

        orch = _orchestrator(BlockingDetector())
        orch.start_session()

        worker = threading.Thread(target=orch.process_frame, args=(frame,))
        worker.start()
        assert entered.wait(5)
        assert orch.state is OrchestratorState.INFERRING
        assert orch.process_frame(frame) is None
        release.set()
        worker.join(5)

        assert orch.state is OrchestratorState.IDLE
        assert orch.scheduler_snapshot().frames_processed == 1
        assert orch.scheduler_snapshot().total_skips == 1


class TestPublication:
    def test_results_recorded_and_listeners_called(self, config, frame):
        orch = _orchestrator(_model_detector(config, FakeEngine(output=OXYGEN_TANK_OUTPUT)), config=config)
        batches = []
        orch.add_listener(batches.append)
        orch.start_session()

        results = orch.process_frame(frame)

        assert len(results) == 1
        assert len(batches) == 1
        assert batches[0].results[0].label == "Oxygen Tank"
        assert not batches[0].is_mock
        assert orch.current_stats().total_detections == 1
        assert SafetyObject.OXYGEN_TANK not in orch.missing_critical_items()
        assert orch.safety_percentage() == 14

    def test_listener_error_does_not_break_publication(self, frame):
        orch = _orchestrator(SyntheticDetector(seed=5))
        received = []

        def broken(batch):
            raise RuntimeError("listener bug")

        orch.add_listener(broken)
        orch.add_listener(received.append)
        orch.start_session()

        assert orch.process_frame(frame) is not None
        assert len(received) == 1
        assert received[0].is_mock

    def test_inference_failure_publishes_empty(self, config, frame):
        orch = _orchestrator(_model_detector(config, FakeEngine(error=InferenceError("bad tensor"))), config=config)
        batches = []
        orch.add_listener(batches.append)
        orch.start_session()

        assert orch.process_frame(frame) == []
        assert len(batches) == 1
        assert orch.aggregator.total_scans == 1


class TestResourcePressure:
    def test_exhaustion_aborts_and_backs_off(self, config, frame):
        reclaim = MagicMock()
        orch = _orchestrator(
            _model_detector(config, FakeEngine(error=MemoryError("tensor arena"))),
            config=config,
            reclaim=reclaim,
        )
        orch.aggregator.start_session()
        orch.aggregator.end_session()
        assert len(orch.aggregator.history()) == 1

        batches = []
        orch.add_listener(batches.append)
        orch.start_session()

        assert orch.process_frame(frame) is None
        assert batches == []
        assert orch.scheduler.current_interval_ms == 1000
        reclaim.assert_called_once()
        assert orch.aggregator.history() == ()

        latest = orch.alerts()[0]
        assert latest.message == MEMORY_WARNING_MESSAGE
        assert latest.severity is AlertSeverity.LOW

        # The lane is free again for the next admitted frame
        assert not orch.scheduler.in_flight

    def test_ensemble_exhaustion_publishes_base_results(self, frame):
        config = Config(enhanced_mode=True)
        engine = _fail_on_calls(FakeEngine(output=OXYGEN_TANK_OUTPUT), {2}, MemoryError("aux arena"))
        orch = _orchestrator(_model_detector(config, engine), config=config)
        batches = []
        orch.add_listener(batches.append)
        orch.start_session()

        results = orch.process_frame(frame)

        assert [r.label for r in results] == ["Oxygen Tank"]
        assert batches[0].scales_used == (1.0, 1.2)
        assert orch.aggregator.total_scans == 1
        assert MEMORY_WARNING_MESSAGE not in [a.message for a in orch.alerts()]

    def test_memory_pressure_slows_down(self, frame):
        reclaim = MagicMock()
        orch = _orchestrator(
            SyntheticDetector(seed=2),
            memory_reader=lambda: Config().scheduler.memory_warning_bytes * 2,
            reclaim=reclaim,
        )
        orch.start_session()
        orch.process_frame(frame)

        # zero latency: 500 * 0.9, then * 1.5
        assert orch.scheduler.current_interval_ms == pytest.approx(675.0)
        reclaim.assert_called_once()


class TestSessionLifecycle:
    def test_start_and_end_alerts(self, frame):
        orch = _orchestrator(SyntheticDetector(seed=4))
        orch.start_session()
        orch.process_frame(frame)
        snapshot = orch.end_session()

        assert snapshot is not None
        assert snapshot.frames_processed == 1
        messages = [a.message for a in orch.alerts()]
        assert messages[-1] == "Detection session started"
        assert messages[0].startswith("Detection session ended - ")
        assert len(orch.aggregator.history()) == 1

    def test_enhanced_session_alert(self):
        config = Config(enhanced_mode=True)
        orch = _orchestrator(SyntheticDetector(seed=4), config=config)
        orch.start_session()
        assert orch.alerts()[0].message == "Enhanced detection session started"
        assert orch.scheduler.current_interval_ms == 300
        assert orch.alert_log.capacity == 25

    def test_no_frames_after_end(self, frame):
        clock = FakeClock()
        orch = _orchestrator(SyntheticDetector(seed=4), clock=clock)
        orch.start_session()
        orch.end_session()
        clock.advance(10)
        assert orch.process_frame(frame) is None

    @pytest.mark.parametrize("restart", [False, True])
    def test_frame_admitted_before_end_is_dropped(self, frame, restart):
        admitted = threading.Event()
        resume = threading.Event()
        orch = _orchestrator(SyntheticDetector(seed=4))
        batches = []
        orch.add_listener(batches.append)
        orch.start_session()

        real_try_admit = orch.scheduler.try_admit

        def paused_try_admit(*args):
            decision = real_try_admit(*args)
            admitted.set()
            resume.wait(5)
            return decision

        orch.scheduler.try_admit = paused_try_admit
        outcome = {}
        worker = threading.Thread(target=lambda: outcome.update(result=orch.process_frame(frame)))
        worker.start()
        assert admitted.wait(5)

        snapshot = orch.end_session()
        if restart:
            orch.start_session()
        resume.set()
        worker.join(5)

        assert not worker.is_alive()
        assert snapshot.frames_processed == 0
        assert outcome["result"] is None
        assert batches == []
        assert orch.aggregator.total_scans == 0
        assert orch.aggregator.history()[0].frames_processed == 0
        assert not orch.scheduler.in_flight

    def test_end_without_session(self):
        orch = _orchestrator(SyntheticDetector(seed=4))
        assert orch.end_session() is None

    def test_close_ends_session_and_closes_detector(self):
        detector = MagicMock(spec=Detector)
        detector.is_mock = False
        orch = _orchestrator(detector)
        orch.start_session()
        orch.close()
        assert not orch.session_active
        detector.close.assert_called_once()

    def test_performance_metrics(self, frame):
        config = Config(connected=True)
        orch = _orchestrator(SyntheticDetector(seed=9), config=config)
        orch.start_session()
        orch.process_frame(frame)
        orch.end_session()

        metrics = orch.performance_metrics()
        assert metrics.connected
        assert metrics.total_detections >= 1
        assert 0.65 <= metrics.average_confidence < 0.85
