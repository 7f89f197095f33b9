"""
Pytest configuration and shared fixtures.
"""

import os
import sys

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from models.config import Config  # noqa: E402


NUM_CLASSES = 80


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeEngine:
    """InferenceEngine returning a preset output, or raising a preset error."""

    def __init__(self, output=None, error=None):
        self.output = output
        self.error = error
        self.loaded = []
        self.inputs = []
        self.closed = False

    def load(self, model_bytes, config):
        self.loaded.append((model_bytes, config))
        return {"model": model_bytes}

    def run(self, handle, input_tensor):
        self.inputs.append(input_tensor.shape)
        if self.error is not None:
            raise self.error
        return self.output

    def close(self, handle):
        self.closed = True


def make_slot(x, y, w, h, objectness, class_id, class_score=1.0, num_classes=NUM_CLASSES):
    """Build one decoder slot [x, y, w, h, obj, scores...]."""
    scores = [0.0] * num_classes
    scores[class_id] = class_score
    return [x, y, w, h, objectness] + scores


def make_output(*slots):
    return np.array([v for slot in slots for v in slot], dtype=np.float32)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config():
    """Typed config with defaults."""
    return Config()


@pytest.fixture
def frame():
    """A small BGR frame."""
    return np.full((120, 160, 3), 128, dtype=np.uint8)


@pytest.fixture
def temp_config_dir(tmp_path):
    """Create a temporary config directory with default.yaml."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()

    default_yaml = config_dir / "default.yaml"
    default_yaml.write_text("""
model:
  path: "models/detect.tflite"
  input_size: 640
  num_classes: 80

detection:
  standard:
    confidence_threshold: 0.5
    nms_threshold: 0.5
  enhanced:
    confidence_threshold: 0.6
    nms_threshold: 0.4

scheduler:
  standard_interval_ms: 500
  min_interval_ms: 200
  max_interval_ms: 5000

log_path: "logs/test.log"
log_level: "INFO"
""")

    return config_dir


@pytest.fixture
def valid_config():
    """Return a valid configuration dictionary."""
    return {
        "model": {
            "path": "models/detect.tflite",
            "input_size": 640,
            "num_classes": 80,
            "num_threads": 4,
        },
        "detection": {
            "standard": {"confidence_threshold": 0.5, "nms_threshold": 0.5},
            "enhanced": {"confidence_threshold": 0.6, "nms_threshold": 0.4},
            "ensemble": {"scales": [0.8, 1.2]},
        },
        "scheduler": {
            "standard_interval_ms": 500,
            "min_interval_ms": 200,
            "max_interval_ms": 5000,
        },
        "session": {"success_confidence": 0.7, "max_history": 50},
        "web": {"port": 8000},
        "log_path": "logs/test.log",
        "log_level": "INFO",
    }
