"""
Inference engine interface.

Engines are opaque: they load a model artifact and turn an input tensor into
a raw output tensor. The InferenceRunner wraps an engine and converts its
failures into an InferenceOutcome so callers never see engine exceptions.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Protocol

import numpy as np


class InferenceError(Exception):
    """Recoverable inference failure; the frame yields no results."""


class ResourceExhaustedError(InferenceError):
    """The engine ran out of memory or another bounded resource."""


class ModelLoadError(InferenceError):
    """The model artifact could not be loaded."""


@dataclass(frozen=True)
class EngineConfig:
    num_threads: int = 4
    use_acceleration: bool = True


class InferenceEngine(Protocol):
    def load(self, model_bytes: bytes, config: EngineConfig) -> Any:
        ...

    def run(self, handle: Any, input_tensor: np.ndarray) -> np.ndarray:
        ...

    def close(self, handle: Any) -> None:
        ...


class OutcomeStatus(str, Enum):
    OK = "ok"
    FAILED = "failed"
    RESOURCE_EXHAUSTED = "resource_exhausted"


@dataclass(frozen=True)
class InferenceOutcome:
    """Result of one engine invocation."""
    status: OutcomeStatus
    output: Optional[np.ndarray] = None
    error: Optional[str] = None

    @property
    def is_ok(self) -> bool:
        return self.status is OutcomeStatus.OK

    @classmethod
    def ok(cls, output: np.ndarray) -> "InferenceOutcome":
        return cls(status=OutcomeStatus.OK, output=output)

    @classmethod
    def failed(cls, error: str) -> "InferenceOutcome":
        return cls(status=OutcomeStatus.FAILED, error=error)

    @classmethod
    def exhausted(cls, error: str) -> "InferenceOutcome":
        return cls(status=OutcomeStatus.RESOURCE_EXHAUSTED, error=error)


class InferenceRunner:
    """
    Owns an engine and its loaded model handle.

    Example:
        runner = InferenceRunner(TFLiteEngine(), EngineConfig(num_threads=4))
        runner.open(model_bytes)
        outcome = runner.run(tensor)
    """

    def __init__(self, engine: InferenceEngine, config: Optional[EngineConfig] = None):
        self.engine = engine
        self.config = config or EngineConfig()
        self._handle: Any = None

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    def open(self, model_bytes: bytes) -> None:
        """Load the model. Raises ModelLoadError on failure."""
        try:
            self._handle = self.engine.load(model_bytes, self.config)
        except ModelLoadError:
            raise
        except Exception as e:
            raise ModelLoadError(f"Failed to load model: {e}") from e
        logging.info(
            f"Inference engine ready: {type(self.engine).__name__} "
            f"(threads={self.config.num_threads}, acceleration={self.config.use_acceleration})"
        )

    def run(self, input_tensor: np.ndarray) -> InferenceOutcome:
        if self._handle is None:
            return InferenceOutcome.failed("engine is not open")
        try:
            output = self.engine.run(self._handle, input_tensor)
        except (MemoryError, ResourceExhaustedError) as e:
            logging.warning(f"Inference ran out of resources: {e}")
            return InferenceOutcome.exhausted(str(e) or type(e).__name__)
        except Exception as e:
            logging.warning(f"Inference failed: {e}")
            return InferenceOutcome.failed(str(e) or type(e).__name__)
        return InferenceOutcome.ok(np.asarray(output))

    def close(self) -> None:
        if self._handle is None:
            return
        try:
            self.engine.close(self._handle)
        finally:
            self._handle = None
