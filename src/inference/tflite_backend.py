"""
LiteRT (TensorFlow Lite) inference engine.

Uses ai-edge-litert if installed, falling back to the older tflite-runtime
wheel. Without either, run without a model to get synthetic detections.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, List

import numpy as np

from .backend import EngineConfig, InferenceError, ModelLoadError, ResourceExhaustedError


def _load_interpreter_class():
    try:
        from ai_edge_litert.interpreter import Interpreter  # type: ignore
        return Interpreter
    except ImportError:
        pass
    try:
        from tflite_runtime.interpreter import Interpreter  # type: ignore
    except ImportError as e:  # pragma: no cover
        raise ImportError(
            "LiteRT is not installed. Install with `pip install ai-edge-litert` "
            "or remove model.path to use synthetic detection."
        ) from e
    return Interpreter


@dataclass
class _TFLiteHandle:
    interpreter: Any
    input_details: List[Dict[str, Any]]
    output_details: List[Dict[str, Any]]


class TFLiteEngine:
    """InferenceEngine backed by a LiteRT Interpreter."""

    def __init__(self):
        self._interpreter_cls = _load_interpreter_class()

    def load(self, model_bytes: bytes, config: EngineConfig) -> _TFLiteHandle:
        try:
            interpreter = self._interpreter_cls(
                model_content=bytes(model_bytes),
                num_threads=config.num_threads,
            )
            interpreter.allocate_tensors()
        except (ValueError, RuntimeError) as e:
            raise ModelLoadError(f"Invalid model: {e}") from e

        # Delegates are platform specific; the CPU path honours num_threads only
        if config.use_acceleration:
            logging.debug("Hardware acceleration requested; using default CPU kernels")

        handle = _TFLiteHandle(
            interpreter=interpreter,
            input_details=interpreter.get_input_details(),
            output_details=interpreter.get_output_details(),
        )
        inp = handle.input_details[0]
        logging.info(f"Model loaded: input shape={list(inp['shape'])} dtype={inp['dtype'].__name__}")
        return handle

    def run(self, handle: _TFLiteHandle, input_tensor: np.ndarray) -> np.ndarray:
        if handle.interpreter is None:
            raise InferenceError("engine handle is closed")

        inp = handle.input_details[0]
        expected = tuple(int(d) for d in inp["shape"])
        if tuple(input_tensor.shape) != expected:
            raise InferenceError(f"Input shape {input_tensor.shape} does not match model {expected}")

        dtype = inp["dtype"]
        if dtype == np.uint8:
            tensor = np.clip(input_tensor * 255.0, 0, 255).astype(np.uint8)
        else:
            tensor = input_tensor.astype(dtype, copy=False)

        try:
            handle.interpreter.set_tensor(inp["index"], tensor)
            handle.interpreter.invoke()
            output = handle.interpreter.get_tensor(handle.output_details[0]["index"])
        except MemoryError as e:
            raise ResourceExhaustedError(str(e)) from e
        except (ValueError, RuntimeError) as e:
            raise InferenceError(str(e)) from e

        return np.array(output, dtype=np.float32, copy=True)

    def close(self, handle: _TFLiteHandle) -> None:
        handle.interpreter = None
