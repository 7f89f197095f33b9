"""
Frame preprocessing for the detection model.

Frames arrive as BGR uint8 arrays (OpenCV convention). The model takes a
(1, S, S, 3) float32 RGB tensor scaled to [0, 1].
"""

from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

# Enhanced mode contrast/brightness: pixel * 1.1 + 10
CONTRAST_ALPHA = 1.1
BRIGHTNESS_BETA = 10


def is_valid_frame(frame, max_bytes: int) -> bool:
    """A frame is valid when it is a non-empty image array within the byte limit."""
    if frame is None or not isinstance(frame, np.ndarray):
        return False
    if frame.ndim not in (2, 3) or frame.size == 0:
        return False
    if frame.ndim == 3 and frame.shape[2] not in (1, 3, 4):
        return False
    return frame.nbytes <= max_bytes


def scaled_input_size(input_size: int, scale: float, min_size: int, max_size: int) -> int:
    """Side length for a rescaled pass, clamped to [min_size, max_size]."""
    return max(min_size, min(max_size, int(input_size * scale)))


def to_bgr_uint8(frame: np.ndarray) -> np.ndarray:
    img = frame
    if img.dtype != np.uint8:
        img = np.clip(img, 0, 255).astype(np.uint8)
    if img.ndim == 2 or (img.ndim == 3 and img.shape[2] == 1):
        img = cv2.cvtColor(img, cv2.COLOR_GRAY2BGR)
    elif img.shape[2] == 4:
        img = cv2.cvtColor(img, cv2.COLOR_BGRA2BGR)
    return img


def enhance(img: np.ndarray) -> np.ndarray:
    """Boost contrast and brightness, saturating at 255."""
    return cv2.convertScaleAbs(img, alpha=CONTRAST_ALPHA, beta=BRIGHTNESS_BETA)


class Preprocessor:
    """
    Turns frames into model input tensors.

    Rescaled passes resize to the scaled side first and then back to the
    model input size, so the model always sees input_size x input_size.
    """

    def __init__(
        self,
        input_size: int = 640,
        enhance_contrast: bool = True,
        min_scaled_size: int = 320,
        max_scaled_size: int = 1024,
    ):
        self.input_size = input_size
        self.enhance_contrast = enhance_contrast
        self.min_scaled_size = min_scaled_size
        self.max_scaled_size = max_scaled_size

    def prepare(self, frame: np.ndarray, enhanced: bool = False, scale: Optional[float] = None) -> np.ndarray:
        img = to_bgr_uint8(frame)

        if scale is not None and scale != 1.0:
            side = scaled_input_size(self.input_size, scale, self.min_scaled_size, self.max_scaled_size)
            img = cv2.resize(img, (side, side), interpolation=cv2.INTER_LINEAR)

        img = cv2.resize(img, (self.input_size, self.input_size), interpolation=cv2.INTER_LINEAR)

        if enhanced and self.enhance_contrast:
            img = enhance(img)

        rgb = cv2.cvtColor(img, cv2.COLOR_BGR2RGB)
        tensor = rgb.astype(np.float32) / 255.0
        return np.expand_dims(tensor, axis=0)
