"""
Model artifact loading.

A missing model is not an error: the caller falls back to synthetic
detection.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, List, Optional

import yaml

from models.config import ModelConfig


@dataclass
class ModelArtifact:
    model_bytes: bytes
    labels: List[str] = field(default_factory=list)
    source: str = ""


def _labels_from_obj(obj: Any) -> List[str]:
    # YOLO dataset yaml: {"names": {0: "person", ...}} or {"names": [...]}
    if isinstance(obj, dict):
        for key in ("names", "labels", "classes"):
            if key in obj:
                return _labels_from_obj(obj[key])
        try:
            ordered = sorted(obj.items(), key=lambda kv: int(kv[0]))
        except (TypeError, ValueError):
            return []
        return [str(v) for _, v in ordered]

    if isinstance(obj, list):
        labels: List[str] = []
        for item in obj:
            if isinstance(item, dict):
                labels.append(str(item.get("display_name") or item.get("displayName") or item.get("name") or ""))
            else:
                labels.append(str(item))
        return labels

    return []


def load_labels(path: str) -> List[str]:
    """
    Load a label list from .txt (one per line), .json or .yaml.

    Returns an empty list if the file is missing or unreadable.
    """
    if not path or not os.path.exists(path):
        logging.warning(f"Labels file not found: {path}")
        return []

    ext = os.path.splitext(path)[1].lower()
    try:
        with open(path, "r", encoding="utf-8") as f:
            if ext == ".json":
                return _labels_from_obj(json.load(f))
            if ext in (".yaml", ".yml"):
                return _labels_from_obj(yaml.safe_load(f))
            return [line.strip() for line in f if line.strip()]
    except (OSError, ValueError, yaml.YAMLError) as e:
        logging.warning(f"Could not read labels from {path}: {e}")
        return []


class ModelStore:
    """Reads the model artifact and its labels from disk."""

    def __init__(self, config: ModelConfig):
        self.config = config

    def load(self) -> Optional[ModelArtifact]:
        path = self.config.path
        if not path or not os.path.exists(path):
            logging.warning(f"Model not found at {path}, using synthetic detection")
            return None

        try:
            with open(path, "rb") as f:
                model_bytes = f.read()
        except OSError as e:
            logging.warning(f"Could not read model {path}: {e}")
            return None

        labels = load_labels(self.config.labels_path) if self.config.labels_path else []
        logging.info(f"Loaded model {path} ({len(model_bytes)} bytes, {len(labels)} labels)")
        return ModelArtifact(model_bytes=model_bytes, labels=labels, source=path)
