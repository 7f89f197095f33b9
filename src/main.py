#!/usr/bin/env python3
"""
Safety Object Detection - CLI entry point

Pumps frames from a camera, video file or image directory through the
detection orchestrator and prints a session summary.

Usage:
    python src/main.py --config config/config.yaml --source 0
    python src/main.py --source samples/ --enhanced --max-frames 50
    python src/main.py --source video.mp4 --serve
"""

import argparse
import glob
import logging
import os
import sys
import threading
import time
from typing import Any, Dict, Iterator, Optional, Tuple

import cv2
import numpy as np
import uvicorn
import yaml

from models.config import Config
from ops.logging import setup_logging
from runtime.context import RuntimeContext, build_runtime
from web.app import create_app

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".bmp")


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into base and return base."""
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(base.get(k), dict):
            _deep_merge(base[k], v)
        else:
            base[k] = v
    return base


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration with layering:
    - `config/default.yaml` (checked in)
    - `config/config.yaml` (local overrides)
    - plus any explicitly provided `--config` path (treated as overrides)
    """
    try:
        base_path = os.path.join(os.path.dirname(config_path), "default.yaml")
        base_cfg: Dict[str, Any] = {}
        if os.path.exists(base_path):
            with open(base_path, "r") as f:
                base_cfg = yaml.safe_load(f) or {}

        local_overrides_path = os.path.join(os.path.dirname(config_path), "config.yaml")
        local_cfg: Dict[str, Any] = {}
        if os.path.exists(local_overrides_path):
            with open(local_overrides_path, "r") as f:
                local_cfg = yaml.safe_load(f) or {}

        merged = _deep_merge(base_cfg, local_cfg)

        # Finally apply explicit config_path if it's not one of the layers above
        explicit = os.path.abspath(config_path)
        if os.path.exists(config_path) and explicit not in (
            os.path.abspath(local_overrides_path),
            os.path.abspath(base_path),
        ):
            with open(config_path, "r") as f:
                explicit_cfg = yaml.safe_load(f) or {}
            merged = _deep_merge(merged, explicit_cfg)

        return merged
    except Exception as e:
        logging.error(f"Failed to load configuration: {e}")
        sys.exit(1)


def _is_fraction(v: Any) -> bool:
    return isinstance(v, (int, float)) and not isinstance(v, bool) and 0.0 <= v <= 1.0


def validate_config(config: Dict[str, Any]) -> Tuple[bool, Optional[str]]:
    """
    Validate configuration file structure and values.

    Args:
        config: Configuration dictionary

    Returns:
        Tuple of (is_valid, error_message)
    """
    required_sections = ['model', 'detection', 'scheduler', 'log_path', 'log_level']
    for section in required_sections:
        if section not in config:
            return False, f"Missing required configuration section: {section}"

    # Model
    model = config.get('model') or {}
    if 'path' not in model:
        return False, "Missing model.path"
    input_size = model.get('input_size', 640)
    if not isinstance(input_size, int) or input_size <= 0:
        return False, "model.input_size must be a positive integer"
    num_classes = model.get('num_classes', 80)
    if not isinstance(num_classes, int) or num_classes < 1:
        return False, "model.num_classes must be a positive integer"
    num_threads = model.get('num_threads', 4)
    if not isinstance(num_threads, int) or num_threads < 1:
        return False, "model.num_threads must be a positive integer"

    # Detection thresholds
    detection = config.get('detection') or {}
    for mode in ('standard', 'enhanced'):
        thresholds = detection.get(mode) or {}
        for key in ('confidence_threshold', 'nms_threshold', 'early_reject_threshold'):
            if key in thresholds and thresholds[key] is not None and not _is_fraction(thresholds[key]):
                return False, f"detection.{mode}.{key} must be between 0 and 1"

    ensemble = detection.get('ensemble') or {}
    scales = ensemble.get('scales', [0.8, 1.2])
    if not isinstance(scales, list) or not all(isinstance(s, (int, float)) and s > 0 for s in scales):
        return False, "detection.ensemble.scales must be a list of positive numbers"
    if ensemble.get('min_scaled_size', 320) > ensemble.get('max_scaled_size', 1024):
        return False, "detection.ensemble.min_scaled_size must not exceed max_scaled_size"

    max_frame_bytes = detection.get('max_frame_bytes', 20 * 1024 * 1024)
    if not isinstance(max_frame_bytes, int) or max_frame_bytes <= 0:
        return False, "detection.max_frame_bytes must be a positive integer"

    # Scheduler
    scheduler = config.get('scheduler') or {}
    min_interval = scheduler.get('min_interval_ms', 200)
    max_interval = scheduler.get('max_interval_ms', 5000)
    if not isinstance(min_interval, (int, float)) or min_interval <= 0:
        return False, "scheduler.min_interval_ms must be positive"
    if not isinstance(max_interval, (int, float)) or max_interval < min_interval:
        return False, "scheduler.max_interval_ms must be >= min_interval_ms"
    for key in ('growth_factor', 'memory_penalty_factor', 'exhaustion_backoff_factor'):
        if scheduler.get(key, 2.0) < 1.0:
            return False, f"scheduler.{key} must be >= 1"
    decay = scheduler.get('decay_factor', 0.9)
    if not (0.0 < decay <= 1.0):
        return False, "scheduler.decay_factor must be in (0, 1]"

    # Session
    session = config.get('session') or {}
    if not _is_fraction(session.get('success_confidence', 0.7)):
        return False, "session.success_confidence must be between 0 and 1"
    max_history = session.get('max_history', 50)
    if not isinstance(max_history, int) or max_history < 0:
        return False, "session.max_history must be a non-negative integer"

    # Web
    web = config.get('web') or {}
    port = web.get('port', 8000)
    if not isinstance(port, int) or not (0 < port < 65536):
        return False, "web.port must be a valid TCP port"

    # Logging
    valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if config['log_level'] not in valid_log_levels:
        return False, f"log_level must be one of {valid_log_levels}"

    return True, None


def iter_frames(source: str) -> Iterator[np.ndarray]:
    """
    Yield BGR frames from an image directory, a single image, a video file
    or a camera index.
    """
    if os.path.isdir(source):
        paths = sorted(
            p for p in glob.glob(os.path.join(source, "*"))
            if p.lower().endswith(IMAGE_EXTENSIONS)
        )
        logging.info(f"Reading {len(paths)} images from {source}")
        for path in paths:
            frame = cv2.imread(path)
            if frame is None:
                logging.warning(f"Could not read image {path}")
                continue
            yield frame
        return

    if os.path.isfile(source) and source.lower().endswith(IMAGE_EXTENSIONS):
        frame = cv2.imread(source)
        if frame is not None:
            yield frame
        return

    device = int(source) if source.isdigit() else source
    cap = cv2.VideoCapture(device)
    if not cap.isOpened():
        logging.error(f"Could not open video source {source}")
        return
    try:
        while True:
            ok, frame = cap.read()
            if not ok:
                break
            yield frame
    finally:
        cap.release()


def print_summary(ctx: RuntimeContext) -> None:
    orchestrator = ctx.orchestrator
    snapshot = orchestrator.scheduler_snapshot()
    missing = orchestrator.missing_critical_items()

    print("\nSession summary")
    print(f"  Detector:          {'synthetic' if orchestrator.is_mock else 'model'}")
    print(f"  Frames processed:  {snapshot.frames_processed} (skipped {snapshot.total_skips})")
    print(f"  Average latency:   {snapshot.average_latency_ms:.1f} ms")
    print(f"  Safety coverage:   {orchestrator.safety_percentage()}%")
    print(f"  Overall accuracy:  {ctx.aggregator.overall_accuracy():.1f}%")
    print(f"  Detected:          {', '.join(o.display_name for o in ctx.aggregator.detected_items()) or '-'}")
    print(f"  Critical missing:  {', '.join(o.display_name for o in missing) or '-'}")
    for alert in orchestrator.alerts()[:5]:
        print(f"  [{alert.severity.value}] {alert.message}")


def main():
    """Main application function."""
    parser = argparse.ArgumentParser(description='Safety Object Detection')
    parser.add_argument('--config', type=str, default='config/config.yaml',
                        help='Path to configuration file')
    parser.add_argument('--source', type=str, default='0',
                        help='Camera index, video file, image file or image directory')
    parser.add_argument('--enhanced', action='store_true',
                        help='Enable enhanced detection mode')
    parser.add_argument('--connected', action='store_true',
                        help='Report the device as connected')
    parser.add_argument('--serve', action='store_true',
                        help='Serve the stats API while detecting')
    parser.add_argument('--max-frames', type=int, default=0,
                        help='Stop after this many input frames (0 = until source ends)')
    args = parser.parse_args()

    # Load configuration
    raw_config = load_config(args.config)

    # Validate configuration
    is_valid, error_msg = validate_config(raw_config)
    if not is_valid:
        logging.error(f"Configuration validation failed: {error_msg}")
        sys.exit(1)

    config = Config.from_dict(raw_config)
    if args.enhanced:
        config.enhanced_mode = True
    if args.connected:
        config.connected = True
    if args.serve:
        config.web.enabled = True

    # Setup logging
    setup_logging(config.log_path, config.log_level)
    logging.info("Starting Safety Object Detection")

    ctx = build_runtime(config)
    orchestrator = ctx.orchestrator

    if config.web.enabled:
        def run_web_app():
            uvicorn.run(
                create_app(ctx),
                host=config.web.host,
                port=config.web.port,
                log_level="info",
            )

        web_thread = threading.Thread(target=run_web_app, daemon=True)
        web_thread.start()
        logging.info(f"Stats API started on port {config.web.port}")

    frames_seen = 0
    paced = os.path.isdir(args.source)
    try:
        orchestrator.start_session()
        for frame in iter_frames(args.source):
            frames_seen += 1
            results = orchestrator.process_frame(frame)
            if results is not None:
                logging.info(
                    f"Frame {frames_seen}: " +
                    (", ".join(f"{r.label} {r.confidence:.2f}" for r in results) or "no safety objects")
                )
            if args.max_frames and frames_seen >= args.max_frames:
                break
            # Still images are not real-time; wait out the interval so none are dropped
            if paced:
                time.sleep(orchestrator.scheduler_snapshot().current_interval_ms / 1000.0)
    except KeyboardInterrupt:
        logging.info("Interrupted by user")
    finally:
        orchestrator.end_session()
        ctx.update_system_stats(frames_seen=frames_seen)
        print_summary(ctx)
        orchestrator.close()


if __name__ == "__main__":
    main()
