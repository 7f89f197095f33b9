"""
Host memory probing and reclamation.
"""

from __future__ import annotations

import gc
import logging
from typing import Optional

import psutil


def read_process_memory_bytes() -> Optional[int]:
    """
    Current resident set size of this process; returns None if unavailable.
    """
    try:
        return psutil.Process().memory_info().rss
    except psutil.Error as e:
        logging.debug(f"Could not check memory usage: {e}")
        return None


def request_reclaim() -> int:
    """Ask the runtime to release memory; returns collected object count."""
    collected = gc.collect()
    logging.debug(f"Memory cleanup collected {collected} objects")
    return collected
