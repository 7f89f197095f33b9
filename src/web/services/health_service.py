from __future__ import annotations

import os
import platform
import time
from dataclasses import dataclass, field
from typing import Any, Dict

from ops.memory import read_process_memory_bytes
from runtime.context import RuntimeContext


@dataclass
class HealthService:
    ctx: RuntimeContext
    started_at: float = field(default_factory=time.time)

    def get_health_summary(self) -> Dict[str, Any]:
        orchestrator = self.ctx.orchestrator
        memory_bytes = read_process_memory_bytes()
        warning_bytes = self.ctx.config.scheduler.memory_warning_bytes
        snapshot = orchestrator.scheduler_snapshot()

        status = "running" if orchestrator.session_active else "idle"
        if memory_bytes is not None and memory_bytes > warning_bytes:
            status = "degraded"

        return {
            "status": status,
            "timestamp": time.time(),
            "uptime_seconds": int(time.time() - self.started_at),
            "platform": platform.platform(),
            "python": platform.python_version(),
            "cwd": os.getcwd(),
            "model_path": self.ctx.config.model.path,
            "log_path": self.ctx.config.log_path,
            "is_mock": orchestrator.is_mock,
            "session_active": orchestrator.session_active,
            "enhanced_mode": orchestrator.enhanced,
            "memory_bytes": memory_bytes,
            "memory_warning_bytes": warning_bytes,
            "scheduler": snapshot.to_dict(),
        }
