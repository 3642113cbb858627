"""In-process error statistics for the assistant endpoints."""
from typing import Dict, Any, List, Optional
from collections import Counter
import time

from storefront_assistant.analytics.logger import logger

# Errors per alert window that trigger an ALERT log line
ALERT_THRESHOLDS = {
    "config_error": 1,  # a missing credential takes the assistant offline
    "llm_error": 3,
    "timeout": 3,
    "catalog_error": 2,
    "validation_error": 20,
}

# Client mistakes, not server faults
CLIENT_ERROR_TYPES = {"validation_error"}


class ErrorTracker:
    """Counts typed errors and logs an alert when a type spikes."""

    def __init__(self, window_seconds: int = 60, retention_seconds: int = 3600):
        self.window_seconds = window_seconds
        self.retention_seconds = retention_seconds
        self.alert_thresholds = dict(ALERT_THRESHOLDS)
        self.error_history: List[Dict[str, Any]] = []
        self._last_alert: Dict[str, float] = {}

    def record_error(
        self,
        error_type: str,
        error_message: str,
        context: Optional[Dict[str, Any]] = None
    ):
        """Record one error; ``context`` usually carries the ``endpoint``."""
        now = time.time()
        self.error_history.append({
            "timestamp": now,
            "type": error_type,
            "message": error_message,
            "context": context or {},
        })
        self._prune(now)

        log = logger.warning if error_type in CLIENT_ERROR_TYPES else logger.error
        log(f"Error recorded: {error_type} - {error_message}", extra={"error_type": error_type, "context": context})

        self._check_alerts(error_type, now)

    def _prune(self, now: float):
        cutoff = now - self.retention_seconds
        if self.error_history and self.error_history[0]["timestamp"] <= cutoff:
            self.error_history = [e for e in self.error_history if e["timestamp"] > cutoff]

    def _check_alerts(self, error_type: str, now: float):
        """Alert at most once per window for each error type."""
        threshold = self.alert_thresholds.get(error_type)
        if not threshold:
            return
        if now - self._last_alert.get(error_type, 0.0) < self.window_seconds:
            return

        window_start = now - self.window_seconds
        count = sum(1 for e in self.error_history if e["type"] == error_type and e["timestamp"] > window_start)
        if count >= threshold:
            self._last_alert[error_type] = now
            logger.warning(
                f"ALERT: {error_type} threshold exceeded - {count} errors in last {self.window_seconds}s",
                extra={"error_type": error_type, "count": count, "threshold": threshold},
            )

    def get_error_stats(self, window_seconds: int = 300) -> Dict[str, Any]:
        """Counts by type and by endpoint over the last ``window_seconds``."""
        cutoff = time.time() - window_seconds
        recent = [e for e in self.error_history if e["timestamp"] > cutoff]

        by_endpoint = Counter(e["context"].get("endpoint", "other") for e in recent)
        return {
            "window_seconds": window_seconds,
            "total_errors": len(recent),
            "error_types": dict(Counter(e["type"] for e in recent)),
            "by_endpoint": dict(by_endpoint),
            "error_rate": len(recent) / (window_seconds / 60) if window_seconds > 0 else 0,  # per minute
        }

    def get_recent_errors(self, limit: int = 10, error_type: Optional[str] = None) -> List[Dict[str, Any]]:
        """Newest first, optionally only one error type."""
        errors = [e for e in self.error_history if error_type is None or e["type"] == error_type]
        return list(reversed(errors))[:limit]

    def reset(self):
        """Forget all recorded errors."""
        self.error_history = []
        self._last_alert.clear()


# Global error tracker instance
error_tracker = ErrorTracker()
