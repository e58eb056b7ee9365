from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Tuple

from runtime.manifest_store import now_iso


class TaskLogger:
    """Per-task structured log entries, mirrored line-by-line into the run log."""

    def __init__(self, test_id: str, event_logger: Optional[Callable[[str], None]] = None) -> None:
        self.test_id = test_id
        self.event_logger = event_logger
        self._entries: List[Dict[str, Any]] = []

    def log(
        self,
        message: str,
        *,
        category: str = "eval",
        level: int = 1,
        auxiliary: Optional[Dict[str, Any]] = None,
    ) -> None:
        entry: Dict[str, Any] = {
            "timestamp": now_iso(),
            "category": category,
            "level": level,
            "message": message,
        }
        if auxiliary:
            entry["auxiliary"] = auxiliary
        self._entries.append(entry)
        if self.event_logger is not None:
            self.event_logger(f"test={self.test_id} category={category} {message}")

    def error(self, message: str, *, category: str = "eval", auxiliary: Optional[Dict[str, Any]] = None) -> None:
        self.log(message, category=category, level=0, auxiliary=auxiliary)

    def get_logs(self) -> Tuple[Dict[str, Any], ...]:
        return tuple(dict(entry) for entry in self._entries)
