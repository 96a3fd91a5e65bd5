import json
from pathlib import Path
from typing import Any, Dict, List


# ==============================================
# ProgressStore
# ==============================================
#
# PURPOSE:
#   Write the run log of an analysis job to disk so that whoever
#   launched it (a task runner, a shell loop) can poll how far
#   the job got and what went wrong.
#
# WHAT IS WRITTEN (one file, rewritten on every change):
#   info.json → {
#       "progress":  0.0 .. 1.0,
#       "inserted":  datasets analyzed so far,
#       "errors":    ["task 65f0... not found", ...],
#       "completed": false | true
#   }
#
# This is a progress log only. Predicates and recommendations
# are never stored here.
#
# CLASS: ProgressStore
# --------------------
#   Stateful — holds the current progress in memory and flushes
#   it after every update.
#
#   Methods:
#   --------
#   - write_progress(progress, count) -> None
#   - inc_count(count_inc=1) -> None
#   - write_error(description) -> None
#   - write_complete(count) -> None
#   - load() -> dict
#   - clear() -> None
#
class ProgressStore:
    """
    Handles the info.json progress file of an analysis run.
    """

    def __init__(self, path: str = "info.json"):
        """
        Initialize the progress store.

        Args:
            path: Location of the progress file
        """
        self.path = Path(path)
        if self.path.parent and not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)

        self.progress = 0.0
        self.count = 0
        self.errors: List[str] = []
        self.completed = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "progress": self.progress,
            "inserted": self.count,
            "errors": list(self.errors),
            "completed": self.completed,
        }

    def write_progress(self, progress: float, count: int) -> None:
        """
        Record how far the run got.

        Args:
            progress: Fraction done, clamped to [0, 1]
            count: Datasets analyzed so far
        """
        self.progress = min(1.0, max(0.0, progress))
        self.count = count
        self._flush()

    def inc_count(self, count_inc: int = 1) -> None:
        self.count += count_inc
        self._flush()

    def write_error(self, description: str) -> None:
        self.errors.append(description)
        self._flush()
        print(f"✗ {description}")

    def write_complete(self, count: int) -> None:
        self.completed = True
        self.write_progress(1.0, count)
        print(f"✓ Completed: {count} dataset(s) analyzed")

    def _flush(self) -> None:
        with open(self.path, 'w', encoding='utf-8') as f:
            json.dump(self.to_dict(), f, indent=2, ensure_ascii=False)

    def load(self) -> Dict[str, Any]:
        """
        Read the progress file back.

        Returns:
            The stored progress, or the initial state if no file exists
        """
        if not self.path.exists():
            return {"progress": 0.0, "inserted": 0, "errors": [], "completed": False}

        with open(self.path, 'r', encoding='utf-8') as f:
            return json.load(f)

    def clear(self) -> None:
        """Delete the progress file and reset the in-memory state."""
        if self.path.exists():
            self.path.unlink()
        self.progress = 0.0
        self.count = 0
        self.errors = []
        self.completed = False
# =============================================
