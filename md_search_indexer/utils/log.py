import datetime
import json
import threading
from pathlib import Path


class Logger:
    """Append-only JSON lines event log. Safe to share between worker threads."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()

    def write(self, obj: dict):
        record = {"ts": datetime.datetime.now().isoformat(timespec="seconds")} | obj
        line = json.dumps(record, ensure_ascii=False) + "\n"
        with self._lock:
            with open(self.path, "a", encoding="utf-8") as f:
                f.write(line)
