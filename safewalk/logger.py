"""Event log for SafeWalk."""

import json
from datetime import datetime
from typing import Callable, Optional


class Logger:
    """Timestamped event log echoed to stdout, appended to a file and forwarded to a callback.

    Lines look like ``[2024-05-01T12:00:00.000000] Navigation started | {"session_id": "..."}``.
    """

    def __init__(self, log_path: Optional[str] = None,
                 callback: Optional[Callable[[str, Optional[dict]], None]] = None,
                 echo: bool = True):
        self.callback = callback
        self.echo = echo
        self.entries = 0
        self.file = open(log_path, "a") if log_path else None
        if self.file:
            rule = "=" * 60
            self.file.write(f"\n{rule}\nSafeWalk Log - {datetime.now().isoformat()}\n{rule}\n\n")
            self.file.flush()

    @staticmethod
    def format(message: str, data: Optional[dict] = None,
               when: Optional[datetime] = None) -> str:
        line = f"[{(when or datetime.now()).isoformat()}] {message}"
        if data:
            line += f" | {json.dumps(data, default=str)}"
        return line

    def log(self, message: str, data: Optional[dict] = None):
        line = self.format(message, data)
        self.entries += 1
        if self.echo:
            print(line)
        if self.file:
            self.file.write(line + "\n")
            self.file.flush()
        if self.callback:
            self.callback(message, data)

    def close(self):
        if self.file:
            self.file.close()
            self.file = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
