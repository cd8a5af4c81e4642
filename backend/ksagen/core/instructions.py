import threading
from pathlib import Path
from typing import Dict, Optional, Union

from ..utils.logger import JSONLLogger


class InstructionCache:
    """
    Process-level cache of instruction files keyed by name.

    A missing or unreadable file resolves to the supplied fallback text, which
    is not cached, so a later load retries the file.
    """

    def __init__(self, logger: Optional[JSONLLogger] = None) -> None:
        self._entries: Dict[str, str] = {}
        self._lock = threading.Lock()
        self.logger = logger

    def load(self, name: str, path: Union[str, Path], fallback: str) -> str:
        with self._lock:
            cached = self._entries.get(name)
        if cached is not None:
            return cached

        try:
            text = Path(path).read_text(encoding="utf-8").strip()
        except OSError as e:
            print(f"[Warning: instruction file '{path}' unavailable, using fallback: {e}]")
            if self.logger is not None:
                self.logger.log_event("instruction_fallback", {"name": name, "path": str(path), "error": str(e)})
            return fallback.strip()

        if not text:
            return fallback.strip()

        with self._lock:
            self._entries[name] = text
        return text

    def clear(self, name: Optional[str] = None) -> None:
        with self._lock:
            if name is None:
                self._entries.clear()
            else:
                self._entries.pop(name, None)

    def __contains__(self, name: str) -> bool:
        with self._lock:
            return name in self._entries
