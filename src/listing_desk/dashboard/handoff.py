"""
Transient hand-off of images between the upload page and the editor page.

Entries are keyed by a per-browser-session token, hold file names plus
base64 data URIs, expire after a while and are removed when read.
"""

from __future__ import annotations

import threading
import time
from typing import Any, Dict, List, Optional


class HandoffStore:
    def __init__(self, ttl_seconds: int = 900, max_entries: int = 64):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._entries: Dict[str, tuple] = {}
        self._lock = threading.Lock()

    def _expire(self, now: float) -> None:
        stale = [key for key, (stamp, _) in self._entries.items() if now - stamp > self.ttl_seconds]
        for key in stale:
            del self._entries[key]
        while len(self._entries) >= self.max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k][0])
            del self._entries[oldest]

    def put(self, key: str, items: List[Dict[str, Any]]) -> None:
        now = time.monotonic()
        with self._lock:
            self._expire(now)
            self._entries[key] = (now, list(items))

    def pop(self, key: str) -> Optional[List[Dict[str, Any]]]:
        with self._lock:
            entry = self._entries.pop(key, None)
        if entry is None:
            return None
        stamp, items = entry
        if time.monotonic() - stamp > self.ttl_seconds:
            return None
        return items

    def __len__(self) -> int:
        return len(self._entries)
