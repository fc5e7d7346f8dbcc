"""
Redemption code minting and recognition.

Codes read ``<TAG>-<DEAL-ID>-<USER-ID>-<TIMESTAMP>``: uppercase, dash
delimited, short enough to type by hand when a QR scan fails. The last
segment is a strictly increasing millisecond timestamp followed by a four
character random suffix, so two codes minted by one process never collide
even for the same deal and user.
"""
from __future__ import annotations

import re
import secrets
import threading
import time
from typing import Optional

from descuentosya.config import Config

_SEGMENT_RE = re.compile(r"[^A-Z0-9]")


def code_segment(value) -> str:
    """Uppercase and drop anything that would break the dash-delimited format."""
    return _SEGMENT_RE.sub("", str(value).upper()) or "X"


class RedemptionCodeGenerator:
    def __init__(self, tag: str = Config.MARKETPLACE_TAG) -> None:
        self.tag = code_segment(tag)
        self._lock = threading.Lock()
        self._last_millis = 0
        self._pattern = re.compile(rf"^{re.escape(self.tag)}-[A-Z0-9]+-[A-Z0-9]+-\d{{13,}}[0-9A-F]{{4}}$")

    def _next_millis(self) -> int:
        with self._lock:
            millis = int(time.time() * 1000)
            if millis <= self._last_millis:
                millis = self._last_millis + 1
            self._last_millis = millis
            return millis

    def generate(self, deal_id, user_id) -> str:
        suffix = secrets.token_hex(2).upper()
        return f"{self.tag}-{code_segment(deal_id)}-{code_segment(user_id)}-{self._next_millis()}{suffix}"

    def normalize(self, raw: Optional[str]) -> str:
        """Canonical form of a scanned or hand-typed code."""
        if raw is None:
            return ""
        return "".join(str(raw).split()).upper()

    def looks_valid(self, code: str) -> bool:
        return bool(self._pattern.match(code))


_generators: dict[str, RedemptionCodeGenerator] = {}
_generators_lock = threading.Lock()


def generator_for(tag: str = Config.MARKETPLACE_TAG) -> RedemptionCodeGenerator:
    """One generator per tag for the whole process keeps timestamps monotonic."""
    key = code_segment(tag)
    with _generators_lock:
        generator = _generators.get(key)
        if generator is None:
            generator = RedemptionCodeGenerator(key)
            _generators[key] = generator
        return generator
