"""Webhook outcome audit log: append-only JSON Lines with rotation and a hash chain.

Each line records one terminal outcome of a webhook invocation (ignored,
tagged, failed, annotated) and carries ``prev_hash``, the SHA-256 of the
previous line, so truncation or edits can be detected.
"""

from __future__ import annotations

import fcntl
import hashlib
import json
import os
from dataclasses import dataclass
from pathlib import Path

from src.models import AuditEvent


@dataclass
class ChainValidationResult:
    valid: bool
    broken_at_line: int | None = None


def _digest(line: str) -> str:
    return hashlib.sha256(line.encode()).hexdigest()


def validate_audit_chain(log_path: Path) -> ChainValidationResult:
    """Check that every entry's ``prev_hash`` matches the line before it."""
    text = log_path.read_text().strip()
    if not text:
        return ChainValidationResult(valid=True)

    previous: str | None = None
    for number, line in enumerate(text.split("\n"), start=1):
        expected = _digest(previous) if previous is not None else None
        if json.loads(line).get("prev_hash") != expected:
            return ChainValidationResult(valid=False, broken_at_line=number)
        previous = line
    return ChainValidationResult(valid=True)


class AuditLogger:
    """Writes AuditEvents for webhook outcomes."""

    def __init__(
        self,
        log_path: str,
        max_bytes: int = 10_485_760,
        backup_count: int = 5,
    ) -> None:
        self.log_path = Path(log_path)
        self._max_bytes = max_bytes
        self._backup_count = backup_count
        self._last_line: str | None = None
        # Continue the chain from an existing log
        if self.log_path.exists():
            existing = self.log_path.read_text().strip()
            if existing:
                self._last_line = existing.rsplit("\n", 1)[-1]

    @classmethod
    def from_env(cls, log_path: str) -> AuditLogger:
        """Build a logger using AUDIT_LOG_MAX_BYTES / AUDIT_LOG_BACKUP_COUNT."""
        return cls(
            log_path=log_path,
            max_bytes=int(os.environ.get("AUDIT_LOG_MAX_BYTES", "10485760")),
            backup_count=int(os.environ.get("AUDIT_LOG_BACKUP_COUNT", "5")),
        )

    def _backup(self, index: int) -> Path:
        return self.log_path.with_name(f"{self.log_path.name}.{index}")

    def _maybe_rotate(self) -> None:
        if not self.log_path.exists() or self.log_path.stat().st_size < self._max_bytes:
            return
        self._backup(self._backup_count).unlink(missing_ok=True)
        for index in range(self._backup_count - 1, 0, -1):
            if self._backup(index).exists():
                self._backup(index).rename(self._backup(index + 1))
        self.log_path.rename(self._backup(1))

    def log(self, event: AuditEvent) -> None:
        self.log_path.parent.mkdir(parents=True, exist_ok=True)

        entry = event.model_dump(mode="json")
        entry["prev_hash"] = _digest(self._last_line) if self._last_line is not None else None
        line = json.dumps(entry, separators=(",", ":"))

        lock_path = self.log_path.with_name(f".{self.log_path.name}.lock")
        with open(lock_path, "w") as lock:
            fcntl.flock(lock, fcntl.LOCK_EX)
            try:
                self._maybe_rotate()
                with open(self.log_path, "a") as f:
                    f.write(line + "\n")
            finally:
                fcntl.flock(lock, fcntl.LOCK_UN)

        self._last_line = line
