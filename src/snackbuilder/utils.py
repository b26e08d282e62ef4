# src/snackbuilder/utils.py
from __future__ import annotations

import hashlib
import json
from datetime import datetime, timezone
from typing import Any


class ValidationError(ValueError):
    """
    An illegal path (absolute, or with a ".." component) appeared in a header.

    Fatal to the whole parse: callers must surface `path` to the end user.
    """

    def __init__(self, path: str):
        super().__init__(f"Illegal path in header: {path!r}")
        self.path = path


def utc_ts() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%SZ")


def sha256_bytes(b: bytes) -> str:
    h = hashlib.sha256()
    h.update(b)
    return h.hexdigest()


def sha256_text(s: str) -> str:
    return sha256_bytes(s.encode("utf-8"))


def assert_safe_relpath(path: str) -> None:
    """
    Hard contract: file map keys are relative POSIX paths without parent traversal.
    """
    if not path or path.startswith("/") or ".." in path.split("/"):
        raise ValidationError(path)


# -----------------------------
# Stable fingerprint helpers
# -----------------------------
# Used for deterministic job ids and payload hashes; must be stable across processes.

VOLATILE_KEYS_DEFAULT: set[str] = {
    "job_id",
    "timestamp_utc",
}


def _strip_volatile(obj: Any, volatile_keys: set[str]) -> Any:
    if isinstance(obj, dict):
        return {k: _strip_volatile(v, volatile_keys) for k, v in obj.items() if k not in volatile_keys}
    if isinstance(obj, list):
        return [_strip_volatile(x, volatile_keys) for x in obj]
    return obj


def stable_json_dumps(obj: Any) -> str:
    """
    Deterministic JSON serialization (sorted keys, compact separators, unicode kept).
    """
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def stable_json_fingerprint_sha256(obj: Any, volatile_keys: set[str] | None = None) -> str:
    vk = set(VOLATILE_KEYS_DEFAULT) if volatile_keys is None else set(volatile_keys)
    return sha256_text(stable_json_dumps(_strip_volatile(obj, vk)))
