# src/snackbuilder/store.py
from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Callable, Protocol

import boto3

JSON_CONTENT_TYPE = "application/json"


def payload_key(job_id: str) -> str:
    return f"snacks/{job_id}.json"


class PayloadStore(Protocol):
    def put(self, key: str, body: bytes, content_type: str = JSON_CONTENT_TYPE) -> str:
        """Store body under key and return a URL the preview service can read."""
        ...

    def get(self, key: str) -> bytes | None:
        ...


class MemoryPayloadStore:
    """
    Staged payloads handed from a write to a later read inside one process.

    - entries expire `ttl_seconds` after they were written
    - at most `max_entries` are kept; the oldest write is evicted first
    """

    def __init__(
            self,
            ttl_seconds: float = 600.0,
            max_entries: int = 256,
            clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        if max_entries <= 0:
            raise ValueError("max_entries must be > 0")
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._items: OrderedDict[str, tuple[float, bytes, str]] = OrderedDict()
        self._lock = threading.Lock()

    def _purge_expired(self, now: float) -> None:
        for k in [k for k, (exp, _, _) in self._items.items() if exp <= now]:
            del self._items[k]

    def put(self, key: str, body: bytes, content_type: str = JSON_CONTENT_TYPE) -> str:
        with self._lock:
            now = self._clock()
            self._purge_expired(now)
            self._items.pop(key, None)
            self._items[key] = (now + self.ttl_seconds, bytes(body), content_type)
            while len(self._items) > self.max_entries:
                self._items.popitem(last=False)
        return f"memory://{key}"

    def get(self, key: str) -> bytes | None:
        with self._lock:
            item = self._items.get(key)
            if item is None:
                return None
            expires_at, body, _ = item
            if expires_at <= self._clock():
                del self._items[key]
                return None
            return body

    def __len__(self) -> int:
        with self._lock:
            self._purge_expired(self._clock())
            return len(self._items)


@dataclass
class S3PayloadStore:
    bucket: str
    prefix: str = ""
    region: str | None = None
    url_expires_in: int = 3600
    client: Any = field(default=None, repr=False)

    def __post_init__(self):
        # region may be None; boto3 will use env/config
        if self.client is None:
            self.client = boto3.client("s3", region_name=self.region)

    def _key(self, rel_key: str) -> str:
        rel_key = rel_key.lstrip("/")
        prefix = self.prefix.strip("/")
        return f"{prefix}/{rel_key}" if prefix else rel_key

    def put(self, key: str, body: bytes, content_type: str = JSON_CONTENT_TYPE) -> str:
        full_key = self._key(key)
        self.client.put_object(
            Bucket=self.bucket,
            Key=full_key,
            Body=body,
            ContentType=content_type,
            # the preview service must never see a stale payload
            CacheControl="no-cache, max-age=0",
            ServerSideEncryption="AES256",
        )
        return self.client.generate_presigned_url(
            "get_object",
            Params={"Bucket": self.bucket, "Key": full_key},
            ExpiresIn=self.url_expires_in,
        )

    def get(self, key: str) -> bytes | None:
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=self._key(key))
        except self.client.exceptions.NoSuchKey:
            return None
        return resp["Body"].read()
