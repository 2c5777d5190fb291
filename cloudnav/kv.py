"""
Key-value backends: EdgeOne KV REST API, a local JSON file, and in-memory.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Protocol
from urllib.parse import quote

import requests

logger = logging.getLogger(__name__)

EDGEONE_API_BASE = "https://api.edgeone.qq.com/v1/kv"
EDGEONE_API_VERSION = "2022-09-01"
EDGEONE_REGION = "ap-guangzhou"


class KVStoreError(Exception):
    """Raised when the backing store cannot serve a get or put."""


class KVStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        ...


def _expires_at(ttl: Optional[int]) -> Optional[float]:
    return time.time() + ttl if ttl else None


def _is_expired(entry: Dict[str, Any]) -> bool:
    expires = entry.get("expires_at")
    return expires is not None and time.time() >= expires


@dataclass
class InMemoryKVStore:
    """Process-local store, used in tests and throwaway runs."""

    entries: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    def get(self, key: str) -> Optional[str]:
        entry = self.entries.get(key)
        if entry is None:
            return None
        if _is_expired(entry):
            del self.entries[key]
            return None
        return entry["value"]

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        self.entries[key] = {"value": value, "expires_at": _expires_at(ttl)}

    def reset(self) -> None:
        self.entries.clear()


@dataclass
class FileKVStore:
    """
    Every key lives in one JSON file on disk. The whole file is read on each
    get and replaced atomically on each put; a lock serializes access within
    the process.
    """

    path: Path
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def __post_init__(self):
        self.path = Path(self.path)

    def _load(self) -> Dict[str, Dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as exc:
            raise KVStoreError(f"Cannot read {self.path}: {exc}") from exc

    def _save(self, entries: Dict[str, Dict[str, Any]]) -> None:
        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=directory,
                prefix=f".{self.path.name}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                json.dump(entries, f, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if tmp_name and os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise KVStoreError(f"Cannot write {self.path}: {exc}") from exc

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._load().get(key)
        if entry is None or _is_expired(entry):
            return None
        return entry["value"]

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        with self._lock:
            entries = {k: v for k, v in self._load().items() if not _is_expired(v)}
            entries[key] = {"value": value, "expires_at": _expires_at(ttl)}
            self._save(entries)


@dataclass
class EdgeOneKVClient:
    """
    Client for the EdgeOne KV REST API.

    The Authorization header only carries the API key as a credential; no
    TC3 signature is computed.
    """

    namespace: str
    api_key: str
    api_secret: str = ""
    timeout: float = 15.0
    session: requests.Session = field(default_factory=requests.Session)

    def _url(self, key: str) -> str:
        return f"{EDGEONE_API_BASE}/{self.namespace}/keys/{quote(key, safe='')}"

    def _headers(self) -> Dict[str, str]:
        timestamp = int(time.time())
        return {
            "Authorization": (
                f"TC3-HMAC-SHA256 Credential={self.api_key}/{timestamp}/edgeone/tc3_request"
            ),
            "Content-Type": "application/json",
            "X-TC-Timestamp": str(timestamp),
            "X-TC-Version": EDGEONE_API_VERSION,
            "X-TC-Region": EDGEONE_REGION,
        }

    def get(self, key: str) -> Optional[str]:
        url = self._url(key)
        logger.debug("KV GET %s (namespace=%s)", key, self.namespace)
        try:
            resp = self.session.get(url, headers=self._headers(), timeout=self.timeout)
        except requests.RequestException as exc:
            raise KVStoreError(f"KV GET {key} failed: {exc}") from exc

        logger.debug("KV GET %s -> %s", key, resp.status_code)
        if resp.status_code == 404:
            return None
        if not resp.ok:
            raise KVStoreError(f"KV GET error: {resp.status_code} {resp.text}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise KVStoreError("Invalid KV GET response body") from exc
        if not isinstance(data, dict) or "value" not in data:
            raise KVStoreError("Invalid KV GET response format")
        return data["value"]

    def put(self, key: str, value: str, ttl: Optional[int] = None) -> None:
        body: Dict[str, Any] = {"value": value}
        if ttl:
            body["expiration"] = ttl

        logger.debug("KV PUT %s (namespace=%s, ttl=%s)", key, self.namespace, ttl)
        try:
            resp = self.session.put(
                self._url(key),
                headers=self._headers(),
                data=json.dumps(body),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise KVStoreError(f"KV PUT {key} failed: {exc}") from exc

        logger.debug("KV PUT %s -> %s", key, resp.status_code)
        if not resp.ok:
            raise KVStoreError(f"KV PUT error: {resp.status_code} {resp.text}")
