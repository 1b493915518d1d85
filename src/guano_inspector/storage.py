"""Object store adapters.

The pipeline only depends on the `ObjectStore` protocol below. Two adapters
are provided:

* `LocalObjectStore` keeps objects as files under a root directory (the
  layout used by single-host deployments where uploads land in
  `/tmp/uploads`). Signed URLs are `file://` URLs carrying an HMAC-SHA256
  signature over `mode:key:expires`.
* `HttpObjectStore` talks to an object gateway over HTTP:

      GET    {base}/?prefix=<p>        -> {"items": [{name, key, size, createdAt}]}
      HEAD   {base}/{key}              -> Content-Length, Last-Modified
      GET    {base}/{key}  Range: bytes=<start>-  (no Range from 0; 416 means empty)
      DELETE {base}/{key}
      POST   {base}/sign  {key, ttlSeconds, mode} -> {"url": ...}

  Transient transport errors are retried with exponential backoff. Anything
  that still fails surfaces as `StorageError`.

Both adapters are async context managers so callers can scope the lifetime of
pooled connections to a single CLI run or request.
"""
from __future__ import annotations

import asyncio
import hashlib
import hmac
import logging
import os
import time
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, runtime_checkable
from urllib.parse import quote, urlencode

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from .config import Settings
from .errors import StorageError
from .models.files import StoredFile

logger = logging.getLogger(__name__)

SIGNED_URL_MODES = ("read", "write")


@runtime_checkable
class ObjectStore(Protocol):
    """Minimal object-store surface used by the pipeline."""

    async def list(self, prefix: str) -> List[StoredFile]:
        ...

    async def stat(self, key: str) -> StoredFile:
        ...

    async def read_range(self, key: str, start_byte: int) -> bytes:
        """Return the bytes from `start_byte` to the end of the object."""
        ...

    async def delete(self, key: str) -> None:
        ...

    async def signed_url(self, key: str, ttl: int, mode: str = "read") -> str:
        ...


def _check_mode(mode: str) -> None:
    if mode not in SIGNED_URL_MODES:
        raise ValueError(f"unsupported signed URL mode {mode!r}; expected one of {SIGNED_URL_MODES}")


class LocalObjectStore:
    """Filesystem-backed object store rooted at a directory."""

    def __init__(self, root: str | Path, *, signing_secret: str = ""):
        self.root = Path(root).resolve()
        self._secret = signing_secret.encode("utf-8")

    async def __aenter__(self) -> "LocalObjectStore":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        return None

    def _path(self, key: str) -> Path:
        path = (self.root / key.lstrip("/")).resolve()
        if path != self.root and self.root not in path.parents:
            raise StorageError(f"key escapes storage root: {key}", key=key)
        return path

    def _describe(self, key: str, path: Path) -> StoredFile:
        st = path.stat()
        return StoredFile(
            name=path.name,
            key=key,
            size=st.st_size,
            created_at=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
        )

    async def list(self, prefix: str) -> List[StoredFile]:
        def _scan() -> List[StoredFile]:
            directory = self._path(prefix) if prefix else self.root
            if not directory.is_dir():
                return []
            base = prefix if not prefix or prefix.endswith("/") else f"{prefix}/"
            return [
                self._describe(f"{base}{entry.name}", entry)
                for entry in directory.iterdir()
                if entry.is_file()
            ]

        try:
            return await asyncio.to_thread(_scan)
        except OSError as e:
            raise StorageError(f"list failed prefix={prefix!r}: {e}", key=prefix, cause=e) from e

    async def stat(self, key: str) -> StoredFile:
        path = self._path(key)
        try:
            return await asyncio.to_thread(self._describe, key, path)
        except OSError as e:
            raise StorageError(f"stat failed key={key}: {e}", key=key, cause=e) from e

    async def read_range(self, key: str, start_byte: int) -> bytes:
        path = self._path(key)

        def _read() -> bytes:
            with open(path, "rb") as f:
                f.seek(start_byte)
                return f.read()

        try:
            return await asyncio.to_thread(_read)
        except OSError as e:
            raise StorageError(f"read failed key={key}: {e}", key=key, cause=e) from e

    async def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            await asyncio.to_thread(os.unlink, path)
        except OSError as e:
            raise StorageError(f"delete failed key={key}: {e}", key=key, cause=e) from e
        logger.info("storage deleted key=%s", key)

    def _signature(self, mode: str, key: str, expires: int) -> str:
        message = f"{mode}:{key}:{expires}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    async def signed_url(self, key: str, ttl: int, mode: str = "read") -> str:
        _check_mode(mode)
        if not self._secret:
            raise StorageError("SIGNING_SECRET is empty; cannot sign URLs", key=key)
        path = self._path(key)
        expires = int(time.time()) + int(ttl)
        query = urlencode(
            {"mode": mode, "expires": expires, "signature": self._signature(mode, key, expires)}
        )
        return f"{path.as_uri()}?{query}"

    def verify_signature(self, key: str, mode: str, expires: int, signature: str) -> bool:
        """Check a signature minted by `signed_url` (expiry included)."""
        if expires < int(time.time()):
            return False
        return hmac.compare_digest(self._signature(mode, key, expires), signature)


class HttpObjectStore:
    """Object store reached through an HTTP gateway."""

    def __init__(
        self,
        base_url: str,
        *,
        token: str = "",
        timeout: int = 30,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not base_url:
            raise StorageError("OBJECT_STORE_URL is empty; cannot reach object gateway")
        self.base = base_url.rstrip("/")
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._headers = headers

    async def __aenter__(self) -> "HttpObjectStore":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _url(self, key: str) -> str:
        return f"{self.base}/{quote(key.lstrip('/'), safe='/')}"

    @retry(
        reraise=True,
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(httpx.TransportError),
    )
    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        headers = {**self._headers, **kwargs.pop("headers", {})}
        return await self._client.request(method, url, headers=headers, **kwargs)

    async def _request(
        self, op: str, key: str, method: str, url: str, *, ok: tuple[int, ...] = (200,), **kwargs: Any
    ) -> httpx.Response:
        try:
            resp = await self._send(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise StorageError(f"{op} request failed key={key}: {e}", key=key, cause=e) from e
        if resp.status_code not in ok:
            raise StorageError(
                f"{op} failed key={key} status={resp.status_code} body={resp.text[:300]}",
                key=key,
            )
        return resp

    @staticmethod
    def _parse_item(item: Dict[str, Any]) -> StoredFile:
        key = str(item.get("key") or item.get("name") or "")
        return StoredFile(
            name=str(item.get("name") or key.rsplit("/", 1)[-1]),
            key=key,
            size=int(item.get("size") or 0),
            created_at=item.get("createdAt") or None,
        )

    async def list(self, prefix: str) -> List[StoredFile]:
        resp = await self._request("list", prefix, "GET", f"{self.base}/", params={"prefix": prefix})
        try:
            body = resp.json()
            items = body.get("items", []) if isinstance(body, dict) else body
            return [self._parse_item(item) for item in items]
        except (ValueError, TypeError, AttributeError) as e:
            raise StorageError(f"invalid list response prefix={prefix!r}: {e}", key=prefix, cause=e) from e

    async def stat(self, key: str) -> StoredFile:
        resp = await self._request("stat", key, "HEAD", self._url(key))
        length = resp.headers.get("content-length")
        if length is None:
            raise StorageError(f"stat failed key={key}: missing Content-Length", key=key)
        created_at: Optional[datetime] = None
        last_modified = resp.headers.get("last-modified")
        if last_modified:
            try:
                created_at = parsedate_to_datetime(last_modified)
            except (TypeError, ValueError):
                logger.debug("storage unparsable Last-Modified key=%s value=%r", key, last_modified)
        return StoredFile(name=key.rsplit("/", 1)[-1], key=key, size=int(length), created_at=created_at)

    async def read_range(self, key: str, start_byte: int) -> bytes:
        # bytes=0- is unsatisfiable for an empty object; a plain GET is equivalent
        headers = {"Range": f"bytes={start_byte}-"} if start_byte else {}
        resp = await self._request(
            "read",
            key,
            "GET",
            self._url(key),
            ok=(200, 206, 416),
            headers=headers,
        )
        if resp.status_code == 416:
            logger.debug("storage range past end key=%s start=%s", key, start_byte)
            return b""
        if resp.status_code == 200 and start_byte:
            # Gateway ignored the Range header and sent the whole object.
            logger.debug("storage range ignored key=%s start=%s; slicing locally", key, start_byte)
            return resp.content[start_byte:]
        return resp.content

    async def delete(self, key: str) -> None:
        await self._request("delete", key, "DELETE", self._url(key), ok=(200, 202, 204))
        logger.info("storage deleted key=%s", key)

    async def signed_url(self, key: str, ttl: int, mode: str = "read") -> str:
        _check_mode(mode)
        resp = await self._request(
            "sign",
            key,
            "POST",
            f"{self.base}/sign",
            json={"key": key, "ttlSeconds": int(ttl), "mode": mode},
        )
        try:
            url = resp.json().get("url")
        except (ValueError, AttributeError) as e:
            raise StorageError(f"invalid sign response key={key}: {e}", key=key, cause=e) from e
        if not url:
            raise StorageError(f"sign failed key={key}: no url in response", key=key)
        return str(url)


def build_store(settings: Settings) -> LocalObjectStore | HttpObjectStore:
    """Instantiate the adapter selected by `STORAGE_BACKEND`."""
    if settings.STORAGE_BACKEND == "local":
        return LocalObjectStore(settings.LOCAL_STORAGE_ROOT, signing_secret=settings.SIGNING_SECRET)
    if settings.STORAGE_BACKEND == "http":
        return HttpObjectStore(
            settings.OBJECT_STORE_URL,
            token=settings.OBJECT_STORE_TOKEN,
            timeout=settings.OBJECT_STORE_TIMEOUT,
        )
    raise StorageError(f"unknown STORAGE_BACKEND {settings.STORAGE_BACKEND!r}")


__all__ = [
    "HttpObjectStore",
    "LocalObjectStore",
    "ObjectStore",
    "SIGNED_URL_MODES",
    "build_store",
]
