"""Cross-process forwarding for actor storage and live actor requests.

Bridge boundary
---------------
A caller running inside the service runtime cannot open host files, so
actor-storage operations travel as HTTP requests to the host-side storage
server (``flarescope.api.storage_server``).  ``ActorStorageBridge`` sends
method, path, query string and body through unchanged and hands the
host's response back as-is.  Identifiers placed into the path are
URL-escaped.

``RuntimeFetchProxy`` is the same mechanism pointed at the running service
itself, for the opaque ``fetch/*`` traffic addressed to a live instance.

Neither class retries.  An unset base URL or a transport failure raises
``StorageUnavailableError`` immediately.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import httpx

from flarescope.errors import StorageUnavailableError

logger = logging.getLogger(__name__)

# Headers that describe one hop and must not be copied to the next one
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "content-length",
        "content-encoding",
        "host",
        "keep-alive",
        "transfer-encoding",
        "upgrade",
    }
)


def escape_segment(value: str) -> str:
    """Escape one path segment the way ``encodeURIComponent`` does."""
    return quote(str(value), safe="!'()*-._~")


def strip_hop_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    return {k: v for k, v in (headers or {}).items() if k.lower() not in HOP_BY_HOP_HEADERS}


class _Forwarder:
    """Shared request forwarding over an ``httpx.Client``."""

    unavailable_message = "Forwarding target not available"
    unavailable_hint: str | None = None

    def __init__(
        self,
        base_url: str | None,
        *,
        client: httpx.Client | None = None,
        timeout_seconds: float = 30.0,
        connect_timeout_seconds: float = 2.0,
    ) -> None:
        self._base_url = (base_url or "").rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(timeout_seconds, connect=connect_timeout_seconds),
            follow_redirects=False,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def configured(self) -> bool:
        return bool(self._base_url)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> _Forwarder:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def _unavailable(self, detail: str) -> StorageUnavailableError:
        return StorageUnavailableError(f"{self.unavailable_message}: {detail}", hint=self.unavailable_hint)

    def forward(
        self,
        method: str,
        path: str,
        *,
        query: Any = None,
        body: bytes | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """Send one request to ``base_url + path`` and return the raw response.

        Raises
        ------
        StorageUnavailableError
            If no base URL is configured or the request cannot be delivered.
        """
        if not self.configured:
            raise self._unavailable("no address configured")
        url = f"{self._base_url}/{path.lstrip('/')}"
        try:
            return self._client.request(
                method.upper(),
                url,
                params=query or None,
                content=body or None,
                headers=strip_hop_headers(headers),
            )
        except httpx.RequestError as exc:
            logger.warning("%s %s failed: %s", method.upper(), url, exc)
            raise self._unavailable(str(exc) or exc.__class__.__name__) from exc


class ActorStorageBridge(_Forwarder):
    """Client for the host-side actor storage server.

    Parameters
    ----------
    base_url:
        Address of the storage server, e.g. ``http://127.0.0.1:54123``.
        ``None`` or empty makes every call fail with
        ``StorageUnavailableError``.
    client:
        Optional pre-built ``httpx.Client`` (tests pass a FastAPI
        ``TestClient``); it is not closed by ``close()``.
    """

    unavailable_message = "Actor storage server not available"

    @staticmethod
    def _instance_path(binding: str, instance_id: str, *rest: str) -> str:
        parts = [escape_segment(binding), escape_segment(instance_id), *rest]
        return "/do/" + "/".join(parts)

    def instances(self, binding: str) -> httpx.Response:
        return self.forward("GET", f"/do/{escape_segment(binding)}/instances")

    def schema(self, binding: str, instance_id: str) -> httpx.Response:
        return self.forward("GET", self._instance_path(binding, instance_id, "schema"))

    def table(self, binding: str, instance_id: str, table: str) -> httpx.Response:
        return self.forward(
            "GET", self._instance_path(binding, instance_id, "tables", escape_segment(table))
        )

    def rows(
        self, binding: str, instance_id: str, table: str, query: Any = None
    ) -> httpx.Response:
        return self.forward(
            "GET",
            self._instance_path(binding, instance_id, "tables", escape_segment(table), "rows"),
            query=query,
        )

    def kv(self, binding: str, instance_id: str, query: Any = None) -> httpx.Response:
        return self.forward("GET", self._instance_path(binding, instance_id, "kv"), query=query)

    def query(
        self,
        binding: str,
        instance_id: str,
        body: bytes | None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        return self.forward(
            "POST",
            self._instance_path(binding, instance_id, "query"),
            body=body,
            headers=headers or {"content-type": "application/json"},
        )


ACTOR_BINDING_HEADER = "X-Flarescope-Actor-Binding"
ACTOR_ID_HEADER = "X-Flarescope-Actor-Id"


class RuntimeFetchProxy(_Forwarder):
    """Forwards arbitrary requests for a live actor instance to the service.

    The target binding and instance travel in the ``X-Flarescope-Actor-*``
    headers; the remaining path, query and body are passed through.
    """

    unavailable_message = "Service runtime not available"
    unavailable_hint = "Start the service runtime or set FLARESCOPE_RUNTIME_URL."

    def fetch(
        self,
        binding: str,
        instance_id: str,
        method: str,
        path: str,
        *,
        query: Any = None,
        body: bytes | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        merged = strip_hop_headers(headers)
        merged[ACTOR_BINDING_HEADER] = binding
        merged[ACTOR_ID_HEADER] = instance_id
        send_body = body if method.upper() not in ("GET", "HEAD") else None
        return self.forward(method, path, query=query, body=send_body, headers=merged)
