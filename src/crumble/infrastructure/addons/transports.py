"""Transport strategies for fetching addon stream URLs.

Each strategy implements ``TransportStrategyPort``: it either returns a
structurally valid payload or raises ``TransientNetworkError`` (timeout,
connection failure, non-2xx) / ``InvalidResponseShape`` (not JSON, or no
stream array).
"""

from __future__ import annotations

import json
import re
import uuid
from collections.abc import Mapping, Sequence
from typing import Any
from urllib.parse import quote

import httpx
import structlog

from crumble.domain.entities.errors import InvalidResponseShape, TransientNetworkError
from crumble.infrastructure.addons.constants import (
    DEFAULT_USER_AGENT,
    STREAM_ARRAY_KEYS,
    STREMIO_ORIGIN,
    STREMIO_USER_AGENT,
)
from crumble.infrastructure.addons.proxy_health import ProxyHealthTracker
from crumble.infrastructure.config.schema import CorsRelayConfig

log = structlog.get_logger(__name__)

_JSON_ACCEPT = "application/json, text/plain, */*"


def validate_stream_payload(data: Any) -> dict[str, Any]:
    """Return *data* if it is an object holding a stream array, else raise."""
    if not isinstance(data, Mapping):
        raise InvalidResponseShape(f"expected JSON object, got {type(data).__name__}")
    if not any(isinstance(data.get(k), list) for k in STREAM_ARRAY_KEYS):
        raise InvalidResponseShape("payload has no 'streams' or 'results' array")
    return dict(data)


def parse_stream_payload(text: str) -> dict[str, Any]:
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise InvalidResponseShape(f"invalid JSON: {exc}") from exc
    return validate_stream_payload(data)


async def _send(
    http: httpx.AsyncClient,
    url: str,
    *,
    headers: Mapping[str, str] | None = None,
    params: Mapping[str, str] | None = None,
) -> httpx.Response:
    """GET *url*; map every network failure and non-2xx to TransientNetworkError."""
    try:
        resp = await http.get(url, headers=headers, params=params)
    except httpx.TimeoutException as exc:
        raise TransientNetworkError(f"timeout fetching {url}") from exc
    except httpx.HTTPError as exc:
        raise TransientNetworkError(f"network error fetching {url}: {exc}") from exc

    if not resp.is_success:
        raise TransientNetworkError(f"HTTP {resp.status_code} from {url}")
    return resp


class DirectTransport:
    """Plain GET with a browser-realistic header set."""

    name = "direct"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._http = http_client
        self._headers = {
            "User-Agent": user_agent,
            "Accept": _JSON_ACCEPT,
            "Accept-Language": "en-US,en;q=0.9",
            "Cache-Control": "no-cache",
        }

    async def fetch(self, url: str) -> dict[str, Any]:
        resp = await _send(self._http, url, headers=self._headers)
        return parse_stream_payload(resp.text)


class HeaderVariantTransport:
    """GET presenting as the official Stremio desktop client."""

    name = "alternate_headers"

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self._http = http_client
        self._headers = {
            "User-Agent": STREMIO_USER_AGENT,
            "Accept": _JSON_ACCEPT,
            "Origin": STREMIO_ORIGIN,
            "Referer": f"{STREMIO_ORIGIN}/",
        }

    async def fetch(self, url: str) -> dict[str, Any]:
        resp = await _send(self._http, url, headers=self._headers)
        return parse_stream_payload(resp.text)


class ScriptTagTransport:
    """JSONP-style request: ``?callback=<name>`` and strip the ``name(...)`` wrapper.

    Each request gets a fresh callback name so concurrent requests never
    share one.  Addons that ignore the parameter and answer with plain
    JSON are accepted as well.
    """

    name = "script_tag"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
    ) -> None:
        self._http = http_client
        self._headers = {"User-Agent": user_agent, "Accept": "*/*"}

    @staticmethod
    def new_callback_name() -> str:
        return f"crumble_cb_{uuid.uuid4().hex}"

    @staticmethod
    def unwrap(body: str, callback: str) -> str:
        match = re.match(
            rf"^\s*(?:/\*\*/\s*)?{re.escape(callback)}\s*\((.*)\)\s*;?\s*$",
            body,
            re.DOTALL,
        )
        return match.group(1) if match else body

    async def fetch(self, url: str) -> dict[str, Any]:
        callback = self.new_callback_name()
        resp = await _send(
            self._http, url, headers=self._headers, params={"callback": callback}
        )
        return parse_stream_payload(self.unwrap(resp.text, callback))


class ProxyTransport:
    """Route the request through third-party CORS relays.

    Relays are tried in configured order, skipping those the
    ``ProxyHealthTracker`` considers ineligible.  A relay that cannot
    deliver the upstream body (network error, non-2xx, broken envelope,
    non-JSON body) counts as a relay failure and the next relay is tried.
    A relay that delivers JSON counts as a success even when the addon's
    payload itself has the wrong shape.
    """

    name = "proxy"

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        relays: Sequence[CorsRelayConfig],
        health: ProxyHealthTracker,
    ) -> None:
        self._http = http_client
        self._relays = list(relays)
        self._health = health

    @staticmethod
    def relay_url(relay: CorsRelayConfig, target: str) -> str:
        return f"{relay.prefix}{quote(target, safe='')}"

    @staticmethod
    def _unwrap(relay: CorsRelayConfig, resp: httpx.Response) -> Any:
        """Decode the relay body. A mangled body is the relay's fault (transient)."""
        try:
            body = resp.json()
        except ValueError as exc:
            raise TransientNetworkError(f"relay {relay.id} returned non-JSON") from exc

        if relay.envelope == "raw":
            return body

        contents = body.get("contents") if isinstance(body, Mapping) else None
        if not isinstance(contents, str):
            raise TransientNetworkError(f"relay {relay.id} returned no contents")
        try:
            return json.loads(contents)
        except ValueError as exc:
            raise InvalidResponseShape(
                f"relay {relay.id} contents are not JSON"
            ) from exc

    async def fetch(self, url: str) -> dict[str, Any]:
        last_error: TransientNetworkError | None = None
        for relay in self._relays:
            if not self._health.is_eligible(relay.id):
                continue
            try:
                resp = await _send(self._http, self.relay_url(relay, url))
                data = self._unwrap(relay, resp)
            except TransientNetworkError as exc:
                self._health.record_failure(relay.id)
                log.debug("relay_failed", relay_id=relay.id, url=url, error=str(exc))
                last_error = exc
                continue
            except InvalidResponseShape:
                self._health.record_success(relay.id)
                raise

            self._health.record_success(relay.id)
            return validate_stream_payload(data)

        if last_error is None:
            raise TransientNetworkError("no eligible CORS relays")
        raise last_error
