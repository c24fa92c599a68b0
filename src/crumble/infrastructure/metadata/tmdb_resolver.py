"""Alternate-identifier lookup backed by the TMDB v3 API."""

from __future__ import annotations

import re
from typing import Any

import httpx
import structlog

from crumble.domain.entities.errors import ResolutionFailed
from crumble.domain.entities.streams import MediaType

log = structlog.get_logger(__name__)

_BASE_URL = "https://api.themoviedb.org/3"

_IMDB_ID = re.compile(r"^tt\d+$")
_TMDB_ID = re.compile(r"^(?:tmdb:)?(\d+)$")


class TmdbIdResolver:
    """Implements ``IdResolverPort``.

    - ``tt1234567`` -> ``tmdb:<id>`` via ``/find``
    - ``tmdb:603`` or ``603`` -> ``tt...`` via ``/{movie|tv}/{id}/external_ids``

    Answers are memoized for the lifetime of the resolver, misses included.
    """

    def __init__(self, *, api_key: str, http_client: httpx.AsyncClient) -> None:
        self._api_key = api_key
        self._http = http_client
        self._memo: dict[tuple[MediaType, str], str | None] = {}

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    async def _get(self, path: str, **params: Any) -> dict[str, Any] | None:
        """GET with error mapping. None = TMDB has no such resource."""
        url = f"{_BASE_URL}{path}"
        try:
            resp = await self._http.get(
                url, params={"api_key": self._api_key, **params}
            )
        except httpx.HTTPError as exc:
            log.warning("tmdb_network_error", path=path, exc_info=True)
            raise ResolutionFailed(f"TMDB request failed: {path}") from exc

        if resp.status_code == 404:
            log.debug("tmdb_resource_not_found", path=path)
            return None
        if resp.status_code == 401:
            log.error("tmdb_api_key_invalid", status=401)
            raise ResolutionFailed("TMDB rejected the API key")
        if not resp.is_success:
            log.warning("tmdb_http_error", path=path, status=resp.status_code)
            raise ResolutionFailed(f"TMDB returned HTTP {resp.status_code}: {path}")

        try:
            data = resp.json()
        except ValueError as exc:
            raise ResolutionFailed(f"TMDB returned invalid JSON: {path}") from exc
        return data if isinstance(data, dict) else None

    async def _imdb_to_tmdb(self, media_type: MediaType, imdb_id: str) -> str | None:
        data = await self._get(f"/find/{imdb_id}", external_source="imdb_id")
        if data is None:
            return None

        preferred = "tv_results" if media_type == "series" else "movie_results"
        for key in (preferred, "movie_results", "tv_results"):
            results = data.get(key) or []
            if results and isinstance(results[0], dict) and results[0].get("id"):
                return f"tmdb:{results[0]['id']}"
        return None

    async def _tmdb_to_imdb(self, media_type: MediaType, tmdb_id: str) -> str | None:
        kind = "tv" if media_type == "series" else "movie"
        data = await self._get(f"/{kind}/{tmdb_id}/external_ids")
        if data is None:
            return None
        imdb_id = data.get("imdb_id")
        return imdb_id if isinstance(imdb_id, str) and imdb_id else None

    # ------------------------------------------------------------------
    # Public API (IdResolverPort)
    # ------------------------------------------------------------------

    async def resolve(self, media_type: MediaType, primary_id: str) -> str | None:
        key = (media_type, primary_id)
        if key in self._memo:
            return self._memo[key]

        if _IMDB_ID.match(primary_id):
            result = await self._imdb_to_tmdb(media_type, primary_id)
        else:
            match = _TMDB_ID.match(primary_id)
            if match:
                result = await self._tmdb_to_imdb(media_type, match.group(1))
            else:
                log.debug("tmdb_unsupported_id", media_id=primary_id)
                result = None

        self._memo[key] = result
        log.info(
            "alternate_id_resolved",
            media_type=media_type,
            media_id=primary_id,
            alternate_id=result,
        )
        return result


class NullIdResolver:
    """Resolver used when no metadata API key is configured."""

    async def resolve(self, media_type: MediaType, primary_id: str) -> str | None:
        return None
