from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from movielog.errors import InvalidInput, NotFound, ProviderError

logger = logging.getLogger(__name__)


class TmdbClient:
    """Read-only wrapper around The Movie Database (TMDb) v3 API."""

    BASE_URL = "https://api.themoviedb.org/3"
    IMAGE_BASE_URL = "https://image.tmdb.org/t/p/"

    def __init__(self, api_key: str | None, base_url: str | None = None,
                 timeout: float = 10, session: requests.Session | None = None):
        self.api_key = api_key
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.http = session or requests.Session()

    # ------------------------------------------------------------------
    # Public
    # ------------------------------------------------------------------
    def search_movies(self, query: str, page: int = 1, language: str = "en-US",
                      include_adult: bool = False, year: Optional[int] = None) -> Dict[str, Any]:
        if not query or not query.strip():
            raise InvalidInput("Search query is required")
        payload = self._get("/search/movie", {
            "query": query,
            "page": page,
            "language": language,
            "include_adult": "true" if include_adult else "false",
            "year": year,
        })
        return self._listing(payload)

    def get_movie(self, tmdb_id: int, language: str = "en-US") -> Dict[str, Any]:
        return self._details(self._get(f"/movie/{tmdb_id}", {"language": language}))

    def popular(self, page: int = 1, language: str = "en-US", region: str | None = None):
        return self._listing(self._get("/movie/popular", self._page_params(page, language, region)))

    def now_playing(self, page: int = 1, language: str = "en-US", region: str | None = None):
        return self._listing(self._get("/movie/now_playing", self._page_params(page, language, region)))

    def upcoming(self, page: int = 1, language: str = "en-US", region: str | None = None):
        return self._listing(self._get("/movie/upcoming", self._page_params(page, language, region)))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _page_params(page, language, region):
        return {"page": page, "language": language, "region": region}

    def _get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        query = {k: v for k, v in params.items() if v is not None}
        query["api_key"] = self.api_key
        url = f"{self.base_url}{path}"
        try:
            r = self.http.get(url, params=query, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("TMDb request %s failed: %s", path, exc)
            raise ProviderError() from exc

        if r.status_code == 404:
            raise NotFound("Movie not found in TMDb")
        if r.status_code != 200:
            try:
                message = r.json().get("status_message")
            except ValueError:
                message = None
            logger.warning("TMDb %s returned %s: %s", path, r.status_code, message)
            raise ProviderError(f"TMDb request failed: {message or r.status_code}")
        return r.json()

    def _image(self, size: str, path: str | None) -> str | None:
        return f"{self.IMAGE_BASE_URL}{size}{path}" if path else None

    def _listing(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "page": payload.get("page"),
            "total_pages": payload.get("total_pages"),
            "total_results": payload.get("total_results"),
            "results": [
                {
                    "tmdb_id": m.get("id"),
                    "title": m.get("title"),
                    "poster_path": self._image("w200", m.get("poster_path")),
                    "release_date": m.get("release_date"),
                    "vote_average": m.get("vote_average"),
                }
                for m in payload.get("results", [])
            ],
        }

    def _details(self, movie: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "tmdb_id": movie.get("id"),
            "title": movie.get("title"),
            "original_title": movie.get("original_title"),
            "poster_path": self._image("w500", movie.get("poster_path")),
            "backdrop_path": self._image("original", movie.get("backdrop_path")),
            "release_date": movie.get("release_date"),
            "overview": movie.get("overview"),
            "genres": movie.get("genres") or [],
            "runtime": movie.get("runtime"),
            "vote_average": movie.get("vote_average"),
            "vote_count": movie.get("vote_count"),
            "popularity": movie.get("popularity"),
            "original_language": movie.get("original_language"),
        }
