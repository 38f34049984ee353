"""Search client integrating with SerpAPI to gather pricing and how-to material."""

from __future__ import annotations

from typing import Any, Dict, List

import httpx

from repair_api.utils.http import RetryConfig, request_with_retry


class WebSearchClient:
    """Perform localized web searches using SerpAPI."""

    _BASE_URL = "https://serpapi.com/search.json"

    def __init__(
        self,
        *,
        api_key: str,
        engine: str = "google",
        timeout_seconds: float = 10.0,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._api_key = api_key
        self._engine = engine
        self._timeout = timeout_seconds
        self._retry_config = retry_config or RetryConfig(attempts=2, backoff_seconds=0.5)

    async def search(
        self,
        query: str,
        *,
        location: str | None = None,
        country: str | None = None,
        num_results: int = 5,
    ) -> List[Dict[str, Any]]:
        """Execute a search query and return simplified organic results."""

        params: Dict[str, Any] = {
            "engine": self._engine,
            "q": query,
            "num": num_results,
            "api_key": self._api_key,
        }
        if location:
            params["location"] = location
        if country:
            params["gl"] = country.lower()

        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await request_with_retry(
                client.get,
                self._BASE_URL,
                params=params,
                retry_config=self._retry_config,
            )

        payload = response.json()
        results: List[Dict[str, Any]] = []
        for item in payload.get("organic_results", [])[:num_results]:
            results.append(
                {
                    "title": item.get("title"),
                    "link": item.get("link"),
                    "snippet": item.get("snippet"),
                }
            )
        return results


__all__ = ["WebSearchClient"]
