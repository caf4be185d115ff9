"""Exa web search client."""

import logging
from typing import Any, Optional

import httpx

from mindcoach.config import settings
from mindcoach.services.errors import ConfigurationError, ProviderError

logger = logging.getLogger(__name__)


class ExaSearchClient:
    """Calls the Exa /search endpoint with page contents."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.exa.ai",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def search(
        self,
        query: str,
        num_results: int = 10,
        search_type: str = "auto",
        category: Optional[str] = None,
        max_characters: int = 1000,
    ) -> list[dict[str, Any]]:
        """
        Search the web and return normalised results.

        Returns:
            List of dicts with id, title, url, publishedDate, author, score, text.

        Raises:
            ConfigurationError: If EXA_API_KEY is not configured
            ProviderError: If the request fails or returns a bad status
        """
        if not self.api_key:
            raise ConfigurationError("EXA_API_KEY not configured")

        payload: dict[str, Any] = {
            "query": query,
            "numResults": num_results,
            "type": search_type,
            "contents": {"text": {"maxCharacters": max_characters, "includeHtmlTags": False}},
        }
        if category:
            payload["category"] = category

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/search",
                    headers={"x-api-key": self.api_key, "Content-Type": "application/json"},
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            raise ProviderError(f"Exa search timeout: {e}") from e
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 429:
                raise ProviderError("Exa rate limit exceeded") from e
            raise ProviderError(f"Exa search failed with status {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(f"Exa search failed: {e}") from e

        results = [
            {
                "id": r.get("id") or r.get("url", ""),
                "title": r.get("title") or "Resource",
                "url": r.get("url", ""),
                "publishedDate": r.get("publishedDate"),
                "author": r.get("author"),
                "score": r.get("score"),
                "text": r.get("text") or r.get("snippet") or "",
            }
            for r in data.get("results", [])
            if r.get("url")
        ]
        logger.info(f"Exa search '{query[:60]}': {len(results)} result(s)")
        return results


def build_search_client() -> ExaSearchClient:
    return ExaSearchClient(
        api_key=settings.EXA_API_KEY,
        base_url=settings.EXA_BASE_URL,
        timeout=settings.SEARCH_TIMEOUT_SECONDS,
    )
