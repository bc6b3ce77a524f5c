"""
Google Custom Search client for finding learning resources
"""
import asyncio
from typing import Any, Dict, List, Optional

import httpx

from app.config import Settings, get_settings
from app.schemas.roadmap import SearchResult
from app.services.exceptions import InvalidInputError, UpstreamError
from app.services.gateway import CircuitOpenError, ServiceGateway, get_gateway
from app.utils.logger import logger


SEARCH_SUFFIX = "tutorial course learn"
MAX_RESULTS = 10
DEFAULT_SNIPPET = "Explore this resource for your learning journey."

_MOCK_RESULTS = [
    {
        "title": "Full Course for Beginners - Learn the Fundamentals Step by Step",
        "link": "https://www.youtube.com/watch?v=mock-course",
        "snippet": "A complete beginner-friendly video course covering the fundamentals.",
    },
    {
        "title": "Specialization: Professional Certificate",
        "link": "https://www.coursera.org/professional-certificates/mock",
        "snippet": "Build job-ready skills with hands-on projects and graded assignments.",
    },
    {
        "title": "How do I get started? - Stack Overflow",
        "link": "https://stackoverflow.com/questions/0/mock",
        "snippet": "Community answers on where to begin and which resources to use.",
    },
    {
        "title": "The Complete Roadmap Guide",
        "link": "https://example.com/guides/roadmap",
        "snippet": None,
    },
]


class GoogleSearchClient:
    """Client for the Google Custom Search JSON API (async)"""

    def __init__(
        self,
        http_client: Optional[httpx.AsyncClient] = None,
        gateway: Optional[ServiceGateway] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self._http_client = http_client
        self._gateway = gateway

    @property
    def gateway(self) -> ServiceGateway:
        return self._gateway or get_gateway()

    async def search(self, query: str) -> List[SearchResult]:
        """
        Search for learning resources matching `query`.

        Returns up to MAX_RESULTS results in provider order. An empty list is a
        valid answer. Raises UpstreamError when the provider cannot be reached,
        answers with an error, or times out.
        """
        if not query or not query.strip():
            raise InvalidInputError("Search query is required")

        if self.settings.test_mode:
            logger.info(f"[TEST MODE] Returning mock search results for: {query}")
            return parse_search_items(_MOCK_RESULTS)

        if not self.settings.google_api_key or not self.settings.search_engine_id:
            raise UpstreamError(
                "Search provider is not configured. Set GOOGLE_API_KEY and SEARCH_ENGINE_ID, "
                "or set TEST_MODE=true to use mock data."
            )

        try:
            resp = await self.gateway.execute("google_search", self._fetch, query)
        except UpstreamError:
            raise
        except CircuitOpenError as e:
            raise UpstreamError(f"Search provider temporarily unavailable: {e}") from e
        except asyncio.TimeoutError as e:
            raise UpstreamError("Search provider timed out") from e
        except httpx.HTTPError as e:
            raise UpstreamError(f"Search request failed: {e}") from e

        # 4xx is about this request (bad key, quota, bad argument), not provider health
        if resp.status_code >= 400:
            raise _provider_error(resp)

        results = parse_search_items(_decode_payload(resp).get("items"))
        logger.info(
            "search.completed",
            extra={"service": "google_search", "query": query, "result_count": len(results)},
        )
        return results

    async def _fetch(self, query: str) -> httpx.Response:
        params = {
            "cx": self.settings.search_engine_id,
            "key": self.settings.google_api_key,
            "q": f"{query} {SEARCH_SUFFIX}",
            "num": MAX_RESULTS,
        }
        if self._http_client is not None:
            resp = await self._http_client.get(self.settings.search_api_url, params=params)
        else:
            async with httpx.AsyncClient() as client:
                resp = await client.get(self.settings.search_api_url, params=params)

        # Server-side failures count against the google_search circuit
        if resp.status_code >= 500:
            raise _provider_error(resp)
        return resp


def _provider_error(resp: httpx.Response) -> UpstreamError:
    return UpstreamError(
        f"Search provider error: {resp.status_code} - {_error_message(resp)}",
        status_code=resp.status_code,
    )


def _decode_payload(resp: httpx.Response) -> Dict[str, Any]:
    try:
        payload = resp.json()
    except ValueError as e:
        raise UpstreamError("Search provider returned a malformed response", status_code=resp.status_code) from e
    if not isinstance(payload, dict):
        raise UpstreamError("Search provider returned a malformed response", status_code=resp.status_code)
    return payload


def parse_search_items(items: Optional[List[Dict[str, Any]]]) -> List[SearchResult]:
    """Map raw provider items to SearchResult, keeping order and filling blank snippets."""
    results = []
    for item in (items or [])[:MAX_RESULTS]:
        results.append(
            SearchResult(
                title=item.get("title") or "",
                snippet=item.get("snippet") or DEFAULT_SNIPPET,
                link=item.get("link") or "",
            )
        )
    return results


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or "Unknown error"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return resp.text or "Unknown error"
