# api_client.py
"""Backend REST API client with an injectable response cache."""

import json
import threading
import time
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import config
from .errors import (
    BackendAPIError,
    ErrorCategory,
    LeadForgeError,
    create_api_error,
    retry_call,
)
from .logging_utils import get_logger
from .models import AnalyzedBusinessRecord, BusinessRecord

BACKEND_UNAVAILABLE_MESSAGE = (
    "The backend AI service is currently unavailable. Please try again in a moment."
)


class CacheTTL:
    """Response cache lifetimes in seconds."""

    DEFAULT = 5 * 60
    STATIC = 60 * 60
    SHORT = 30


@dataclass
class _CacheEntry:
    value: Any
    expires_at: float


class ResponseCache:
    """TTL response cache with in-flight request de-duplication.

    One instance is owned by each BackendClient, so tests and separate
    clients never share cached responses.
    """

    def __init__(
        self,
        default_ttl: float = CacheTTL.DEFAULT,
        sweep_interval: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self.sweep_interval = sweep_interval
        self._clock = clock
        self._entries: Dict[str, _CacheEntry] = {}
        self._in_flight: Dict[str, Future] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    @staticmethod
    def make_key(url: str, method: str = "GET", body: Any = None) -> str:
        return json.dumps({"url": url, "method": method.upper(), "body": body}, sort_keys=True, default=str)

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> Optional[Any]:
        """Return a live cached value, or None."""
        with self._lock:
            self._maybe_sweep()
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.expires_at <= self._clock():
                del self._entries[key]
                return None
            return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        with self._lock:
            lifetime = self.default_ttl if ttl is None else ttl
            self._entries[key] = _CacheEntry(value, self._clock() + lifetime)

    def invalidate(self, prefix: str = "") -> int:
        """Drop entries whose url starts with prefix. Returns the number dropped."""
        with self._lock:
            doomed = [
                k for k in self._entries
                if json.loads(k).get("url", "").startswith(prefix)
            ]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def sweep(self) -> int:
        """Remove expired entries. Returns the number removed."""
        with self._lock:
            return self._sweep_locked()

    def _maybe_sweep(self) -> None:
        if self._clock() - self._last_sweep >= self.sweep_interval:
            self._sweep_locked()

    def _sweep_locked(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._last_sweep = now
        return len(expired)

    def dedupe(self, key: str, fn: Callable[[], Any]) -> Any:
        """Run fn once for concurrent callers sharing the same key.

        The first caller executes fn; callers arriving while it runs wait for
        and receive the same result (or exception).
        """
        with self._lock:
            future = self._in_flight.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._in_flight[key] = future

        if not owner:
            return future.result()

        try:
            result = fn()
        except BaseException as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._in_flight.pop(key, None)


def _should_retry_request(error: BaseException) -> bool:
    """Retry when there was no response at all or the server failed."""
    if isinstance(error, LeadForgeError):
        return error.status_code is None or error.status_code >= 500
    return isinstance(error, requests.RequestException)


def _json_object(result: Any, path: str) -> Dict[str, Any]:
    """An empty body becomes {}; any other non-object body is an error."""
    if result is None or result == "":
        return {}
    if not isinstance(result, dict):
        raise BackendAPIError(
            f"Unexpected response from {path}: expected a JSON object",
            category=ErrorCategory.SERVER,
            context={"path": path, "type": type(result).__name__},
        )
    return result


class BackendClient:
    """Client for the lead-generation backend REST API.

    GET requests are cached and retried; POST, PUT, PATCH and DELETE are
    neither cached nor retried.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        cache: Optional[ResponseCache] = None,
        timeout: Optional[int] = None,
        session: Optional[requests.Session] = None,
        max_attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the backend client.

        Args:
            base_url: API base URL. Defaults to BACKEND_API_URL.
            cache: Response cache. A fresh one is created when omitted.
            timeout: Request timeout in seconds.
            session: Pre-built requests session.
            max_attempts: Attempts for retryable GET requests.
            retry_delay: Base delay for the exponential retry backoff.
            sleep: Sleep function used between retries.
        """
        self.logger = get_logger(__name__)

        self.base_url = (base_url or config.BACKEND_API_URL).rstrip("/")
        self.cache = cache if cache is not None else ResponseCache()
        self.timeout = timeout or config.REQUEST_TIMEOUT_SECONDS
        self.max_attempts = max_attempts or config.RETRY_MAX_ATTEMPTS
        self.retry_delay = (
            retry_delay if retry_delay is not None else config.RETRY_DELAY_SECONDS
        )
        self._sleep = sleep
        self._session = session

    def _get_session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            # Retries are handled by retry_call so they stay GET-only
            adapter = HTTPAdapter(max_retries=Retry(total=0, raise_on_status=False))
            self._session.mount("https://", adapter)
            self._session.mount("http://", adapter)
        return self._session

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _send(
        self,
        method: str,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
        timeout: Optional[int] = None,
    ) -> Any:
        try:
            response = self._get_session().request(
                method,
                url,
                params=params,
                json=body,
                headers={"Content-Type": "application/json"},
                timeout=timeout or self.timeout,
            )
        except requests.RequestException as e:
            raise BackendAPIError(
                f"Network error calling {method} {url}: {e}",
                category=ErrorCategory.NETWORK,
                context={"method": method, "url": url},
            ) from e

        try:
            payload = response.json() if response.content else None
        except ValueError:
            payload = None

        if not response.ok:
            raise create_api_error(
                response.status_code,
                payload if isinstance(payload, dict) else None,
                context={"method": method, "url": url},
            )
        return payload

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
        cache_ttl: Optional[float] = CacheTTL.DEFAULT,
        timeout: Optional[int] = None,
    ) -> Any:
        """Issue a request and return the decoded JSON body.

        Args:
            method: HTTP method.
            path: Path relative to the base URL.
            params: Query parameters.
            body: JSON body.
            cache_ttl: Lifetime for GET responses; None disables caching.
            timeout: Per-request timeout override.

        Raises:
            BackendAPIError: On transport failure or a non-success status.
        """
        method = method.upper()
        url = self._url(path)

        if method != "GET":
            self.logger.debug("Backend request", extra={"method": method, "url": url})
            return self._send(method, url, params=params, body=body, timeout=timeout)

        key = self.cache.make_key(url, method, params)
        if cache_ttl is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        def fetch() -> Any:
            return retry_call(
                self._send,
                method,
                url,
                params=params,
                timeout=timeout,
                max_attempts=self.max_attempts,
                delay=self.retry_delay,
                should_retry=_should_retry_request,
                sleep=self._sleep,
            )

        result = self.cache.dedupe(key, fetch)
        if cache_ttl is not None and result is not None:
            self.cache.set(key, result, ttl=cache_ttl)
        return result

    def get(self, path: str, params: Optional[Dict[str, Any]] = None, cache_ttl: Optional[float] = CacheTTL.DEFAULT) -> Any:
        return self.request("GET", path, params=params, cache_ttl=cache_ttl)

    def post(self, path: str, body: Any = None, timeout: Optional[int] = None) -> Any:
        return self.request("POST", path, body=body, timeout=timeout)

    def put(self, path: str, body: Any = None) -> Any:
        return self.request("PUT", path, body=body)

    def patch(self, path: str, body: Any = None) -> Any:
        return self.request("PATCH", path, body=body)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    def prefetch(self, path: str, params: Optional[Dict[str, Any]] = None, cache_ttl: float = CacheTTL.DEFAULT) -> None:
        """Warm the cache for a GET path; failures are logged, not raised."""
        try:
            self.get(path, params=params, cache_ttl=cache_ttl)
        except BackendAPIError as e:
            self.logger.debug(f"Prefetch of {path} failed: {e}")

    def clear_cache(self) -> None:
        self.cache.clear()

    # Businesses

    @staticmethod
    def _businesses(payload: Any) -> List[BusinessRecord]:
        if isinstance(payload, dict):
            payload = payload.get("businesses") or payload.get("results") or payload.get("items") or []
        return [BusinessRecord.from_api(item) for item in payload or []]

    def list_businesses(self, params: Optional[Dict[str, Any]] = None) -> List[BusinessRecord]:
        return self._businesses(self.get("/businesses", params=params))

    def get_business(self, business_id: str) -> BusinessRecord:
        return BusinessRecord.from_api(self.get(f"/businesses/{business_id}"))

    def create_business(self, business: BusinessRecord) -> BusinessRecord:
        created = self.post("/businesses", body=business.to_backend_payload())
        self.cache.invalidate(self._url("/businesses"))
        return BusinessRecord.from_api(created)

    def update_business(self, business_id: str, changes: Dict[str, Any]) -> BusinessRecord:
        updated = self.put(f"/businesses/{business_id}", body=changes)
        self.cache.invalidate(self._url("/businesses"))
        return BusinessRecord.from_api(updated)

    def delete_business(self, business_id: str) -> None:
        self.delete(f"/businesses/{business_id}")
        self.cache.invalidate(self._url("/businesses"))

    def search_businesses(
        self, query: str, location: str, radius: int = 5000
    ) -> List[BusinessRecord]:
        params = {"query": query, "location": location, "radius": radius}
        return self._businesses(
            self.get("/businesses/search", params=params, cache_ttl=CacheTTL.SHORT)
        )

    def business_stats(self) -> Dict[str, Any]:
        return self.get("/businesses/stats/overview", cache_ttl=CacheTTL.SHORT) or {}

    # Leads and analytics

    def score_lead(self, business_id: str) -> Dict[str, Any]:
        return self.post(f"/leads/{business_id}/score") or {}

    def hot_leads(self, limit: int = 10) -> List[Dict[str, Any]]:
        return self.get("/leads/hot", params={"limit": limit}, cache_ttl=CacheTTL.SHORT) or []

    def export_leads(self, fmt: str = "csv") -> Any:
        return self.get("/leads/export", params={"format": fmt}, cache_ttl=None)

    def analytics_overview(self) -> Dict[str, Any]:
        return self.get("/analytics/overview") or {}

    # Generation endpoints

    def analyze_business(self, business: BusinessRecord) -> AnalyzedBusinessRecord:
        """Score a business as a sales opportunity.

        Raises:
            BackendAPIError: If the request fails or the backend reports no success.
        """
        city, state = business.city_state()
        body = {
            "name": business.name,
            "business_category": business.category or "General",
            "city": city or "Unknown",
            "state": state,
            "rating": business.rating,
            "total_reviews": business.total_reviews,
            "has_website": not business.lacks_website,
            "website": business.website,
        }
        result = _json_object(self.post("/demo/analyze-business", body=body), "/demo/analyze-business")
        if not result.get("success", True):
            raise BackendAPIError(
                result.get("message") or "Business analysis failed",
                category=ErrorCategory.SERVER,
            )
        return AnalyzedBusinessRecord.from_analysis(business, result)

    def generate_email(self, business: BusinessRecord) -> Dict[str, Any]:
        return _json_object(
            self.post("/demo/generate-email", body=business.to_backend_payload()),
            "/demo/generate-email",
        )

    def generate_enhanced_website(
        self, business: BusinessRecord, timeout: Optional[int] = None
    ) -> Dict[str, Any]:
        """Ask the backend to generate a website for a business.

        Raises:
            BackendAPIError: On failure. A 500 carries the "service unavailable"
                message rather than the raw server detail.
        """
        body = {
            "business_info": business.to_backend_payload(),
            "enable_mcp": True,
            "enable_self_reflection": True,
            "enable_self_correction": True,
            "max_iterations": 1,
            "framework": "html",
            "style_preference": "modern",
        }
        try:
            return _json_object(
                self.post(
                    "/mcp-enhanced/generate-enhanced",
                    body=body,
                    timeout=timeout or config.GENERATION_TIMEOUT_SECONDS,
                ),
                "/mcp-enhanced/generate-enhanced",
            )
        except BackendAPIError as e:
            if e.status_code == 500:
                e.message = BACKEND_UNAVAILABLE_MESSAGE
                e.args = (BACKEND_UNAVAILABLE_MESSAGE,)
            raise

    def close(self) -> None:
        if self._session:
            self._session.close()
            self._session = None

    def __enter__(self) -> "BackendClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
