"""
Shared plumbing for external source adapters.

Every adapter routes its calls through the process cache, spends one point of
its rate limit per HTTP attempt, retries transient failures with exponential
backoff and maps provider payloads into the models in ``prospection.models``.
Public query methods never raise source errors: they return a ``SourceResult``
whose ``error`` is set instead.
"""

import functools
import hashlib
import logging
import math
from typing import Any, Callable, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from ..cache import CacheStore
from ..config import SourceSettings
from ..exceptions import (
    AuthenticationError,
    InputValidationError,
    QuotaExceededError,
    SourceError,
    SourceUnavailableError,
    TransientSourceError,
)
from ..models import SourceResult
from ..ratelimit import RateLimiter

logger = logging.getLogger(__name__)

USER_AGENT = "cee-prospect/1.0"


def _stop(retry_state) -> bool:
    adapter = retry_state.args[0]
    return stop_after_attempt(adapter.max_retries + 1)(retry_state)


def _backoff(retry_state) -> float:
    adapter = retry_state.args[0]
    return wait_exponential(multiplier=adapter.retry_backoff, max=8)(retry_state)


def source_query(empty: Callable[[], Any] = lambda: None):
    """
    Wrap a public adapter query into a ``SourceResult``.

    Source errors, and payloads the mapping layer cannot read, become an
    empty result carrying the error text. ``InputValidationError`` is not a
    source error and propagates.
    """
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs) -> SourceResult:
            try:
                value = await func(self, *args, **kwargs)
            except InputValidationError:
                raise
            except SourceError as e:
                logger.warning("%s.%s failed: %s", self.name, func.__name__, e)
                return SourceResult(self.name, empty(), error=str(e))
            except (KeyError, IndexError, TypeError, ValueError, AttributeError) as e:
                logger.warning(
                    "%s.%s got an unexpected payload: %s: %s",
                    self.name, func.__name__, type(e).__name__, e,
                )
                return SourceResult(self.name, empty(), error=f"{self.name} returned an unexpected payload")
            return SourceResult(self.name, value if value is not None else empty())
        return wrapper
    return decorator


class SourceAdapter:
    """
    Base class for one external registry or dataset.

    Usage:
        async with BanAdapter(settings, cache, limiter) as ban:
            result = await ban.by_address("8 bd du port 80000 Amiens")
            if result.found:
                print(result.value[0].label)
    """

    name = "source"

    def __init__(
        self,
        settings: SourceSettings,
        cache: CacheStore,
        limiter: RateLimiter,
        timeout: float = 12.0,
        max_retries: int = 3,
        retry_backoff: float = 0.5,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.settings = settings
        self.base_url = settings.base_url.rstrip("/")
        self.ttl = settings.ttl
        self.cache = cache
        self.limiter = limiter
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            headers={"User-Agent": USER_AGENT, "Accept": "application/json"},
        )
        logger.debug("%s adapter initialized (%s)", self.name, self.base_url)

    # -- caching ---------------------------------------------------------

    def _cache_key(self, method: str, *args: Any) -> str:
        """``<source>:<method>:<args>``, hashing long argument lists."""
        joined = ":".join("" if a is None else str(a) for a in args)
        if len(joined) > 96:
            joined = hashlib.md5(joined.encode()).hexdigest()
        return f"{self.name}:{method}:{joined}"

    async def _cached(self, method: str, args: tuple, fetch: Callable, ttl: Optional[int] = None):
        key = self._cache_key(method, *args)
        return await self.cache.get_or_set(key, ttl or self.ttl, fetch)

    # -- HTTP ------------------------------------------------------------

    async def _headers(self) -> dict:
        """Per-request headers; adapters with credentials override this."""
        return {}

    @retry(
        stop=_stop,
        wait=_backoff,
        retry=retry_if_exception_type((TransientSourceError, QuotaExceededError)),
        reraise=True,
    )
    async def _request(
        self,
        path: str,
        params: Optional[dict] = None,
        method: str = "GET",
        data: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> Any:
        """
        Send one request and decode its JSON body.

        Returns:
            Decoded JSON, or None when the source answers 404
        """
        await self.limiter.consume()

        url = path if path.startswith("http") else f"{self.base_url}{path}"
        request_headers = {**(await self._headers()), **(headers or {})}
        params = {k: v for k, v in (params or {}).items() if v is not None and v != ""}

        try:
            response = await self._client.request(
                method, url, params=params, data=data, headers=request_headers
            )
        except httpx.TimeoutException as e:
            raise TransientSourceError(f"{self.name} timed out", self.name) from e
        except httpx.TransportError as e:
            raise TransientSourceError(f"{self.name} unreachable: {e}", self.name) from e

        if response.status_code == 404:
            return None
        self._handle_errors(response)

        try:
            return response.json()
        except ValueError as e:
            raise SourceUnavailableError(f"{self.name} returned invalid JSON", self.name) from e

    def _handle_errors(self, response: httpx.Response) -> None:
        """Map HTTP error statuses onto the source exception hierarchy."""
        status = response.status_code
        if status in (401, 403):
            raise AuthenticationError(f"{self.name} rejected credentials ({status})", self.name)
        elif status == 429:
            raise QuotaExceededError(f"{self.name} rate limit exceeded", self.name)
        elif status >= 500:
            raise TransientSourceError(f"{self.name} server error: {status}", self.name)
        elif status >= 400:
            try:
                error_data = response.json()
                error_msg = error_data.get("message") or error_data.get("error") or response.text
            except ValueError:
                error_msg = response.text
            raise SourceUnavailableError(f"{self.name} error {status}: {error_msg}", self.name)

    # -- lifecycle -------------------------------------------------------

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.aclose()


# -- payload helpers ------------------------------------------------------

def to_float(value: Any) -> Optional[float]:
    """Parse numbers that providers send as strings, with comma decimals."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)):
        return float(value) if not isinstance(value, bool) else None
    try:
        return float(str(value).replace(",", ".").strip())
    except ValueError:
        return None


def to_int(value: Any) -> Optional[int]:
    number = to_float(value)
    return int(number) if number is not None else None


def first_present(data: dict, *names: str) -> Any:
    """First non-empty value among aliased provider field names."""
    for name in names:
        value = data.get(name)
        if value not in (None, ""):
            return value
    return None


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres."""
    radius = 6371000.0
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * radius * math.asin(math.sqrt(a))


def energy_class(value: Any) -> Optional[str]:
    """Single-letter A-G energy label, or None for anything else."""
    if not value:
        return None
    value = str(value).strip().upper()
    return value if len(value) == 1 and value in "ABCDEFG" else None
