import httpx

from .breaker import CircuitBreaker, CircuitBreakerOpen
from .config import CATALOG_API_URL, CATALOG_LOGIN, CATALOG_TIMEOUT


class CatalogUnavailable(Exception):
    """The external catalog could not answer (breaker open, timeout, bad status)."""


cb_catalog = CircuitBreaker("equipment-catalog", failure_threshold=5, reset_timeout_seconds=10)


class CatalogClient:
    """Read-only client for the external equipment catalog."""

    def __init__(
        self,
        base_url: str = CATALOG_API_URL,
        login: str = CATALOG_LOGIN,
        timeout: float = CATALOG_TIMEOUT,
        breaker: CircuitBreaker | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.login = login
        self.timeout = timeout
        self.breaker = breaker or cb_catalog
        self.transport = transport

    async def _call(self, method: str, path: str, params: list[tuple[str, str]] | None = None):
        try:
            await self.breaker.allow_request()
        except CircuitBreakerOpen as e:
            raise CatalogUnavailable(str(e))

        url = f"{self.base_url}{path}"
        query = [("login", self.login)] + list(params or [])

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.request(method=method, url=url, params=query)
                resp.raise_for_status()
                await self.breaker.record_success()
                if resp.content:
                    return resp.json()
                return None
        except httpx.TimeoutException:
            await self.breaker.record_failure()
            raise CatalogUnavailable(f"Timeout calling catalog: {url}")
        except httpx.HTTPStatusError as e:
            await self.breaker.record_failure()
            raise CatalogUnavailable(f"Catalog returned {e.response.status_code} for {url}")
        except (httpx.HTTPError, ValueError) as e:
            # transport errors and undecodable JSON
            await self.breaker.record_failure()
            raise CatalogUnavailable(f"Bad response from catalog {url}: {e}")

    async def search(self, params: list[tuple[str, str]]):
        return await self._call("GET", "/equipments/search", params)

    async def filters(self):
        return await self._call("GET", "/equipments/filters")
