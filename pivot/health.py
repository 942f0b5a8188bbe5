"""Wait for an HTTP service to become reachable."""

import logging

import httpx

from .exceptions import ReachabilityTimeout
from .retry import RetryBudget, wait_until

__all__ = [
    "HealthProbe",
]

_LOGGER = logging.getLogger(__name__)


class HealthProbe:
    """Probe a health endpoint of a service with a self signed certificate."""

    def __init__(
        self,
        url: str,
        timeout_seconds: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize HealthProbe.

        Args:
            url: The health endpoint, any 2xx response counts as healthy.
            timeout_seconds: Timeout for each HTTP request.
            transport: Optional transport, used to substitute the network.
        """
        self.url = url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def probe(self) -> bool:
        """Make a single request to the health endpoint."""
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds, verify=False, transport=self._transport
        ) as client:
            try:
                response = await client.get(self.url)
            except httpx.HTTPError as err:
                _LOGGER.debug("Health check of %s failed: %s", self.url, err)
                return False
        if not response.is_success:
            _LOGGER.debug("Health check of %s: HTTP %d", self.url, response.status_code)
        return response.is_success

    async def wait_for_healthy(self, budget: RetryBudget) -> int:
        """Probe until healthy, raising `ReachabilityTimeout` when out of budget."""
        return await wait_until(
            self.probe, budget, f"reachability of {self.url}", exc=ReachabilityTimeout
        )
