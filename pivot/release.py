"""Resolve upstream release versions and download release manifests.

Upstream operators are pinned to whatever their release feed reports as the
latest stable version at the time of the call:

```python
from pivot import release

tag = await release.latest_tag(
    "https://api.github.com/repos/cert-manager/cert-manager/releases/latest"
)
```
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
import json
import logging

import httpx

from .exceptions import FetchException, ParseException

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "fetch",
    "latest_tag",
]

DEFAULT_TIMEOUT = 30.0
TAG_FIELD = "tag_name"


@asynccontextmanager
async def _client(
    client: httpx.AsyncClient | None,
) -> AsyncIterator[httpx.AsyncClient]:
    """Use the caller's client or a short lived one."""
    if client is not None:
        yield client
        return
    async with httpx.AsyncClient(
        timeout=DEFAULT_TIMEOUT, follow_redirects=True
    ) as new_client:
        yield new_client


async def fetch(url: str, client: httpx.AsyncClient | None = None) -> bytes:
    """Download the document at the url and return its raw contents."""
    _LOGGER.debug("Fetching %s", url)
    async with _client(client) as http:
        try:
            response = await http.get(url)
            response.raise_for_status()
        except httpx.HTTPStatusError as err:
            raise FetchException(
                f"Unable to fetch {url}: HTTP {err.response.status_code}"
            ) from err
        except httpx.HTTPError as err:
            raise FetchException(f"Unable to fetch {url}: {err}") from err
        return response.content


async def latest_tag(api_url: str, client: httpx.AsyncClient | None = None) -> str:
    """Return the tag of the latest release reported by a release feed."""
    body = await fetch(api_url, client)
    try:
        data = json.loads(body)
    except ValueError as err:
        raise ParseException(f"Invalid release metadata from {api_url}: {err}") from err
    if not isinstance(data, dict) or not (tag := data.get(TAG_FIELD)):
        raise ParseException(f"Release metadata from {api_url} has no {TAG_FIELD}")
    _LOGGER.info("Latest release of %s is %s", api_url, tag)
    return str(tag)
