"""Library for issuing raw API requests to the cluster with kubectl.

Requests address the API server by path, e.g.
`/apis/hyperspike.io/v1/namespaces/default/giteas`, so the caller decides
exactly which group, version, resource and scope a request goes to.
"""

import json
import logging
from typing import Any

from .command import Command, run
from .exceptions import KubectlException
from .kubeconfig import KubeConfig

__all__ = [
    "Kubectl",
    "api_path",
]

_LOGGER = logging.getLogger(__name__)

KUBECTL_BIN = "kubectl"


def api_path(
    group: str,
    version: str,
    resource: str,
    namespace: str | None = None,
    name: str | None = None,
) -> str:
    """Build the API server path for a resource collection or object."""
    parts = ["/api", version] if not group else ["/apis", group, version]
    if namespace:
        parts.extend(["namespaces", namespace])
    parts.append(resource)
    if name:
        parts.append(name)
    return "/".join(parts)


class Kubectl:
    """Issue kubectl commands pinned to one kubeconfig context."""

    def __init__(self, config: KubeConfig) -> None:
        """Initialize Kubectl."""
        self._config = config

    @property
    def config(self) -> KubeConfig:
        return self._config

    def command(self, *args: str) -> list[str]:
        """Return a full kubectl command line."""
        return [KUBECTL_BIN, *self._config.kubectl_args(), *args]

    def env(self) -> dict[str, str]:
        """Environment variables every kubectl command runs with."""
        return self._config.kubectl_env()

    async def create_raw(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        """POST the object to the API path and return the created object."""
        cmd = Command(
            self.command("create", "--raw", path, "-f", "-"),
            exc=KubectlException,
            env=self.env(),
        )
        out = await run(cmd, stdin=json.dumps(body).encode())
        return _decode(path, out)

    async def get_raw(self, path: str) -> dict[str, Any]:
        """GET the object at the API path."""
        cmd = Command(
            self.command("get", "--raw", path), exc=KubectlException, env=self.env()
        )
        return _decode(path, await run(cmd))


def _decode(path: str, out: str) -> dict[str, Any]:
    if not out.strip():
        return {}
    try:
        return json.loads(out)
    except ValueError as err:
        raise KubectlException(f"Unable to parse response from {path}: {err}") from err
