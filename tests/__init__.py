"""Test helpers for pivot."""

from typing import Any

from pivot.command import Task
from pivot.kubeconfig import KubeConfig
from pivot.kubectl import Kubectl


class FakeTask(Task):
    """Returns fixed output instead of running a command."""

    def __init__(self, output: str) -> None:
        self._output = output

    async def run(self, stdin: bytes | None = None) -> bytes:
        """Execute the task and return the result."""
        return self._output.encode()


class FakeKubectl(Kubectl):
    """Records raw API requests instead of running kubectl."""

    def __init__(
        self,
        create_errors: dict[str, Exception] | None = None,
        objects: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(KubeConfig("kubeconfig", "test"))
        self.created: list[tuple[str, dict[str, Any]]] = []
        self.fetched: list[str] = []
        self._create_errors = create_errors or {}
        self._objects = objects or {}

    async def create_raw(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        self.created.append((path, body))
        if (err := self._create_errors.get(body["metadata"]["name"])) is not None:
            raise err
        return body

    async def get_raw(self, path: str) -> dict[str, Any]:
        self.fetched.append(path)
        value = self._objects.get(path, {})
        if isinstance(value, Exception):
            raise value
        return value
