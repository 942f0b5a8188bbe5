"""Library for rendering a component directory with `kustomize build`.

The operator components in the manifest store are plain kustomize
directories. Rendering one produces the flat list of cluster objects that
the applier creates one by one:

```python
from pivot import kustomize

objects = await kustomize.build(Path("infra/cert-manager")).objects()
for obj in objects:
    print(f"Found object {obj['apiVersion']} {obj['kind']}")
```
"""

import logging
from pathlib import Path
from typing import Any, AsyncGenerator

from aiofiles.ospath import isdir
import yaml

from .command import Command, run_piped, Task, format_path
from .exceptions import KustomizeException

_LOGGER = logging.getLogger(__name__)

__all__ = [
    "build",
    "Kustomize",
]

KUSTOMIZE_BIN = "kustomize"


class Kustomize:
    """Library for issuing a kustomize command."""

    def __init__(self, cmds: list[Task]) -> None:
        """Initialize Kustomize, used internally for copying object."""
        self._cmds = cmds

    async def run(self) -> str:
        """Run the kustomize command and return the output as a string."""
        return await run_piped(self._cmds)

    async def _docs(self) -> AsyncGenerator[dict[str, Any], None]:
        """Run the kustomize command and return the result documents."""
        out = await self.run()
        for doc in yaml.safe_load_all(out):
            if doc is None:
                continue
            yield doc

    async def objects(self) -> list[dict[str, Any]]:
        """Run the kustomize command and return the result cluster objects as a list."""
        try:
            return [doc async for doc in self._docs()]
        except yaml.YAMLError as err:
            raise KustomizeException(
                f"Unable to parse command output: {self._cmds}: {err}"
            ) from err


class Build(Task):
    """A task that issues a kustomize build command for a directory."""

    def __init__(self, path: Path) -> None:
        """Initialize Build."""
        self._path = path

    async def run(self, stdin: bytes | None = None) -> bytes:
        """Run the task."""
        if not await isdir(self._path):
            raise KustomizeException(
                f"Component path is not a directory: {format_path(self._path)}"
            )
        task = Command(
            [KUSTOMIZE_BIN, "build", str(self._path)], exc=KustomizeException
        )
        return await task.run()

    def __str__(self) -> str:
        """Render as a debug string."""
        return f"kustomize build {format_path(self._path)}"

    def __repr__(self) -> str:
        return str(self)


def build(path: Path) -> Kustomize:
    """Render the cluster objects of the component at the specified path."""
    return Kustomize([Build(path)])
