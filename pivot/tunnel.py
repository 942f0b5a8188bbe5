"""Forward a local port to a pod once the pod is running.

The tunnel runs as a background asyncio task next to the bootstrap. Callers
only interact with it through its handle: `wait_ready()` blocks until the
local port is bound, `stop()` tears it down, and `state` and `error` report
what happened. A manager is used for exactly one tunnel:

```
WAITING_FOR_POD --pod Running--> TUNNELING --stop or failure--> CLOSED
       |                                                           ^
       +-------------------- budget exhausted ---------------------+
```
"""

import asyncio
from collections import deque
import contextlib
from enum import Enum
import logging
import os

from .exceptions import KubectlException, PivotException, TunnelException
from .kubectl import Kubectl, api_path
from .retry import RetryBudget, wait_until

__all__ = [
    "TunnelManager",
    "TunnelState",
]

_LOGGER = logging.getLogger(__name__)

LISTEN_ADDRESS = "127.0.0.1"
POD_RUNNING = "Running"
READY_MARKER = b"Forwarding from"
DEFAULT_POD_BUDGET = RetryBudget(max_attempts=60, interval=5.0)
_OUTPUT_LINES = 20


class TunnelState(str, Enum):
    """Lifecycle of a tunnel."""

    WAITING_FOR_POD = "waiting-for-pod"
    TUNNELING = "tunneling"
    CLOSED = "closed"


class TunnelManager:
    """A port-forward from localhost to a single pod."""

    def __init__(
        self,
        kubectl: Kubectl,
        name: str,
        namespace: str,
        port: int,
        local_port: int | None = None,
        pod_budget: RetryBudget = DEFAULT_POD_BUDGET,
    ) -> None:
        """Initialize TunnelManager."""
        self._kubectl = kubectl
        self._name = name
        self._namespace = namespace
        self._port = port
        self._local_port = local_port or port
        self._pod_budget = pod_budget
        self._state = TunnelState.WAITING_FOR_POD
        self._error: PivotException | None = None
        self._ready = asyncio.Event()
        self._closed = asyncio.Event()
        self._stopping = False
        self._task: asyncio.Task[None] | None = None
        self._proc: asyncio.subprocess.Process | None = None

    @property
    def state(self) -> TunnelState:
        return self._state

    @property
    def error(self) -> PivotException | None:
        """The failure that closed the tunnel, if any."""
        return self._error

    @property
    def pod(self) -> str:
        return f"{self._namespace}/{self._name}"

    def start(self) -> "TunnelManager":
        """Start waiting for the pod and forwarding in the background."""
        if self._task is not None:
            raise TunnelException(f"Tunnel to {self.pod} was already started")
        self._task = asyncio.create_task(self._run(), name=f"tunnel-{self.pod}")
        return self

    async def wait_ready(self) -> None:
        """Block until the local port is bound or the tunnel closed."""
        ready = asyncio.create_task(self._ready.wait())
        closed = asyncio.create_task(self._closed.wait())
        try:
            await asyncio.wait({ready, closed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            ready.cancel()
            closed.cancel()
        if self._ready.is_set() and self._state == TunnelState.TUNNELING:
            return
        if self._error is not None:
            raise self._error
        raise TunnelException(f"Tunnel to {self.pod} closed before it was ready")

    async def wait_closed(self) -> None:
        """Block until the tunnel closes, raising the failure if there was one."""
        await self._closed.wait()
        if self._error is not None:
            raise self._error

    async def stop(self) -> None:
        """Close the tunnel, the manager cannot be started again."""
        self._stopping = True
        if self._proc is not None and self._proc.returncode is None:
            self._proc.terminate()
        if self._task is None:
            self._close()
            return
        if self._state == TunnelState.WAITING_FOR_POD:
            self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        # A task cancelled before it ever ran skips its own cleanup
        self._close()

    def _close(self) -> None:
        self._state = TunnelState.CLOSED
        self._closed.set()

    async def _run(self) -> None:
        try:
            await wait_until(
                self._pod_running,
                self._pod_budget,
                f"pod {self.pod} running",
                exc=TunnelException,
                retry_on=(KubectlException,),
            )
            self._state = TunnelState.TUNNELING
            await self._forward()
        except PivotException as err:
            _LOGGER.error("Tunnel to %s failed: %s", self.pod, err)
            self._error = err
        finally:
            self._close()
            _LOGGER.debug("Tunnel to %s closed", self.pod)

    async def _pod_running(self) -> bool:
        pod = await self._kubectl.get_raw(
            api_path("", "v1", "pods", self._namespace, self._name)
        )
        phase = (pod.get("status") or {}).get("phase")
        _LOGGER.debug("Pod %s phase is %s", self.pod, phase)
        return bool(phase == POD_RUNNING)

    async def _forward(self) -> None:
        cmd = self._kubectl.command(
            "port-forward",
            "--address",
            LISTEN_ADDRESS,
            "--namespace",
            self._namespace,
            f"pod/{self._name}",
            f"{self._local_port}:{self._port}",
        )
        _LOGGER.debug("Running command: %s", " ".join(cmd))
        try:
            self._proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                env={**os.environ, **self._kubectl.env()},
            )
        except FileNotFoundError as err:
            raise TunnelException(f"Command '{cmd[0]}' not found: {err}") from err
        if self._proc.stdout is None:
            raise TunnelException(f"Port-forward to {self.pod} has no output stream")
        output: deque[str] = deque(maxlen=_OUTPUT_LINES)
        while line := await self._proc.stdout.readline():
            output.append(line.decode(errors="replace").rstrip())
            if READY_MARKER in line and not self._ready.is_set():
                _LOGGER.info(
                    "Forwarding %s:%d to %s:%d",
                    LISTEN_ADDRESS,
                    self._local_port,
                    self.pod,
                    self._port,
                )
                self._ready.set()
        returncode = await self._proc.wait()
        if not self._stopping:
            raise TunnelException(
                f"Port-forward to {self.pod} exited with code {returncode}: "
                + "\n".join(output)
            )
