"""Tests for the port-forward tunnel."""

import pytest

from pivot.exceptions import KubectlException, TunnelException
from pivot.retry import RetryBudget
from pivot.tunnel import TunnelManager, TunnelState

from . import FakeKubectl

POD_PATH = "/api/v1/namespaces/default/pods/gitea-0"
RUNNING = {"status": {"phase": "Running"}}
PENDING = {"status": {"phase": "Pending"}}
FORWARDING = "echo 'Forwarding from 127.0.0.1:3000 -> 3000'"


class ShellKubectl(FakeKubectl):
    """Runs a shell script in place of kubectl port-forward."""

    def __init__(self, pod: object, script: str) -> None:
        super().__init__(objects={POD_PATH: pod})
        self.script = script
        self.args: tuple[str, ...] = ()

    def command(self, *args: str) -> list[str]:
        self.args = args
        return ["sh", "-c", self.script]


def make_tunnel(kubectl: FakeKubectl) -> TunnelManager:
    return TunnelManager(
        kubectl,
        "gitea-0",
        "default",
        3000,
        pod_budget=RetryBudget(max_attempts=3, interval=0),
    )


async def test_tunnel() -> None:
    """Test forwarding once the pod is running until stopped."""
    kubectl = ShellKubectl(RUNNING, f"{FORWARDING}; exec sleep 30")
    tunnel = make_tunnel(kubectl).start()

    await tunnel.wait_ready()
    assert tunnel.state == TunnelState.TUNNELING
    assert kubectl.args == (
        "port-forward",
        "--address",
        "127.0.0.1",
        "--namespace",
        "default",
        "pod/gitea-0",
        "3000:3000",
    )

    await tunnel.stop()
    assert tunnel.state == TunnelState.CLOSED
    assert tunnel.error is None


async def test_pod_never_running() -> None:
    """Test the tunnel closes with an error when the pod budget runs out."""
    kubectl = ShellKubectl(PENDING, FORWARDING)
    tunnel = make_tunnel(kubectl).start()

    with pytest.raises(TunnelException, match="failed after 3 attempts"):
        await tunnel.wait_ready()
    assert tunnel.state == TunnelState.CLOSED
    assert isinstance(tunnel.error, TunnelException)
    assert kubectl.fetched == [POD_PATH] * 3
    assert kubectl.args == ()


async def test_pod_lookup_errors_are_retried() -> None:
    """Test a pod that does not exist yet is polled again."""
    kubectl = ShellKubectl(KubectlException("NotFound"), FORWARDING)
    tunnel = make_tunnel(kubectl).start()

    with pytest.raises(TunnelException, match="NotFound"):
        await tunnel.wait_ready()
    assert len(kubectl.fetched) == 3


async def test_forward_exits() -> None:
    """Test a port-forward that dies closes the tunnel with its output."""
    kubectl = ShellKubectl(RUNNING, "echo 'error: unable to forward port'; exit 1")
    tunnel = make_tunnel(kubectl).start()

    with pytest.raises(TunnelException, match="unable to forward port"):
        await tunnel.wait_ready()
    assert tunnel.state == TunnelState.CLOSED


async def test_forward_exits_after_ready() -> None:
    """Test a port-forward that dies while tunneling."""
    kubectl = ShellKubectl(RUNNING, f"{FORWARDING}; exit 1")
    tunnel = make_tunnel(kubectl).start()

    with pytest.raises(TunnelException, match="exited with code 1"):
        await tunnel.wait_closed()
    assert tunnel.state == TunnelState.CLOSED


async def test_stop_while_waiting() -> None:
    """Test stopping before the pod is running."""
    kubectl = ShellKubectl(PENDING, FORWARDING)
    tunnel = TunnelManager(
        kubectl,
        "gitea-0",
        "default",
        3000,
        pod_budget=RetryBudget(max_attempts=60, interval=5.0),
    ).start()

    await tunnel.stop()
    assert tunnel.state == TunnelState.CLOSED
    assert tunnel.error is None


async def test_start_twice() -> None:
    """Test a manager runs a single tunnel."""
    tunnel = make_tunnel(ShellKubectl(PENDING, FORWARDING)).start()
    with pytest.raises(TunnelException, match="already started"):
        tunnel.start()
    await tunnel.stop()
