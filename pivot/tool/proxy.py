"""Pivot proxy action."""

import logging
from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
from typing import cast

from pivot import kubeconfig
from pivot.kubectl import Kubectl
from pivot.tunnel import TunnelManager

from .env import add_context_flag, env_int, env_str

_LOGGER = logging.getLogger(__name__)


class ProxyAction:
    """Forward a local port to a pod until interrupted."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "proxy",
                help="Forward a local port to a pod",
                description=(
                    "Wait for the pod to be running, then forward the same port "
                    "on localhost to it until interrupted"
                ),
            ),
        )
        args.add_argument(
            "--name",
            default=env_str("POD_NAME", "gitea-0"),
            help="Name of the pod (env POD_NAME)",
        )
        args.add_argument(
            "--namespace",
            default=env_str("POD_NAMESPACE", "default"),
            help="Namespace of the pod (env POD_NAMESPACE)",
        )
        args.add_argument(
            "--port",
            type=int,
            default=env_int("POD_PORT", 3000),
            help="Port of the pod, also used locally (env POD_PORT)",
        )
        add_context_flag(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        name: str,
        namespace: str,
        port: int,
        context: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        tunnel = TunnelManager(Kubectl(kubeconfig.load(context)), name, namespace, port)
        tunnel.start()
        try:
            await tunnel.wait_ready()
            _LOGGER.info("Press Ctrl-C to stop")
            await tunnel.wait_closed()
        finally:
            await tunnel.stop()
