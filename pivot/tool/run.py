"""Pivot run action."""

import logging
from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
from pathlib import Path
from typing import cast

from pivot import kubeconfig
from pivot.applier import ClusterApplier
from pivot.bootstrap import GITEA_NAMESPACE, GITEA_POD, Bootstrap, BootstrapConfig
from pivot.kubectl import Kubectl
from pivot.tunnel import TunnelManager

from .env import add_context_flag, env_bool, env_str

_LOGGER = logging.getLogger(__name__)


class RunAction:
    """Bootstrap the cluster."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "run",
                help="Bootstrap the cluster",
                description=(
                    "Assemble the GitOps repository, install the operators and the "
                    "git server, and hand the cluster over to the CD controller"
                ),
            ),
        )
        args.add_argument(
            "-p",
            "--password",
            default=env_str("PIVOT_PASSWD"),
            help="Password of the initial git server user, generated when omitted (env PIVOT_PASSWD)",
        )
        args.add_argument(
            "-r",
            "--remote",
            default=env_str("PIVOT_REMOTE", "git.local.net"),
            help="Host name the git server is published on (env PIVOT_REMOTE)",
        )
        args.add_argument(
            "-u",
            "--user",
            default=env_str("PIVOT_USER", "pivot"),
            help="Initial git server user (env PIVOT_USER)",
        )
        args.add_argument(
            "-d",
            "--dry-run",
            action="store_true",
            default=env_bool("PIVOT_DRY_RUN"),
            help="Only log what would be created in the cluster (env PIVOT_DRY_RUN)",
        )
        args.add_argument(
            "--path",
            type=Path,
            default=Path("infra"),
            help="Location of the local GitOps repository",
        )
        args.add_argument(
            "--sources",
            type=Path,
            default=Path(".pivot-sources"),
            help="Directory where upstream git repositories are cloned",
        )
        add_context_flag(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        password: str,
        remote: str,
        user: str,
        dry_run: bool,
        path: Path,
        sources: Path,
        context: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        config = BootstrapConfig(
            remote=remote,
            user=user,
            password=password,
            dry_run=dry_run,
            path=path,
            sources_dir=sources,
        )
        kubectl: Kubectl | None = None
        tunnel: TunnelManager | None = None
        if not dry_run:
            kubectl = Kubectl(kubeconfig.load(context))
            tunnel = TunnelManager(
                kubectl,
                GITEA_POD,
                GITEA_NAMESPACE,
                config.git_port,
                pod_budget=config.pod_budget,
            )
        bootstrap = Bootstrap(config, ClusterApplier(kubectl, dry_run=dry_run), tunnel)
        result = await bootstrap.run()
        if not password:
            print(f"Password for {user}: {result}")
