"""Pivot password action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
from typing import cast

from pivot import kubeconfig
from pivot.applier import ClusterApplier
from pivot.kubectl import Kubectl

from .env import add_context_flag

SECRET_NAMESPACE = "default"
SECRET_NAME = "pivot-password"
SECRET_KEY = "password"


class PasswordAction:
    """Print the stored password of the initial user."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "password",
                help="Print the initial user's password",
                description=(
                    f"Read the password from the Secret "
                    f"{SECRET_NAMESPACE}/{SECRET_NAME} and print it"
                ),
            ),
        )
        add_context_flag(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        context: str,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        applier = ClusterApplier(Kubectl(kubeconfig.load(context)))
        print(await applier.get_secret_value(SECRET_NAMESPACE, SECRET_NAME, SECRET_KEY))
