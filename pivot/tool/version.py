"""Pivot version action."""

from argparse import ArgumentParser, _SubParsersAction as SubParsersAction
from importlib import metadata
import platform
from typing import cast

from .env import add_context_flag

PACKAGE = "pivot"


def package_version() -> str:
    try:
        return metadata.version(PACKAGE)
    except metadata.PackageNotFoundError:
        return "unknown"


class VersionAction:
    """Print the version of the tool."""

    @classmethod
    def register(
        cls, subparsers: SubParsersAction  # type: ignore[type-arg]
    ) -> ArgumentParser:
        """Register the subparser commands."""
        args = cast(
            ArgumentParser,
            subparsers.add_parser(
                "version",
                help="Print the version",
                description="Print the tool, Python and platform versions",
            ),
        )
        add_context_flag(args)
        args.set_defaults(cls=cls)
        return args

    async def run(  # type: ignore[no-untyped-def]
        self,
        **kwargs,  # pylint: disable=unused-argument
    ) -> None:
        """Async Action implementation."""
        print(f"pivot {package_version()}")
        print(f"python {platform.python_version()} ({platform.python_implementation()})")
        print(f"platform {platform.platform()}")
