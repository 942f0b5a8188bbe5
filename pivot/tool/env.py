"""Defaults for command line flags read from the environment."""

from argparse import ArgumentParser
import os

_TRUE = {"1", "true", "yes", "on"}


def env_str(name: str, default: str = "") -> str:
    """Return the variable, or the default when unset or empty."""
    return os.environ.get(name) or default


def env_int(name: str, default: int) -> int:
    if not (value := os.environ.get(name)):
        return default
    try:
        return int(value)
    except ValueError as err:
        raise SystemExit(f"pivot error: {name} must be an integer: {value!r}") from err


def env_bool(name: str) -> bool:
    return os.environ.get(name, "").strip().lower() in _TRUE


def add_context_flag(args: ArgumentParser) -> None:
    """Add the kubeconfig context flag shared by every command."""
    args.add_argument(
        "-c",
        "--context",
        default=env_str("PIVOT_CONTEXT"),
        help="Kubeconfig context, the current context when omitted (env PIVOT_CONTEXT)",
    )
