"""Resolve which kubeconfig and context cluster commands run against.

The kubeconfig may be a list of files in `KUBECONFIG`, which are merged the
same way kubectl merges them. The selected context is carried as an explicit
`KubeConfig` value and passed to every object that talks to the cluster.
"""

from dataclasses import dataclass, field
import logging
import os

from kubernetes import config as k8s_config
import yaml

from .exceptions import ContextNotFoundError, InputException

__all__ = [
    "KubeConfig",
    "load",
]

_LOGGER = logging.getLogger(__name__)

KUBECONFIG_ENV = "KUBECONFIG"
DEFAULT_KUBECONFIG = "~/.kube/config"


def default_location() -> str:
    """Return the kubeconfig files from the environment or the home directory."""
    return os.environ.get(KUBECONFIG_ENV) or DEFAULT_KUBECONFIG


@dataclass
class KubeConfig:
    """A resolved kubeconfig with the context that was selected."""

    location: str
    """The kubeconfig file, or several separated by `os.pathsep`."""

    current_context: str
    """The context commands run against."""

    context_names: list[str] = field(default_factory=list)
    """Every context defined across the merged files."""

    def kubectl_args(self) -> list[str]:
        """Flags that pin kubectl to this context."""
        if not self.current_context:
            return []
        return ["--context", self.current_context]

    def kubectl_env(self) -> dict[str, str]:
        """Environment that points kubectl at the same merged files."""
        paths = [os.path.expanduser(p) for p in self.location.split(os.pathsep)]
        return {KUBECONFIG_ENV: os.pathsep.join(paths)}


def load(context: str = "", location: str | None = None) -> KubeConfig:
    """Load the kubeconfig, switching to the named context when one is given.

    An empty context name keeps the kubeconfig's own current-context.
    """
    location = location or default_location()
    try:
        contexts, active = k8s_config.list_kube_config_contexts(config_file=location)
    except (k8s_config.ConfigException, OSError, yaml.YAMLError) as err:
        raise InputException(f"failed to load kubeconfig {location}: {err}") from err
    config = KubeConfig(
        location=location,
        current_context=(active or {}).get("name", ""),
        context_names=[ctx["name"] for ctx in contexts or []],
    )
    if context:
        if context not in config.context_names:
            raise ContextNotFoundError(context, location)
        config.current_context = context
    _LOGGER.debug("Using kubeconfig %s context %s", location, config.current_context)
    return config
