"""The upstream operators that make up the initial GitOps repository."""

from dataclasses import dataclass, field
import logging
from pathlib import Path

import httpx

from . import release
from .manifest import KUSTOMIZATION_FILE
from .store import ManifestStore, clone_tag, repo_exists

__all__ = [
    "Component",
    "COMPONENTS",
    "OPERATOR_ORDER",
    "compose",
]

_LOGGER = logging.getLogger(__name__)

GITHUB_API = "https://api.github.com/repos"
GITHUB = "https://github.com"
SEPARATOR = "---\n"


@dataclass
class Component:
    """An upstream project installed as one directory of the repository."""

    name: str
    """Directory name, also the namespace the component is placed in."""

    url: str
    """Manifest download url or git repository url, may contain `{tag}`."""

    project: str | None = None
    """GitHub `owner/repo` whose latest release pins `{tag}`."""

    add_namespace: bool = False
    """Generate a Namespace manifest for the component."""

    git_files: list[str] = field(default_factory=list)
    """Files to flatten from a tagged clone instead of downloading `url`."""

    @property
    def manifest_path(self) -> str:
        return f"{self.name}/{self.name}.yaml"

    @property
    def release_feed(self) -> str | None:
        if self.project is None:
            return None
        return f"{GITHUB_API}/{self.project}/releases/latest"


COMPONENTS: list[Component] = [
    Component(
        name="argocd",
        url="https://raw.githubusercontent.com/argoproj/argo-cd/refs/heads/master/manifests/install.yaml",
        add_namespace=True,
    ),
    Component(
        name="cert-manager",
        url=f"{GITHUB}/cert-manager/cert-manager/releases/download/{{tag}}/cert-manager.yaml",
        project="cert-manager/cert-manager",
    ),
    Component(
        name="valkey-operator",
        url=f"{GITHUB}/hyperspike/valkey-operator/releases/download/{{tag}}/install.yaml",
        project="hyperspike/valkey-operator",
    ),
    Component(
        name="postgres-operator",
        url=f"{GITHUB}/zalando/postgres-operator",
        project="zalando/postgres-operator",
        git_files=[
            "manifests/configmap.yaml",
            "manifests/operator-service-account-rbac.yaml",
            "manifests/postgres-operator.yaml",
            "manifests/api-service.yaml",
        ],
    ),
    Component(
        name="gitea-operator",
        url=f"{GITHUB}/hyperspike/gitea-operator/releases/download/{{tag}}/install.yaml",
        project="hyperspike/gitea-operator",
    ),
]

# Operators are applied in dependency order: cert-manager issues the
# certificates the others' webhooks need, and gitea-operator needs both the
# database and cache operators in place.
OPERATOR_ORDER = [
    "cert-manager",
    "argocd",
    "postgres-operator",
    "valkey-operator",
    "gitea-operator",
]


async def _add_component(
    store: ManifestStore,
    component: Component,
    sources_dir: Path,
    client: httpx.AsyncClient | None,
) -> None:
    tag = ""
    if feed := component.release_feed:
        tag = await release.latest_tag(feed, client)
    if component.git_files:
        checkout = sources_dir / component.name
        clone_tag(component.url, checkout, tag)
        store.concatenate(
            [checkout / name for name in component.git_files],
            component.manifest_path,
            SEPARATOR,
            f"adding {component.name}",
        )
    else:
        await store.add_url(
            component.url.format(tag=tag),
            component.manifest_path,
            f"adding {component.name}",
            client=client,
        )
    if component.add_namespace:
        store.add_namespace(component.name, f"adding {component.name} namespace")
    store.create_kustomization(
        component.name, message=f"adding {component.name} kustomization"
    )


async def compose(
    path: Path,
    sources_dir: Path,
    components: list[Component] | None = None,
    client: httpx.AsyncClient | None = None,
) -> ManifestStore:
    """Create the repository at path with every upstream component.

    An existing repository is reopened and only the components without a
    kustomization yet are added, so a failed run can simply be repeated.
    """
    if repo_exists(path):
        _LOGGER.info("Using existing repository at %s", path)
        store = ManifestStore.open(path)
    else:
        store = ManifestStore.initialize(path)
    for component in components if components is not None else COMPONENTS:
        if (store.root / component.name / KUSTOMIZATION_FILE).exists():
            _LOGGER.debug("Component %s already present", component.name)
            continue
        _LOGGER.info("Adding component %s", component.name)
        await _add_component(store, component, sources_dir, client)
    return store
