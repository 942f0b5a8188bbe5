"""Tests for composing the repository from upstream components."""

from collections.abc import Callable
from pathlib import Path
from unittest.mock import patch

import httpx

from pivot import components
from pivot.components import Component, compose

MakeClient = Callable[..., httpx.AsyncClient]

EXAMPLE = Component(
    name="example-operator",
    url="https://github.com/example/example-operator/releases/download/{tag}/install.yaml",
    project="example/example-operator",
)
DASHBOARD = Component(
    name="dashboard",
    url="https://example.com/dashboard/install.yaml",
    add_namespace=True,
)
DATABASE = Component(
    name="database-operator",
    url="https://github.com/example/database-operator",
    project="example/database-operator",
    git_files=["manifests/configmap.yaml", "manifests/operator.yaml"],
)


class FakeReleases:
    """Answers release feed and download requests."""

    def __init__(self) -> None:
        self.requests: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url.endswith("/releases/latest"):
            return httpx.Response(200, json={"tag_name": "v0.3.0"})
        if url.endswith("/v0.3.0/install.yaml") or url.endswith("dashboard/install.yaml"):
            return httpx.Response(200, content=b"kind: List\nitems: []\n")
        return httpx.Response(404)


def fake_clone(url: str, dest: Path, tag: str) -> None:
    (dest / "manifests").mkdir(parents=True)
    (dest / "manifests" / "configmap.yaml").write_text(f"kind: ConfigMap # {tag}\n")
    (dest / "manifests" / "operator.yaml").write_text("kind: Deployment\n")


def test_components() -> None:
    """Test the upstream components and the order operators are installed."""
    names = [component.name for component in components.COMPONENTS]
    assert names == [
        "argocd",
        "cert-manager",
        "valkey-operator",
        "postgres-operator",
        "gitea-operator",
    ]
    assert sorted(components.OPERATOR_ORDER) == sorted(names)
    assert components.OPERATOR_ORDER[0] == "cert-manager"
    assert components.OPERATOR_ORDER[-1] == "gitea-operator"
    assert components.COMPONENTS[0].add_namespace
    assert components.COMPONENTS[1].release_feed == (
        "https://api.github.com/repos/cert-manager/cert-manager/releases/latest"
    )


async def test_compose(tmp_path: Path, make_client: MakeClient) -> None:
    """Test composing a repository from downloaded and cloned components."""
    releases = FakeReleases()
    client = make_client(releases)
    with patch("pivot.components.clone_tag", side_effect=fake_clone) as clone:
        store = await compose(
            tmp_path / "infra",
            tmp_path / "sources",
            components=[EXAMPLE, DASHBOARD, DATABASE],
            client=client,
        )

    clone.assert_called_once_with(
        DATABASE.url, tmp_path / "sources" / "database-operator", "v0.3.0"
    )
    assert (store.root / "example-operator/example-operator.yaml").exists()
    assert (store.root / "dashboard/namespace.yaml").exists()
    assert (store.root / "database-operator/database-operator.yaml").read_text() == (
        "---\nkind: ConfigMap # v0.3.0\n---\nkind: Deployment\n"
    )
    assert (store.root / "dashboard/kustomization.yaml").read_text().endswith(
        "namespace: dashboard\nresources:\n- namespace.yaml\n- dashboard.yaml\n"
    )
    # The clone lives outside of the tree
    assert not (store.root / "database-operator/manifests").exists()
    messages = [c.message for c in store.repo.iter_commits()]
    assert "adding dashboard namespace" in messages
    assert len(messages) == 1 + 2 + 3 + 2


async def test_compose_again(tmp_path: Path, make_client: MakeClient) -> None:
    """Test a second run reuses the repository and skips finished components."""
    first = FakeReleases()
    store = await compose(
        tmp_path / "infra", tmp_path / "sources", [EXAMPLE], client=make_client(first)
    )
    head = store.repo.head.commit.hexsha

    second = FakeReleases()
    store = await compose(
        tmp_path / "infra",
        tmp_path / "sources",
        [EXAMPLE, DASHBOARD],
        client=make_client(second),
    )

    assert second.requests == ["https://example.com/dashboard/install.yaml"]
    assert store.repo.head.commit.parents[0].parents[0].parents[0].hexsha == head
