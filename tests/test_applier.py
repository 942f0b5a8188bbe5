"""Tests for creating objects in the cluster."""

import base64

import pytest

from pivot.applier import ClusterApplier
from pivot.exceptions import (
    ApplyException,
    DecodeException,
    InputException,
    KubectlException,
    UnknownKindError,
)
from pivot.kustomize import Kustomize
from pivot.manifest import ApplyOutcome, Resource

from . import FakeKubectl, FakeTask

GITEA = Resource(
    api_version="hyperspike.io/v1",
    kind="Gitea",
    metadata={"name": "gitea", "namespace": "default"},
    spec={"tls": True},
)
REPO = Resource(
    api_version="hyperspike.io/v1",
    kind="Repo",
    metadata={"name": "infra", "namespace": "default"},
    spec={"org": {"name": "infra"}},
)
CRD = {
    "apiVersion": "apiextensions.k8s.io/v1",
    "kind": "CustomResourceDefinition",
    "metadata": {"name": "giteas.hyperspike.io", "namespace": "ignored"},
}
DEPLOYMENT = {
    "apiVersion": "apps/v1",
    "kind": "Deployment",
    "metadata": {"name": "cert-manager"},
}


async def test_apply(fake_kubectl: FakeKubectl) -> None:
    """Test each object is posted to the path for its kind and scope."""
    applier = ClusterApplier(fake_kubectl)
    outcomes = await applier.apply_all([GITEA, REPO, CRD, DEPLOYMENT])

    assert outcomes == [ApplyOutcome.CREATED] * 4
    assert [path for path, _ in fake_kubectl.created] == [
        "/apis/hyperspike.io/v1/namespaces/default/giteas",
        "/apis/hyperspike.io/v1/namespaces/default/repoes",
        "/apis/apiextensions.k8s.io/v1/customresourcedefinitions",
        "/apis/apps/v1/namespaces/default/deployments",
    ]
    assert fake_kubectl.created[0][1] == GITEA.doc()


async def test_already_exists() -> None:
    """Test an existing object counts as success."""
    kubectl = FakeKubectl(
        create_errors={
            "gitea": KubectlException(
                'Error from server (AlreadyExists): giteas.hyperspike.io "gitea" already exists'
            )
        }
    )
    applier = ClusterApplier(kubectl)
    assert await applier.apply_all([GITEA, REPO]) == [
        ApplyOutcome.ALREADY_EXISTS,
        ApplyOutcome.CREATED,
    ]


async def test_apply_failure() -> None:
    """Test any other failure names the object and stops."""
    kubectl = FakeKubectl(
        create_errors={"gitea": KubectlException("Error from server (Forbidden)")}
    )
    applier = ClusterApplier(kubectl)
    with pytest.raises(ApplyException, match="Gitea default/gitea") as exc_info:
        await applier.apply_all([GITEA, REPO])
    assert exc_info.value.kind == "Gitea"
    assert exc_info.value.namespace == "default"
    assert len(kubectl.created) == 1


async def test_unknown_kind(fake_kubectl: FakeKubectl) -> None:
    """Test objects that cannot be addressed are rejected before any request."""
    applier = ClusterApplier(fake_kubectl)
    with pytest.raises(UnknownKindError):
        await applier.apply_one(
            {"apiVersion": "example.com/v1", "kind": "Widget", "metadata": {"name": "a"}}
        )
    with pytest.raises(DecodeException):
        await applier.apply_one({"kind": "Namespace"})
    assert not fake_kubectl.created


async def test_dry_run() -> None:
    """Test a dry run needs no cluster and creates nothing."""
    applier = ClusterApplier(None, dry_run=True)
    rendered = Kustomize(
        [FakeTask("---\napiVersion: v1\nkind: Namespace\nmetadata:\n  name: argocd\n")]
    )
    assert await applier.apply_rendered(rendered) == [ApplyOutcome.DRY_RUN]
    assert await applier.apply_one(GITEA) == ApplyOutcome.DRY_RUN


def test_cluster_required() -> None:
    """Test a real run requires a cluster client."""
    with pytest.raises(InputException):
        ClusterApplier(None)


async def test_get_secret_value() -> None:
    """Test reading and decoding one key of a Secret."""
    path = "/api/v1/namespaces/default/secrets/pivot-password"
    kubectl = FakeKubectl(
        objects={
            path: {"data": {"password": base64.b64encode(b"s3cret").decode()}},
        }
    )
    applier = ClusterApplier(kubectl)
    assert await applier.get_secret_value("default", "pivot-password", "password") == "s3cret"
    with pytest.raises(InputException, match="no key 'token'"):
        await applier.get_secret_value("default", "pivot-password", "token")


async def test_find_secret_value() -> None:
    """Test a missing Secret is reported as absent and other errors raise."""
    missing = "/api/v1/namespaces/default/secrets/pivot-password"
    denied = "/api/v1/namespaces/default/secrets/other-password"
    kubectl = FakeKubectl(
        objects={
            missing: KubectlException(
                'Error from server (NotFound): secrets "pivot-password" not found'
            ),
            denied: KubectlException("Error from server (Forbidden)"),
        }
    )
    applier = ClusterApplier(kubectl)
    assert await applier.find_secret_value("default", "pivot-password", "password") is None
    with pytest.raises(KubectlException, match="Forbidden"):
        await applier.find_secret_value("default", "other-password", "password")
