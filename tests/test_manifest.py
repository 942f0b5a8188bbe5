"""Tests for manifest objects."""

import pytest
import yaml

from pivot.exceptions import DecodeException, UnknownKindError
from pivot.manifest import (
    Kustomization,
    Namespace,
    ObjectRef,
    Resource,
    dump_documents,
    kind_info,
)


@pytest.mark.parametrize(
    ("kind", "resource", "cluster_scoped"),
    [
        ("Namespace", "namespaces", True),
        ("CustomResourceDefinition", "customresourcedefinitions", True),
        ("ClusterRoleBinding", "clusterrolebindings", True),
        ("ValidatingWebhookConfiguration", "validatingwebhookconfigurations", True),
        ("NetworkPolicy", "networkpolicies", False),
        ("Ingress", "ingresses", False),
        ("Gitea", "giteas", False),
        ("Repo", "repoes", False),
        ("ApplicationSet", "applicationsets", False),
    ],
)
def test_kind_info(kind: str, resource: str, cluster_scoped: bool) -> None:
    """Test the API addressing of known kinds."""
    info = kind_info(kind)
    assert info.resource == resource
    assert info.cluster_scoped == cluster_scoped


def test_unknown_kind() -> None:
    """Test a kind without a mapping."""
    with pytest.raises(UnknownKindError, match="'Widget'"):
        kind_info("Widget")


def test_kustomization_yaml() -> None:
    """Test the serialized form of a kustomization."""
    ks = Kustomization(namespace="argocd", resources=["namespace.yaml", "argocd.yaml"])
    assert ks.yaml() == (
        "apiVersion: kustomize.config.k8s.io/v1beta1\n"
        "kind: Kustomization\n"
        "namespace: argocd\n"
        "resources:\n"
        "- namespace.yaml\n"
        "- argocd.yaml\n"
    )
    assert Kustomization.parse_yaml(ks.yaml()) == ks


def test_namespace_yaml() -> None:
    """Test the serialized form of a namespace."""
    assert Namespace(name="argocd").yaml() == (
        "apiVersion: v1\nkind: Namespace\nmetadata:\n  name: argocd\n"
    )


def test_resource_doc_omits_empty_fields() -> None:
    """Test a resource without a spec serializes only the fields it has."""
    secret = Resource(
        api_version="v1",
        kind="Secret",
        metadata={"name": "pivot-password", "namespace": "default"},
        type="Opaque",
        data={"password": "c2VjcmV0"},
    )
    assert secret.doc() == {
        "apiVersion": "v1",
        "kind": "Secret",
        "metadata": {"name": "pivot-password", "namespace": "default"},
        "type": "Opaque",
        "data": {"password": "c2VjcmV0"},
    }
    assert str(secret.named_resource) == "Secret/default/pivot-password"


def test_object_ref() -> None:
    """Test decoding the addressing fields of a document."""
    ref = ObjectRef.parse_doc(
        {
            "apiVersion": "hyperspike.io/v1",
            "kind": "Gitea",
            "metadata": {"name": "gitea", "namespace": "default"},
        }
    )
    assert ref.group == "hyperspike.io"
    assert ref.version == "v1"
    assert ref.namespace == "default"

    core = ObjectRef.parse_doc(
        {"apiVersion": "v1", "kind": "Namespace", "metadata": {"name": "argocd"}}
    )
    assert core.group == ""
    assert core.version == "v1"
    assert core.namespace is None


@pytest.mark.parametrize(
    "doc",
    [
        "not a mapping",
        {"kind": "Namespace", "metadata": {"name": "a"}},
        {"apiVersion": "v1", "metadata": {"name": "a"}},
        {"apiVersion": "v1", "kind": "Namespace"},
        {"apiVersion": "v1", "kind": "Namespace", "metadata": {}},
    ],
)
def test_object_ref_invalid(doc: object) -> None:
    """Test documents that are not kubernetes objects."""
    with pytest.raises(DecodeException):
        ObjectRef.parse_doc(doc)


def test_dump_documents() -> None:
    """Test every document is preceded by a separator and keeps key order."""
    content = dump_documents(
        [
            {"kind": "Gitea", "apiVersion": "hyperspike.io/v1"},
            {"kind": "Org", "apiVersion": "hyperspike.io/v1"},
        ]
    )
    assert content.startswith("---\nkind: Gitea\n")
    assert content.count("---\n") == 2
    assert [doc["kind"] for doc in yaml.safe_load_all(content)] == ["Gitea", "Org"]
