"""Representation of the objects pivot writes into the repo and the cluster.

Two kinds of objects live here. Descriptor objects (`Kustomization`,
`Namespace`) are generated for every component directory of the manifest
store. `Resource` objects are built in memory by the synthesizer, created in
the cluster by the applier and, grouped by `ManifestGroup`, recorded as
committed manifest files.
"""

from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Any

from mashumaro import DataClassDictMixin, field_options
from mashumaro.config import BaseConfig
import yaml

from .exceptions import DecodeException, UnknownKindError

__all__ = [
    "ApplyOutcome",
    "KindInfo",
    "kind_info",
    "Kustomization",
    "ManifestGroup",
    "Namespace",
    "NamedResource",
    "ObjectRef",
    "Resource",
    "dump_documents",
]

_LOGGER = logging.getLogger(__name__)


KUSTOMIZE_API_VERSION = "kustomize.config.k8s.io/v1beta1"
KUSTOMIZE_KIND = "Kustomization"
KUSTOMIZATION_FILE = "kustomization.yaml"
NAMESPACE_KIND = "Namespace"
NAMESPACE_FILE = "namespace.yaml"
SECRET_KIND = "Secret"
DEFAULT_NAMESPACE = "default"
DOCUMENT_SEPARATOR = "---\n"


class ManifestGroup(str, Enum):
    """Resources that are serialized together into one manifest file."""

    GITEA = "gitea"
    ARGOCD = "argocd"


class ApplyOutcome(str, Enum):
    """Result of creating a single resource in the cluster."""

    CREATED = "created"
    ALREADY_EXISTS = "already-exists"
    DRY_RUN = "dry-run"


@dataclass(frozen=True)
class KindInfo:
    """How the API server addresses a resource kind."""

    resource: str
    """The plural resource name used in the API path."""

    cluster_scoped: bool = False
    """True when objects of this kind do not live in a namespace."""


# Every kind pivot installs or synthesizes. The plural is the name the API
# server registers, which for custom resources is whatever the CRD declares.
KIND_TABLE: dict[str, KindInfo] = {
    # Cluster scoped
    "Namespace": KindInfo("namespaces", cluster_scoped=True),
    "CustomResourceDefinition": KindInfo(
        "customresourcedefinitions", cluster_scoped=True
    ),
    "ClusterRole": KindInfo("clusterroles", cluster_scoped=True),
    "ClusterRoleBinding": KindInfo("clusterrolebindings", cluster_scoped=True),
    "MutatingWebhookConfiguration": KindInfo(
        "mutatingwebhookconfigurations", cluster_scoped=True
    ),
    "ValidatingWebhookConfiguration": KindInfo(
        "validatingwebhookconfigurations", cluster_scoped=True
    ),
    "APIService": KindInfo("apiservices", cluster_scoped=True),
    "PriorityClass": KindInfo("priorityclasses", cluster_scoped=True),
    "StorageClass": KindInfo("storageclasses", cluster_scoped=True),
    "ClusterIssuer": KindInfo("clusterissuers", cluster_scoped=True),
    # Core and built-in namespaced kinds
    "ServiceAccount": KindInfo("serviceaccounts"),
    "Role": KindInfo("roles"),
    "RoleBinding": KindInfo("rolebindings"),
    "ConfigMap": KindInfo("configmaps"),
    "Secret": KindInfo("secrets"),
    "Service": KindInfo("services"),
    "PersistentVolumeClaim": KindInfo("persistentvolumeclaims"),
    "Deployment": KindInfo("deployments"),
    "StatefulSet": KindInfo("statefulsets"),
    "DaemonSet": KindInfo("daemonsets"),
    "Job": KindInfo("jobs"),
    "CronJob": KindInfo("cronjobs"),
    "NetworkPolicy": KindInfo("networkpolicies"),
    "PodDisruptionBudget": KindInfo("poddisruptionbudgets"),
    "Ingress": KindInfo("ingresses"),
    # cert-manager
    "Issuer": KindInfo("issuers"),
    "Certificate": KindInfo("certificates"),
    # postgres-operator
    "OperatorConfiguration": KindInfo("operatorconfigurations"),
    "PostgresTeam": KindInfo("postgresteams"),
    # gitea-operator
    "Gitea": KindInfo("giteas"),
    "User": KindInfo("users"),
    "Org": KindInfo("orgs"),
    "Repo": KindInfo("repoes"),
    # argo-cd
    "Application": KindInfo("applications"),
    "ApplicationSet": KindInfo("applicationsets"),
    "AppProject": KindInfo("appprojects"),
}


def kind_info(kind: str) -> KindInfo:
    """Return the API addressing for a kind, failing on unknown kinds."""
    if (info := KIND_TABLE.get(kind)) is None:
        raise UnknownKindError(kind)
    return info


@dataclass
class BaseManifest(DataClassDictMixin):
    """Base class for all manifest objects."""

    @classmethod
    def parse_yaml(cls, content: str) -> "BaseManifest":
        """Parse a serialized manifest."""
        return cls.from_dict(yaml.safe_load(content))

    def yaml(self) -> str:
        """Return a YAML string representation of the object."""
        return yaml.dump(self.to_dict(), sort_keys=False)

    class Config(BaseConfig):
        omit_none = True
        serialize_by_alias = True


@dataclass(frozen=True, order=True)
class NamedResource:
    """Identifier for a kubernetes resource."""

    kind: str
    namespace: str | None
    name: str

    @property
    def namespaced_name(self) -> str:
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    def __str__(self) -> str:
        """Return the kind and namespaced name concatenated as an id."""
        return f"{self.kind}/{self.namespaced_name}"


@dataclass
class Kustomization(BaseManifest):
    """A kustomize descriptor listing the resources of a component directory."""

    namespace: str
    """The namespace every resource in the component is placed into."""

    resources: list[str] = field(default_factory=list)
    """File names of the component, namespace file first."""

    api_version: str = field(
        default=KUSTOMIZE_API_VERSION, metadata=field_options(alias="apiVersion")
    )
    kind: str = KUSTOMIZE_KIND

    def yaml(self) -> str:
        """Return the descriptor with the conventional key order."""
        doc = self.to_dict()
        ordered = {
            "apiVersion": doc["apiVersion"],
            "kind": doc["kind"],
            "namespace": doc["namespace"],
            "resources": doc["resources"],
        }
        return yaml.dump(ordered, sort_keys=False)


@dataclass
class Namespace(BaseManifest):
    """A minimal Namespace object named after a component."""

    name: str

    def yaml(self) -> str:
        return yaml.dump(
            {
                "apiVersion": "v1",
                "kind": NAMESPACE_KIND,
                "metadata": {"name": self.name},
            },
            sort_keys=False,
        )


@dataclass
class Resource(BaseManifest):
    """An object synthesized in memory by pivot."""

    api_version: str = field(metadata=field_options(alias="apiVersion"))
    kind: str
    metadata: dict[str, Any]
    spec: dict[str, Any] | None = None
    type: str | None = None
    data: dict[str, str] | None = None

    @property
    def name(self) -> str:
        return str(self.metadata["name"])

    @property
    def namespace(self) -> str | None:
        return self.metadata.get("namespace")

    @property
    def named_resource(self) -> NamedResource:
        return NamedResource(self.kind, self.namespace, self.name)

    def doc(self) -> dict[str, Any]:
        """Return the object as a plain kubernetes document."""
        return self.to_dict()


@dataclass(frozen=True)
class ObjectRef:
    """The addressing fields decoded from an arbitrary kubernetes document."""

    api_version: str
    kind: str
    name: str
    namespace: str | None

    @property
    def group(self) -> str:
        """The API group, empty for the core group."""
        if "/" not in self.api_version:
            return ""
        return self.api_version.split("/", 1)[0]

    @property
    def version(self) -> str:
        return self.api_version.rsplit("/", 1)[-1]

    @property
    def named_resource(self) -> NamedResource:
        return NamedResource(self.kind, self.namespace, self.name)

    @classmethod
    def parse_doc(cls, doc: Any) -> "ObjectRef":
        """Decode the addressing fields, failing on malformed documents."""
        if not isinstance(doc, dict):
            raise DecodeException(f"Invalid object is not a mapping: {doc!r}")
        if not (api_version := doc.get("apiVersion")):
            raise DecodeException(f"Invalid object missing apiVersion: {doc}")
        if not (kind := doc.get("kind")):
            raise DecodeException(f"Invalid object missing kind: {doc}")
        if not isinstance(metadata := doc.get("metadata"), dict):
            raise DecodeException(f"Invalid {kind} missing metadata: {doc}")
        if not (name := metadata.get("name")):
            raise DecodeException(f"Invalid {kind} missing metadata.name: {doc}")
        return ObjectRef(
            api_version=api_version,
            kind=kind,
            name=name,
            namespace=metadata.get("namespace"),
        )


def dump_documents(docs: list[dict[str, Any]]) -> str:
    """Serialize documents in order, each preceded by a document separator."""
    return "".join(
        DOCUMENT_SEPARATOR + yaml.dump(doc, sort_keys=False) for doc in docs
    )
