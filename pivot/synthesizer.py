"""Build the objects that configure the git server and the CD controller.

The synthesizer is pure construction: every method returns the resources in
the order they must be created, and separately records the subset that is
written into the repository under a `ManifestGroup`. Secrets are created in
the cluster but never recorded, so no credential is committed to git.
"""

import base64
import logging
from pathlib import Path
from typing import Any

from .exceptions import InputException, StoreException
from .manifest import (
    DEFAULT_NAMESPACE,
    SECRET_KIND,
    ManifestGroup,
    Resource,
    dump_documents,
)
from .store import ManifestStore

__all__ = [
    "ResourceSynthesizer",
]

_LOGGER = logging.getLogger(__name__)

GITEA_API_VERSION = "hyperspike.io/v1"
ARGO_API_VERSION = "argoproj.io/v1alpha1"
GITEA_NAME = "gitea"
ORG_NAME = "infra"
REPO_NAME = "infra"
ARGOCD_NAMESPACE = "argocd"
INIT_NAME = "init"
CLUSTER_SERVER = "https://kubernetes.default.svc"
REPO_URL = f"https://gitea.{DEFAULT_NAMESPACE}.svc/{ORG_NAME}/{REPO_NAME}"
MANAGED_BY = "argocd.argoproj.io"
GENERATE_PATHS_ANNOTATION = "argocd.argoproj.io/manifest-generate-paths"
PASSWORD_KEY = "password"


def _b64(value: str) -> str:
    return base64.b64encode(value.encode()).decode()


def password_secret_name(user: str) -> str:
    """Name of the Secret holding the password of the initial user."""
    return f"{user}-password"


def _application_spec(path: str) -> dict[str, Any]:
    return {
        "destination": {
            "namespace": ARGOCD_NAMESPACE,
            "server": CLUSTER_SERVER,
        },
        "project": "default",
        "source": {
            "path": path,
            "repoURL": REPO_URL,
            "targetRevision": "HEAD",
        },
        "syncPolicy": {"automated": {}},
    }


class ResourceSynthesizer:
    """Accumulates synthesized resources per output manifest file."""

    def __init__(self) -> None:
        self._groups: dict[ManifestGroup, list[Resource]] = {
            group: [] for group in ManifestGroup
        }

    def group(self, group: ManifestGroup) -> list[Resource]:
        """Resources recorded for the group in construction order."""
        return list(self._groups[group])

    def _record(self, group: ManifestGroup, resources: list[Resource]) -> None:
        self._groups[group] = [r for r in resources if r.kind != SECRET_KIND]

    def gitea(
        self, user: str, password: str, domain: str, valkey: bool = True
    ) -> list[Resource]:
        """Build the git server, its initial admin user, org and repository."""
        secret_name = password_secret_name(user)
        instance = {"name": GITEA_NAME}
        resources = [
            Resource(
                api_version=GITEA_API_VERSION,
                kind="Gitea",
                metadata={"name": GITEA_NAME, "namespace": DEFAULT_NAMESPACE},
                spec={
                    "tls": True,
                    "valkey": valkey,
                    "certIssuer": "selfsigned",
                    "ingress": {"host": domain},
                },
            ),
            Resource(
                api_version="v1",
                kind=SECRET_KIND,
                metadata={"name": secret_name, "namespace": DEFAULT_NAMESPACE},
                type="Opaque",
                data={PASSWORD_KEY: _b64(password)},
            ),
            Resource(
                api_version=GITEA_API_VERSION,
                kind="User",
                metadata={"name": user, "namespace": DEFAULT_NAMESPACE},
                spec={
                    "email": f"{user}@{domain}",
                    "password": {"name": secret_name, "key": PASSWORD_KEY},
                    "instance": instance,
                },
            ),
            Resource(
                api_version=GITEA_API_VERSION,
                kind="Org",
                metadata={"name": ORG_NAME, "namespace": DEFAULT_NAMESPACE},
                spec={
                    "description": "Infrastructure team",
                    "instance": instance,
                    "teams": [
                        {
                            "name": "admin",
                            "permission": "admin",
                            "includeAllRepos": True,
                            "createOrgRepo": True,
                            "members": [user],
                        }
                    ],
                },
            ),
            Resource(
                api_version=GITEA_API_VERSION,
                kind="Repo",
                metadata={"name": REPO_NAME, "namespace": DEFAULT_NAMESPACE},
                spec={"org": {"name": ORG_NAME}, "private": True},
            ),
        ]
        self._record(ManifestGroup.GITEA, resources)
        return resources

    def argocd_init(
        self, user: str, password: str, components: list[str]
    ) -> list[Resource]:
        """Build the CD controller's repository credentials and self bootstrap.

        The ApplicationSet generates one automatically synced Application per
        top level component directory of the repository.
        """
        labels = {"app.kubernetes.io/managed-by": MANAGED_BY}
        annotations = {GENERATE_PATHS_ANNOTATION: "."}
        resources = [
            Resource(
                api_version="v1",
                kind=SECRET_KIND,
                metadata={
                    "name": f"{REPO_NAME}-repo",
                    "namespace": ARGOCD_NAMESPACE,
                    "annotations": {"managed-by": MANAGED_BY},
                    "labels": {"argocd.argoproj.io/secret-type": "repository"},
                },
                type="Opaque",
                data={
                    "insecure": _b64("true"),
                    "name": _b64(REPO_NAME),
                    "username": _b64(user),
                    "password": _b64(password),
                    "project": _b64("default"),
                    "type": _b64("git"),
                    "url": _b64(REPO_URL),
                },
            ),
            Resource(
                api_version=ARGO_API_VERSION,
                kind="Application",
                metadata={
                    "name": INIT_NAME,
                    "namespace": ARGOCD_NAMESPACE,
                    "labels": {**labels, "app.kubernetes.io/instance": INIT_NAME},
                    "annotations": annotations,
                },
                spec=_application_spec(INIT_NAME),
            ),
            Resource(
                api_version=ARGO_API_VERSION,
                kind="ApplicationSet",
                metadata={"name": INIT_NAME, "namespace": ARGOCD_NAMESPACE},
                spec={
                    "goTemplate": True,
                    "goTemplateOptions": ["missingkey=error"],
                    "generators": [
                        {"list": {"elements": [{"path": c} for c in components]}}
                    ],
                    "template": {
                        "metadata": {
                            "name": "{{.path}}",
                            "labels": {
                                **labels,
                                "app.kubernetes.io/instance": "{{.path}}",
                            },
                            "annotations": annotations,
                        },
                        "spec": _application_spec("{{.path}}"),
                    },
                },
            ),
        ]
        self._record(ManifestGroup.ARGOCD, resources)
        return resources

    def write(self, group: ManifestGroup, store: ManifestStore, relative_path: str) -> Path:
        """Serialize the group into a manifest file inside the store."""
        if not (resources := self._groups[group]):
            raise InputException(
                f"No {group.value} objects to write, synthesize them first"
            )
        target = store.resolve(relative_path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(dump_documents([r.doc() for r in resources]))
        except OSError as err:
            raise StoreException(f"Unable to write {relative_path}: {err}") from err
        _LOGGER.debug("Wrote %d objects to %s", len(resources), relative_path)
        return target
