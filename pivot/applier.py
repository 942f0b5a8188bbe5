"""Create rendered and synthesized resources in the cluster.

The applier only ever creates objects. An object that already exists is
left alone and counted as a success, which makes re-running a partially
completed bootstrap safe. Reconciling drift is the job of the CD controller
installed at the end of the bootstrap.
"""

import base64
import binascii
from collections.abc import Iterable
import logging
from typing import Any

from .exceptions import ApplyException, InputException, KubectlException
from .kubectl import Kubectl, api_path
from .kustomize import Kustomize
from .manifest import (
    DEFAULT_NAMESPACE,
    SECRET_KIND,
    ApplyOutcome,
    ObjectRef,
    Resource,
    kind_info,
)

__all__ = [
    "ClusterApplier",
]

_LOGGER = logging.getLogger(__name__)

_ALREADY_EXISTS = ("alreadyexists", "already exists")
_NOT_FOUND = ("(notfound)",)


def _is_already_exists(err: KubectlException) -> bool:
    message = str(err).lower()
    return any(marker in message for marker in _ALREADY_EXISTS)


def _is_not_found(err: KubectlException) -> bool:
    message = str(err).lower()
    return any(marker in message for marker in _NOT_FOUND)


class ClusterApplier:
    """Idempotently create objects in the cluster."""

    def __init__(self, kubectl: Kubectl | None, dry_run: bool = False) -> None:
        """Initialize ClusterApplier.

        A dry run applier needs no cluster access and may be given no client.
        """
        if kubectl is None and not dry_run:
            raise InputException("A cluster client is required unless dry run")
        self._kubectl = kubectl
        self._dry_run = dry_run
        if dry_run:
            _LOGGER.info("Dry run enabled")

    @property
    def dry_run(self) -> bool:
        return self._dry_run

    async def apply_one(self, obj: dict[str, Any] | Resource) -> ApplyOutcome:
        """Create a single object, treating an existing object as success."""
        doc = obj.doc() if isinstance(obj, Resource) else obj
        ref = ObjectRef.parse_doc(doc)
        info = kind_info(ref.kind)
        namespace: str | None = None
        if not info.cluster_scoped:
            namespace = ref.namespace or DEFAULT_NAMESPACE
        path = api_path(ref.group, ref.version, info.resource, namespace)
        if self._dry_run:
            _LOGGER.info("Dry run: Creating %s (%s)", ref.named_resource, path)
            return ApplyOutcome.DRY_RUN
        if self._kubectl is None:
            raise InputException("A cluster client is required unless dry run")
        _LOGGER.info("Creating %s", ref.named_resource)
        try:
            await self._kubectl.create_raw(path, doc)
        except KubectlException as err:
            if _is_already_exists(err):
                _LOGGER.info("%s already exists, ignoring", ref.named_resource)
                return ApplyOutcome.ALREADY_EXISTS
            raise ApplyException(ref.kind, namespace, ref.name, str(err)) from err
        return ApplyOutcome.CREATED

    async def apply_all(
        self, objs: Iterable[dict[str, Any] | Resource]
    ) -> list[ApplyOutcome]:
        """Create each object in order, stopping at the first failure."""
        return [await self.apply_one(obj) for obj in objs]

    async def apply_rendered(self, rendered: Kustomize) -> list[ApplyOutcome]:
        """Render a component and create every resource it contains."""
        return await self.apply_all(await rendered.objects())

    async def get_secret_value(self, namespace: str, name: str, key: str) -> str:
        """Return one decoded value of a Secret."""
        if self._kubectl is None:
            raise InputException("Reading secrets requires cluster access")
        path = api_path("", "v1", kind_info(SECRET_KIND).resource, namespace, name)
        secret = await self._kubectl.get_raw(path)
        if (value := (secret.get("data") or {}).get(key)) is None:
            raise InputException(f"Secret {namespace}/{name} has no key '{key}'")
        try:
            return base64.b64decode(value, validate=True).decode()
        except (binascii.Error, UnicodeDecodeError) as err:
            raise InputException(
                f"Secret {namespace}/{name} key '{key}' is not valid base64: {err}"
            ) from err

    async def find_secret_value(
        self, namespace: str, name: str, key: str
    ) -> str | None:
        """Return one decoded value of a Secret, or None if the Secret is absent."""
        try:
            return await self.get_secret_value(namespace, name, key)
        except KubectlException as err:
            if _is_not_found(err):
                _LOGGER.debug("Secret %s/%s does not exist", namespace, name)
                return None
            raise
