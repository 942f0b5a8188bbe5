"""Drive a fresh cluster to a self hosted GitOps state.

The bootstrap is a single linear pipeline:

1. Compose the local repository from the upstream operator releases.
2. Install the operators, in dependency order, from their rendered
   components.
3. Create the git server with its initial user, org and repository and
   record those objects in the repository.
4. Push the repository into the git server, through a port-forward.
5. Create the CD controller's self bootstrap application, record it, and
   push again.

The first error aborts the run. Nothing is rolled back: the repository keeps
its commits and the cluster keeps what was created, and a repeated run makes
progress because existing components are skipped and existing objects are
left as they are.
"""

import asyncio
from dataclasses import dataclass, field
import logging
from pathlib import Path
import secrets
import string

import httpx

from . import components, kustomize
from .applier import ClusterApplier
from .exceptions import InputException, PushException, PushExhausted
from .health import HealthProbe
from .manifest import ManifestGroup
from .retry import RetryBudget, wait_until
from .store import ManifestStore
from .synthesizer import PASSWORD_KEY, ResourceSynthesizer, password_secret_name
from .tunnel import TunnelManager

__all__ = [
    "Bootstrap",
    "BootstrapConfig",
    "generate_password",
]

_LOGGER = logging.getLogger(__name__)

PASSWORD_ALPHABET = (
    string.digits + string.ascii_uppercase + string.ascii_lowercase + "-"
)
PASSWORD_LENGTH = 16

GITEA_COMPONENT = "gitea"
GITEA_MANIFEST = "gitea/gitea.yaml"
GITEA_POD = "gitea-0"
GITEA_NAMESPACE = "default"
INIT_COMPONENT = "init"
INIT_MANIFEST = "init/init.yaml"
INIT_NAMESPACE = "argocd"
REPO_PATH = "infra/infra.git"
LOCAL_REMOTE = "local"
ORIGIN_REMOTE = "origin"


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """Generate a random password for the initial git server user."""
    return "".join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


@dataclass
class BootstrapConfig:
    """Settings for one bootstrap run."""

    remote: str = "git.local.net"
    """Host name the git server is published on."""

    user: str = "pivot"
    """Initial administrative user of the git server."""

    password: str = ""
    """Password of the initial user, generated when empty."""

    dry_run: bool = False
    """Log what would be created without touching the cluster."""

    path: Path = Path("infra")
    """Location of the local repository."""

    sources_dir: Path = Path(".pivot-sources")
    """Where upstream git repositories are cloned."""

    git_port: int = 3000
    """Port of the git server pod, forwarded to the same local port."""

    valkey: bool = True
    """Back the git server with a valkey cache."""

    reachability_budget: RetryBudget = field(
        default_factory=lambda: RetryBudget(max_attempts=60, interval=3.0)
    )
    push_budget: RetryBudget = field(
        default_factory=lambda: RetryBudget(max_attempts=60, interval=3.0)
    )
    pod_budget: RetryBudget = field(
        default_factory=lambda: RetryBudget(max_attempts=60, interval=5.0)
    )

    @property
    def local_url(self) -> str:
        return f"https://localhost:{self.git_port}/{REPO_PATH}"

    @property
    def origin_url(self) -> str:
        return f"https://{self.remote}/{REPO_PATH}"

    @property
    def health_url(self) -> str:
        return f"https://localhost:{self.git_port}/api/healthz"


class Bootstrap:
    """The bootstrap pipeline."""

    def __init__(
        self,
        config: BootstrapConfig,
        applier: ClusterApplier,
        tunnel: TunnelManager | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize Bootstrap.

        Args:
            config: Settings for the run.
            applier: Creates objects in the cluster, or only logs on dry run.
            tunnel: Port-forward to the git server, required unless dry run.
            client: Optional HTTP client used to download upstream releases.
        """
        self._config = config
        self._applier = applier
        self._tunnel = tunnel
        self._client = client
        self._synthesizer = ResourceSynthesizer()

    async def run(self) -> str:
        """Run the whole pipeline and return the initial user's password."""
        config = self._config
        store = await components.compose(
            config.path, config.sources_dir, client=self._client
        )
        await self.install_operators(store)

        password = await self.resolve_password()
        await self.install_gitea(store, password)
        store.add_remote(LOCAL_REMOTE, config.local_url)
        store.add_remote(ORIGIN_REMOTE, config.origin_url)

        if config.dry_run:
            await self.install_argocd_init(store, password)
            _LOGGER.info("Dry run complete")
            return password

        if self._tunnel is None:
            raise InputException("A tunnel is required unless dry run")
        self._tunnel.start()
        try:
            await self._tunnel.wait_ready()
            await HealthProbe(config.health_url).wait_for_healthy(
                config.reachability_budget
            )
            await self.push(store, password)
            await self.install_argocd_init(store, password)
            await self.push(store, password)
        finally:
            await self._tunnel.stop()
        _LOGGER.info("Bootstrap complete, %s now manages the cluster", ORIGIN_REMOTE)
        return password

    async def resolve_password(self) -> str:
        """Return the configured password, the stored one, or a new one.

        The git server user of a previous run was created with the password
        in its Secret, so that one is reused.
        """
        config = self._config
        if config.password:
            return config.password
        if not self._applier.dry_run:
            stored = await self._applier.find_secret_value(
                GITEA_NAMESPACE, password_secret_name(config.user), PASSWORD_KEY
            )
            if stored:
                _LOGGER.info("Using the password stored by a previous run")
                return stored
        return generate_password()

    async def install_operators(self, store: ManifestStore) -> None:
        """Apply every operator component in dependency order."""
        for name in components.OPERATOR_ORDER:
            _LOGGER.info("Applying %s", name)
            await self._applier.apply_rendered(kustomize.build(store.root / name))

    async def install_gitea(self, store: ManifestStore, password: str) -> None:
        """Create the git server objects and record them in the repository."""
        config = self._config
        resources = self._synthesizer.gitea(
            config.user, password, config.remote, valkey=config.valkey
        )
        await self._applier.apply_all(resources)
        self._synthesizer.write(ManifestGroup.GITEA, store, GITEA_MANIFEST)
        store.add_existing(GITEA_MANIFEST)
        store.create_kustomization(GITEA_COMPONENT, namespace=GITEA_NAMESPACE)

    async def install_argocd_init(self, store: ManifestStore, password: str) -> None:
        """Create the CD controller's self bootstrap and record it."""
        names = [INIT_COMPONENT, GITEA_COMPONENT] + [
            c.name for c in components.COMPONENTS
        ]
        resources = self._synthesizer.argocd_init(self._config.user, password, names)
        await self._applier.apply_all(resources)
        self._synthesizer.write(ManifestGroup.ARGOCD, store, INIT_MANIFEST)
        store.add_existing(INIT_MANIFEST)
        store.create_kustomization(INIT_COMPONENT, namespace=INIT_NAMESPACE)

    async def push(self, store: ManifestStore, password: str) -> int:
        """Push to the in-cluster git server, retrying until accepted."""

        async def attempt() -> bool:
            await asyncio.to_thread(
                store.push, LOCAL_REMOTE, self._config.user, password
            )
            return True

        return await wait_until(
            attempt,
            self._config.push_budget,
            f"push to {LOCAL_REMOTE}",
            exc=PushExhausted,
            retry_on=(PushException,),
        )
