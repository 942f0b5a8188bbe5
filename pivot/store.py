"""Library for composing the local GitOps repository.

The manifest store is a git working copy where every mutation is a single
fetch or synthesize step followed by a commit. A pipeline that fails part way
leaves behind a valid repository whose history shows exactly which components
were added, and running the pipeline again continues from there.

Example usage:

```python
from pivot.store import ManifestStore

store = ManifestStore.initialize(Path("infra"))
await store.add_url(
    "https://example.com/install.yaml", "example/example.yaml", "adding example"
)
store.create_kustomization("example")
```
"""

import base64
import logging
import os
from pathlib import Path

import aiofiles
import git
import httpx

from . import release
from .exceptions import (
    AuthFailure,
    FetchException,
    NetworkFailure,
    PushException,
    RejectedByRemote,
    StoreException,
    StoreExistsError,
)
from .manifest import (
    KUSTOMIZATION_FILE,
    NAMESPACE_FILE,
    Kustomization,
    Namespace,
)

__all__ = [
    "ManifestStore",
    "clone_tag",
    "repo_exists",
]

_LOGGER = logging.getLogger(__name__)

AUTHOR = git.Actor("Pivot GitOps", "pivot@hyperspike.io")
DEFAULT_BRANCH = "main"
README_FILE = "README.md"
README_CONTENT = "# Pivot GitOps"
FILE_MODE = 0o600
DIR_MODE = 0o750

_AUTH_ERRORS = ("authentication failed", "401", "403", "could not read username")
_REJECT_ERRORS = ("[rejected]", "[remote rejected]", "failed to push some refs")


def repo_exists(path: Path) -> bool:
    """Return true if the path is already a git working copy."""
    try:
        git.Repo(str(path))
    except (git.InvalidGitRepositoryError, git.NoSuchPathError):
        return False
    return True


def clone_tag(url: str, dest: Path, tag: str) -> None:
    """Shallow clone a single tag of a repository.

    Nothing is done when the destination already holds a repository, so this
    is safe to call again on a re-run.
    """
    if repo_exists(dest):
        _LOGGER.debug("Repository already cloned at %s", dest)
        return
    _LOGGER.info("Cloning %s@%s to %s", url, tag, dest)
    try:
        git.Repo.clone_from(url, str(dest), depth=1, branch=tag, single_branch=True)
    except git.GitCommandError as err:
        raise FetchException(f"Unable to clone {url}@{tag}: {err.stderr}") from err


class ManifestStore:
    """A git working copy holding the GitOps components."""

    def __init__(self, repo: git.Repo, root: Path) -> None:
        """Initialize ManifestStore, use `initialize` or `open` instead."""
        self._repo = repo
        self._root = root

    @classmethod
    def initialize(cls, path: Path) -> "ManifestStore":
        """Create a new repository at path with a README as the first commit."""
        if repo_exists(path):
            raise StoreExistsError(f"Repository already exists at {path}")
        try:
            repo = git.Repo.init(str(path), mkdir=True, initial_branch=DEFAULT_BRANCH)
        except (OSError, git.GitCommandError) as err:
            raise StoreException(f"Unable to create repository at {path}: {err}") from err
        _LOGGER.info("Created repository at %s", path)
        store = cls(repo, path.resolve())
        store._write(README_FILE, README_CONTENT.encode())
        store._commit([README_FILE], "Initial commit")
        return store

    @classmethod
    def open(cls, path: Path) -> "ManifestStore":
        """Open an existing repository created by a previous run."""
        try:
            repo = git.Repo(str(path))
        except (git.InvalidGitRepositoryError, git.NoSuchPathError) as err:
            raise StoreException(f"No repository at {path}: {err}") from err
        return cls(repo, path.resolve())

    @property
    def root(self) -> Path:
        """The absolute path of the working copy."""
        return self._root

    @property
    def repo(self) -> git.Repo:
        return self._repo

    def resolve(self, relative_path: str | Path) -> Path:
        """Return the absolute path of a file inside the tree.

        Computed file names must stay underneath the root of the tree.
        """
        target = (self._root / relative_path).resolve()
        if not target.is_relative_to(self._root):
            raise StoreException(f"invalid file path {relative_path}")
        return target

    def _write(self, relative_path: str | Path, content: bytes) -> Path:
        target = self.resolve(relative_path)
        try:
            target.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            target.write_bytes(content)
            os.chmod(target, FILE_MODE)
        except OSError as err:
            raise StoreException(f"Unable to write {relative_path}: {err}") from err
        return target

    def _commit(self, paths: list[str | Path], message: str) -> None:
        """Stage the paths and record them as a single commit."""
        rel_paths = [
            str(self.resolve(path).relative_to(self._root)) for path in paths
        ]
        try:
            self._repo.index.add(rel_paths)
            self._repo.index.commit(message, author=AUTHOR, committer=AUTHOR)
        except (OSError, git.GitError) as err:
            raise StoreException(f"Unable to commit {rel_paths}: {err}") from err
        _LOGGER.info("Committed '%s'", message)

    async def add_url(
        self,
        url: str,
        relative_path: str,
        message: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Download a document into the tree and commit it.

        The download completes before anything is written so a failed fetch
        leaves no partial file and no commit behind.
        """
        target = self.resolve(relative_path)
        content = await release.fetch(url, client)
        try:
            target.parent.mkdir(mode=DIR_MODE, parents=True, exist_ok=True)
            async with aiofiles.open(target, mode="wb") as out:
                await out.write(content)
            os.chmod(target, FILE_MODE)
        except OSError as err:
            raise StoreException(f"Unable to write {relative_path}: {err}") from err
        self._commit([relative_path], message)

    def add_existing(self, relative_path: str, message: str | None = None) -> None:
        """Commit a file that another component already wrote into the tree."""
        if not self.resolve(relative_path).is_file():
            raise StoreException(f"No such file in repository: {relative_path}")
        self._commit([relative_path], message or f"Adding {relative_path}")

    def concatenate(
        self,
        sources: list[Path],
        relative_path: str,
        separator: str,
        message: str,
    ) -> None:
        """Flatten several files into one document stream and commit it."""
        parts: list[bytes] = []
        for source in sources:
            try:
                parts.append(separator.encode() + source.read_bytes())
            except OSError as err:
                raise StoreException(f"Unable to read {source}: {err}") from err
        self._write(relative_path, b"".join(parts))
        self._commit([relative_path], message)

    def add_namespace(self, component: str, message: str | None = None) -> None:
        """Write a Namespace manifest named after the component and commit it."""
        path = f"{component}/{NAMESPACE_FILE}"
        self._write(path, Namespace(name=component).yaml().encode())
        self._commit([path], message or f"adding {component} namespace")

    def create_kustomization(
        self,
        component: str,
        namespace: str | None = None,
        message: str | None = None,
    ) -> Kustomization:
        """Generate and commit the kustomization for a component directory.

        Every file in the directory is listed as a resource with the
        namespace file first. Subdirectories are not part of the component.
        """
        directory = self.resolve(component)
        try:
            names = sorted(entry.name for entry in directory.iterdir() if entry.is_file())
        except OSError as err:
            raise StoreException(f"Unable to list component {component}: {err}") from err
        resources = [
            name for name in names if name not in (KUSTOMIZATION_FILE, NAMESPACE_FILE)
        ]
        if NAMESPACE_FILE in names:
            resources.insert(0, NAMESPACE_FILE)
        kustomization = Kustomization(
            namespace=namespace or component, resources=resources
        )
        path = f"{component}/{KUSTOMIZATION_FILE}"
        self._write(path, kustomization.yaml().encode())
        self._commit([path], message or f"adding {component} kustomization")
        return kustomization

    def add_remote(self, name: str, url: str) -> None:
        """Point the named remote at url, replacing any previous url."""
        try:
            if name in [remote.name for remote in self._repo.remotes]:
                self._repo.remote(name).set_url(url)
            else:
                self._repo.create_remote(name, url)
        except git.GitCommandError as err:
            raise StoreException(f"Unable to add remote {name}: {err.stderr}") from err
        _LOGGER.debug("Remote %s is %s", name, url)

    def push(self, remote: str, username: str, password: str) -> None:
        """Push the default branch to the remote with HTTP Basic credentials.

        The in-cluster git server presents a self signed certificate so TLS
        verification is turned off for the push.
        """
        token = base64.b64encode(f"{username}:{password}".encode()).decode()
        env = {
            "GIT_SSL_NO_VERIFY": "true",
            "GIT_TERMINAL_PROMPT": "0",
            "GIT_CONFIG_COUNT": "1",
            "GIT_CONFIG_KEY_0": "http.extraHeader",
            "GIT_CONFIG_VALUE_0": f"Authorization: Basic {token}",
        }
        _LOGGER.info("Pushing to remote %s", remote)
        try:
            with self._repo.git.custom_environment(**env):
                self._repo.git.push(remote, f"HEAD:refs/heads/{DEFAULT_BRANCH}")
        except git.GitCommandError as err:
            raise _push_error(remote, str(err.stderr or "")) from err


def _push_error(remote: str, stderr: str) -> PushException:
    """Classify a failed push by the output of git."""
    detail = stderr.strip()
    lowered = detail.lower()
    if any(marker in lowered for marker in _AUTH_ERRORS):
        return AuthFailure(f"Authentication to {remote} failed: {detail}")
    if any(marker in lowered for marker in _REJECT_ERRORS):
        return RejectedByRemote(f"Push to {remote} was rejected: {detail}")
    return NetworkFailure(f"Unable to push to {remote}: {detail}")
