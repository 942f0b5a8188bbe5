"""Tests for kustomize library."""

from pathlib import Path

import pytest

from pivot import exceptions, kustomize

from . import FakeTask

RENDERED = """---
apiVersion: v1
kind: Namespace
metadata:
  name: cert-manager
---
---
apiVersion: v1
kind: ServiceAccount
metadata:
  name: cert-manager
  namespace: cert-manager
"""

INVALID_YAML = """
---
foo: !bar
"""


async def test_objects() -> None:
    """Test loading rendered documents and skipping empty ones."""
    result = await kustomize.Kustomize([FakeTask(RENDERED)]).objects()
    assert [doc["kind"] for doc in result] == ["Namespace", "ServiceAccount"]
    assert result[1]["metadata"]["namespace"] == "cert-manager"


async def test_objects_failure() -> None:
    """Test rendered output that is not valid yaml."""
    cmd = kustomize.Kustomize([FakeTask(INVALID_YAML)])
    with pytest.raises(
        exceptions.KustomizeException,
        match=r"Unable to parse.*could not determine a constructor",
    ):
        await cmd.objects()


async def test_build_missing_directory(tmp_path: Path) -> None:
    """Test building a component that does not exist."""
    cmd = kustomize.build(tmp_path / "does-not-exist")
    with pytest.raises(exceptions.KustomizeException, match="not a directory"):
        await cmd.objects()


def test_build_str(tmp_path: Path) -> None:
    """Test the debug representation of a build task."""
    assert str(kustomize.Build(tmp_path / "argocd")).startswith("kustomize build ")
