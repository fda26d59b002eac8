"""Shared fixtures: vaults built on disk and an in-memory remote repository."""

import base64
from pathlib import Path
from typing import Dict, Union

import pytest

from obsidian_syncer.config import SyncerSettings
from obsidian_syncer.core.vault import VaultStore
from obsidian_syncer.remote.github import RepositoryTree, TreeEntry
from obsidian_syncer.utils import blob_hash


def write_vault(root: Path, files: Dict[str, Union[str, bytes]]) -> Path:
    for rel, content in files.items():
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
    return root


@pytest.fixture
def make_vault(tmp_path):
    """Build a VaultStore from a mapping of vault paths to contents."""
    def factory(files: Dict[str, Union[str, bytes]]) -> VaultStore:
        root = tmp_path / "vault"
        root.mkdir(exist_ok=True)
        write_vault(root, files)
        return VaultStore(root)
    return factory


@pytest.fixture
def settings():
    return SyncerSettings(use_cache=False)


class FakeRepository:
    """In-memory stand-in for GitHubRepository.

    Commits are recorded as (message, changes, deletions) tuples and
    applied to the in-memory tree.
    """

    def __init__(self):
        self.entries = []
        self.files = {}
        self.commits = []
        self.fail = None

    def add(self, path, sha, type="blob"):
        self.entries.append(TreeEntry(path=path, sha=sha, type=type))

    async def get_tree(self):
        return RepositoryTree(sha="tree-sha", commit_sha="head-sha", entries=list(self.entries))

    async def get_text(self, path):
        return self.files.get(path)

    async def commit(self, message, changes=None, deletions=None):
        if self.fail is not None:
            raise self.fail
        self.commits.append((message, list(changes or []), list(deletions or [])))
        removed = set(deletions or [])
        for change in changes or []:
            removed.add(change.path)
        self.entries = [entry for entry in self.entries if entry.path not in removed]
        for change in changes or []:
            data = base64.b64decode(change.content) if change.encoding == "base64" else change.content
            self.add(change.path, blob_hash(data))
            if change.encoding != "base64":
                self.files[change.path] = change.content
        for path in deletions or []:
            self.files.pop(path, None)
        return f"commit-{len(self.commits)}"


@pytest.fixture
def repository():
    return FakeRepository()
