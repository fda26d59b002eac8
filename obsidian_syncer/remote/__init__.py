"""Remote repository transport and site layout."""

from obsidian_syncer.remote.github import FileChange, GitHubRepository, RepositoryTree, TreeEntry
from obsidian_syncer.remote.site import RemoteSite

__all__ = ["FileChange", "GitHubRepository", "RemoteSite", "RepositoryTree", "TreeEntry"]
