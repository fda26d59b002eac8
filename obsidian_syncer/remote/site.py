"""Maps compiled notes onto the content folder of a Quartz repository."""

import logging
from typing import Dict, List, Optional

from obsidian_syncer.core.models import CompiledNote
from obsidian_syncer.remote.github import FileChange, GitHubRepository, RepositoryTree
from obsidian_syncer.utils import collapse_relative_path

logger = logging.getLogger(__name__)

PUBLISH_MESSAGE = "Published multiple files"
DELETE_MESSAGE = "Deleted multiple files"


class RemoteSite:
    """The Quartz site as seen from the vault.

    Paths handed to and returned from this class are relative to the
    content folder; repository paths are built internally.
    """

    def __init__(self, repository: GitHubRepository, content_folder: str = "content"):
        self.repository = repository
        self.content_folder = content_folder.strip("/")

    def repository_path(self, path: str) -> str:
        path = collapse_relative_path(path.lstrip("/"))
        return f"{self.content_folder}/{path}" if self.content_folder else path

    def _content_relative(self, path: str) -> Optional[str]:
        if not self.content_folder:
            return path
        prefix = self.content_folder + "/"
        if not path.startswith(prefix):
            return None
        return path[len(prefix):]

    async def get_tree(self) -> RepositoryTree:
        return await self.repository.get_tree()

    def note_hashes(self, tree: RepositoryTree) -> Dict[str, str]:
        """Blob sha of every published note, keyed by content-relative path."""
        hashes = {}
        for entry in tree.blobs():
            path = self._content_relative(entry.path)
            if path and path.endswith(".md"):
                hashes[path] = entry.sha
        return hashes

    def blob_hashes(self, tree: RepositoryTree) -> Dict[str, str]:
        """Blob sha of every non-note file under the content folder."""
        hashes = {}
        for entry in tree.blobs():
            path = self._content_relative(entry.path)
            if path and not path.endswith(".md"):
                hashes[path] = entry.sha
        return hashes

    async def get_note_text(self, path: str) -> Optional[str]:
        return await self.repository.get_text(self.repository_path(path))

    def _changes_for(self, notes: List[CompiledNote]) -> List[FileChange]:
        changes: Dict[str, FileChange] = {}
        for note in notes:
            note_path = self.repository_path(note.remote_path)
            changes[note_path] = FileChange(path=note_path, content=note.compiled.text)
            for asset in note.compiled.assets:
                asset_path = self.repository_path(asset.repository_key)
                if asset_path not in changes:
                    changes[asset_path] = FileChange(path=asset_path, content=asset.content, encoding="base64")
        return list(changes.values())

    async def update_files(
        self,
        notes: List[CompiledNote],
        extra_files: Optional[Dict[str, str]] = None,
        deletions: Optional[List[str]] = None,
    ) -> Optional[str]:
        """Publish notes and their assets in one commit.

        Args:
            notes: Compiled notes to write
            extra_files: Additional text files keyed by repository path
            deletions: Repository paths to remove in the same commit

        Returns:
            The commit sha, or None if there was nothing to write
        """
        changes = self._changes_for(notes)
        for path, content in (extra_files or {}).items():
            changes.append(FileChange(path=path, content=content))
        if not changes and not deletions:
            return None
        logger.info("Publishing %d notes (%d files)", len(notes), len(changes))
        return await self.repository.commit(PUBLISH_MESSAGE, changes, deletions)

    async def delete_files(self, paths: List[str]) -> Optional[str]:
        """Remove content-relative paths in one commit."""
        if not paths:
            return None
        logger.info("Deleting %d files", len(paths))
        return await self.repository.commit(
            DELETE_MESSAGE, deletions=[self.repository_path(path) for path in paths]
        )

    async def get_text(self, path: str) -> Optional[str]:
        return await self.repository.get_text(path)
