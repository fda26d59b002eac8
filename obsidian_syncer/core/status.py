"""Classifies marked notes against the remote tree."""

import logging
from typing import TYPE_CHECKING, Dict, List

from obsidian_syncer.core.models import CompiledDocument, CompiledNote, PathToRemove, PublishStatus
from obsidian_syncer.remote.site import RemoteSite
from obsidian_syncer.utils import asset_repository_key

if TYPE_CHECKING:
    from obsidian_syncer.core.publisher import Publisher

logger = logging.getLogger(__name__)

# Quartz ships scripts in the content folder that never come from the vault
EXCLUDED_SUFFIXES = ('.js',)


def generate_deleted_paths(remote_hashes: Dict[str, str], marked: List[str]) -> List[PathToRemove]:
    """Remote paths with no marked counterpart, sorted by path.

    Args:
        remote_hashes: Blob sha by content-relative path
        marked: Content-relative paths that should stay
    """
    keep = set(marked)
    return [
        PathToRemove(path=path, sha=sha)
        for path, sha in sorted(remote_hashes.items())
        if not path.endswith(EXCLUDED_SUFFIXES) and path not in keep
    ]


class PublishStatusManager:
    """Computes which marked notes are new, unchanged or changed on the remote.

    Reading the status never writes to the remote. It does refresh the
    remote side of cache entries whose remote hash is now known.
    """

    def __init__(self, publisher: "Publisher", site: RemoteSite):
        self.publisher = publisher
        self.site = site

    async def _refresh_remote_cache(self, note: CompiledNote, remote_hash: str, fetch: bool) -> None:
        cache = self.publisher.cache
        if not self.publisher.caching:
            return

        path = note.path
        if remote_hash == note.local_hash:
            if cache.load_remote_hash(path) != remote_hash:
                cache.store_remote(path, note.document.mtime, note.compiled)
            return

        if fetch and cache.load_remote_hash(path) != remote_hash:
            text = await self.site.get_note_text(note.remote_path)
            if text is not None:
                cache.store_remote(path, note.document.mtime, CompiledDocument(text=text))

    async def get_publish_status(self, refresh_remote: bool = False) -> PublishStatus:
        """Compile every marked note and compare it with the remote tree.

        Args:
            refresh_remote: Fetch the remote text of changed notes into
                the cache

        Returns:
            PublishStatus with every marked note in exactly one of
            unpublished, published or changed
        """
        tree = await self.site.get_tree()
        remote_note_hashes = self.site.note_hashes(tree)
        remote_blob_hashes = self.site.blob_hashes(tree)

        marked = self.publisher.get_files_marked_for_publishing()
        status = PublishStatus()

        for document in marked.notes:
            note = await self.publisher.compile_note(document)
            remote_hash = remote_note_hashes.get(note.remote_path)

            if not remote_hash:
                status.unpublished.append(note)
                continue

            note.remote_hash = remote_hash
            if remote_hash == note.local_hash:
                status.published.append(note)
            else:
                status.changed.append(note)
            await self._refresh_remote_cache(note, remote_hash, refresh_remote)

        status.deleted_note_paths = generate_deleted_paths(
            remote_note_hashes, [self.publisher.remote_path(d.path) for d in marked.notes]
        )
        status.deleted_blob_paths = generate_deleted_paths(
            remote_blob_hashes, [asset_repository_key(path) for path in marked.blobs]
        )

        for notes in (status.unpublished, status.published, status.changed):
            notes.sort(key=lambda n: n.path)

        logger.info(
            "Status: %d unpublished, %d published, %d changed, %d notes and %d files to delete",
            len(status.unpublished), len(status.published), len(status.changed),
            len(status.deleted_note_paths), len(status.deleted_blob_paths),
        )
        return status
