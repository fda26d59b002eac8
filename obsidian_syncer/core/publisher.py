"""Publishing of marked notes to the Quartz repository."""

import logging
from pathlib import Path
from typing import Dict, List, Optional, Union

from obsidian_syncer.config import SyncerSettings, load_settings
from obsidian_syncer.core.cache import CompiledFileCache
from obsidian_syncer.core.compiler import PageCompiler
from obsidian_syncer.core.models import (
    CompiledDocument,
    CompiledNote,
    MarkedForPublishing,
    NoteError,
    PublishResult,
    SourceDocument,
)
from obsidian_syncer.core.status import PublishStatusManager
from obsidian_syncer.core.vault import VaultStore
from obsidian_syncer.errors import ConfigError, PublishError, RepositoryError
from obsidian_syncer.integrations import IntegrationRegistry, PatternCompiler, StylesheetSyncer
from obsidian_syncer.integrations.rendering import has_dynamic_content
from obsidian_syncer.remote.github import GitHubRepository
from obsidian_syncer.remote.site import RemoteSite
from obsidian_syncer.utils import normalize_vault_path, scope_to_vault

logger = logging.getLogger(__name__)


class Publisher:
    """Finds, compiles and publishes notes carrying the publish flag.

    Compilation goes through the cache when one is given and
    `use_cache` is on. Notes with dynamic queries are always recompiled
    since their output depends on other notes.
    """

    def __init__(
        self,
        vault: VaultStore,
        settings: SyncerSettings,
        compiler: PageCompiler,
        cache: Optional[CompiledFileCache] = None,
        site: Optional[RemoteSite] = None,
        registry: Optional[IntegrationRegistry] = None,
    ):
        """Initialize Publisher.

        Args:
            vault: Vault to publish from
            settings: Syncer settings
            compiler: Page compiler for marked notes
            cache: Compiled-file cache
            site: Remote site, required for anything touching the remote
            registry: Integration registry, used for style syncing and
                dynamic-content detection
        """
        self.vault = vault
        self.settings = settings
        self.compiler = compiler
        self.cache = cache
        self.site = site
        self.registry = registry

    @property
    def caching(self) -> bool:
        return self.cache is not None and self.settings.use_cache

    def _require_site(self) -> RemoteSite:
        if self.site is None:
            raise ConfigError("No remote repository configured")
        return self.site

    def is_marked(self, document: SourceDocument) -> bool:
        """Check if a note carries a truthy publish flag."""
        return bool(document.frontmatter.get(self.settings.publish_frontmatter_key))

    def remote_path(self, path: str) -> str:
        return scope_to_vault(path, self.settings.vault_path)

    def get_files_marked_for_publishing(self) -> MarkedForPublishing:
        """Collect marked notes under the vault path and the binaries they embed."""
        prefix = normalize_vault_path(self.settings.vault_path)
        notes = []
        blobs = set()

        for path in self.vault.list_markdown():
            if prefix and not path.startswith(prefix):
                continue
            document = self.vault.get_document(path)
            if document is None or not self.is_marked(document):
                continue
            notes.append(document)
            blobs.update(self.compiler.extract_blob_links(document))

        return MarkedForPublishing(
            notes=sorted(notes, key=lambda d: d.path),
            blobs=sorted(blobs),
        )

    def has_dynamic_content(self, document: SourceDocument) -> bool:
        js_keyword = None
        inline_prefixes: List[str] = []
        dataview = self.registry.get_by_id("dataview") if self.registry else None
        if dataview is not None and getattr(dataview, "engine", None) is not None:
            js_keyword = dataview.js_keyword
            inline_prefixes = dataview.inline_prefixes
        return has_dynamic_content(document.text, js_keyword, inline_prefixes)

    async def compile_document(self, document: SourceDocument) -> CompiledDocument:
        if self.caching and not self.has_dynamic_content(document):
            if not self.cache.is_local_outdated(document.path, document.mtime):
                cached = self.cache.load_local(document.path)
                if cached is not None:
                    logger.debug("Using cached compile of %s", document.path)
                    return cached

        compiled = await self.compiler.generate_markdown(document)
        if self.caching:
            self.cache.store_local(document.path, document.mtime, compiled)
        return compiled

    async def compile_note(self, document: SourceDocument) -> CompiledNote:
        """Compile a note and attach its remote path."""
        compiled = await self.compile_document(document)
        return CompiledNote(document=document, compiled=compiled, remote_path=self.remote_path(document.path))

    async def publish_batch(
        self,
        notes: List[CompiledNote],
        extra_files: Optional[Dict[str, str]] = None,
        extra_deletions: Optional[List[str]] = None,
    ) -> List[str]:
        """Publish notes, their assets and extra files in a single commit.

        Args:
            notes: Compiled notes; notes that lost their publish flag are skipped
            extra_files: Text files keyed by repository path
            extra_deletions: Repository paths to remove in the same commit

        Returns:
            Vault paths of the published notes

        Raises:
            PublishError: If the commit could not be written
        """
        to_publish = [note for note in notes if self.is_marked(note.document)]
        if not to_publish and not extra_files and not extra_deletions:
            return []

        site = self._require_site()
        paths = [note.path for note in to_publish]
        try:
            await site.update_files(to_publish, extra_files, extra_deletions)
        except RepositoryError as e:
            logger.error("Failed to publish %d notes: %s", len(to_publish), e)
            raise PublishError(f"Failed to publish {len(to_publish)} notes: {e}", paths) from e

        if self.caching:
            for note in to_publish:
                self.cache.store_remote(note.path, note.document.mtime, note.compiled)
        return paths

    async def delete_batch(self, paths: List[str]) -> List[str]:
        """Remove content-relative paths from the remote in a single commit.

        Raises:
            PublishError: If the commit could not be written
        """
        if not paths:
            return []

        site = self._require_site()
        try:
            await site.delete_files(paths)
        except RepositoryError as e:
            logger.error("Failed to delete %d files: %s", len(paths), e)
            raise PublishError(f"Failed to delete {len(paths)} files: {e}", paths) from e

        if self.caching:
            prefix = normalize_vault_path(self.settings.vault_path)
            for path in paths:
                self.cache.drop(prefix + path)
        return paths

    async def sync(self, delete: bool = True, dry_run: bool = False) -> PublishResult:
        """Bring the remote in line with the vault.

        New and changed notes go out in one commit together with the
        integration stylesheets, removed notes and assets in a second.

        Args:
            delete: Also remove remote files with no marked counterpart
            dry_run: Only report what would change

        Returns:
            PublishResult listing published and deleted paths and failures
        """
        site = self._require_site()
        if self.caching:
            self.cache.synchronize(self.vault.list_all_documents())

        status = await PublishStatusManager(self, site).get_publish_status()
        to_publish = status.unpublished + status.changed
        deletions = []
        if delete:
            deletions = [p.path for p in status.deleted_note_paths + status.deleted_blob_paths]

        style_files: Dict[str, str] = {}
        style_deletions: List[str] = []
        if self.registry is not None:
            styles = await StylesheetSyncer(self.registry, self.settings).collect(site)
            style_files, style_deletions = styles.files_to_stage, styles.files_to_delete

        result = PublishResult(dry_run=dry_run)
        if dry_run:
            result.published_paths = [note.path for note in to_publish]
            result.deleted_paths = deletions
            logger.info(
                "Dry run: would publish %d notes and delete %d files", len(to_publish), len(deletions)
            )
            return result

        try:
            result.published_paths = await self.publish_batch(to_publish, style_files, style_deletions)
        except PublishError as e:
            result.failures.extend(NoteError(path=path, error=str(e)) for path in e.paths)

        try:
            result.deleted_paths = await self.delete_batch(deletions)
        except PublishError as e:
            result.failures.extend(NoteError(path=path, error=str(e)) for path in e.paths)

        logger.info(
            "Published %d notes, deleted %d files, %d failures",
            len(result.published_paths), len(result.deleted_paths), len(result.failures),
        )
        return result


def create_publisher_from_config(
    config_path: Union[str, Path],
    vault_dir: Optional[Union[str, Path]] = None,
    registry: Optional[IntegrationRegistry] = None,
    repository: Optional[GitHubRepository] = None,
) -> Publisher:
    """Create a Publisher from a YAML settings file.

    Args:
        config_path: Path to the settings file
        vault_dir: Vault root (default: directory holding the settings file)
        registry: Integration registry (default: no integrations)
        repository: Remote transport (default: built from the git settings,
            if a repository is configured)

    Returns:
        Configured Publisher instance
    """
    config_path = Path(config_path)
    settings = load_settings(config_path)
    vault_dir = Path(vault_dir) if vault_dir else config_path.parent

    vault = VaultStore(vault_dir)
    registry = registry or IntegrationRegistry()
    compiler = PageCompiler(vault, settings, PatternCompiler(registry, settings))

    cache = None
    if settings.use_cache:
        cache_dir = Path(settings.cache_dir)
        if not cache_dir.is_absolute():
            cache_dir = vault_dir / cache_dir
        cache = CompiledFileCache.open(cache_dir)

    if repository is None and settings.git.repository:
        repository = GitHubRepository.from_settings(settings.git)
    site = RemoteSite(repository, settings.content_folder) if repository else None

    return Publisher(vault, settings, compiler, cache=cache, site=site, registry=registry)
