"""Tests for Publisher, RemoteSite and create_publisher_from_config."""

import pytest

from obsidian_syncer.config import SyncerSettings
from obsidian_syncer.core.cache import CompiledFileCache, MemoryCacheBackend
from obsidian_syncer.core.compiler import PageCompiler
from obsidian_syncer.core.models import Asset, CompiledDocument, CompiledNote, SourceDocument, DocumentMetadata
from obsidian_syncer.core.publisher import Publisher, create_publisher_from_config
from obsidian_syncer.errors import ConfigError, PublishError, RepositoryError
from obsidian_syncer.integrations import create_default_registry
from obsidian_syncer.remote.site import RemoteSite

PNG = b"\x89PNG"

VAULT = {
    "a.md": "---\npublish: true\n---\nA ![[pic.png]]",
    "b.md": "---\npublish: true\n---\nB",
    "d.md": "Draft",
    "e.md": "---\npublish: false\n---\nE",
    "img/pic.png": PNG,
}


def make_publisher(vault, repository=None, settings=None, cache=None, registry=None):
    settings = settings or SyncerSettings(use_cache=cache is not None)
    site = RemoteSite(repository) if repository is not None else None
    return Publisher(vault, settings, PageCompiler(vault, settings), cache=cache, site=site, registry=registry)


def note(path, text, remote_path=None, assets=None, publish=True):
    document = SourceDocument(path=path, text=text, metadata=DocumentMetadata(frontmatter={"publish": publish}))
    return CompiledNote(
        document=document,
        compiled=CompiledDocument(text=text, assets=assets or []),
        remote_path=remote_path or path,
    )


class TestRemoteSite:
    """Tests for content-folder path mapping."""

    def test_repository_path(self, repository):
        site = RemoteSite(repository, "content/")

        assert site.repository_path("a/b.md") == "content/a/b.md"
        assert site.repository_path("/a/../b.md") == "content/b.md"
        assert RemoteSite(repository, "").repository_path("b.md") == "b.md"

    @pytest.mark.asyncio
    async def test_hashes_are_content_relative(self, repository):
        repository.add("content/a.md", "1")
        repository.add("content/img/user/p.png", "2")
        repository.add("README.md", "3")
        site = RemoteSite(repository)
        tree = await site.get_tree()

        assert site.note_hashes(tree) == {"a.md": "1"}
        assert site.blob_hashes(tree) == {"img/user/p.png": "2"}

    @pytest.mark.asyncio
    async def test_assets_written_unquoted_once(self, repository):
        asset = Asset(path="/img/user/My%20Images/p.png", content="iVBORw==")
        site = RemoteSite(repository)

        await site.update_files([note("a.md", "A", assets=[asset]), note("b.md", "B", assets=[asset])])

        message, changes, deletions = repository.commits[0]
        assert message == "Published multiple files"
        assert [c.path for c in changes] == [
            "content/a.md", "content/img/user/My Images/p.png", "content/b.md",
        ]
        assert changes[1].encoding == "base64"
        assert deletions == []

    @pytest.mark.asyncio
    async def test_asset_keeps_percent_in_name(self, repository):
        asset = Asset(path="/img/user/50%41%20off.png", content="iVBORw==", vault_path="50%41 off.png")
        site = RemoteSite(repository)

        await site.update_files([note("a.md", "A", assets=[asset])])

        _, changes, _ = repository.commits[0]
        assert [c.path for c in changes] == ["content/a.md", "content/img/user/50%41 off.png"]

    @pytest.mark.asyncio
    async def test_nothing_to_commit(self, repository):
        site = RemoteSite(repository)

        assert await site.update_files([]) is None
        assert await site.delete_files([]) is None
        assert repository.commits == []


class TestMarkedFiles:
    """Tests for finding notes to publish."""

    def test_marked_notes_and_blobs(self, make_vault):
        publisher = make_publisher(make_vault(VAULT))

        marked = publisher.get_files_marked_for_publishing()

        assert [d.path for d in marked.notes] == ["a.md", "b.md"]
        assert marked.blobs == ["img/pic.png"]

    def test_custom_publish_key(self, make_vault):
        vault = make_vault({"a.md": "---\nshare: true\n---\nA", "b.md": "---\npublish: true\n---\nB"})
        publisher = make_publisher(vault, settings=SyncerSettings(publish_frontmatter_key="share"))

        assert [d.path for d in publisher.get_files_marked_for_publishing().notes] == ["a.md"]

    def test_vault_path_filter(self, make_vault):
        vault = make_vault({"pub/a.md": "---\npublish: true\n---\n", "x.md": "---\npublish: true\n---\n"})
        publisher = make_publisher(vault, settings=SyncerSettings(vault_path="pub"))

        assert [d.path for d in publisher.get_files_marked_for_publishing().notes] == ["pub/a.md"]
        assert publisher.remote_path("pub/a.md") == "a.md"


class TestCompileDocument:
    """Tests for cache-aware compilation."""

    @pytest.mark.asyncio
    async def test_cached_compile_reused(self, make_vault):
        vault = make_vault(VAULT)
        cache = CompiledFileCache(MemoryCacheBackend())
        publisher = make_publisher(vault, cache=cache)
        document = vault.get_document("b.md")
        cache.store_local("b.md", document.mtime + 1000, CompiledDocument(text="cached"))

        compiled = await publisher.compile_document(document)

        assert compiled.text == "cached"

    @pytest.mark.asyncio
    async def test_fresh_compile_stored(self, make_vault):
        vault = make_vault(VAULT)
        cache = CompiledFileCache(MemoryCacheBackend())
        publisher = make_publisher(vault, cache=cache)

        compiled = await publisher.compile_document(vault.get_document("b.md"))

        assert cache.load_local_hash("b.md") == compiled.hash

    @pytest.mark.asyncio
    async def test_dynamic_notes_bypass_cache(self, make_vault):
        vault = make_vault({"q.md": "---\npublish: true\n---\n```dataview\nLIST\n```"})
        cache = CompiledFileCache(MemoryCacheBackend())
        publisher = make_publisher(vault, cache=cache)
        document = vault.get_document("q.md")
        cache.store_local("q.md", document.mtime + 1000, CompiledDocument(text="cached"))

        compiled = await publisher.compile_document(document)

        assert compiled.text != "cached"

    @pytest.mark.asyncio
    async def test_cache_ignored_when_disabled(self, make_vault):
        vault = make_vault(VAULT)
        cache = CompiledFileCache(MemoryCacheBackend())
        publisher = make_publisher(vault, settings=SyncerSettings(use_cache=False), cache=cache)

        await publisher.compile_document(vault.get_document("b.md"))

        assert cache.all_paths() == []


class TestBatches:
    """Tests for publish_batch and delete_batch."""

    @pytest.mark.asyncio
    async def test_publish_batch(self, make_vault, repository):
        cache = CompiledFileCache(MemoryCacheBackend())
        publisher = make_publisher(make_vault(VAULT), repository, cache=cache)
        notes = [note("a.md", "A"), note("d.md", "D", publish=False)]

        published = await publisher.publish_batch(notes, {"quartz/styles/x.scss": ".x {}"})

        assert published == ["a.md"]
        _, changes, _ = repository.commits[0]
        assert [c.path for c in changes] == ["content/a.md", "quartz/styles/x.scss"]
        assert cache.load_remote_hash("a.md") == notes[0].local_hash

    @pytest.mark.asyncio
    async def test_publish_batch_failure(self, make_vault, repository):
        repository.fail = RepositoryError("server error", status_code=500)
        publisher = make_publisher(make_vault(VAULT), repository)

        with pytest.raises(PublishError) as excinfo:
            await publisher.publish_batch([note("a.md", "A")])

        assert excinfo.value.paths == ["a.md"]

    @pytest.mark.asyncio
    async def test_delete_batch_drops_cache_entries(self, make_vault, repository):
        cache = CompiledFileCache(MemoryCacheBackend())
        settings = SyncerSettings(vault_path="pub/")
        publisher = make_publisher(make_vault(VAULT), repository, settings=settings, cache=cache)
        cache.store_local("pub/old.md", 0, CompiledDocument(text="old"))

        deleted = await publisher.delete_batch(["old.md"])

        assert deleted == ["old.md"]
        message, changes, deletions = repository.commits[0]
        assert message == "Deleted multiple files"
        assert changes == []
        assert deletions == ["content/old.md"]
        assert cache.all_paths() == []

    @pytest.mark.asyncio
    async def test_empty_batches(self, make_vault, repository):
        publisher = make_publisher(make_vault(VAULT), repository)

        assert await publisher.publish_batch([]) == []
        assert await publisher.delete_batch([]) == []
        assert repository.commits == []

    @pytest.mark.asyncio
    async def test_no_site(self, make_vault):
        publisher = make_publisher(make_vault(VAULT))

        with pytest.raises(ConfigError):
            await publisher.publish_batch([note("a.md", "A")])


class TestSync:
    """Tests for Publisher.sync."""

    @pytest.fixture
    def vault(self, make_vault):
        return make_vault(VAULT)

    @pytest.fixture
    def remote(self, repository):
        repository.add("content/b.md", "stale")
        repository.add("content/old.md", "s1")
        repository.add("content/img/user/gone.png", "s2")
        return repository

    @pytest.mark.asyncio
    async def test_dry_run(self, vault, remote):
        publisher = make_publisher(vault, remote)

        result = await publisher.sync(dry_run=True)

        assert result.dry_run
        assert sorted(result.published_paths) == ["a.md", "b.md"]
        assert result.deleted_paths == ["old.md", "img/user/gone.png"]
        assert remote.commits == []

    @pytest.mark.asyncio
    async def test_publish_then_delete(self, vault, remote):
        publisher = make_publisher(vault, remote, registry=create_default_registry())

        result = await publisher.sync()

        assert sorted(result.published_paths) == ["a.md", "b.md"]
        assert result.deleted_paths == ["old.md", "img/user/gone.png"]
        assert result.failures == []

        publish_commit, delete_commit = remote.commits
        paths = [c.path for c in publish_commit[1]]
        assert "content/a.md" in paths
        assert "content/img/user/img/pic.png" in paths
        assert "quartz/styles/syncer/_index.scss" in paths
        assert "quartz/styles/custom.scss" in paths
        assert delete_commit[2] == ["content/old.md", "content/img/user/gone.png"]

    @pytest.mark.asyncio
    async def test_keep_remote_files(self, vault, remote):
        publisher = make_publisher(vault, remote)

        result = await publisher.sync(delete=False)

        assert result.deleted_paths == []
        assert len(remote.commits) == 1

    @pytest.mark.asyncio
    async def test_failures_reported(self, vault, remote):
        remote.fail = RepositoryError("forbidden", status_code=403)
        publisher = make_publisher(vault, remote)

        result = await publisher.sync()

        assert result.published_paths == []
        assert result.deleted_paths == []
        assert sorted(f.path for f in result.failures) == ["a.md", "b.md", "img/user/gone.png", "old.md"]

    @pytest.mark.asyncio
    async def test_stale_cache_entries_dropped(self, vault, remote):
        cache = CompiledFileCache(MemoryCacheBackend())
        cache.store_local("removed.md", 0, CompiledDocument(text="gone"))
        publisher = make_publisher(vault, remote, cache=cache)

        await publisher.sync(dry_run=True)

        assert "removed.md" not in cache.all_paths()

    @pytest.mark.asyncio
    async def test_second_sync_commits_nothing(self, vault, repository):
        publisher = make_publisher(vault, repository, registry=create_default_registry())
        await publisher.sync()
        assert len(repository.commits) == 1

        result = await publisher.sync()

        assert result.published_paths == []
        assert result.deleted_paths == []
        assert len(repository.commits) == 1

    @pytest.mark.asyncio
    async def test_asset_with_percent_survives_resync(self, make_vault, repository):
        vault = make_vault({"a.md": "---\npublish: true\n---\n![[50%41 off.png]]", "50%41 off.png": PNG})
        publisher = make_publisher(vault, repository)
        await publisher.sync()

        paths = [c.path for c in repository.commits[0][1]]
        assert "content/img/user/50%41 off.png" in paths

        result = await publisher.sync()

        assert result.deleted_paths == []
        assert len(repository.commits) == 1

    @pytest.mark.asyncio
    async def test_requires_site(self, vault):
        with pytest.raises(ConfigError):
            await make_publisher(vault).sync()


class TestCreatePublisher:
    """Tests for create_publisher_from_config."""

    def test_from_yaml(self, make_vault, repository):
        vault = make_vault(VAULT)
        config = vault.vault_path / "syncer.yml"
        config.write_text(
            "vault_path: /\ncontent_folder: site\nuse_cache: false\ngit:\n  repository: owner/site\n",
            encoding="utf-8",
        )

        publisher = create_publisher_from_config(config, repository=repository)

        assert publisher.vault.vault_path == vault.vault_path
        assert publisher.site.content_folder == "site"
        assert publisher.site.repository is repository
        assert publisher.cache is None

    def test_without_repository(self, make_vault):
        vault = make_vault(VAULT)
        config = vault.vault_path / "syncer.yml"
        config.write_text("use_cache: true\n", encoding="utf-8")

        publisher = create_publisher_from_config(config)

        assert publisher.site is None
        assert publisher.cache is not None
        assert (vault.vault_path / ".syncer-cache").is_dir()
        publisher.cache.close()
