"""Tests for path, slug and hashing helpers."""

import pytest

from obsidian_syncer.utils import (
    asset_output_path,
    asset_repository_key,
    blob_hash,
    collapse_relative_path,
    generate_url_path,
    normalize_vault_path,
    sanitize_permalink,
    scope_to_vault,
    slugify,
    strip_extension,
)


class TestBlobHash:
    """Tests for the Git blob hash."""

    def test_matches_git_hash_object(self):
        assert blob_hash("hello world\n") == "3b18e512dba79e4c8300dd08aeb37f8e728b8dad"

    def test_empty_blob(self):
        assert blob_hash("") == "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"

    def test_text_and_bytes_agree(self):
        assert blob_hash("héllo") == blob_hash("héllo".encode("utf-8"))

    def test_stable(self):
        assert blob_hash("some content") == blob_hash("some content")

    def test_sensitive_to_every_character(self):
        assert blob_hash("some content") != blob_hash("some contenT")
        assert blob_hash("a") != blob_hash("a ")


class TestSlugify:
    """Tests for slugify."""

    def test_basic(self):
        assert slugify("Hello World!") == "Hello-World"

    def test_preserves_case_by_default(self):
        assert slugify("My Heading") == "My-Heading"
        assert slugify("My Heading", lowercase=True) == "my-heading"

    def test_transliterates(self):
        assert slugify("Café Münster") == "Cafe-Munster"

    def test_collapses_separators(self):
        assert slugify("a -- b ** c") == "a-b-c"

    def test_custom_separator(self):
        assert slugify("a b", separator="_") == "a_b"


class TestPaths:
    """Tests for path helpers."""

    @pytest.mark.parametrize("path,expected", [
        ("a/b.md", "a/b"),
        ("note.excalidraw.md", "note.excalidraw"),
        ("no-extension", "no-extension"),
        ("dir.with.dots/file", "dir.with.dots/file"),
    ])
    def test_strip_extension(self, path, expected):
        assert strip_extension(path) == expected

    def test_generate_url_path(self):
        assert generate_url_path("Folder/My Note.md") == "Folder/My-Note/"

    def test_generate_url_path_without_slugify(self):
        assert generate_url_path("Folder/My Note.md", slugify_path=False) == "Folder/My Note/"

    def test_sanitize_permalink(self):
        assert sanitize_permalink("blog/post/") == "/blog/post"
        assert sanitize_permalink("/already") == "/already"

    @pytest.mark.parametrize("path,expected", [
        ("a/b/../c", "a/c"),
        ("../x.png", "x.png"),
        ("./a/./b", "a/b"),
        ("../../a", "a"),
    ])
    def test_collapse_relative_path(self, path, expected):
        assert collapse_relative_path(path) == expected


class TestVaultPath:
    """Tests for vault path scoping helpers."""

    @pytest.mark.parametrize("vault_path,expected", [
        ("/", ""),
        ("", ""),
        ("sub", "sub/"),
        ("sub/", "sub/"),
        ("/sub/deeper", "sub/deeper/"),
    ])
    def test_normalize(self, vault_path, expected):
        assert normalize_vault_path(vault_path) == expected

    def test_scope_strips_prefix(self):
        assert scope_to_vault("sub/a.md", "sub/") == "a.md"

    def test_scope_leaves_other_paths(self):
        assert scope_to_vault("other/a.md", "sub") == "other/a.md"
        assert scope_to_vault("a.md", "/") == "a.md"


class TestAssetPaths:
    """Tests for asset output paths."""

    def test_only_spaces_are_encoded(self):
        assert asset_output_path("My Images/test image.png") == "/img/user/My%20Images/test%20image.png"
        assert asset_output_path("a&b/ü.png") == "/img/user/a&b/ü.png"

    def test_repository_key(self):
        assert asset_repository_key("My Images/x.png") == "img/user/My Images/x.png"
