"""Tests for VaultStore, LinkIndex and metadata parsing."""

import pytest

from obsidian_syncer.core.vault import LinkIndex, VaultStore, parse_frontmatter, parse_metadata


class TestLinkIndex:
    """Tests for Obsidian-style link resolution."""

    @pytest.fixture
    def index(self):
        return LinkIndex.from_paths([
            "notes/A.md",
            "notes/sub/B.md",
            "other/B.md",
            "img/pic.png",
        ])

    def test_exact_path_without_extension(self, index):
        assert index.resolve("notes/A") == "notes/A.md"

    def test_case_insensitive_name(self, index):
        assert index.resolve("a") == "notes/A.md"

    def test_same_folder_wins(self, index):
        assert index.resolve("B", "other/x.md") == "other/B.md"
        assert index.resolve("B", "notes/sub/x.md") == "notes/sub/B.md"

    def test_shortest_path_otherwise(self, index):
        assert index.resolve("B", "root.md") == "other/B.md"

    def test_partial_path_must_be_suffix(self, index):
        assert index.resolve("sub/B") == "notes/sub/B.md"

    def test_relative_to_source(self, index):
        assert index.resolve("../img/pic.png", "notes/A.md") == "img/pic.png"

    def test_binary_by_name(self, index):
        assert index.resolve("pic.png") == "img/pic.png"

    def test_missing(self, index):
        assert index.resolve("missing") is None
        assert index.resolve("") is None


class TestParseMetadata:
    """Tests for headings and block positions."""

    TEXT = (
        "---\ntitle: T\n---\n"
        "# Top\n"
        "\n"
        "Para one\n"
        "line two ^para\n"
        "\n"
        "- item ^li\n"
        "\n"
        "```\n"
        "# not heading ^nope\n"
        "```\n"
        "## Sub\n"
        "Block\n"
        "\n"
        "^standalone\n"
    )

    def test_frontmatter(self):
        assert parse_metadata(self.TEXT).frontmatter == {"title": "T"}

    def test_headings_skip_code(self):
        headings = parse_metadata(self.TEXT).headings
        assert [(h.heading, h.level, h.line) for h in headings] == [("Top", 1, 3), ("Sub", 2, 13)]

    def test_paragraph_block(self):
        block = parse_metadata(self.TEXT).blocks["para"]
        assert (block.start_line, block.end_line) == (5, 6)

    def test_list_item_block(self):
        block = parse_metadata(self.TEXT).blocks["li"]
        assert (block.start_line, block.end_line) == (8, 8)

    def test_standalone_id_tags_block_above(self):
        block = parse_metadata(self.TEXT).blocks["standalone"]
        assert (block.start_line, block.end_line) == (14, 14)

    def test_ids_in_code_ignored(self):
        assert "nope" not in parse_metadata(self.TEXT).blocks


class TestParseFrontmatter:
    """Tests for parse_frontmatter."""

    def test_valid(self):
        assert parse_frontmatter("---\npublish: true\n---\nBody") == {"publish": True}

    def test_missing(self):
        assert parse_frontmatter("No front matter") == {}

    def test_invalid_yaml(self):
        assert parse_frontmatter("---\n: [\n---\nBody") == {}

    def test_not_a_mapping(self):
        assert parse_frontmatter("---\n- a\n- b\n---\n") == {}


class TestVaultStore:
    """Tests for VaultStore."""

    def test_missing_vault(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            VaultStore(tmp_path / "nope")

    def test_lists_files_skipping_hidden(self, make_vault):
        vault = make_vault({
            "a.md": "A",
            "dir/b.md": "B",
            "dir/pic.png": b"\x89PNG",
            ".obsidian/app.json": "{}",
        })

        assert vault.list_all_documents() == ["a.md", "dir/b.md", "dir/pic.png"]
        assert vault.list_markdown() == ["a.md", "dir/b.md"]

    def test_get_document(self, make_vault):
        vault = make_vault({"note.md": "---\npublish: true\n---\n# Hi\n"})

        document = vault.get_document("note.md")

        assert document.path == "note.md"
        assert document.frontmatter == {"publish": True}
        assert document.metadata.headings[0].heading == "Hi"
        assert document.mtime > 0
        assert document.name == "note"
        assert document.extension == "md"

    def test_get_document_missing(self, make_vault):
        vault = make_vault({"note.md": "x"})

        assert vault.get_document("other.md") is None

    def test_resolve_link(self, make_vault):
        vault = make_vault({"folder/Target.md": "x", "src.md": "y"})

        assert vault.resolve_link("Target", "src.md") == "folder/Target.md"

    def test_refresh_picks_up_new_files(self, make_vault):
        vault = make_vault({"a.md": "A"})
        assert vault.resolve_link("b") is None

        (vault.vault_path / "b.md").write_text("B")
        vault.refresh()

        assert vault.resolve_link("b") == "b.md"
