"""Tests for text-level link rewrites and list field normalization."""

from obsidian_syncer.transforms.links import apply_vault_path, strip_comments, strip_link_target_blank
from obsidian_syncer.transforms.tags import normalize_aliases, normalize_css_classes, normalize_tags, unique


class TestApplyVaultPath:
    """Tests for vault path scoping."""

    def test_strips_prefix(self):
        text = "See [[sub/b]] and [x](sub/c.md)"
        assert apply_vault_path(text, "sub/") == "See [[b]] and [x](c.md)"

    def test_prefix_without_trailing_slash(self):
        assert apply_vault_path("[[sub/b|B]]", "sub") == "[[b|B]]"

    def test_root_leaves_text(self):
        text = "See [[sub/b]] and [x](sub/c.md)"
        assert apply_vault_path(text, "/") == text
        assert apply_vault_path(text, "") == text

    def test_prefix_is_literal(self):
        text = "[[my (notes)/a]] [[myX(notes)/a]]"
        assert apply_vault_path(text, "my (notes)/") == "[[a]] [[myX(notes)/a]]"

    def test_other_links_untouched(self):
        assert apply_vault_path("[[other/b]]", "sub/") == "[[other/b]]"


class TestStripComments:
    """Tests for %% comment removal."""

    def test_inline_comment(self):
        assert strip_comments("a %%hidden%% b") == "a  b"

    def test_multiline_comment(self):
        assert strip_comments("a\n%%\nsecret\n%%\nb") == "a\n\nb"

    def test_inline_code_kept(self):
        text = "use `%%keep%%` here"
        assert strip_comments(text) == text

    def test_code_block_kept(self):
        text = "```\n%%keep%%\n```\n%%drop%%"
        assert strip_comments(text) == "```\n%%keep%%\n```\n"


class TestLinkTargeting:
    """Tests for target=_blank stripping."""

    def test_strips(self):
        html = '<a href="x" target="_blank" rel="noopener">x</a>'
        assert strip_link_target_blank(html) == '<a href="x" >x</a>'


class TestNormalization:
    """Tests for list-like field normalization."""

    def test_unique_keeps_order(self):
        assert unique(["b", "a", "b"]) == ["b", "a"]

    def test_tags_from_string(self):
        assert normalize_tags("#a, b  c") == ["a", "b", "c"]

    def test_tags_from_mixed(self):
        assert normalize_tags(["a", None, ""], "a b") == ["a", "b"]

    def test_tags_scalar(self):
        assert normalize_tags(2024) == ["2024"]

    def test_css_classes(self):
        assert normalize_css_classes("wide", ["wide", "cards"]) == "wide cards"
        assert normalize_css_classes(None) == ""

    def test_aliases_keep_spaces(self):
        assert normalize_aliases("First alias, second") == ["First alias", "second"]
        assert normalize_aliases(None) == []
