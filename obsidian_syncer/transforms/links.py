"""Text-level rewrites applied to compiled notes."""

import re
from typing import List

from obsidian_syncer.core.regexes import (
    CODE_FENCE_REGEX,
    CODEBLOCK_REGEX,
    COMMENT_REGEX,
    DATAVIEW_LINK_TARGET_BLANK_REGEX,
    EXCALIDRAW_REGEX,
)
from obsidian_syncer.utils import normalize_vault_path


def apply_vault_path(text: str, vault_path: str) -> str:
    """Strip the vault prefix from wikilinks and markdown link targets.

    `[[sub/note]]` becomes `[[note]]` and `[x](sub/note)` becomes
    `[x](note)` for vault path "sub/". A root vault leaves text untouched.
    """
    prefix = normalize_vault_path(vault_path)
    if not prefix:
        return text

    escaped = re.escape(prefix)
    text = re.sub(rf'\[\[{escaped}(.*?)\]\]', r'[[\1]]', text)
    text = re.sub(rf'\[(.*?)\]\({escaped}(.*?)\)', r'[\1](\2)', text)
    return text


def _protected_spans(text: str) -> List[str]:
    spans = [m.group(0) for m in CODEBLOCK_REGEX.finditer(text)]
    spans.extend(m.group(0) for m in CODE_FENCE_REGEX.finditer(text))
    spans.extend(m.group(0) for m in EXCALIDRAW_REGEX.finditer(text))
    return spans


def strip_comments(text: str) -> str:
    """Remove `%% ... %%` comments outside code and drawing data.

    A comment is kept when the whole comment appears inside a fenced
    block, an inline code span or a drawing element.
    """
    protected = _protected_spans(text)
    for match in COMMENT_REGEX.finditer(text):
        comment = match.group(0)
        if any(comment in span for span in protected):
            continue
        text = text.replace(comment, '', 1)
    return text


def strip_link_target_blank(text: str) -> str:
    """Drop `target="_blank" rel="noopener"` left by rendered query links."""
    return DATAVIEW_LINK_TARGET_BLANK_REGEX.sub('', text)
