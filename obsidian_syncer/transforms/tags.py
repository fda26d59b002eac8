"""Normalization of list-like front matter fields (tags, css classes, aliases)."""

import re
from typing import Any, Iterable, List

_TAG_SPLIT = re.compile(r'[,\s]+')
_ALIAS_SPLIT = re.compile(r',\s*')


def _as_list(value: Any, splitter: re.Pattern) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part for part in splitter.split(value) if part]
    if isinstance(value, (list, tuple, set)):
        return [str(item) for item in value if item not in (None, '')]
    return [str(value)]


def unique(items: Iterable[str]) -> List[str]:
    """Drop duplicates, keeping first-seen order."""
    return list(dict.fromkeys(items))


def normalize_tags(*values: Any) -> List[str]:
    """Merge tag fields into one list.

    Accepts comma or whitespace separated strings and lists. A leading
    "#" is dropped.

    Args:
        values: Raw values of `tags`, `tag`, ...

    Returns:
        Deduplicated tag list
    """
    tags = []
    for value in values:
        tags.extend(tag.lstrip('#') for tag in _as_list(value, _TAG_SPLIT))
    return unique(tag for tag in tags if tag)


def normalize_css_classes(*values: Any) -> str:
    """Merge css class fields into one space-joined string."""
    classes = []
    for value in values:
        classes.extend(_as_list(value, _TAG_SPLIT))
    return ' '.join(unique(classes))


def normalize_aliases(value: Any) -> List[str]:
    """Aliases may contain spaces, so strings are split on commas only."""
    return unique(alias.strip() for alias in _as_list(value, _ALIAS_SPLIT) if alias.strip())
