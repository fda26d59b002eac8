"""Path, slug and hashing helpers shared across the pipeline."""

import hashlib
import re
from typing import Union

import inflection

ASSET_OUTPUT_PREFIX = "/img/user/"

_NON_SLUG_CHARS = re.compile(r'[^A-Za-z0-9]+')


def blob_hash(content: Union[str, bytes]) -> str:
    """Compute the Git blob SHA-1 of a file's content.

    Matches `git hash-object`, so the result can be compared directly
    with the shas in a remote Git tree.

    Args:
        content: File content, text is encoded as UTF-8

    Returns:
        40 character hex digest
    """
    data = content.encode('utf-8') if isinstance(content, str) else content
    header = f"blob {len(data)}\0".encode('utf-8')
    return hashlib.sha1(header + data).hexdigest()


def slugify(text: str, separator: str = "-", lowercase: bool = False) -> str:
    """Turn text into a URL-safe slug, preserving case unless asked not to.

    Non-ASCII letters are transliterated, every other run of
    non-alphanumeric characters collapses into a single separator.
    """
    ascii_text = inflection.transliterate(text)
    slug = _NON_SLUG_CHARS.sub(separator, ascii_text).strip(separator)
    return slug.lower() if lowercase else slug


def strip_extension(path: str) -> str:
    """Drop the last extension of a path ("a/b.md" -> "a/b")."""
    name_start = path.rfind('/') + 1
    dot = path.rfind('.')
    if dot <= name_start:
        return path
    return path[:dot]


def generate_url_path(file_path: str, slugify_path: bool = True) -> str:
    """Build the site URL path for a vault file, always ending in "/"."""
    if not file_path:
        return file_path

    extensionless = strip_extension(file_path)
    if not slugify_path:
        return extensionless + "/"

    return "/".join(slugify(part) for part in extensionless.split("/")) + "/"


def sanitize_permalink(permalink: str) -> str:
    """Normalize a user-supplied permalink to "/path" form."""
    if permalink.endswith("/"):
        permalink = permalink[:-1]
    if not permalink.startswith("/"):
        permalink = "/" + permalink
    return permalink


def collapse_relative_path(path: str) -> str:
    """Resolve "." and ".." segments without touching the filesystem.

    A ".." with nothing left to pop is dropped, so the result never
    escapes the vault root.
    """
    parts = []
    for part in path.split('/'):
        if part == '..':
            if parts:
                parts.pop()
        elif part not in ('.', ''):
            parts.append(part)
    return '/'.join(parts)


def normalize_vault_path(vault_path: str) -> str:
    """Return the vault prefix to scope by, or "" when the whole vault is published."""
    if vault_path in ('/', '', None):
        return ''
    vault_path = vault_path.lstrip('/')
    return vault_path if vault_path.endswith('/') else vault_path + '/'


def scope_to_vault(path: str, vault_path: str) -> str:
    """Strip the configured vault prefix from a vault-relative path."""
    prefix = normalize_vault_path(vault_path)
    if prefix and path.startswith(prefix):
        return path[len(prefix):]
    return path


def asset_output_path(path: str) -> str:
    """Public URL of an extracted asset.

    Only literal spaces are percent-encoded.
    """
    return ASSET_OUTPUT_PREFIX + path.replace(' ', '%20')


def asset_repository_key(path: str) -> str:
    """Content-folder-relative path an asset is committed to."""
    return ASSET_OUTPUT_PREFIX.lstrip('/') + path
