"""Vault access: reading notes and binaries, parsing metadata, resolving links."""

import logging
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import yaml

from obsidian_syncer.core.models import Block, DocumentMetadata, Heading, SourceDocument
from obsidian_syncer.core.regexes import BLOCK_ID_REGEX, FENCE_LINE_REGEX, HEADING_REGEX
from obsidian_syncer.utils import collapse_relative_path

logger = logging.getLogger(__name__)

LIST_ITEM_REGEX = re.compile(r'^\s*(?:[-*+]|\d+[.)])\s')


@dataclass
class LinkIndex:
    """Index of vault files for Obsidian-style link resolution.

    Lookups are case-insensitive. Markdown files can be linked without
    their extension.
    """

    by_path: Dict[str, str] = field(default_factory=dict)
    by_name: Dict[str, List[str]] = field(default_factory=dict)

    @classmethod
    def from_paths(cls, paths: List[str]) -> "LinkIndex":
        """Build a link index from vault-relative file paths."""
        index = cls()
        for path in paths:
            index.by_path[path.lower()] = path
            name = posixpath.basename(path).lower()
            index.by_name.setdefault(name, []).append(path)
            if name.endswith('.md'):
                index.by_name.setdefault(name[:-3], []).append(path)
        return index

    def resolve(self, link: str, source_path: str = "") -> Optional[str]:
        """Resolve a link target to a vault path.

        Tries the link as an absolute vault path, then relative to the
        source note's folder, then by file name. Name matches in the
        source's own folder win, otherwise the shortest path wins.

        Args:
            link: Link target without heading or alias suffix
            source_path: Vault path of the note containing the link

        Returns:
            Vault-relative path, or None if nothing matches
        """
        link = link.strip().lstrip('/')
        if not link:
            return None

        source_dir = posixpath.dirname(source_path)
        candidates = [link]
        if source_dir:
            candidates.append(collapse_relative_path(posixpath.join(source_dir, link)))
        candidates.append(collapse_relative_path(link))

        for candidate in candidates:
            for variant in (candidate, candidate + '.md'):
                found = self.by_path.get(variant.lower())
                if found:
                    return found

        lowered = link.lower()
        matches = self.by_name.get(posixpath.basename(lowered), [])
        if '/' in lowered:
            matches = [
                m for m in matches
                if m.lower().endswith('/' + lowered) or m.lower().endswith('/' + lowered + '.md')
            ]
        if not matches:
            return None

        same_folder = [m for m in matches if posixpath.dirname(m) == source_dir]
        if same_folder:
            return same_folder[0]
        return min(matches, key=lambda m: (len(m), m))


class VaultStore:
    """Reads notes and binary files from an Obsidian vault on disk.

    All paths handed in and out are vault-relative with forward slashes.
    Hidden directories (``.obsidian``, ``.git``, ``.trash``) are skipped.
    """

    def __init__(self, vault_path: Path):
        """Initialize VaultStore.

        Args:
            vault_path: Path to the Obsidian vault root
        """
        self.vault_path = Path(vault_path)
        if not self.vault_path.is_dir():
            raise FileNotFoundError(f"Vault not found: {self.vault_path}")
        self._index: Optional[LinkIndex] = None
        self._metadata: Dict[str, Tuple[int, DocumentMetadata]] = {}

    def refresh(self) -> None:
        """Forget the link index and metadata so the next lookup rescans."""
        self._index = None
        self._metadata.clear()

    @property
    def link_index(self) -> LinkIndex:
        if self._index is None:
            self._index = LinkIndex.from_paths(self.list_all_documents())
        return self._index

    def list_all_documents(self) -> List[str]:
        """List every file in the vault, sorted."""
        paths = []
        for file_path in self.vault_path.rglob('*'):
            rel = file_path.relative_to(self.vault_path)
            if any(part.startswith('.') for part in rel.parts):
                continue
            if file_path.is_file():
                paths.append(rel.as_posix())
        return sorted(paths)

    def list_markdown(self) -> List[str]:
        return [p for p in self.list_all_documents() if p.lower().endswith('.md')]

    def exists(self, path: str) -> bool:
        return (self.vault_path / path).is_file()

    def read_text(self, path: str) -> str:
        return (self.vault_path / path).read_text(encoding='utf-8')

    def read_bytes(self, path: str) -> bytes:
        return (self.vault_path / path).read_bytes()

    def get_times(self, path: str) -> Tuple[float, float]:
        """Return (mtime, ctime) of a file in milliseconds."""
        stat = (self.vault_path / path).stat()
        created = getattr(stat, 'st_birthtime', stat.st_ctime)
        return stat.st_mtime * 1000, created * 1000

    def resolve_link(self, link: str, source_path: str = "") -> Optional[str]:
        return self.link_index.resolve(link, source_path)

    def get_metadata(self, path: str) -> DocumentMetadata:
        """Parse front matter, headings and block ids of a note.

        Results are memoized until the file's mtime changes.
        """
        mtime_ns = (self.vault_path / path).stat().st_mtime_ns
        cached = self._metadata.get(path)
        if cached and cached[0] == mtime_ns:
            return cached[1]

        metadata = parse_metadata(self.read_text(path), path)
        self._metadata[path] = (mtime_ns, metadata)
        return metadata

    def get_document(self, path: str) -> Optional[SourceDocument]:
        """Snapshot a vault file for compilation.

        Returns:
            SourceDocument, or None if the file does not exist or cannot be read
        """
        if not self.exists(path):
            return None

        try:
            text = self.read_text(path)
            metadata = self.get_metadata(path) if path.lower().endswith('.md') else DocumentMetadata()
            mtime, ctime = self.get_times(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read %s: %s", path, e)
            return None

        return SourceDocument(path=path, text=text, metadata=metadata, mtime=mtime, ctime=ctime)


def parse_frontmatter(text: str, path: str = "") -> Dict:
    """Parse YAML front matter from note text.

    Args:
        text: Full note text
        path: Used only in warnings

    Returns:
        Frontmatter dict (empty if not found or invalid)
    """
    if not text.startswith('---'):
        return {}

    try:
        parts = text.split('---\n', 2)
        if len(parts) < 3:
            return {}

        frontmatter = yaml.safe_load(parts[1])
        if not isinstance(frontmatter, dict):
            return {}

        return frontmatter

    except yaml.YAMLError as e:
        logger.warning("Failed to parse YAML in %s: %s", path, e)
        return {}


def _frontmatter_line_count(lines: List[str]) -> int:
    if not lines or lines[0].strip() != '---':
        return 0
    for i in range(1, len(lines)):
        if lines[i].strip() == '---':
            return i + 1
    return 0


def parse_metadata(text: str, path: str = "") -> DocumentMetadata:
    """Extract front matter, headings and block positions from note text.

    Line numbers are 0-based and count front matter lines. Headings and
    block ids inside fenced code are ignored.
    """
    lines = text.split('\n')
    headings: List[Heading] = []
    blocks: Dict[str, Block] = {}
    in_fence = False

    for i in range(_frontmatter_line_count(lines), len(lines)):
        line = lines[i]
        if FENCE_LINE_REGEX.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue

        heading = HEADING_REGEX.match(line)
        if heading:
            headings.append(Heading(heading=heading.group(2), level=len(heading.group(1)), line=i))

        block_id = BLOCK_ID_REGEX.search(line)
        if block_id:
            start, end = _block_range(lines, i)
            blocks[block_id.group(1)] = Block(id=block_id.group(1), start_line=start, end_line=end)

    return DocumentMetadata(
        frontmatter=parse_frontmatter(text, path),
        headings=headings,
        blocks=blocks,
    )


def _block_range(lines: List[str], id_line: int) -> Tuple[int, int]:
    """Line range covered by the block whose id sits on id_line.

    A list item owns just its own line. A paragraph runs back to the
    previous blank line. An id alone on its line tags the block above it.
    """
    line = lines[id_line]
    if LIST_ITEM_REGEX.match(line):
        return id_line, id_line

    end = id_line
    if line.strip().startswith('^'):
        end = id_line - 1
        while end >= 0 and not lines[end].strip():
            end -= 1
        if end < 0:
            return id_line, id_line

    start = end
    while start > 0 and lines[start - 1].strip() and not HEADING_REGEX.match(lines[start - 1]):
        start -= 1
    return start, end
