"""Data models for Obsidian Syncer."""

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any, Dict, List, Optional

from obsidian_syncer.utils import asset_repository_key, blob_hash


@dataclass
class Heading:
    """A markdown heading and the 0-based line it starts on."""
    heading: str
    level: int
    line: int


@dataclass
class Block:
    """A block reference target (`^id`) and the line range it covers."""
    id: str
    start_line: int
    end_line: int


@dataclass
class DocumentMetadata:
    """What the vault knows about a note without compiling it."""
    frontmatter: Dict[str, Any] = field(default_factory=dict)
    headings: List[Heading] = field(default_factory=list)
    blocks: Dict[str, Block] = field(default_factory=dict)


@dataclass
class SourceDocument:
    """Immutable snapshot of a vault file for one compilation pass.

    Paths are vault-relative and use forward slashes. Timestamps are in
    milliseconds since the epoch.
    """
    path: str
    text: str
    metadata: DocumentMetadata
    mtime: float = 0.0
    ctime: float = 0.0

    @property
    def frontmatter(self) -> Dict[str, Any]:
        return self.metadata.frontmatter

    @property
    def name(self) -> str:
        """File name without extension."""
        return PurePosixPath(self.path).stem

    @property
    def extension(self) -> str:
        return PurePosixPath(self.path).suffix.lstrip('.').lower()


@dataclass
class Asset:
    """A binary file extracted from a note, base64 encoded.

    path is the public URL the note links to; vault_path is where the
    file lives in the vault.
    """
    path: str
    content: str
    remote_hash: Optional[str] = None
    vault_path: str = ""

    @property
    def repository_key(self) -> str:
        """Content-folder-relative path the file is committed to."""
        if self.vault_path:
            return asset_repository_key(self.vault_path)
        return self.path.lstrip("/").replace("%20", " ")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'content': self.content,
            'remote_hash': self.remote_hash,
            'vault_path': self.vault_path,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Asset":
        return cls(
            path=data['path'],
            content=data['content'],
            remote_hash=data.get('remote_hash'),
            vault_path=data.get('vault_path', ""),
        )


@dataclass
class CompiledDocument:
    """Output of the compile pipeline: the final text plus side-channel assets."""
    text: str
    assets: List[Asset] = field(default_factory=list)

    @property
    def hash(self) -> str:
        return blob_hash(self.text)

    def to_dict(self) -> Dict[str, Any]:
        return {'text': self.text, 'assets': [a.to_dict() for a in self.assets]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompiledDocument":
        return cls(
            text=data['text'],
            assets=[Asset.from_dict(a) for a in data.get('assets', [])],
        )


@dataclass
class CompiledNote:
    """A compiled note together with where it lives on the remote.

    remote_path is relative to the remote content folder.
    """
    document: SourceDocument
    compiled: CompiledDocument
    remote_path: str
    remote_hash: Optional[str] = None

    @property
    def path(self) -> str:
        return self.document.path

    @property
    def local_hash(self) -> str:
        return self.compiled.hash


@dataclass
class PathToRemove:
    """A remote file with no local counterpart, and its blob sha."""
    path: str
    sha: str


@dataclass
class PublishStatus:
    """Classification of every publishable file against the remote tree."""
    unpublished: List[CompiledNote] = field(default_factory=list)
    published: List[CompiledNote] = field(default_factory=list)
    changed: List[CompiledNote] = field(default_factory=list)
    deleted_note_paths: List[PathToRemove] = field(default_factory=list)
    deleted_blob_paths: List[PathToRemove] = field(default_factory=list)


@dataclass
class MarkedForPublishing:
    """Notes carrying the publish flag and the binary files they embed."""
    notes: List[SourceDocument] = field(default_factory=list)
    blobs: List[str] = field(default_factory=list)


@dataclass
class NoteError:
    """An error that occurred while compiling or publishing a note."""
    path: str
    error: str


@dataclass
class PublishResult:
    """Result of a sync operation."""
    published_paths: List[str] = field(default_factory=list)
    deleted_paths: List[str] = field(default_factory=list)
    failures: List[NoteError] = field(default_factory=list)
    dry_run: bool = False
