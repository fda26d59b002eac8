"""Core components for Obsidian Syncer."""

from obsidian_syncer.core.models import (
    Asset,
    CompiledDocument,
    CompiledNote,
    DocumentMetadata,
    MarkedForPublishing,
    PathToRemove,
    PublishResult,
    PublishStatus,
    SourceDocument,
)
from obsidian_syncer.core.vault import LinkIndex, VaultStore
from obsidian_syncer.core.cache import CompiledFileCache

__all__ = [
    "Asset",
    "CompiledDocument",
    "CompiledNote",
    "DocumentMetadata",
    "MarkedForPublishing",
    "PathToRemove",
    "PublishResult",
    "PublishStatus",
    "SourceDocument",
    "LinkIndex",
    "VaultStore",
    "CompiledFileCache",
]
