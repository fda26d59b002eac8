"""
Obsidian Syncer - Publish Obsidian notes to a Quartz site on GitHub

Compiles notes marked for publishing into Quartz-compatible markdown with:
- Recursive note, heading and block transclusion
- Wikilink rewriting and vault path scoping
- Pluggable renderers for query and drawing blocks
- A content-hash cache diffed against the remote Git tree
"""

from obsidian_syncer.config import SyncerSettings, load_settings
from obsidian_syncer.core.cache import CompiledFileCache
from obsidian_syncer.core.compiler import PageCompiler
from obsidian_syncer.core.models import CompiledDocument, PublishResult, PublishStatus, SourceDocument
from obsidian_syncer.core.publisher import Publisher, create_publisher_from_config
from obsidian_syncer.core.status import PublishStatusManager
from obsidian_syncer.core.vault import VaultStore
from obsidian_syncer.errors import ConfigError, PublishError, RepositoryError, SyncerError

__version__ = "0.1.0"

__all__ = [
    "SyncerSettings",
    "load_settings",
    "CompiledFileCache",
    "PageCompiler",
    "CompiledDocument",
    "PublishResult",
    "PublishStatus",
    "SourceDocument",
    "Publisher",
    "create_publisher_from_config",
    "PublishStatusManager",
    "VaultStore",
    "ConfigError",
    "PublishError",
    "RepositoryError",
    "SyncerError",
]
