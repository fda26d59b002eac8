"""Settings for Obsidian Syncer, loaded from a YAML file."""

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

from obsidian_syncer.errors import ConfigError

logger = logging.getLogger(__name__)


@dataclass
class GitSettings:
    """Where compiled notes are committed."""
    repository: str = ""
    branch: str = "main"
    token: Optional[str] = None
    api_url: str = "https://api.github.com"

    def resolved_token(self) -> Optional[str]:
        """Explicit token, else GITHUB_TOKEN / GH_TOKEN from the environment."""
        return self.token or os.environ.get("GITHUB_TOKEN") or os.environ.get("GH_TOKEN")

    @property
    def owner(self) -> str:
        return self.repository.split("/", 1)[0]

    @property
    def name(self) -> str:
        return self.repository.split("/", 1)[-1]


@dataclass
class SyncerSettings:
    """All knobs of the compile and publish pipeline.

    Integration gates (``use_*``) are looked up by name through
    ``get`` so the registry can treat settings and plain dicts alike.
    """
    vault_path: str = "/"
    content_folder: str = "content"
    apply_embeds: bool = True
    publish_frontmatter_key: str = "publish"

    use_permalink: bool = False
    slugify_permalink: bool = True
    show_created_timestamp: bool = False
    show_updated_timestamp: bool = False
    show_published_timestamp: bool = False
    created_timestamp_key: str = "created"
    updated_timestamp_key: str = "modified"
    published_timestamp_key: str = "published"
    include_all_frontmatter: bool = False

    use_auto_card_link: bool = True
    use_dataview: bool = True
    use_datacore: bool = True
    use_excalidraw: bool = False
    use_fantasy_statblocks: bool = True
    manage_syncer_styles: bool = True

    use_cache: bool = True
    cache_dir: str = ".syncer-cache"
    log_level: str = "INFO"

    git: GitSettings = field(default_factory=GitSettings)

    def get(self, key: str, default: Any = None) -> Any:
        return getattr(self, key, default)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SyncerSettings":
        """Build settings from a parsed mapping.

        Raises:
            ConfigError: If a key is unknown or a section has the wrong shape
        """
        data = dict(data or {})
        git_data = data.pop("git", None) or {}
        if not isinstance(git_data, dict):
            raise ConfigError("'git' must be a mapping")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown settings: {', '.join(unknown)}")

        git_known = {f.name for f in fields(GitSettings)}
        git_unknown = sorted(set(git_data) - git_known)
        if git_unknown:
            raise ConfigError(f"Unknown git settings: {', '.join(git_unknown)}")

        return cls(git=GitSettings(**git_data), **data)


def load_settings(path: Union[str, Path]) -> SyncerSettings:
    """Load settings from a YAML file.

    Args:
        path: Path to the settings file

    Returns:
        Parsed SyncerSettings

    Raises:
        ConfigError: If the file is missing, not valid YAML, or has unknown keys
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Settings file not found: {path}")

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Failed to parse {path.name}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must contain a mapping")

    settings = SyncerSettings.from_dict(data)
    logger.debug("Loaded settings from %s", path)
    return settings


def configure_logging(level: Union[str, int] = "INFO") -> None:
    """Attach a single stream handler to the package logger."""
    package_logger = logging.getLogger("obsidian_syncer")
    package_logger.setLevel(level if isinstance(level, int) else level.upper())
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        package_logger.addHandler(handler)
