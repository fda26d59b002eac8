"""Frontmatter transform factories for Obsidian Syncer.

These factories create transform functions that derive the published
metadata block of a note. Each transform takes the block built so far
and the source note and returns a new block; `publish_frontmatter`
composes them in their fixed order.
"""

import datetime
import json
from typing import Any, Callable, Dict, List, Optional, Sequence

from obsidian_syncer.config import SyncerSettings
from obsidian_syncer.core.models import SourceDocument
from obsidian_syncer.transforms.tags import normalize_aliases, normalize_css_classes, normalize_tags
from obsidian_syncer.utils import generate_url_path, sanitize_permalink, scope_to_vault

FrontmatterTransform = Callable[[Dict[str, Any], SourceDocument], Dict[str, Any]]

PASS_THROUGH_KEYS = ('title', 'description', 'draft', 'comments', 'lang', 'enableToc')

# Source keys Quartz reads each timestamp from, in priority order
CREATED_ALIASES = ('created', 'date')
MODIFIED_ALIASES = ('modified', 'lastmod', 'updated', 'last-modified')
PUBLISHED_ALIASES = ('published', 'publishDate', 'date')

SOCIAL_IMAGE_ALIASES = ('socialImage', 'image', 'cover')
SOCIAL_DESCRIPTION_ALIASES = ('socialDescription', 'description')

# Obsidian adds this to its metadata cache; it never belongs in output
IGNORED_SOURCE_KEYS = ('position',)


def _first_present(source: Dict[str, Any], keys: Sequence[str]) -> Any:
    for key in keys:
        value = source.get(key)
        if value not in (None, '', []):
            return value
    return None


def format_timestamp(value: Any) -> str:
    """Convert various date formats to string.

    Args:
        value: Date as str, datetime, date, or None

    Returns:
        ISO date string or empty string
    """
    if value is None:
        return ""

    if isinstance(value, str):
        return value

    if isinstance(value, datetime.datetime):
        return value.isoformat()

    if isinstance(value, datetime.date):
        return value.strftime('%Y-%m-%d')

    return str(value)


def _millis_to_iso(millis: float) -> str:
    if not millis:
        return ""
    moment = datetime.datetime.fromtimestamp(millis / 1000).astimezone()
    return moment.isoformat(timespec='milliseconds')


def compose(*transforms: FrontmatterTransform) -> FrontmatterTransform:
    """Chain transforms left to right."""
    def transform(fm: Dict[str, Any], document: SourceDocument) -> Dict[str, Any]:
        for step in transforms:
            fm = step(fm, document)
        return fm
    return transform


def permalink(settings: SyncerSettings) -> FrontmatterTransform:
    """Create a transform that adds permalink and aliases.

    The permalink comes from the note's own `permalink` field, else it is
    generated from the note's path inside the vault. Nothing is added when
    permalinks are disabled.

    Args:
        settings: Reads use_permalink, slugify_permalink and vault_path

    Returns:
        A transform function
    """
    def transform(fm: Dict[str, Any], document: SourceDocument) -> Dict[str, Any]:
        result = fm.copy()
        source = document.frontmatter

        if settings.use_permalink:
            if source.get('permalink'):
                result['permalink'] = sanitize_permalink(str(source['permalink']))
            else:
                site_path = scope_to_vault(document.path, settings.vault_path)
                result['permalink'] = "/" + generate_url_path(site_path, settings.slugify_permalink)

        aliases = normalize_aliases(source.get('aliases') or source.get('alias'))
        if aliases:
            result['aliases'] = aliases

        return result
    return transform


def pass_through(keys: Sequence[str] = PASS_THROUGH_KEYS) -> FrontmatterTransform:
    """Create a transform that copies keys with a truthy source value."""
    def transform(fm: Dict[str, Any], document: SourceDocument) -> Dict[str, Any]:
        result = fm.copy()
        for key in keys:
            value = document.frontmatter.get(key)
            if value:
                result[key] = value
        return result
    return transform


def _file_timestamp(document: SourceDocument, key: str, fallback_millis: float) -> str:
    """Timestamp from the configured front matter key, else from the file.

    An empty key means "use the file's own time". A configured key that
    the note does not set yields "".
    """
    if key:
        return format_timestamp(document.frontmatter.get(key))
    return _millis_to_iso(fallback_millis)


def timestamps(settings: SyncerSettings) -> FrontmatterTransform:
    """Create a transform that adds created/modified/published dates.

    Each date is added only when it has a value and its `show_*` toggle
    or include_all_frontmatter is on. With include_all_frontmatter a date
    set under any key Quartz understands wins over the computed one.

    Args:
        settings: Timestamp keys and toggles

    Returns:
        A transform function
    """
    def transform(fm: Dict[str, Any], document: SourceDocument) -> Dict[str, Any]:
        result = fm.copy()
        include_all = settings.include_all_frontmatter
        fields = (
            ('created', settings.show_created_timestamp, CREATED_ALIASES,
             settings.created_timestamp_key, document.ctime),
            ('modified', settings.show_updated_timestamp, MODIFIED_ALIASES,
             settings.updated_timestamp_key, document.mtime),
            ('published', settings.show_published_timestamp, PUBLISHED_ALIASES,
             settings.published_timestamp_key, document.mtime),
        )

        for name, shown, aliases, key, fallback in fields:
            if not (shown or include_all):
                continue
            value = ""
            if include_all:
                value = format_timestamp(_first_present(document.frontmatter, aliases))
            if not value:
                value = _file_timestamp(document, key, fallback)
            if value:
                result[name] = value

        return result
    return transform


def tags() -> FrontmatterTransform:
    """Create a transform that merges `tags` and `tag` into a list."""
    def transform(fm: Dict[str, Any], document: SourceDocument) -> Dict[str, Any]:
        result = fm.copy()
        merged = normalize_tags(document.frontmatter.get('tags'), document.frontmatter.get('tag'))
        if merged:
            result['tags'] = merged
        return result
    return transform


def css_classes() -> FrontmatterTransform:
    """Create a transform that merges `cssclasses` and `cssclass`.

    Output is always one space-joined string without duplicates.
    """
    def transform(fm: Dict[str, Any], document: SourceDocument) -> Dict[str, Any]:
        result = fm.copy()
        classes = normalize_css_classes(
            document.frontmatter.get('cssclasses'), document.frontmatter.get('cssclass')
        )
        if classes:
            result['cssclasses'] = classes
        return result
    return transform


def social() -> FrontmatterTransform:
    """Create a transform that adds socialImage and socialDescription."""
    def transform(fm: Dict[str, Any], document: SourceDocument) -> Dict[str, Any]:
        result = fm.copy()
        image = _first_present(document.frontmatter, SOCIAL_IMAGE_ALIASES)
        if image:
            result['socialImage'] = image
        description = _first_present(document.frontmatter, SOCIAL_DESCRIPTION_ALIASES)
        if description:
            result['socialDescription'] = description
        return result
    return transform


def include_source(settings: SyncerSettings) -> FrontmatterTransform:
    """Create a transform that layers every source field over the derived ones."""
    def transform(fm: Dict[str, Any], document: SourceDocument) -> Dict[str, Any]:
        if not settings.include_all_frontmatter:
            return fm.copy()
        source = {
            k: v for k, v in document.frontmatter.items() if k not in IGNORED_SOURCE_KEYS
        }
        return {**fm, **source}
    return transform


def publish_frontmatter(
    settings: SyncerSettings,
    extra: Optional[List[FrontmatterTransform]] = None,
) -> FrontmatterTransform:
    """Build the full published-frontmatter transform.

    Args:
        settings: Syncer settings
        extra: Transforms appended after the built-in ones

    Returns:
        A transform function
    """
    return compose(
        permalink(settings),
        pass_through(),
        timestamps(settings),
        tags(),
        css_classes(),
        social(),
        include_source(settings),
        *(extra or []),
    )


def compile_frontmatter(document: SourceDocument, settings: SyncerSettings) -> Dict[str, Any]:
    """Derive the published metadata of a note, starting from {publish: true}."""
    return publish_frontmatter(settings)({'publish': True}, document)


def _json_default(value: Any) -> str:
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    return str(value)


def render_frontmatter_block(frontmatter: Dict[str, Any]) -> str:
    """Serialize frontmatter as single-line JSON between `---` fences."""
    body = json.dumps(frontmatter, ensure_ascii=False, separators=(',', ':'), default=_json_default)
    return f"---\n{body}\n---\n"
