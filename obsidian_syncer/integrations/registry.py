"""Registry of content integrations."""

import logging
from typing import Any, Dict, List, Optional

from obsidian_syncer.integrations.base import Integration, IntegrationAssets, PatternDescriptor

logger = logging.getLogger(__name__)


def _is_available(integration: Integration) -> bool:
    """Availability check that treats a failing renderer as unavailable."""
    try:
        return bool(integration.is_available())
    except Exception as e:  # third-party renderers may raise anything
        logger.warning("Availability check for %s failed: %s", integration.id, e)
        return False


def patterns_of(integration: Integration) -> List[PatternDescriptor]:
    """Patterns an integration declares, or none if listing them fails."""
    try:
        return list(integration.get_patterns())
    except Exception as e:
        logger.warning("%s: failed to list patterns: %s", integration.id, e)
        return []


def _is_enabled(settings: Any, key: str) -> bool:
    return bool(settings.get(key))


class IntegrationRegistry:
    """Ordered collection of integrations.

    Built once at startup and handed to whatever needs it. Registering
    the same id twice is an error.
    """

    def __init__(self) -> None:
        self._integrations: List[Integration] = []

    def register(self, integration: Integration) -> None:
        if self.get_by_id(integration.id) is not None:
            raise ValueError(f"Integration already registered: {integration.id}")
        self._integrations.append(integration)

    def get_all(self) -> List[Integration]:
        return list(self._integrations)

    def get_by_id(self, integration_id: str) -> Optional[Integration]:
        for integration in self._integrations:
            if integration.id == integration_id:
                return integration
        return None

    def get_available(self) -> List[Integration]:
        return [i for i in self._integrations if _is_available(i)]

    def get_enabled(self, settings: Any) -> List[Integration]:
        """Integrations switched on in settings and usable right now.

        Sorted by priority, lowest first. Ties keep registration order.

        Args:
            settings: SyncerSettings or a plain mapping of setting keys
        """
        enabled = [
            i for i in self._integrations
            if _is_enabled(settings, i.setting_key) and _is_available(i)
        ]
        return sorted(enabled, key=lambda i: i.priority)

    def get_all_patterns(self, settings: Any) -> List[PatternDescriptor]:
        """Patterns of every enabled integration.

        Integrations may return different patterns from call to call, so
        the result must not be cached.
        """
        patterns: List[PatternDescriptor] = []
        for integration in self.get_enabled(settings):
            patterns.extend(patterns_of(integration))
        return patterns

    def get_collected_assets(self, settings: Any) -> Dict[str, IntegrationAssets]:
        """Stylesheets of enabled integrations, keyed by integration id."""
        return {
            i.id: i.assets
            for i in self.get_enabled(settings)
            if i.assets and i.assets.stylesheet
        }
