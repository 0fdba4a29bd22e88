"""
version_resolver.py
===================
Turns an adapter's version listing into a non-empty list of candidates.

Registries without a version API, empty listings and listing failures all
collapse into one synthetic ``latest`` candidate, which every backend
installs as "the newest version".
"""

from __future__ import annotations

import logging
from typing import Dict, List

from server_types import TargetInstance
from source_adapters import Addon, SourceAdapter, VersionCandidate, VersionListUnavailable

logger = logging.getLogger(__name__)

LATEST_ID = "latest"


def latest_candidate(target: TargetInstance) -> VersionCandidate:
    """The synthetic candidate installed as the registry's newest version."""
    return VersionCandidate(
        id=LATEST_ID,
        name="Latest",
        compatible_game_versions=frozenset({target.version}),
        compatible_loaders=frozenset({target.platform}),
    )


class VersionResolver:
    """Resolve installable versions through the adapter of each source."""

    def __init__(self, adapters: Dict[str, SourceAdapter]) -> None:
        self.adapters = adapters

    async def resolve(self, addon: Addon, target: TargetInstance) -> List[VersionCandidate]:
        """
        List versions of ``addon`` for ``target``.

        Returns:
            The adapter's candidates in registry order, or exactly one
            ``latest`` candidate when there are none
        """
        adapter = self.adapters.get(addon.source_id)
        if adapter is None:
            logger.warning("No adapter for source %s; offering latest", addon.source_id)
            return [latest_candidate(target)]

        try:
            versions = await adapter.list_versions(addon, target)
        except VersionListUnavailable as e:
            logger.warning("Version list unavailable for %s: %s", addon.title, e)
            versions = []

        if not versions:
            return [latest_candidate(target)]
        return versions
