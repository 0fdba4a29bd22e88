"""
discovery.py
============
The façade a browser screen drives: which registry is active, which category
or free-text query is applied, which page is shown.

One ``DiscoveryOrchestrator`` serves every screen; what differs between the
plugin, mod and Bedrock screens lives in a ``DiscoveryConfig`` preset.

Every selection change is followed by an explicit ``request_fetch`` for the
active source only.  Fetches run as asyncio tasks; the per-source generation
counter in ``ResultCache`` makes the most recently *started* fetch win.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set

from pagination import (
    DEFAULT_PAGE_SIZE,
    MOD_WINDOW_WIDTH,
    PLUGIN_WINDOW_WIDTH,
    clamp_page,
    page_window,
    total_pages,
)
from registry_apis import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT
from result_cache import ResultCache, SourceState
from server_types import PlatformCategory, TargetInstance
from source_adapters import Addon, SearchFailure, SourceAdapter, SourcePage, create_adapter

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
#  Notifications
# ──────────────────────────────────────────────

# (message, severity) with severity one of "information", "warning", "error"
Notifier = Callable[[str, str], None]

_SEVERITY_LEVELS = {
    "information": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def log_notifier(message: str, severity: str = "information") -> None:
    """Default notifier: route user notices to the log."""
    logger.log(_SEVERITY_LEVELS.get(severity, logging.INFO), message)


# ──────────────────────────────────────────────
#  Configuration
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Category:
    id: str
    label: str
    query: str


TRENDING = "popular"

PLUGIN_CATEGORIES = [
    Category(TRENDING, "Trending", ""),
    Category("essentials", "Essentials", "essentials"),
    Category("protection", "Protection", "protection worldguard"),
    Category("games", "Minigames", "minigame bedwars"),
    Category("performance", "Performance", "performance optimization lithium sodium ferrite"),
    Category("economy", "Economy", "economy vault"),
    Category("chat", "Chat", "chat"),
]

MOD_CATEGORIES = [
    Category(TRENDING, "Trending", ""),
    Category("new", "New", "new"),
    Category("updated", "Updated", "updated"),
    Category("technology", "Tech", "technology"),
    Category("adventure", "Adventure", "adventure"),
    Category("magic", "Magic", "magic"),
]


@dataclass
class DiscoveryConfig:
    """
    Per-screen discovery settings.

    Attributes:
        sources:          Registries shown on the screen, first is active
        categories:       Category buttons; the first is the trending one
        window_width:     Number of page buttons (odd)
        page_size:        Results per page
        loader:           Mod loader passed to registries that filter on it
        game_version:     Minecraft version passed along with ``loader``
        request_timeout:  HTTP timeout in seconds
        user_agent:       User-Agent sent to the registries
    """

    sources: List[str]
    categories: List[Category]
    window_width: int
    page_size: int = DEFAULT_PAGE_SIZE
    loader: Optional[str] = None
    game_version: Optional[str] = None
    request_timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT

    @property
    def trending_category(self) -> str:
        return self.categories[0].id if self.categories else TRENDING

    def category(self, category_id: str) -> Category:
        for cat in self.categories:
            if cat.id == category_id:
                return cat
        raise ValueError(f"Unknown category: {category_id!r}")

    @classmethod
    def for_plugins(cls) -> "DiscoveryConfig":
        return cls(
            sources=["modrinth", "hangar", "spigot", "polymart"],
            categories=list(PLUGIN_CATEGORIES),
            window_width=PLUGIN_WINDOW_WIDTH,
        )

    @classmethod
    def for_mods(cls, target: TargetInstance) -> "DiscoveryConfig":
        return cls(
            sources=["modrinth", "curseforge"],
            categories=list(MOD_CATEGORIES),
            window_width=MOD_WINDOW_WIDTH,
            loader=target.loader,
            game_version=target.version,
        )

    @classmethod
    def for_bedrock(cls) -> "DiscoveryConfig":
        return cls(
            sources=["poggit"],
            categories=[Category(TRENDING, "Trending", "")],
            window_width=MOD_WINDOW_WIDTH,
        )

    @classmethod
    def for_target(cls, target: TargetInstance) -> "DiscoveryConfig":
        """Pick the preset matching the target's platform category."""
        category = target.category
        if category is PlatformCategory.PLUGIN_HOST:
            return cls.for_plugins()
        if category is PlatformCategory.MOD_LOADER:
            return cls.for_mods(target)
        if category is PlatformCategory.BEDROCK_VARIANT:
            return cls.for_bedrock()
        # Vanilla: nothing to browse
        return cls(sources=[], categories=[], window_width=PLUGIN_WINDOW_WIDTH)

    @classmethod
    def from_dict(cls, config: Dict[str, Any], target: TargetInstance) -> "DiscoveryConfig":
        """
        Build the preset for ``target`` and apply ``config["discovery"]``.

        ``window_width: null`` keeps the preset's width.
        """
        preset = cls.for_target(target)
        overrides = config.get("discovery", {}) or {}

        changes: Dict[str, Any] = {}
        if overrides.get("page_size"):
            changes["page_size"] = int(overrides["page_size"])
        width = overrides.get("window_width")
        if width is not None:
            if isinstance(width, int) and not isinstance(width, bool) and width > 0 and width % 2 == 1:
                changes["window_width"] = width
            else:
                logger.warning(
                    "Ignoring discovery.window_width=%r (must be a positive odd number)", width,
                )
        if overrides.get("request_timeout"):
            changes["request_timeout"] = float(overrides["request_timeout"])
        if overrides.get("user_agent"):
            changes["user_agent"] = str(overrides["user_agent"])
        return replace(preset, **changes)


def load_config(path: Path) -> Dict[str, Any]:
    """Load config.json; a missing or corrupt file yields an empty config."""
    path = Path(path)
    if not path.exists():
        logger.warning("Config file not found: %s (using defaults)", path)
        return {}
    try:
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (json.JSONDecodeError, OSError) as exc:
        logger.error("Failed to load config %s: %s", path, exc)
        return {}
    if not isinstance(data, dict):
        logger.error("Config %s is not a JSON object", path)
        return {}
    return data


def build_adapters(config: DiscoveryConfig, backend: Any) -> Dict[str, SourceAdapter]:
    """One adapter per configured source, sharing ``backend``."""
    return {
        source: create_adapter(
            source, backend,
            page_size=config.page_size,
            loader=config.loader,
            game_version=config.game_version,
        )
        for source in config.sources
    }


# ──────────────────────────────────────────────
#  Orchestrator
# ──────────────────────────────────────────────

@dataclass
class DiscoverySelection:
    active_source: str
    active_category: str
    search_query: str = ""
    current_page: int = 1


@dataclass
class PageView:
    """Read-only snapshot of what the active source shows."""

    source: str
    items: List[Addon] = field(default_factory=list)
    loading: bool = False
    state: SourceState = SourceState.UNINITIALIZED
    current_page: int = 1
    total_pages: int = 1
    window: List[int] = field(default_factory=lambda: [1])
    failure: Optional[SearchFailure] = None


class DiscoveryOrchestrator:
    """
    Owns the ``DiscoverySelection`` and schedules searches.

    Args:
        config:    Screen preset
        adapters:  Source adapters keyed by source id
        cache:     Result cache (a fresh one if None)
        notify:    Notifier for user-visible notices
    """

    def __init__(
        self,
        config: DiscoveryConfig,
        adapters: Dict[str, SourceAdapter],
        cache: Optional[ResultCache] = None,
        notify: Optional[Notifier] = None,
    ) -> None:
        missing = [s for s in config.sources if s not in adapters]
        if missing:
            raise ValueError(f"No adapter for source(s): {', '.join(missing)}")

        self.config = config
        self.adapters = adapters
        self.cache = cache or ResultCache()
        self.notify = notify or log_notifier
        self.selection = DiscoverySelection(
            active_source=config.sources[0] if config.sources else "",
            active_category=config.trending_category,
        )
        self._tasks: Set[asyncio.Task] = set()

    # ================================================================
    #  FETCHING
    # ================================================================

    def start(self) -> List[asyncio.Task]:
        """Prefetch the trending first page of every source not yet ready."""
        tasks = []
        for source in self.config.sources:
            if self.cache.state(source) is SourceState.READY:
                continue
            tasks.append(self._spawn(source, "", self.config.trending_category, 1))
        logger.info("Prefetching %d source(s)", len(tasks))
        return tasks

    def request_fetch(self, source: Optional[str] = None) -> asyncio.Task:
        """Search ``source`` (default: the active one) with the current selection."""
        source = source or self.selection.active_source
        if source not in self.adapters:
            raise ValueError(f"No add-on source {source!r} for this server")
        sel = self.selection
        return self._spawn(source, sel.search_query, sel.active_category, sel.current_page)

    def _spawn(self, source: str, query: str, category: str, page: int) -> asyncio.Task:
        generation = self.cache.begin(source)
        task = asyncio.create_task(self._fetch(source, generation, query, category, page))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _fetch(self, source: str, generation: int, query: str, category: str, page: int) -> None:
        adapter = self.adapters[source]
        try:
            result = await adapter.search(query, category, page)
        except Exception as e:
            logger.error("Adapter %s raised from search: %s", source, e)
            result = SourcePage(
                query=query, category=category, page=page,
                failure=SearchFailure(source, str(e)),
            )

        if not self.cache.complete(source, generation, result):
            return
        if result.failure is not None:
            self.notify(f"{adapter.display_name}: {result.failure.message}", "warning")

    async def settle(self) -> None:
        """Wait until no fetch is in flight."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ================================================================
    #  SELECTION
    # ================================================================

    def set_query(self, text: str) -> asyncio.Task:
        """Free-text search; overrides any active category."""
        self.selection.search_query = text.strip()
        self.selection.active_category = ""
        self.selection.current_page = 1
        return self.request_fetch(self.selection.active_source)

    def set_category(self, category_id: str) -> asyncio.Task:
        """Select a category; its terms replace the free-text query."""
        category = self.config.category(category_id)
        self.selection.active_category = category.id
        self.selection.search_query = category.query
        self.selection.current_page = 1
        return self.request_fetch(self.selection.active_source)

    def set_active_source(self, source: str) -> asyncio.Task:
        if source not in self.config.sources:
            raise ValueError(f"Source not available on this screen: {source!r}")
        self.selection.active_source = source
        self.selection.current_page = 1
        return self.request_fetch(source)

    def set_page(self, page: int) -> asyncio.Task:
        """Go to ``page``, clamped to the active source's page count."""
        self.selection.current_page = clamp_page(page, self.total_pages())
        return self.request_fetch(self.selection.active_source)

    # ================================================================
    #  VIEW
    # ================================================================

    def total_pages(self, source: Optional[str] = None) -> int:
        cached = self.cache.get(source or self.selection.active_source)
        return total_pages(cached.total_count if cached else 0, self.config.page_size)

    def current_page_view(self) -> PageView:
        source = self.selection.active_source
        cached = self.cache.get(source)
        pages = self.total_pages(source)
        current = self.selection.current_page
        return PageView(
            source=source,
            items=list(cached.items) if cached else [],
            loading=self.cache.is_loading(source),
            state=self.cache.state(source),
            current_page=current,
            total_pages=pages,
            window=page_window(current, pages, self.config.window_width),
            failure=cached.failure if cached else None,
        )
