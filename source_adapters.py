"""
source_adapters.py
==================
One adapter per registry, turning the registry backend's raw payloads into
``Addon`` and ``VersionCandidate`` records.

Adapters are the error boundary between the network and the discovery core:

  - ``search`` never raises; a failure becomes an empty ``SourcePage`` with
    ``failure`` set.
  - ``list_versions`` raises ``VersionListUnavailable``.
  - ``install`` raises ``InstallFailure`` with the remote message verbatim.

Search hints (loader, game version, page size) are fixed per adapter when it
is created for a target instance.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional, Type

from pagination import DEFAULT_PAGE_SIZE, CountingMode

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
#  Errors
# ──────────────────────────────────────────────

class VersionListUnavailable(Exception):
    """The registry could not list versions for an add-on."""


class InstallFailure(Exception):
    """An install was refused or failed; the message is shown verbatim."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


# ──────────────────────────────────────────────
#  Data model
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Addon:
    """
    One search hit.

    ``id`` is only unique within the page it came from; installs use
    ``registry_native_id`` when the registry needs a different key.
    """

    id: str
    slug: str
    title: str
    description: str
    download_count: int
    source_id: str
    icon_url: Optional[str] = None
    registry_native_id: Optional[str] = None
    author: str = ""
    page_url: str = ""

    @property
    def install_key(self) -> str:
        return self.registry_native_id or self.id


@dataclass(frozen=True)
class SearchFailure:
    source_id: str
    message: str


@dataclass
class SourcePage:
    """The most recent search result for one source, replaced wholesale."""

    items: List[Addon] = field(default_factory=list)
    total_count: int = 0
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    query: str = ""
    category: str = ""
    page: int = 1
    failure: Optional[SearchFailure] = None


@dataclass(frozen=True)
class VersionCandidate:
    id: str
    name: str
    compatible_game_versions: FrozenSet[str] = frozenset()
    compatible_loaders: FrozenSet[str] = frozenset()
    published_at: Optional[datetime] = None
    release_channel: str = "unknown"     # release | beta | alpha | unknown


@dataclass(frozen=True)
class InstallRoute:
    """
    Where and how an add-on is installed.

    Attributes:
        kind:          "plugin", "mod" or "phar"
        dest_dir:      Directory the file is written to
        loader:        Mod loader, for mod routes only
        game_version:  Minecraft version, for mod routes only
    """

    kind: str
    dest_dir: Path
    loader: Optional[str] = None
    game_version: Optional[str] = None


def _parse_time(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string or epoch seconds; None when unparseable."""
    if value in (None, ""):
        return None
    try:
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(value, tz=timezone.utc)
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except (ValueError, OverflowError, OSError):
        return None


def _channel(value: Any) -> str:
    name = str(value or "").lower()
    if name in ("release", "beta", "alpha"):
        return name
    if name == "snapshot":
        return "beta"
    return "unknown"


# ──────────────────────────────────────────────
#  Base adapter
# ──────────────────────────────────────────────

class SourceAdapter:
    """
    Common search / version / install plumbing for one registry.

    Subclasses set the class attributes and implement ``parse_hit`` and
    ``parse_version``.
    """

    source_id = ""
    display_name = ""
    counting_mode = CountingMode.EXACT
    estimated_total = 0

    def __init__(
        self,
        backend: Any,
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        loader: Optional[str] = None,
        game_version: Optional[str] = None,
    ) -> None:
        self.backend = backend
        self.page_size = page_size
        self.loader = loader
        self.game_version = game_version

    def _hints(self) -> Dict[str, Any]:
        return {
            "page_size": self.page_size,
            "loader": self.loader,
            "game_version": self.game_version,
        }

    def total_count(self, reported: Optional[int], item_count: int) -> int:
        """Total result count under this source's counting mode."""
        if self.counting_mode is CountingMode.ESTIMATED:
            return self.estimated_total
        return reported if reported is not None else item_count

    async def search(self, query: str, category: str, page: int) -> SourcePage:
        try:
            raw = await self.backend.search(
                self.source_id, query, category, page, self._hints(),
            )
            items = [self.parse_hit(hit) for hit in raw.items]
        except Exception as e:
            logger.warning("%s search failed: %s", self.display_name, e)
            return SourcePage(
                items=[], total_count=0, query=query, category=category, page=page,
                failure=SearchFailure(self.source_id, str(e)),
            )

        logger.debug("%s search q=%r page=%d → %d hits", self.source_id, query, page, len(items))
        return SourcePage(
            items=items,
            total_count=self.total_count(raw.total, len(items)),
            query=query,
            category=category,
            page=page,
        )

    async def list_versions(self, addon: Addon, target: Any) -> List[VersionCandidate]:
        """List installable versions; an empty list is a valid answer."""
        try:
            raw = await self.backend.list_versions(
                self.source_id, addon.install_key, addon.slug, hints=self._hints(),
            )
            return [self.parse_version(v) for v in raw]
        except Exception as e:
            raise VersionListUnavailable(f"{self.display_name}: {e}") from e

    async def install(
        self, addon: Addon, version: VersionCandidate, target: Any, route: InstallRoute,
    ) -> str:
        """Install ``version`` of ``addon`` along ``route``; returns the file name."""
        try:
            return await self.backend.install(
                self.source_id,
                addon.install_key,
                route.dest_dir,
                loader=route.loader,
                game_version=route.game_version,
                version_id=version.id,
            )
        except Exception as e:
            raise InstallFailure(str(e)) from e

    # -- per-registry parsing ----------------------------------------

    def parse_hit(self, hit: Dict[str, Any]) -> Addon:
        raise NotImplementedError

    def parse_version(self, raw: Dict[str, Any]) -> VersionCandidate:
        raise NotImplementedError


# ──────────────────────────────────────────────
#  Registries
# ──────────────────────────────────────────────

class ModrinthSource(SourceAdapter):
    source_id = "modrinth"
    display_name = "Modrinth"

    def parse_hit(self, hit: Dict[str, Any]) -> Addon:
        slug = hit.get("slug", "")
        return Addon(
            id=hit.get("project_id", slug),
            slug=slug,
            title=hit.get("title", slug),
            description=hit.get("description", ""),
            download_count=int(hit.get("downloads", 0)),
            source_id=self.source_id,
            icon_url=hit.get("icon_url") or None,
            registry_native_id=hit.get("project_id"),
            author=hit.get("author", ""),
            page_url=f"https://modrinth.com/{hit.get('project_type', 'plugin')}/{slug}",
        )

    def parse_version(self, raw: Dict[str, Any]) -> VersionCandidate:
        return VersionCandidate(
            id=raw["id"],
            name=raw.get("version_number") or raw.get("name", raw["id"]),
            compatible_game_versions=frozenset(raw.get("game_versions", [])),
            compatible_loaders=frozenset(raw.get("loaders", [])),
            published_at=_parse_time(raw.get("date_published")),
            release_channel=_channel(raw.get("version_type")),
        )


class HangarSource(SourceAdapter):
    source_id = "hangar"
    display_name = "Hangar"
    counting_mode = CountingMode.ESTIMATED
    estimated_total = 50

    def parse_hit(self, hit: Dict[str, Any]) -> Addon:
        ns = hit.get("namespace", {})
        owner = ns.get("owner", "")
        slug = ns.get("slug") or hit.get("name", "")
        full_slug = f"{owner}/{slug}" if owner else slug
        return Addon(
            id=str(hit.get("id", full_slug)),
            slug=slug,
            title=hit.get("name", slug),
            description=hit.get("description", ""),
            download_count=int(hit.get("stats", {}).get("downloads", 0)),
            source_id=self.source_id,
            icon_url=hit.get("avatarUrl") or None,
            registry_native_id=full_slug,
            author=owner,
            page_url=f"https://hangar.papermc.io/{full_slug}",
        )

    def parse_version(self, raw: Dict[str, Any]) -> VersionCandidate:
        deps = raw.get("platformDependencies", {})
        game_versions = {v for versions in deps.values() for v in versions}
        return VersionCandidate(
            id=raw["name"],
            name=raw["name"],
            compatible_game_versions=frozenset(game_versions),
            compatible_loaders=frozenset(p.lower() for p in deps),
            published_at=_parse_time(raw.get("createdAt")),
            release_channel=_channel(raw.get("channel", {}).get("name")),
        )


class SpigotSource(SourceAdapter):
    source_id = "spigot"
    display_name = "SpigotMC"
    counting_mode = CountingMode.ESTIMATED
    estimated_total = 100

    def parse_hit(self, hit: Dict[str, Any]) -> Addon:
        rid = str(hit["id"])
        name = hit.get("name", rid)
        icon = hit.get("icon", {}).get("url", "")
        return Addon(
            id=rid,
            slug=name.lower().replace(" ", "-"),
            title=name,
            description=hit.get("tag", ""),
            download_count=int(hit.get("downloads", 0)),
            source_id=self.source_id,
            icon_url=f"https://www.spigotmc.org/{icon}" if icon else None,
            registry_native_id=rid,
            author=str(hit.get("author", {}).get("id", "")),
            page_url=f"https://www.spigotmc.org/resources/{rid}",
        )

    def parse_version(self, raw: Dict[str, Any]) -> VersionCandidate:
        return VersionCandidate(
            id=str(raw["id"]),
            name=raw.get("name", str(raw["id"])),
            published_at=_parse_time(raw.get("releaseDate")),
        )


class PolymartSource(SourceAdapter):
    source_id = "polymart"
    display_name = "Polymart"
    counting_mode = CountingMode.ESTIMATED
    estimated_total = 50

    def parse_hit(self, hit: Dict[str, Any]) -> Addon:
        rid = str(hit["id"])
        title = hit.get("title", rid)
        return Addon(
            id=rid,
            slug=title.lower().replace(" ", "-"),
            title=title,
            description=hit.get("subtitle", ""),
            download_count=int(hit.get("downloads", 0) or 0),
            source_id=self.source_id,
            icon_url=hit.get("thumbnailURL") or None,
            registry_native_id=rid,
            author=hit.get("owner", {}).get("name", ""),
            page_url=hit.get("url", f"https://polymart.org/resource/{rid}"),
        )

    async def list_versions(self, addon: Addon, target: Any) -> List[VersionCandidate]:
        # Polymart has no version API; the resolver falls back to "latest"
        return []


class PoggitSource(SourceAdapter):
    source_id = "poggit"
    display_name = "Poggit"
    counting_mode = CountingMode.ESTIMATED
    estimated_total = 20

    def parse_hit(self, hit: Dict[str, Any]) -> Addon:
        name = hit.get("name", "")
        return Addon(
            id=str(hit.get("id", name)),
            slug=name,
            title=name,
            description=hit.get("tagline", ""),
            download_count=int(hit.get("downloads", 0)),
            source_id=self.source_id,
            icon_url=hit.get("icon_url") or None,
            # Poggit installs by plugin name
            registry_native_id=name,
            author=hit.get("repo_name", "").split("/")[0],
            page_url=hit.get("html_url", ""),
        )

    def parse_version(self, raw: Dict[str, Any]) -> VersionCandidate:
        api = raw.get("api") or []
        game_versions = {bound for r in api for bound in (r.get("from"), r.get("to")) if bound}
        return VersionCandidate(
            id=str(raw.get("id", raw.get("version", ""))),
            name=raw.get("version", ""),
            compatible_game_versions=frozenset(game_versions),
            compatible_loaders=frozenset({"pocketmine"}),
            published_at=_parse_time(raw.get("last_state_change_date")),
        )


class CurseForgeSource(SourceAdapter):
    source_id = "curseforge"
    display_name = "CurseForge"

    _LOADER_NAMES = {"forge", "fabric", "quilt", "neoforge"}
    _RELEASE_TYPES = {1: "release", 2: "beta", 3: "alpha"}

    def parse_hit(self, hit: Dict[str, Any]) -> Addon:
        mod_id = str(hit["id"])
        authors = hit.get("authors") or [{}]
        return Addon(
            id=mod_id,
            slug=hit.get("slug", mod_id),
            title=hit.get("name", mod_id),
            description=hit.get("summary", ""),
            download_count=int(hit.get("downloadCount", 0)),
            source_id=self.source_id,
            icon_url=(hit.get("logo") or {}).get("thumbnailUrl") or None,
            registry_native_id=mod_id,
            author=authors[0].get("name", ""),
            page_url=(hit.get("links") or {}).get("websiteUrl", ""),
        )

    def parse_version(self, raw: Dict[str, Any]) -> VersionCandidate:
        tags = [str(t) for t in raw.get("gameVersions", [])]
        loaders = {t.lower() for t in tags if t.lower() in self._LOADER_NAMES}
        game_versions = {t for t in tags if t.lower() not in self._LOADER_NAMES}
        return VersionCandidate(
            id=str(raw["id"]),
            name=raw.get("displayName") or raw.get("fileName", str(raw["id"])),
            compatible_game_versions=frozenset(game_versions),
            compatible_loaders=frozenset(loaders),
            published_at=_parse_time(raw.get("fileDate")),
            release_channel=self._RELEASE_TYPES.get(raw.get("releaseType"), "unknown"),
        )


ADAPTERS: Dict[str, Type[SourceAdapter]] = {
    cls.source_id: cls
    for cls in (
        ModrinthSource, HangarSource, SpigotSource,
        PolymartSource, PoggitSource, CurseForgeSource,
    )
}


def create_adapter(source_id: str, backend: Any, **kwargs: Any) -> SourceAdapter:
    """
    Instantiate the adapter for ``source_id``.

    Raises:
        ValueError: if no adapter exists for the source
    """
    try:
        cls = ADAPTERS[source_id]
    except KeyError:
        raise ValueError(f"Unknown source: {source_id!r}") from None
    return cls(backend, **kwargs)
