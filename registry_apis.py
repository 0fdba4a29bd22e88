"""
registry_apis.py
================
HTTP clients for the add-on registries and the backend façade the discovery
core talks to.

Supported registries:
  - **Modrinth**    – https://api.modrinth.com/v2
  - **Hangar**      – https://hangar.papermc.io/api/v1
  - **SpigotMC**    – https://api.spiget.org/v2 (Spiget mirror)
  - **Polymart**    – https://api.polymart.org/v1
  - **Poggit**      – https://poggit.pmmp.io (PocketMine releases)
  - **CurseForge**  – https://api.curseforge.com/v1 (API key required)

Clients return the registry's *raw* payloads; normalisation into ``Addon`` /
``VersionCandidate`` is the job of ``source_adapters``.  Failed calls raise
``RegistryError`` with a human-readable message.

Downloads are written to ``<name>.part`` first and renamed into place.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import aiohttp

import installed_addons

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "MinecraftServerManager/1.0"
DEFAULT_TIMEOUT = 15

# Loaders a plugin-host server can run from Modrinth
PLUGIN_LOADERS = ["paper", "spigot", "bukkit"]


class RegistryError(Exception):
    """A registry call failed; ``str(exc)`` is safe to show to the user."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass
class RawHits:
    """One page of raw search hits as reported by a registry."""

    items: List[Dict[str, Any]] = field(default_factory=list)
    total: Optional[int] = None          # None when the registry reports no count


# ──────────────────────────────────────────────
#  Shared HTTP helpers
# ──────────────────────────────────────────────

async def _request_json(
    session: aiohttp.ClientSession,
    method: str,
    url: str,
    *,
    what: str,
    timeout: float = DEFAULT_TIMEOUT,
    **kwargs: Any,
) -> Any:
    """Perform a request and decode the JSON body, raising RegistryError."""
    try:
        async with session.request(
            method, url, timeout=aiohttp.ClientTimeout(total=timeout), **kwargs,
        ) as resp:
            if resp.status != 200:
                raise RegistryError(f"{what} returned HTTP {resp.status}", status=resp.status)
            return await resp.json(content_type=None)
    except RegistryError:
        raise
    except asyncio.TimeoutError as exc:
        raise RegistryError(f"{what} timed out") from exc
    except aiohttp.ClientError as exc:
        raise RegistryError(f"{what} request failed: {exc}") from exc
    except ValueError as exc:
        raise RegistryError(f"{what} returned an invalid response") from exc


def _safe_filename(name: str, default_ext: str = ".jar") -> str:
    """Sanitise a file name; keeps an existing .jar/.phar extension."""
    name = name.rsplit("/", 1)[-1].strip()
    safe = "".join(c if c.isalnum() or c in "-_." else "-" for c in name) or "addon"
    if not safe.endswith((".jar", ".phar")):
        safe += default_ext
    return safe


def _disposition_filename(header: Optional[str]) -> Optional[str]:
    """Extract ``filename=`` from a Content-Disposition header."""
    if not header:
        return None
    match = re.search(r'filename="?([^";]+)"?', header)
    return match.group(1) if match else None


def _looks_like_html(chunk: bytes) -> bool:
    head = chunk.lstrip()[:15].lower()
    return head.startswith(b"<!doctype html") or head.startswith(b"<html")


async def _download(
    session: aiohttp.ClientSession,
    url: str,
    dest_dir: Path,
    filename: Optional[str],
    *,
    what: str,
    headers: Optional[Dict[str, str]] = None,
    timeout: float = 120,
    default_ext: str = ".jar",
    reject_html: bool = False,
) -> str:
    """
    Stream ``url`` into ``dest_dir`` and return the final file name.

    When ``filename`` is None the name is taken from Content-Disposition.
    """
    dest_dir.mkdir(parents=True, exist_ok=True)
    try:
        async with session.request(
            "GET", url, headers=headers,
            timeout=aiohttp.ClientTimeout(total=timeout),
        ) as resp:
            if resp.status != 200:
                raise RegistryError(f"Download failed: HTTP {resp.status} from {what}")

            final_name = _safe_filename(
                filename
                or _disposition_filename(resp.headers.get("Content-Disposition"))
                or url,
                default_ext,
            )
            dest = dest_dir / final_name
            part = dest.with_name(dest.name + ".part")

            first = True
            got_html = False
            try:
                with open(part, "wb") as fh:
                    async for chunk in resp.content.iter_chunked(8192):
                        if first and reject_html and _looks_like_html(chunk):
                            got_html = True
                            break
                        first = False
                        fh.write(chunk)
            except BaseException:
                part.unlink(missing_ok=True)
                raise

        if got_html:
            part.unlink(missing_ok=True)
            raise RegistryError("Failed to download: plugin requires login or is paid.")

        os.replace(part, dest)
        logger.info("Downloaded %s → %s", what, dest)
        return final_name

    except RegistryError:
        raise
    except asyncio.TimeoutError as exc:
        raise RegistryError(f"Download from {what} timed out") from exc
    except (aiohttp.ClientError, OSError) as exc:
        raise RegistryError(f"Download from {what} failed: {exc}") from exc


# ──────────────────────────────────────────────
#  Modrinth Client
# ──────────────────────────────────────────────

class ModrinthAPI:
    """Client for the Modrinth API v2."""

    BASE = "https://api.modrinth.com/v2"

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.headers = {"User-Agent": user_agent}
        self.timeout = timeout

    async def search(
        self,
        query: str,
        session: aiohttp.ClientSession,
        *,
        page: int = 1,
        limit: int = 20,
        loader: Optional[str] = None,
    ) -> RawHits:
        """Search plugins, or mods for ``loader`` when one is given."""
        params: Dict[str, Any] = {
            "query": query,
            "limit": limit,
            "offset": (page - 1) * limit,
            "facets": self._build_facets(loader),
        }
        data = await _request_json(
            session, "GET", f"{self.BASE}/search",
            what="Modrinth search", timeout=self.timeout,
            params=params, headers=self.headers,
        )
        return RawHits(items=data.get("hits", []), total=int(data.get("total_hits", 0)))

    async def get_versions(
        self,
        project_id: str,
        session: aiohttp.ClientSession,
        *,
        loaders: Optional[List[str]] = None,
        mc_version: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Versions of a project, newest first."""
        params: Dict[str, str] = {}
        if loaders:
            params["loaders"] = json.dumps(loaders)
        if mc_version:
            params["game_versions"] = json.dumps([mc_version])
        return await _request_json(
            session, "GET", f"{self.BASE}/project/{project_id}/version",
            what="Modrinth versions", timeout=self.timeout,
            params=params, headers=self.headers,
        )

    async def install(
        self,
        project_id: str,
        dest_dir: Path,
        session: aiohttp.ClientSession,
        *,
        version_id: Optional[str] = None,
        loader: Optional[str] = None,
        mc_version: Optional[str] = None,
    ) -> str:
        """Download the primary file of a version into ``dest_dir``."""
        if version_id and version_id != "latest":
            version = await _request_json(
                session, "GET", f"{self.BASE}/version/{version_id}",
                what="Modrinth version", timeout=self.timeout, headers=self.headers,
            )
        else:
            versions = await self.get_versions(
                project_id, session,
                loaders=[loader] if loader else PLUGIN_LOADERS,
                mc_version=mc_version if loader else None,
            )
            if not versions:
                if loader:
                    raise RegistryError(
                        "No compatible version found for this loader/game version"
                    )
                raise RegistryError("No compatible version found")
            version = versions[0]

        files = version.get("files", [])
        primary = next((f for f in files if f.get("primary")), files[0] if files else None)
        if not primary:
            raise RegistryError("No file found for this version")

        return await _download(
            session, primary["url"], dest_dir, primary.get("filename"),
            what="Modrinth", headers=self.headers,
        )

    @staticmethod
    def _build_facets(loader: Optional[str]) -> str:
        """Build the Modrinth facet filter string."""
        if loader:
            return json.dumps([["project_type:mod"], [f"categories:{loader}"]])
        return json.dumps([["project_type:plugin"]])


# ──────────────────────────────────────────────
#  Hangar Client (PaperMC)
# ──────────────────────────────────────────────

class HangarAPI:
    """Client for the Hangar (PaperMC) API v1."""

    BASE = "https://hangar.papermc.io/api/v1"

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.headers = {"User-Agent": user_agent}
        self.timeout = timeout

    async def search(
        self,
        query: str,
        session: aiohttp.ClientSession,
        *,
        page: int = 1,
        limit: int = 20,
    ) -> RawHits:
        params: Dict[str, Any] = {
            "q": query,
            "limit": limit,
            "offset": (page - 1) * limit,
            "sort": "-downloads",
        }
        data = await _request_json(
            session, "GET", f"{self.BASE}/projects",
            what="Hangar search", timeout=self.timeout,
            params=params, headers=self.headers,
        )
        count = data.get("pagination", {}).get("count")
        return RawHits(items=data.get("result", []), total=count)

    async def get_versions(
        self, slug: str, session: aiohttp.ClientSession, *, limit: int = 10,
    ) -> List[Dict[str, Any]]:
        data = await _request_json(
            session, "GET", f"{self.BASE}/projects/{slug}/versions",
            what="Hangar versions", timeout=self.timeout,
            params={"limit": limit}, headers=self.headers,
        )
        return data.get("result", [])

    async def install(
        self,
        slug: str,
        dest_dir: Path,
        session: aiohttp.ClientSession,
        *,
        version_name: Optional[str] = None,
        platform: str = "PAPER",
    ) -> str:
        """Download a version (default: newest) for ``platform``."""
        if not version_name or version_name == "latest":
            versions = await self.get_versions(slug, session, limit=1)
            if not versions or not versions[0].get("name"):
                raise RegistryError("No version found")
            version_name = versions[0]["name"]

        url = f"{self.BASE}/projects/{slug}/versions/{quote(version_name)}/{platform}/download"
        return await _download(
            session, url, dest_dir, f"{slug.split('/')[-1]}.jar",
            what="Hangar", headers=self.headers,
        )


# ──────────────────────────────────────────────
#  SpigotMC Client (via Spiget API)
# ──────────────────────────────────────────────

class SpigotAPI:
    """Client for the Spiget API (SpigotMC resource mirror)."""

    BASE = "https://api.spiget.org/v2"

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.headers = {"User-Agent": user_agent}
        self.timeout = timeout

    async def search(
        self,
        query: str,
        session: aiohttp.ClientSession,
        *,
        page: int = 1,
        limit: int = 20,
    ) -> RawHits:
        """Search resources; an empty query lists the most downloaded ones."""
        params: Dict[str, Any] = {"size": limit, "page": page, "sort": "-downloads"}
        if query.strip():
            url = f"{self.BASE}/search/resources/{quote(query.strip())}"
        else:
            url = f"{self.BASE}/resources"
        try:
            data = await _request_json(
                session, "GET", url,
                what="Spiget search", timeout=self.timeout,
                params=params, headers=self.headers,
            )
        except RegistryError as exc:
            # Spiget answers a search without hits with 404
            if exc.status == 404:
                return RawHits(items=[])
            raise
        return RawHits(items=data if isinstance(data, list) else [])

    async def get_versions(
        self, resource_id: str, session: aiohttp.ClientSession, *, limit: int = 10,
    ) -> List[Dict[str, Any]]:
        data = await _request_json(
            session, "GET", f"{self.BASE}/resources/{resource_id}/versions",
            what="Spiget versions", timeout=self.timeout,
            params={"size": limit, "sort": "-releaseDate"}, headers=self.headers,
        )
        return data if isinstance(data, list) else []

    async def install(
        self,
        resource_id: str,
        dest_dir: Path,
        session: aiohttp.ClientSession,
        *,
        version_id: Optional[str] = None,
    ) -> str:
        info = await _request_json(
            session, "GET", f"{self.BASE}/resources/{resource_id}",
            what="Spiget resource", timeout=self.timeout, headers=self.headers,
        )
        name = str(info.get("name") or "plugin").replace(" ", "-")

        if version_id and version_id != "latest":
            url = f"{self.BASE}/resources/{resource_id}/versions/{version_id}/download"
        else:
            url = f"{self.BASE}/resources/{resource_id}/download"
        return await _download(
            session, url, dest_dir, f"{name}.jar",
            what="SpigotMC", headers=self.headers, reject_html=True,
        )


# ──────────────────────────────────────────────
#  Polymart Client
# ──────────────────────────────────────────────

class PolymartAPI:
    """Client for the Polymart API v1 (no version listing)."""

    BASE = "https://api.polymart.org/v1"
    SITE = "https://polymart.org"

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.headers = {"User-Agent": user_agent}
        self.timeout = timeout

    async def search(
        self,
        query: str,
        session: aiohttp.ClientSession,
        *,
        page: int = 1,
        limit: int = 20,
    ) -> RawHits:
        form = {
            "query": query or "plugin",
            "limit": str(limit),
            "start": str((page - 1) * limit),
        }
        data = await _request_json(
            session, "POST", f"{self.BASE}/search",
            what="Polymart search", timeout=self.timeout,
            data=form, headers=self.headers,
        )
        response = data.get("response", {}) if isinstance(data, dict) else {}
        items = response.get("result") or response.get("resources") or []
        return RawHits(items=items)

    async def install(
        self, resource_id: str, dest_dir: Path, session: aiohttp.ClientSession,
    ) -> str:
        url = f"{self.SITE}/resource/{resource_id}/download"
        return await _download(
            session, url, dest_dir, None,
            what="Polymart", headers=self.headers, reject_html=True,
        )


# ──────────────────────────────────────────────
#  Poggit Client (PocketMine-MP)
# ──────────────────────────────────────────────

class PoggitAPI:
    """Client for Poggit release listings."""

    BASE = "https://poggit.pmmp.io"

    def __init__(self, user_agent: str = DEFAULT_USER_AGENT, timeout: float = DEFAULT_TIMEOUT) -> None:
        self.headers = {"User-Agent": user_agent}
        self.timeout = timeout

    async def search(
        self,
        query: str,
        session: aiohttp.ClientSession,
        *,
        limit: int = 20,
    ) -> RawHits:
        """Poggit has no paging: the top list (or name match) is one page."""
        if query.strip():
            params: Dict[str, str] = {"name": query.strip()}
        else:
            params = {"top": ""}
        data = await _request_json(
            session, "GET", f"{self.BASE}/releases.json",
            what="Poggit search", timeout=self.timeout,
            params=params, headers=self.headers,
        )
        return RawHits(items=list(data)[:limit] if isinstance(data, list) else [])

    async def get_versions(
        self, name: str, session: aiohttp.ClientSession,
    ) -> List[Dict[str, Any]]:
        data = await _request_json(
            session, "GET", f"{self.BASE}/releases.json",
            what="Poggit releases", timeout=self.timeout,
            params={"name": name}, headers=self.headers,
        )
        return data if isinstance(data, list) else []

    async def install(
        self,
        name: str,
        dest_dir: Path,
        session: aiohttp.ClientSession,
        *,
        version: Optional[str] = None,
    ) -> str:
        releases = await self.get_versions(name, session)
        if not releases:
            raise RegistryError("Plugin not found")

        release = releases[0]
        if version and version != "latest":
            release = next(
                (r for r in releases if str(r.get("id")) == version or r.get("version") == version),
                release,
            )
        artifact_url = release.get("artifact_url")
        if not artifact_url:
            raise RegistryError("No download URL")

        return await _download(
            session, artifact_url, dest_dir, f"{release.get('name', name)}.phar",
            what="Poggit", headers=self.headers, default_ext=".phar",
        )


# ──────────────────────────────────────────────
#  CurseForge Client
# ──────────────────────────────────────────────

class CurseForgeAPI:
    """
    Client for the CurseForge API v1.

    Requires an API key set via CURSEFORGE_API_KEY environment variable.
    Get one at: https://console.curseforge.com/
    """

    BASE = "https://api.curseforge.com/v1"
    GAME_ID_MINECRAFT = 432
    CLASS_ID_MODS = 6
    LOADER_TYPES = {"forge": 1, "fabric": 4, "quilt": 5, "neoforge": 6}

    def __init__(
        self,
        api_key: Optional[str] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.api_key = api_key or os.environ.get("CURSEFORGE_API_KEY", "")
        self.user_agent = user_agent
        self.timeout = timeout

    def _headers(self) -> Dict[str, str]:
        h: Dict[str, str] = {"User-Agent": self.user_agent}
        if self.api_key:
            h["x-api-key"] = self.api_key
        return h

    async def search(
        self,
        query: str,
        session: aiohttp.ClientSession,
        *,
        page: int = 1,
        limit: int = 20,
        loader: Optional[str] = None,
        mc_version: Optional[str] = None,
    ) -> RawHits:
        if not self.api_key:
            logger.debug("CurseForge API key not set, skipping search")
            return RawHits(items=[], total=0)

        params: Dict[str, Any] = {
            "gameId": self.GAME_ID_MINECRAFT,
            "classId": self.CLASS_ID_MODS,
            "searchFilter": query,
            "pageSize": limit,
            "index": (page - 1) * limit,
            "sortField": 2,  # Popularity
            "sortOrder": "desc",
        }
        if mc_version:
            params["gameVersion"] = mc_version
        if loader in self.LOADER_TYPES:
            params["modLoaderType"] = self.LOADER_TYPES[loader]

        data = await _request_json(
            session, "GET", f"{self.BASE}/mods/search",
            what="CurseForge search", timeout=self.timeout,
            params=params, headers=self._headers(),
        )
        total = data.get("pagination", {}).get("totalCount")
        return RawHits(items=data.get("data", []), total=total)

    async def get_versions(
        self,
        mod_id: str,
        session: aiohttp.ClientSession,
        *,
        loader: Optional[str] = None,
        mc_version: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        if not self.api_key:
            return []
        params: Dict[str, Any] = {"pageSize": 25}
        if mc_version:
            params["gameVersion"] = mc_version
        if loader in self.LOADER_TYPES:
            params["modLoaderType"] = self.LOADER_TYPES[loader]
        data = await _request_json(
            session, "GET", f"{self.BASE}/mods/{mod_id}/files",
            what="CurseForge files", timeout=self.timeout,
            params=params, headers=self._headers(),
        )
        return data.get("data", [])

    async def install(
        self,
        mod_id: str,
        dest_dir: Path,
        session: aiohttp.ClientSession,
        *,
        file_id: Optional[str] = None,
        loader: Optional[str] = None,
        mc_version: Optional[str] = None,
    ) -> str:
        if not self.api_key:
            raise RegistryError("CurseForge requires an API key (set CURSEFORGE_API_KEY)")

        files = await self.get_versions(mod_id, session, loader=loader, mc_version=mc_version)
        if file_id and file_id != "latest":
            chosen = next((f for f in files if str(f.get("id")) == file_id), None)
        else:
            chosen = files[0] if files else None
        if not chosen:
            raise RegistryError("No compatible file found for this loader/game version")

        url = chosen.get("downloadUrl")
        if not url:
            data = await _request_json(
                session, "GET", f"{self.BASE}/mods/{mod_id}/files/{chosen['id']}/download-url",
                what="CurseForge download URL", timeout=self.timeout, headers=self._headers(),
            )
            url = data.get("data")
        if not url:
            raise RegistryError("This file does not allow third-party downloads")

        return await _download(
            session, url, dest_dir, chosen.get("fileName"),
            what="CurseForge", headers=self._headers(),
        )


# ──────────────────────────────────────────────
#  Backend Façade
# ──────────────────────────────────────────────

class HttpRegistryBackend:
    """
    Registry backend used by the source adapters.

    Dispatches ``search`` / ``list_versions`` / ``install`` by registry name
    and serves the installed-items view from the local file system.

    Args:
        session:            Shared aiohttp session (created lazily if None)
        timeout:            Per-request timeout in seconds
        user_agent:         User-Agent sent to every registry
        curseforge_api_key: Overrides CURSEFORGE_API_KEY
    """

    def __init__(
        self,
        session: Optional[aiohttp.ClientSession] = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        curseforge_api_key: Optional[str] = None,
    ) -> None:
        self._session = session
        self._own_session = session is None

        self.modrinth = ModrinthAPI(user_agent, timeout)
        self.hangar = HangarAPI(user_agent, timeout)
        self.spigot = SpigotAPI(user_agent, timeout)
        self.polymart = PolymartAPI(user_agent, timeout)
        self.poggit = PoggitAPI(user_agent, timeout)
        self.curseforge = CurseForgeAPI(curseforge_api_key, user_agent, timeout)

    async def __aenter__(self) -> "HttpRegistryBackend":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self) -> None:
        """Close the session if this backend created it."""
        if self._own_session and self._session is not None:
            await self._session.close()
            self._session = None

    # ================================================================
    #  SEARCH / VERSIONS / INSTALL
    # ================================================================

    async def search(
        self,
        source: str,
        query: str,
        category: str,
        page: int,
        hints: Optional[Dict[str, Any]] = None,
    ) -> RawHits:
        """
        Search one registry.

        Args:
            source:   Registry name
            query:    Effective query (category terms already folded in)
            category: Active category id, for logging only
            page:     1-based page number
            hints:    ``page_size``, ``loader``, ``game_version``
        """
        hints = hints or {}
        limit = int(hints.get("page_size", 20))
        loader = hints.get("loader")
        logger.debug(
            "Registry search: %s q=%r category=%s page=%d loader=%s",
            source, query, category, page, loader,
        )

        if source == "modrinth":
            return await self.modrinth.search(
                query, self.session, page=page, limit=limit, loader=loader,
            )
        elif source == "hangar":
            return await self.hangar.search(query, self.session, page=page, limit=limit)
        elif source == "spigot":
            return await self.spigot.search(query, self.session, page=page, limit=limit)
        elif source == "polymart":
            return await self.polymart.search(query, self.session, page=page, limit=limit)
        elif source == "poggit":
            return await self.poggit.search(query, self.session, limit=limit)
        elif source == "curseforge":
            return await self.curseforge.search(
                query, self.session, page=page, limit=limit,
                loader=loader, mc_version=hints.get("game_version"),
            )
        raise RegistryError(f"Unknown registry: {source}")

    async def list_versions(
        self,
        source: str,
        addon_id: str,
        slug: str,
        hints: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        """Raw version records; [] for registries without a version API."""
        hints = hints or {}
        if source == "modrinth":
            versions = await self.modrinth.get_versions(addon_id, self.session)
            return versions[:10]
        elif source == "hangar":
            # addon_id is "owner/slug" for Hangar
            return await self.hangar.get_versions(addon_id, self.session)
        elif source == "spigot":
            return await self.spigot.get_versions(addon_id, self.session)
        elif source == "poggit":
            return await self.poggit.get_versions(slug, self.session)
        elif source == "curseforge":
            return await self.curseforge.get_versions(
                addon_id, self.session,
                loader=hints.get("loader"), mc_version=hints.get("game_version"),
            )
        elif source == "polymart":
            return []
        raise RegistryError(f"Unknown registry: {source}")

    async def install(
        self,
        source: str,
        addon_id: str,
        target_path: Path,
        loader: Optional[str] = None,
        game_version: Optional[str] = None,
        version_id: Optional[str] = None,
    ) -> str:
        """
        Download an add-on into ``target_path``.

        Returns:
            The installed file name
        """
        target_path = Path(target_path)
        logger.info(
            "Registry install: %s id=%s → %s (loader=%s mc=%s version=%s)",
            source, addon_id, target_path, loader, game_version, version_id,
        )

        if source == "modrinth":
            return await self.modrinth.install(
                addon_id, target_path, self.session,
                version_id=version_id, loader=loader, mc_version=game_version,
            )
        elif source == "hangar":
            return await self.hangar.install(
                addon_id, target_path, self.session, version_name=version_id,
            )
        elif source == "spigot":
            return await self.spigot.install(
                addon_id, target_path, self.session, version_id=version_id,
            )
        elif source == "polymart":
            return await self.polymart.install(addon_id, target_path, self.session)
        elif source == "poggit":
            return await self.poggit.install(
                addon_id, target_path, self.session, version=version_id,
            )
        elif source == "curseforge":
            return await self.curseforge.install(
                addon_id, target_path, self.session,
                file_id=version_id, loader=loader, mc_version=game_version,
            )
        raise RegistryError(f"Unknown registry: {source}")

    # ================================================================
    #  INSTALLED ITEMS
    # ================================================================

    def list_installed(self, target_path: Path) -> List[installed_addons.InstalledAddon]:
        return installed_addons.list_installed(target_path)

    def toggle_installed(self, target_path: Path, filename: str) -> str:
        return installed_addons.toggle_installed(target_path, filename)

    def delete_installed(self, target_path: Path, filename: str) -> None:
        installed_addons.delete_installed(target_path, filename)
