#!/usr/bin/env python3
"""
test_all.py
===========
Test suite for the Minecraft Add-on Manager.

Usage:
    pytest test_all.py -v
    pytest test_all.py -v -k pagination
    pytest test_all.py -v --cov=.
"""

import asyncio
import json
import tempfile
import zipfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest


# ══════════════════════════════════════════════════════════════════════════════
#  FIXTURES
# ══════════════════════════════════════════════════════════════════════════════


def _raw_hit(source, key):
    """A search hit in the given registry's own JSON shape."""
    if source == "modrinth":
        return {"project_id": key, "slug": key, "title": key, "description": "",
                "downloads": 10, "author": "dev", "project_type": "plugin"}
    if source == "hangar":
        return {"name": key, "namespace": {"owner": "dev", "slug": key},
                "description": "", "stats": {"downloads": 10}}
    if source == "spigot":
        return {"id": key, "name": key, "tag": "", "downloads": 10}
    if source == "polymart":
        return {"id": key, "title": key, "subtitle": "", "downloads": 10}
    if source == "poggit":
        return {"id": key, "name": key, "tagline": "", "downloads": 10}
    if source == "curseforge":
        return {"id": key, "name": key, "slug": key, "summary": "", "downloadCount": 10}
    raise ValueError(source)


class FakeBackend:
    """In-memory registry backend recording every call."""

    def __init__(
        self,
        totals=None,
        versions=None,
        failing=(),
        versions_failing=False,
        install_error=None,
        delays=None,
        version_delays=None,
        install_gate=None,
    ):
        self.totals = totals or {}
        self.versions = versions or {}
        self.failing = set(failing)
        self.versions_failing = versions_failing
        self.install_error = install_error
        self.delays = delays or {}
        self.version_delays = version_delays or {}
        self.install_gate = install_gate
        self.search_calls = []
        self.install_calls = []

    async def search(self, source, query, category, page, hints=None):
        from registry_apis import RawHits

        self.search_calls.append((source, query, category, page))
        await asyncio.sleep(self.delays.get(query, 0))
        if source in self.failing:
            raise RuntimeError(f"{source} is down")
        key = f"{query or 'trending'}-{page}"
        return RawHits(items=[_raw_hit(source, key)], total=self.totals.get(source))

    async def list_versions(self, source, addon_id, slug, hints=None):
        await asyncio.sleep(self.version_delays.get(addon_id, 0))
        if self.versions_failing:
            raise RuntimeError("version API unavailable")
        return self.versions.get(source, [])

    async def install(self, source, addon_id, target_path, loader=None,
                      game_version=None, version_id=None):
        from registry_apis import RegistryError

        self.install_calls.append({
            "source": source, "addon_id": addon_id, "target_path": Path(target_path),
            "loader": loader, "game_version": game_version, "version_id": version_id,
        })
        if self.install_gate is not None:
            await self.install_gate.wait()
        if self.install_error:
            raise RegistryError(self.install_error)
        return f"{addon_id}.jar"

    def list_installed(self, target_path):
        from installed_addons import list_installed
        return list_installed(target_path)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def paper_target(temp_dir):
    from server_types import TargetInstance
    return TargetInstance("paper", "1.20.4", temp_dir / "server")


@pytest.fixture
def fabric_target(temp_dir):
    from server_types import TargetInstance
    return TargetInstance("fabric", "1.20.1", temp_dir / "server")


@pytest.fixture
def mock_config(temp_dir):
    """Create a config.json file."""
    config = {
        "server": {"type": "paper", "version": "1.20.4"},
        "paths": {"server_dir": str(temp_dir / "server")},
        "discovery": {"page_size": 20, "window_width": None, "request_timeout": 5},
    }
    config_path = temp_dir / "config.json"
    config_path.write_text(json.dumps(config, indent=2))
    return config_path


@pytest.fixture
def mock_plugin_jar(temp_dir):
    """Create a plugin JAR inside server/plugins."""
    plugins = temp_dir / "server" / "plugins"
    plugins.mkdir(parents=True)
    jar_path = plugins / "TestPlugin-1.0.jar"
    with zipfile.ZipFile(jar_path, "w") as zf:
        zf.writestr("plugin.yml", "name: TestPlugin\nversion: 1.0.0\nmain: com.example.TestPlugin\n")
    return jar_path


def _orchestrator(backend, config=None, notify=None):
    from discovery import DiscoveryConfig, DiscoveryOrchestrator, build_adapters

    config = config or DiscoveryConfig.for_plugins()
    return DiscoveryOrchestrator(config, build_adapters(config, backend), notify=notify)


def _dispatcher(backend, target, sources=("modrinth",), notify=None):
    from install_dispatcher import InstallDispatcher
    from source_adapters import create_adapter

    adapters = {s: create_adapter(s, backend) for s in sources}
    return InstallDispatcher(target, adapters, notify=notify)


def _addon(source="modrinth", key="worldedit"):
    from source_adapters import create_adapter
    return create_adapter(source, None).parse_hit(_raw_hit(source, key))


# ══════════════════════════════════════════════════════════════════════════════
#  1. PLATFORM MODEL TESTS
# ══════════════════════════════════════════════════════════════════════════════


def test_platform_categories():
    """Every server type maps to the right add-on platform."""
    from server_types import PlatformCategory, platform_category

    assert platform_category("paper") is PlatformCategory.PLUGIN_HOST
    assert platform_category("Velocity") is PlatformCategory.PLUGIN_HOST
    assert platform_category("forge") is PlatformCategory.MOD_LOADER
    assert platform_category("pocketmine") is PlatformCategory.BEDROCK_VARIANT
    assert platform_category("vanilla") is None


def test_target_platform_and_dirs(fabric_target, paper_target):
    """Loader identifier for mod loaders, software name otherwise."""
    assert fabric_target.platform == "fabric"
    assert fabric_target.loader == "fabric"
    assert fabric_target.mods_dir == fabric_target.path / "mods"
    assert paper_target.platform == "paper"
    assert paper_target.loader is None
    assert paper_target.plugins_dir == paper_target.path / "plugins"


def test_target_from_config_rejects_unknown_type():
    from server_types import TargetInstance

    with pytest.raises(ValueError):
        TargetInstance.from_config({"server": {"type": "bukkit-ultra"}})


# ══════════════════════════════════════════════════════════════════════════════
#  2. PAGINATION TESTS
# ══════════════════════════════════════════════════════════════════════════════


def test_total_pages():
    from pagination import total_pages

    assert total_pages(137, 20) == 7
    assert total_pages(43, 20) == 3
    assert total_pages(40, 20) == 2
    assert total_pages(0, 20) == 1


def test_page_window_centered_and_clamped():
    from pagination import page_window

    assert page_window(1, 20, 9) == list(range(1, 10))
    assert page_window(10, 20, 9) == list(range(6, 15))
    assert page_window(20, 20, 9) == list(range(12, 21))
    assert page_window(20, 20, 5) == [16, 17, 18, 19, 20]
    assert page_window(2, 3, 5) == [1, 2, 3]


def test_page_window_never_exceeds_total():
    """137 hits at 20 per page: page 9 never appears."""
    from pagination import page_window, total_pages

    pages = total_pages(137, 20)
    for current in range(1, 12):
        window = page_window(current, pages, 9)
        assert 9 not in window
        assert window == list(range(1, 8))


def test_clamp_page():
    from pagination import clamp_page

    assert clamp_page(9, 7) == 7
    assert clamp_page(0, 7) == 1
    assert clamp_page(4, 7) == 4


# ══════════════════════════════════════════════════════════════════════════════
#  3. RESULT CACHE TESTS
# ══════════════════════════════════════════════════════════════════════════════


def test_cache_stale_generation_discarded():
    from result_cache import ResultCache, SourceState
    from source_adapters import SourcePage

    cache = ResultCache()
    assert cache.state("modrinth") is SourceState.UNINITIALIZED

    old = cache.begin("modrinth")
    new = cache.begin("modrinth")
    assert cache.complete("modrinth", old, SourcePage(query="old")) is False
    assert cache.is_loading("modrinth")
    assert cache.get("modrinth") is None

    assert cache.complete("modrinth", new, SourcePage(query="new")) is True
    assert not cache.is_loading("modrinth")
    assert cache.get("modrinth").query == "new"
    assert cache.state("modrinth") is SourceState.READY


def test_cache_sources_independent():
    from result_cache import ResultCache, SourceState
    from source_adapters import SearchFailure, SourcePage

    cache = ResultCache()
    cache.put("spigot", SourcePage(query="a"))
    gen = cache.begin("hangar")
    cache.complete("hangar", gen, SourcePage(failure=SearchFailure("hangar", "down")))

    assert cache.get("spigot").query == "a"
    assert cache.state("spigot") is SourceState.READY
    assert cache.state("hangar") is SourceState.FAILED


# ══════════════════════════════════════════════════════════════════════════════
#  4. SOURCE ADAPTER TESTS
# ══════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_search_failure_becomes_empty_page():
    """A transport failure never escapes ``search``."""
    from source_adapters import create_adapter

    adapter = create_adapter("hangar", FakeBackend(failing=["hangar"]))
    page = await adapter.search("", "popular", 1)

    assert page.items == []
    assert page.total_count == 0
    assert page.failure is not None
    assert "hangar is down" in page.failure.message


@pytest.mark.asyncio
async def test_estimated_vs_exact_totals():
    """Spigot's estimate and Modrinth's exact count are never cross-applied."""
    from pagination import total_pages
    from source_adapters import create_adapter

    backend = FakeBackend(totals={"modrinth": 43, "spigot": 7})
    spigot = await create_adapter("spigot", backend).search("", "popular", 1)
    modrinth = await create_adapter("modrinth", backend).search("", "popular", 1)

    assert spigot.total_count == 100
    assert total_pages(spigot.total_count, 20) == 5
    assert modrinth.total_count == 43
    assert total_pages(modrinth.total_count, 20) == 3


def test_adapter_parsing():
    """Registry-specific keys end up in the right Addon fields."""
    from source_adapters import create_adapter

    hangar = _addon("hangar", "LuckPerms")
    assert hangar.registry_native_id == "dev/LuckPerms"
    assert hangar.install_key == "dev/LuckPerms"

    spigot = create_adapter("spigot", None).parse_hit(
        {"id": 28140, "name": "Luck Perms", "icon": {"url": "data/resource_icons/28/28140.jpg"}}
    )
    assert spigot.id == "28140"
    assert spigot.icon_url == "https://www.spigotmc.org/data/resource_icons/28/28140.jpg"

    poggit = _addon("poggit", "EconomyAPI")
    assert poggit.install_key == "EconomyAPI"


def test_curseforge_version_parsing():
    from source_adapters import create_adapter

    v = create_adapter("curseforge", None).parse_version({
        "id": 4711, "displayName": "JEI 15.2", "gameVersions": ["1.20.1", "Forge", "NeoForge"],
        "fileDate": "2023-09-01T12:00:00Z", "releaseType": 2,
    })
    assert v.id == "4711"
    assert v.compatible_game_versions == frozenset({"1.20.1"})
    assert v.compatible_loaders == frozenset({"forge", "neoforge"})
    assert v.release_channel == "beta"
    assert v.published_at.year == 2023


@pytest.mark.asyncio
async def test_list_versions_failure_raises():
    from source_adapters import VersionListUnavailable, create_adapter

    adapter = create_adapter("modrinth", FakeBackend(versions_failing=True))
    with pytest.raises(VersionListUnavailable):
        await adapter.list_versions(_addon(), None)


def test_unknown_source_rejected():
    from source_adapters import create_adapter

    with pytest.raises(ValueError):
        create_adapter("bukkitdev", None)


# ══════════════════════════════════════════════════════════════════════════════
#  5. DISCOVERY ORCHESTRATOR TESTS
# ══════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_prefetch_populates_every_source():
    """After prefetch every source has a page and none is loading."""
    notices = []
    backend = FakeBackend(failing=["polymart"])
    orch = _orchestrator(backend, notify=lambda m, s: notices.append((m, s)))

    tasks = orch.start()
    assert len(tasks) == 4
    await orch.settle()

    for source in orch.config.sources:
        assert orch.cache.get(source) is not None
        assert not orch.cache.is_loading(source)
    assert orch.cache.get("polymart").items == []
    assert orch.cache.get("modrinth").items[0].title == "trending-1"
    assert all(call[1] == "" and call[2] == "popular" and call[3] == 1
               for call in backend.search_calls)
    assert notices and notices[0][1] == "warning"


@pytest.mark.asyncio
async def test_prefetch_skips_ready_sources():
    backend = FakeBackend()
    orch = _orchestrator(backend)
    orch.start()
    await orch.settle()

    assert orch.start() == []


@pytest.mark.asyncio
async def test_last_issued_query_wins():
    """Slow early searches never overwrite a later one."""
    backend = FakeBackend(delays={"w": 0.05, "wo": 0.03, "wor": 0.01, "worldedit": 0})
    orch = _orchestrator(backend)

    for text in ("w", "wo", "wor", "worldedit"):
        orch.set_query(text)
    await orch.settle()

    view = orch.current_page_view()
    assert [a.title for a in view.items] == ["worldedit-1"]
    assert view.loading is False


@pytest.mark.asyncio
async def test_prefetch_does_not_overwrite_newer_search():
    backend = FakeBackend(delays={"": 0.05})
    orch = _orchestrator(backend)

    orch.start()
    orch.set_query("essentials")
    await orch.settle()

    assert orch.cache.get("modrinth").query == "essentials"
    # other sources keep their prefetched page
    assert orch.cache.get("hangar").query == ""


@pytest.mark.asyncio
async def test_category_and_query_share_one_channel():
    backend = FakeBackend()
    orch = _orchestrator(backend)

    orch.set_category("protection")
    assert orch.selection.search_query == "protection worldguard"
    assert orch.selection.active_category == "protection"

    orch.set_query("  luckperms ")
    assert orch.selection.search_query == "luckperms"
    assert orch.selection.active_category == ""
    await orch.settle()

    assert backend.search_calls[0] == ("modrinth", "protection worldguard", "protection", 1)
    assert backend.search_calls[-1] == ("modrinth", "luckperms", "", 1)


@pytest.mark.asyncio
async def test_page_changes_and_resets():
    """Page 9 of 7 is clamped; query and source changes reset to page 1."""
    backend = FakeBackend(totals={"modrinth": 137})
    orch = _orchestrator(backend)
    orch.request_fetch()
    await orch.settle()

    orch.set_page(9)
    assert orch.selection.current_page == 7
    await orch.settle()
    view = orch.current_page_view()
    assert view.total_pages == 7
    assert 9 not in view.window
    assert view.items[0].title == "trending-7"

    orch.set_query("chat")
    assert orch.selection.current_page == 1
    orch.set_page(2)
    orch.set_active_source("spigot")
    assert orch.selection.current_page == 1
    await orch.settle()
    assert backend.search_calls[-1][0] == "spigot"


@pytest.mark.asyncio
async def test_only_active_source_refetched():
    backend = FakeBackend()
    orch = _orchestrator(backend)
    orch.set_active_source("hangar")
    orch.set_category("economy")
    await orch.settle()

    assert {call[0] for call in backend.search_calls} == {"hangar"}


def test_unknown_category_and_source_rejected():
    orch = _orchestrator(FakeBackend())
    with pytest.raises(ValueError):
        orch.set_category("redstone")
    with pytest.raises(ValueError):
        orch.set_active_source("poggit")


# ══════════════════════════════════════════════════════════════════════════════
#  6. VERSION RESOLVER TESTS
# ══════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_empty_versions_yield_latest(paper_target):
    from source_adapters import create_adapter
    from version_resolver import VersionResolver

    resolver = VersionResolver({"modrinth": create_adapter("modrinth", FakeBackend())})
    versions = await resolver.resolve(_addon(), paper_target)

    assert len(versions) == 1
    assert versions[0].id == "latest"
    assert versions[0].compatible_game_versions == frozenset({"1.20.4"})
    assert versions[0].compatible_loaders == frozenset({"paper"})


@pytest.mark.asyncio
async def test_resolver_keeps_registry_versions(fabric_target):
    from source_adapters import create_adapter
    from version_resolver import VersionResolver

    backend = FakeBackend(versions={"modrinth": [
        {"id": "abc", "version_number": "7.3.0", "game_versions": ["1.20.1"],
         "loaders": ["fabric"], "date_published": "2024-01-02T03:04:05.123456Z",
         "version_type": "release"},
        {"id": "def", "version_number": "7.3.0-beta", "game_versions": ["1.20.1"],
         "loaders": ["fabric"], "version_type": "beta"},
    ]})
    resolver = VersionResolver({"modrinth": create_adapter("modrinth", backend)})
    versions = await resolver.resolve(_addon(), fabric_target)

    assert [v.id for v in versions] == ["abc", "def"]
    assert versions[0].release_channel == "release"
    assert versions[1].release_channel == "beta"


# ══════════════════════════════════════════════════════════════════════════════
#  7. INSTALL DISPATCHER TESTS
# ══════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_failing_version_list_installs_latest(paper_target):
    """A broken version API still offers one 'latest' entry that installs."""
    from install_dispatcher import InstallStatus

    backend = FakeBackend(versions_failing=True)
    dispatcher = _dispatcher(backend, paper_target)

    job = await dispatcher.select_addon(_addon())
    assert job.status is InstallStatus.AWAITING_SELECTION
    assert [v.name for v in job.versions] == ["Latest"]

    result = await dispatcher.confirm_install()
    assert result.success
    assert dispatcher.job.status is InstallStatus.SUCCEEDED
    assert dispatcher.job.addon is None
    call = backend.install_calls[0]
    assert call["version_id"] == "latest"
    assert call["target_path"] == paper_target.plugins_dir
    assert call["loader"] is None


@pytest.mark.asyncio
async def test_single_flight_install(paper_target):
    """A second confirm while installing is rejected and changes nothing."""
    from install_dispatcher import ConcurrentInstallRejected, InstallStatus

    gate = asyncio.Event()
    notices = []
    backend = FakeBackend(install_gate=gate)
    dispatcher = _dispatcher(backend, paper_target, notify=lambda m, s: notices.append(s))

    await dispatcher.select_addon(_addon())
    first = asyncio.create_task(dispatcher.confirm_install())
    await asyncio.sleep(0)
    assert dispatcher.job.status is InstallStatus.INSTALLING
    job_before = dispatcher.job

    second = await dispatcher.confirm_install()
    assert not second.success
    assert second.error == "concurrent-install"
    assert dispatcher.job is job_before
    assert dispatcher.job.status is InstallStatus.INSTALLING
    assert dispatcher.job.addon.title == "worldedit"

    with pytest.raises(ConcurrentInstallRejected):
        await dispatcher.select_addon(_addon(key="other"))

    gate.set()
    result = await first
    assert result.success
    assert len(backend.install_calls) == 1
    assert notices[0] == "warning"


@pytest.mark.asyncio
async def test_cancelled_install_frees_the_slot(paper_target):
    """Cancelling an in-flight install fails the job instead of leaving it installing."""
    from install_dispatcher import InstallStatus

    gate = asyncio.Event()
    backend = FakeBackend(install_gate=gate)
    dispatcher = _dispatcher(backend, paper_target)

    await dispatcher.select_addon(_addon())
    task = asyncio.create_task(dispatcher.confirm_install())
    await asyncio.sleep(0)
    assert dispatcher.busy

    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task

    assert not dispatcher.busy
    assert dispatcher.job.status is InstallStatus.FAILED
    assert dispatcher.job.addon is None

    gate.set()
    await dispatcher.select_addon(_addon(key="other"))
    result = await dispatcher.confirm_install()
    assert result.success
    assert dispatcher.job.status is InstallStatus.SUCCEEDED


@pytest.mark.asyncio
async def test_install_failure_message_verbatim(paper_target):
    from install_dispatcher import InstallStatus

    backend = FakeBackend(install_error="No compatible version found")
    dispatcher = _dispatcher(backend, paper_target)
    await dispatcher.select_addon(_addon())

    result = await dispatcher.confirm_install()
    assert not result.success
    assert result.message == "No compatible version found"
    assert dispatcher.job.status is InstallStatus.FAILED
    assert dispatcher.job.message == "No compatible version found"
    assert dispatcher.job.addon is None


@pytest.mark.asyncio
async def test_mod_route_passes_loader_and_game_version(fabric_target):
    backend = FakeBackend()
    dispatcher = _dispatcher(backend, fabric_target, sources=("modrinth", "curseforge"))

    for source in ("modrinth", "curseforge"):
        await dispatcher.select_addon(_addon(source, "sodium"))
        result = await dispatcher.confirm_install()
        assert result.success
        assert result.details["path"] == str(fabric_target.mods_dir / "sodium.jar")

    for call in backend.install_calls:
        assert call["target_path"] == fabric_target.mods_dir
        assert call["loader"] == "fabric"
        assert call["game_version"] == "1.20.1"


@pytest.mark.asyncio
async def test_unsupported_route_fails_job(fabric_target):
    from install_dispatcher import InstallStatus

    backend = FakeBackend()
    dispatcher = _dispatcher(backend, fabric_target, sources=("hangar",))
    await dispatcher.select_addon(_addon("hangar", "LuckPerms"))

    result = await dispatcher.confirm_install()
    assert not result.success
    assert "unsupported" in result.message
    assert dispatcher.job.status is InstallStatus.FAILED
    assert backend.install_calls == []


def test_route_table(temp_dir):
    from install_dispatcher import route_for
    from server_types import TargetInstance
    from source_adapters import InstallFailure

    pm = TargetInstance("pocketmine", "5.0.0", temp_dir)
    route = route_for("poggit", pm)
    assert route.kind == "phar"
    assert route.dest_dir == temp_dir / "plugins"

    paper = TargetInstance("paper", "1.20.4", temp_dir)
    for source in ("modrinth", "hangar", "spigot", "polymart"):
        assert route_for(source, paper).kind == "plugin"
    with pytest.raises(InstallFailure):
        route_for("curseforge", paper)
    with pytest.raises(InstallFailure):
        route_for("modrinth", TargetInstance("vanilla", "1.20.4", temp_dir))


@pytest.mark.asyncio
async def test_chosen_version_and_default(paper_target):
    backend = FakeBackend(versions={"spigot": [
        {"id": 501, "name": "2.1"}, {"id": 400, "name": "2.0"},
    ]})
    dispatcher = _dispatcher(backend, paper_target, sources=("spigot",))

    await dispatcher.select_addon(_addon("spigot", "Essentials"))
    with pytest.raises(ValueError):
        dispatcher.choose_version("999")
    dispatcher.choose_version("400")
    await dispatcher.confirm_install()

    await dispatcher.select_addon(_addon("spigot", "Essentials"))
    await dispatcher.confirm_install()

    assert [c["version_id"] for c in backend.install_calls] == ["400", "501"]


@pytest.mark.asyncio
async def test_newer_selection_supersedes_pending_resolution(paper_target):
    backend = FakeBackend(version_delays={"slow": 0.05})
    dispatcher = _dispatcher(backend, paper_target)

    slow = asyncio.create_task(dispatcher.select_addon(_addon(key="slow")))
    await asyncio.sleep(0)
    await dispatcher.select_addon(_addon(key="fast"))
    await slow

    assert dispatcher.job.addon.title == "fast"


@pytest.mark.asyncio
async def test_confirm_without_selection(paper_target):
    dispatcher = _dispatcher(FakeBackend(), paper_target)
    result = await dispatcher.confirm_install()
    assert not result.success
    assert result.error == "no-selection"


@pytest.mark.asyncio
async def test_browser_version_choice_after_cancel_warns(paper_target):
    """A version picked for a dropped selection is reported, not raised."""
    from ui.addon_browser import AddonBrowserScreen

    dispatcher = _dispatcher(FakeBackend(), paper_target)
    addon = _addon()
    await dispatcher.select_addon(addon)
    dispatcher.cancel()

    screen = MagicMock(dispatcher=dispatcher)
    AddonBrowserScreen._on_version_chosen(screen, addon, "latest")

    screen.notify.assert_called_once()
    assert screen.notify.call_args.kwargs["severity"] == "warning"
    screen.run_worker.assert_not_called()


# ══════════════════════════════════════════════════════════════════════════════
#  8. INSTALLED ADD-ON TESTS
# ══════════════════════════════════════════════════════════════════════════════


def test_list_installed(mock_plugin_jar):
    from installed_addons import list_installed

    plugins = mock_plugin_jar.parent
    (plugins / "Old.jar.disabled").write_bytes(b"junk")
    (plugins / "Economy.phar").write_bytes(b"<?php")
    (plugins / "notes.txt").write_text("ignore me")

    items = {i.filename: i for i in list_installed(plugins)}
    assert set(items) == {"TestPlugin-1.0.jar", "Old.jar.disabled", "Economy.phar"}
    assert items["TestPlugin-1.0.jar"].name == "TestPlugin"
    assert items["TestPlugin-1.0.jar"].version == "1.0.0"
    assert items["TestPlugin-1.0.jar"].enabled
    assert not items["Old.jar.disabled"].enabled
    assert items["Old.jar.disabled"].name == "Old"
    assert items["Economy.phar"].size_bytes == 5


def test_toggle_and_delete_installed(mock_plugin_jar):
    from installed_addons import delete_installed, list_installed, toggle_installed

    plugins = mock_plugin_jar.parent
    disabled = toggle_installed(plugins, mock_plugin_jar.name)
    assert disabled == "TestPlugin-1.0.jar.disabled"
    assert (plugins / disabled).exists()

    enabled = toggle_installed(plugins, disabled)
    assert enabled == mock_plugin_jar.name

    delete_installed(plugins, enabled)
    assert list_installed(plugins) == []


def test_installed_rejects_bad_names(mock_plugin_jar):
    from installed_addons import delete_installed, toggle_installed

    plugins = mock_plugin_jar.parent
    with pytest.raises(ValueError):
        delete_installed(plugins, "../config.json")
    with pytest.raises(FileNotFoundError):
        toggle_installed(plugins, "Missing.jar")


def test_list_installed_missing_dir(temp_dir):
    from installed_addons import list_installed
    assert list_installed(temp_dir / "nope") == []


def test_malformed_descriptor_falls_back_to_file_name(mock_plugin_jar):
    from installed_addons import list_installed, read_addon_meta

    plugins = mock_plugin_jar.parent
    with zipfile.ZipFile(plugins / "Broken.jar", "w") as zf:
        zf.writestr("plugin.yml", "just a string\n")
    with zipfile.ZipFile(plugins / "ListMod.jar", "w") as zf:
        zf.writestr("fabric.mod.json", "[1, 2]")

    assert read_addon_meta(plugins / "Broken.jar") is None
    assert read_addon_meta(plugins / "ListMod.jar") is None

    items = {i.filename: i for i in list_installed(plugins)}
    assert items["Broken.jar"].name == "Broken"
    assert items["Broken.jar"].version == ""
    assert items["ListMod.jar"].name == "ListMod"
    assert items["TestPlugin-1.0.jar"].name == "TestPlugin"


# ══════════════════════════════════════════════════════════════════════════════
#  9. CONFIGURATION TESTS
# ══════════════════════════════════════════════════════════════════════════════


def test_load_config(mock_config, temp_dir):
    from discovery import load_config

    assert load_config(mock_config)["server"]["type"] == "paper"
    assert load_config(temp_dir / "missing.json") == {}

    corrupt = temp_dir / "corrupt.json"
    corrupt.write_text("{not json")
    assert load_config(corrupt) == {}


def test_discovery_config_presets(temp_dir):
    from discovery import DiscoveryConfig
    from server_types import TargetInstance

    plugins = DiscoveryConfig.for_target(TargetInstance("purpur", "1.20.4", temp_dir))
    assert plugins.sources == ["modrinth", "hangar", "spigot", "polymart"]
    assert plugins.window_width == 9

    mods = DiscoveryConfig.for_target(TargetInstance("forge", "1.20.1", temp_dir))
    assert mods.sources == ["modrinth", "curseforge"]
    assert mods.window_width == 5
    assert mods.loader == "forge"

    bedrock = DiscoveryConfig.for_target(TargetInstance("pocketmine", "5.0.0", temp_dir))
    assert bedrock.sources == ["poggit"]

    assert DiscoveryConfig.for_target(TargetInstance("vanilla", "1.20.4", temp_dir)).sources == []


def test_discovery_config_overrides(paper_target):
    from discovery import DiscoveryConfig

    cfg = DiscoveryConfig.from_dict(
        {"discovery": {"page_size": 10, "window_width": None, "user_agent": "Test/2.0"}},
        paper_target,
    )
    assert cfg.page_size == 10
    assert cfg.window_width == 9
    assert cfg.user_agent == "Test/2.0"


@pytest.mark.parametrize("width", [4, 0, -3, True, "7"])
def test_invalid_window_width_keeps_preset(paper_target, width):
    from discovery import DiscoveryConfig

    cfg = DiscoveryConfig.from_dict({"discovery": {"window_width": width}}, paper_target)
    assert cfg.window_width == 9


def test_odd_window_width_accepted(paper_target):
    from discovery import DiscoveryConfig

    cfg = DiscoveryConfig.from_dict({"discovery": {"window_width": 7}}, paper_target)
    assert cfg.window_width == 7


# ══════════════════════════════════════════════════════════════════════════════
#  10. REGISTRY BACKEND TESTS (mocked aiohttp)
# ══════════════════════════════════════════════════════════════════════════════


class _FakeContent:
    def __init__(self, body):
        self._body = body

    async def iter_chunked(self, size):
        for i in range(0, len(self._body), size):
            yield self._body[i:i + size]


class _FakeResponse:
    def __init__(self, status=200, payload=None, body=b"", headers=None):
        self.status = status
        self._payload = payload
        self.headers = headers or {}
        self.content = _FakeContent(body)

    async def json(self, content_type=None):
        return self._payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


def _session(*responses):
    session = MagicMock()
    session.request = MagicMock(side_effect=list(responses))
    return session


@pytest.mark.asyncio
async def test_modrinth_search_facets():
    from registry_apis import HttpRegistryBackend

    session = _session(
        _FakeResponse(payload={"hits": [_raw_hit("modrinth", "a")], "total_hits": 137}),
        _FakeResponse(payload={"hits": [], "total_hits": 0}),
    )
    backend = HttpRegistryBackend(session=session)

    raw = await backend.search("modrinth", "", "popular", 2, {"page_size": 20})
    assert raw.total == 137
    params = session.request.call_args_list[0].kwargs["params"]
    assert params["offset"] == 20
    assert "project_type:plugin" in params["facets"]

    await backend.search("modrinth", "sodium", "", 1, {"loader": "fabric"})
    params = session.request.call_args_list[1].kwargs["params"]
    assert "categories:fabric" in params["facets"]
    assert "project_type:mod" in params["facets"]


@pytest.mark.asyncio
async def test_http_error_raises_registry_error():
    from registry_apis import HttpRegistryBackend, RegistryError

    backend = HttpRegistryBackend(session=_session(_FakeResponse(status=503)))
    with pytest.raises(RegistryError, match="503"):
        await backend.search("hangar", "", "popular", 1)


@pytest.mark.asyncio
async def test_modrinth_install_downloads_primary_file(temp_dir):
    from registry_apis import HttpRegistryBackend

    versions = [{"id": "v1", "files": [
        {"url": "https://cdn/x-sources.jar", "filename": "x-sources.jar", "primary": False},
        {"url": "https://cdn/x.jar", "filename": "x-1.0.jar", "primary": True},
    ]}]
    session = _session(
        _FakeResponse(payload=versions),
        _FakeResponse(body=b"PK\x03\x04" + b"0" * 20000),
    )
    backend = HttpRegistryBackend(session=session)

    dest = temp_dir / "plugins"
    name = await backend.install("modrinth", "proj", dest)

    assert name == "x-1.0.jar"
    assert (dest / "x-1.0.jar").stat().st_size == 20004
    assert not list(dest.glob("*.part"))
    loaders = session.request.call_args_list[0].kwargs["params"]["loaders"]
    assert json.loads(loaders) == ["paper", "spigot", "bukkit"]


@pytest.mark.asyncio
async def test_polymart_rejects_login_page(temp_dir):
    from registry_apis import HttpRegistryBackend, RegistryError

    session = _session(_FakeResponse(body=b"<!DOCTYPE html><html>login</html>"))
    backend = HttpRegistryBackend(session=session)

    with pytest.raises(RegistryError, match="paid"):
        await backend.install("polymart", "123", temp_dir)
    assert list(temp_dir.iterdir()) == []


@pytest.mark.asyncio
async def test_polymart_filename_from_disposition(temp_dir):
    from registry_apis import HttpRegistryBackend

    session = _session(_FakeResponse(
        body=b"PK\x03\x04jar",
        headers={"Content-Disposition": 'attachment; filename="CoolPlugin-2.jar"'},
    ))
    backend = HttpRegistryBackend(session=session)

    assert await backend.install("polymart", "123", temp_dir) == "CoolPlugin-2.jar"


@pytest.mark.asyncio
async def test_curseforge_requires_key(temp_dir, monkeypatch):
    from registry_apis import HttpRegistryBackend, RegistryError

    monkeypatch.delenv("CURSEFORGE_API_KEY", raising=False)
    session = _session()
    backend = HttpRegistryBackend(session=session)

    raw = await backend.search("curseforge", "jei", "", 1)
    assert raw.items == [] and raw.total == 0
    with pytest.raises(RegistryError, match="API key"):
        await backend.install("curseforge", "238222", temp_dir)
    session.request.assert_not_called()


@pytest.mark.asyncio
async def test_backend_through_adapter_reports_failure():
    """A registry HTTP error surfaces as a failed, empty page."""
    from registry_apis import HttpRegistryBackend
    from source_adapters import create_adapter

    backend = HttpRegistryBackend(session=_session(_FakeResponse(status=500)))
    page = await create_adapter("spigot", backend).search("", "popular", 1)
    assert page.items == [] and page.failure is not None


# ══════════════════════════════════════════════════════════════════════════════
#  11. HEADLESS CLI TESTS
# ══════════════════════════════════════════════════════════════════════════════


def test_parse_args():
    from main import parse_args

    args = parse_args(["--headless", "--source", "hangar", "--page", "3"])
    assert args.headless
    assert args.source == "hangar"
    assert args.page == 3
    assert args.install is None


@pytest.mark.asyncio
async def test_headless_search_and_install(mock_config):
    from main import parse_args, run_headless

    backend = FakeBackend()
    args = parse_args([
        "--config", str(mock_config), "--headless",
        "--category", "economy", "--install", "economy vault-1",
    ])
    code = await run_headless(args, backend=backend)

    assert code == 0
    assert backend.search_calls[-1][1] == "economy vault"
    assert backend.install_calls[0]["version_id"] == "latest"


@pytest.mark.asyncio
async def test_headless_vanilla_has_no_sources(temp_dir):
    from main import parse_args, run_headless

    cfg = temp_dir / "config.json"
    cfg.write_text(json.dumps({"server": {"type": "vanilla", "version": "1.20.4"}}))
    code = await run_headless(parse_args(["--config", str(cfg), "--headless"]), backend=FakeBackend())
    assert code == 1


@pytest.mark.asyncio
async def test_spiget_search_404_means_no_hits():
    from registry_apis import HttpRegistryBackend

    backend = HttpRegistryBackend(session=_session(_FakeResponse(status=404)))
    raw = await backend.search("spigot", "zzzz-nothing", "", 1)
    assert raw.items == []
