#!/usr/bin/env python3
"""
main.py – Minecraft Add-on Manager
==================================
Entry point: Textual add-on browser for the configured server, or a
headless one-shot search / install printed with rich tables.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from rich.console import Console
from rich.table import Table
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.widgets import Footer, Header

from discovery import DiscoveryConfig, DiscoveryOrchestrator, build_adapters, load_config
from install_dispatcher import ConcurrentInstallRejected, InstallDispatcher
from registry_apis import HttpRegistryBackend
from server_types import PlatformCategory, TargetInstance

logger = logging.getLogger("minecraft_server_manager")


# ──────────────────────────────────────────────
#  Logging
# ──────────────────────────────────────────────

LOG_DIR = Path("logs")


def setup_logging(level: int = logging.INFO) -> None:
    LOG_DIR.mkdir(exist_ok=True)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=[
            logging.FileHandler(LOG_DIR / "manager.log", encoding="utf-8"),
            logging.StreamHandler(sys.stdout),
        ],
    )


# ──────────────────────────────────────────────
#  CLI
# ──────────────────────────────────────────────

def parse_args(argv: Optional[list] = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        description="⛏️  Minecraft Add-on Manager – plugin & mod browser",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    p.add_argument("--config", default="config.json", help="Path to config.json")
    p.add_argument("--type", default=None, help="Server type override")
    p.add_argument("--version", default=None, help="MC version override")
    p.add_argument("--headless", action="store_true", help="No TUI")
    p.add_argument("--source", default=None, help="Registry to search (headless)")
    p.add_argument("--query", default=None, help="Free-text search (headless)")
    p.add_argument("--category", default=None, help="Category id (headless)")
    p.add_argument("--page", type=int, default=1, help="Result page (headless)")
    p.add_argument("--install", default=None, metavar="ID",
                   help="Install the result with this id or slug (headless)")
    p.add_argument("--install-version", default=None, metavar="VERSION_ID",
                   help="Version to install instead of the first one")
    p.add_argument("--installed", action="store_true",
                   help="List installed add-ons and exit (headless)")
    return p.parse_args(argv)


def apply_overrides(args: argparse.Namespace) -> None:
    """Persist --type / --version into the config file."""
    if not (args.type or args.version):
        return
    cfg_path = Path(args.config)
    config = json.loads(cfg_path.read_text()) if cfg_path.exists() else {"server": {}}
    if args.type:
        config.setdefault("server", {})["type"] = args.type
    if args.version:
        config.setdefault("server", {})["version"] = args.version
    cfg_path.write_text(json.dumps(config, indent=2))


def installed_dir(target: TargetInstance) -> Path:
    if target.category is PlatformCategory.MOD_LOADER:
        return target.mods_dir
    return target.plugins_dir


# ──────────────────────────────────────────────
#  Main Application
# ──────────────────────────────────────────────

class AddonManagerApp(App):
    """Textual host for the add-on browser screen."""

    TITLE = "⛏️ Minecraft Add-on Manager"
    SUB_TITLE = "Terminal Edition"

    BINDINGS = [
        Binding("ctrl+q", "quit", "Quit", priority=True),
    ]

    def __init__(self, config_path: str = "config.json", **kw: Any) -> None:
        super().__init__(**kw)
        self.config_path = config_path

        config = load_config(Path(config_path))
        self.target = TargetInstance.from_config(config)
        self.discovery_config = DiscoveryConfig.from_dict(config, self.target)
        self.backend = HttpRegistryBackend(
            timeout=self.discovery_config.request_timeout,
            user_agent=self.discovery_config.user_agent,
        )
        adapters = build_adapters(self.discovery_config, self.backend)
        self.orchestrator = DiscoveryOrchestrator(
            self.discovery_config, adapters, notify=self._notify,
        )
        self.dispatcher = InstallDispatcher(self.target, adapters, notify=self._notify)

    def _notify(self, message: str, severity: str) -> None:
        self.notify(message, severity=severity)

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield Footer()

    def on_mount(self) -> None:
        from ui.addon_browser import AddonBrowserScreen

        logger.info(
            "App started – %s %s at %s",
            self.target.server_type, self.target.version, self.target.path,
        )
        if not self.discovery_config.sources:
            self.notify(
                f"{self.target.server_type} servers have no add-on registries",
                severity="warning",
            )
            return
        self.push_screen(AddonBrowserScreen(
            self.orchestrator, self.dispatcher, self.backend, installed_dir(self.target),
        ))

    async def on_unmount(self) -> None:
        await self.backend.close()


# ──────────────────────────────────────────────
#  Headless CLI
# ──────────────────────────────────────────────

_SEVERITY_STYLE = {"information": "green", "warning": "yellow", "error": "bold red"}


async def run_headless(args: argparse.Namespace, backend: Optional[Any] = None) -> int:
    """
    Run one search (and optionally one install) without the TUI.

    Returns:
        Process exit code
    """
    console = Console()

    def notify(message: str, severity: str) -> None:
        console.print(f"[{_SEVERITY_STYLE.get(severity, 'white')}]{message}[/]")

    config = load_config(Path(args.config))
    target = TargetInstance.from_config(config)
    dcfg = DiscoveryConfig.from_dict(config, target)
    console.print("\n[bold green]⛏️  Minecraft Add-on Manager[/] (headless)\n")
    console.print(f"[bold]Server:[/] {target.server_type} {target.version} ({target.path})")

    if args.installed:
        _print_installed(console, target, backend or HttpRegistryBackend())
        return 0

    if not dcfg.sources:
        console.print(f"[yellow]{target.server_type} servers have no add-on registries[/]")
        return 1

    own_backend = backend is None
    if own_backend:
        backend = HttpRegistryBackend(timeout=dcfg.request_timeout, user_agent=dcfg.user_agent)

    try:
        adapters = build_adapters(dcfg, backend)
        orch = DiscoveryOrchestrator(dcfg, adapters, notify=notify)

        try:
            if args.source:
                orch.set_active_source(args.source)
            if args.category:
                orch.set_category(args.category)
            if args.query:
                orch.set_query(args.query)
            if not (args.source or args.category or args.query):
                orch.request_fetch()
            await orch.settle()

            if args.page > 1:
                orch.set_page(args.page)
                await orch.settle()
        except ValueError as exc:
            console.print(f"[bold red]{exc}[/]")
            return 2

        view = orch.current_page_view()
        _print_results(console, orch, view)

        if args.install:
            return await _headless_install(console, args, target, adapters, view, notify)
        return 0
    finally:
        if own_backend:
            await backend.close()


def _print_results(console: Console, orch: DiscoveryOrchestrator, view: Any) -> None:
    sel = orch.selection
    t = Table(title=f"{view.source} – “{sel.search_query or sel.active_category}”")
    t.add_column("ID", style="dim")
    t.add_column("Name", style="cyan")
    t.add_column("Author", style="white")
    t.add_column("Downloads", justify="right", style="yellow")
    for addon in view.items:
        t.add_row(addon.id, addon.title, addon.author or "–", f"{addon.download_count:,}")
    console.print(t)

    pages = " ".join(f"[{n}]" if n == view.current_page else str(n) for n in view.window)
    console.print(f"[bold]Pages:[/] {pages}  (of {view.total_pages})\n")


def _print_installed(console: Console, target: TargetInstance, backend: Any) -> None:
    directory = installed_dir(target)
    t = Table(title=f"Installed in {directory}")
    t.add_column("Name", style="cyan")
    t.add_column("File", style="white")
    t.add_column("Enabled")
    t.add_column("Size", justify="right")
    for item in backend.list_installed(directory):
        t.add_row(item.name, item.filename, "✅" if item.enabled else "⛔", f"{item.size_bytes:,} B")
    console.print(t)


async def _headless_install(
    console: Console,
    args: argparse.Namespace,
    target: TargetInstance,
    adapters: dict,
    view: Any,
    notify: Any,
) -> int:
    addon = next((a for a in view.items if args.install in (a.id, a.slug)), None)
    if addon is None:
        console.print(f"[bold red]No result with id or slug {args.install!r} on this page[/]")
        return 1

    dispatcher = InstallDispatcher(target, adapters, notify=notify)
    try:
        job = await dispatcher.select_addon(addon)
    except ConcurrentInstallRejected as exc:
        console.print(f"[yellow]{exc}[/]")
        return 1

    console.print(
        f"[bold]Versions:[/] {', '.join(v.name for v in job.versions[:10])}"
    )
    if args.install_version:
        try:
            dispatcher.choose_version(args.install_version)
        except ValueError as exc:
            console.print(f"[bold red]{exc}[/]")
            return 1

    result = await dispatcher.confirm_install()
    return 0 if result.success else 1


# ──────────────────────────────────────────────
#  Entry Point
# ──────────────────────────────────────────────

def main() -> None:
    args = parse_args()
    setup_logging()
    apply_overrides(args)

    if args.headless:
        sys.exit(asyncio.run(run_headless(args)))
    else:
        AddonManagerApp(config_path=args.config).run()


if __name__ == "__main__":
    main()
