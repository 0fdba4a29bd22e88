"""
ui/addon_browser.py
===================
Textual screen for browsing registries and installing add-ons.

The screen is a thin view over ``DiscoveryOrchestrator`` and
``InstallDispatcher``: every button maps to one orchestrator or dispatcher
call, and the tables are redrawn from ``current_page_view()`` once the
resulting fetch task finishes.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, List, Optional

from textual.app import ComposeResult
from textual.containers import Horizontal, Vertical
from textual.screen import ModalScreen, Screen
from textual.widgets import (
    Button, DataTable, Footer, Header, Input, Label, TabbedContent, TabPane,
)

from discovery import DiscoveryOrchestrator
from install_dispatcher import ConcurrentInstallRejected, InstallDispatcher
from source_adapters import ADAPTERS, VersionCandidate


def _fmt_size(size: int) -> str:
    if size >= 1024 * 1024:
        return f"{size / (1024 * 1024):.1f} MB"
    return f"{size / 1024:.0f} KB"


# ──────────────────────────────────────────────
#  Modals
# ──────────────────────────────────────────────

class ConfirmScreen(ModalScreen[bool]):
    """Yes / No confirmation dialog."""

    DEFAULT_CSS = """
    ConfirmScreen { align: center middle; }
    #confirm-box {
        width: 56; height: auto; max-height: 80%;
        border: double #58a6ff; padding: 2; background: #161b22;
    }
    #confirm-msg { text-align: center; margin-bottom: 1; }
    #confirm-btns { align-horizontal: center; }
    """

    def __init__(self, message: str) -> None:
        super().__init__()
        self._msg = message

    def compose(self) -> ComposeResult:
        with Vertical(id="confirm-box"):
            yield Label(self._msg, id="confirm-msg")
            with Horizontal(id="confirm-btns"):
                yield Button("Yes", variant="success", id="cd-yes")
                yield Button("No", variant="error", id="cd-no")

    def on_button_pressed(self, event: Button.Pressed) -> None:
        self.dismiss(event.button.id == "cd-yes")


class VersionScreen(ModalScreen[Optional[str]]):
    """Pick a version to install; dismisses with its id, or None."""

    DEFAULT_CSS = """
    VersionScreen { align: center middle; }
    #version-box {
        width: 80; height: auto; max-height: 80%;
        border: double #58a6ff; padding: 1 2; background: #161b22;
    }
    #version-table { height: auto; max-height: 16; }
    #version-btns { align-horizontal: center; margin-top: 1; }
    """

    def __init__(self, title: str, versions: List[VersionCandidate]) -> None:
        super().__init__()
        self._title = title
        self._versions = versions

    def compose(self) -> ComposeResult:
        with Vertical(id="version-box"):
            yield Label(f"[bold]{self._title}[/] – choose a version")
            yield DataTable(id="version-table", cursor_type="row")
            with Horizontal(id="version-btns"):
                yield Button("⬇ Install", variant="success", id="ver-install")
                yield Button("Cancel", variant="error", id="ver-cancel")

    def on_mount(self) -> None:
        tbl = self.query_one("#version-table", DataTable)
        tbl.add_columns("Version", "Channel", "Game versions", "Loaders")
        for v in self._versions:
            tbl.add_row(
                v.name,
                v.release_channel,
                ", ".join(sorted(v.compatible_game_versions)[-4:]) or "–",
                ", ".join(sorted(v.compatible_loaders)) or "–",
            )

    def on_button_pressed(self, event: Button.Pressed) -> None:
        if event.button.id == "ver-install":
            row = self.query_one("#version-table", DataTable).cursor_row
            if 0 <= row < len(self._versions):
                self.dismiss(self._versions[row].id)
            else:
                self.dismiss(self._versions[0].id)
        else:
            self.dismiss(None)


# ──────────────────────────────────────────────
#  Browser Screen
# ──────────────────────────────────────────────

class AddonBrowserScreen(Screen):
    """Registry tabs, search, categories, paged results and installed items."""

    BINDINGS = [
        ("escape", "app.pop_screen", "Back"),
        ("left", "page(-1)", "Prev page"),
        ("right", "page(1)", "Next page"),
    ]

    DEFAULT_CSS = """
    #source-bar, #category-bar, #addon-search, #pager { height: auto; }
    #results-table, #installed-table { height: 1fr; }
    #page-window { padding: 1 2; }
    """

    def __init__(
        self,
        orchestrator: DiscoveryOrchestrator,
        dispatcher: InstallDispatcher,
        backend: Any,
        installed_dir: Path,
    ) -> None:
        super().__init__()
        self.orchestrator = orchestrator
        self.dispatcher = dispatcher
        self.backend = backend
        self.installed_dir = installed_dir

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        config = self.orchestrator.config

        with TabbedContent():
            # ── Browse Tab ──
            with TabPane("🔍 Browse", id="tab-browse"):
                with Vertical():
                    with Horizontal(id="source-bar"):
                        for source in config.sources:
                            yield Button(ADAPTERS[source].display_name, id=f"src-{source}")
                    with Horizontal(id="addon-search"):
                        yield Input(placeholder="Search add-ons…", id="search-input")
                        yield Button("Search", id="btn-search", variant="primary")
                    with Horizontal(id="category-bar"):
                        for cat in config.categories:
                            yield Button(cat.label, id=f"cat-{cat.id}")
                    yield DataTable(id="results-table", cursor_type="row")
                    with Horizontal(id="pager"):
                        yield Button("◀", id="btn-prev")
                        yield Label("", id="page-window")
                        yield Button("▶", id="btn-next")
                        yield Button("⬇ Install Selected", id="btn-install", variant="success")

            # ── Installed Tab ──
            with TabPane("📦 Installed", id="tab-installed"):
                with Vertical():
                    yield DataTable(id="installed-table", cursor_type="row")
                    with Horizontal():
                        yield Button("⏯ Enable / Disable", id="btn-toggle", variant="primary")
                        yield Button("🗑 Delete", id="btn-delete", variant="error")

        yield Footer()

    def on_mount(self) -> None:
        self.query_one("#results-table", DataTable).add_columns(
            "Name", "Author", "Downloads", "Description",
        )
        self.query_one("#installed-table", DataTable).add_columns(
            "Name", "File", "Enabled", "Size",
        )
        self._refresh_installed()
        self._render_results()
        self.run_worker(self._await_fetches(self.orchestrator.start()))

    # ================================================================
    #  RENDERING
    # ================================================================

    def _render_results(self) -> None:
        view = self.orchestrator.current_page_view()

        tbl = self.query_one("#results-table", DataTable)
        tbl.clear()
        for addon in view.items:
            tbl.add_row(
                addon.title,
                addon.author or "–",
                f"{addon.download_count:,}",
                (addon.description[:60] + "…") if len(addon.description) > 60 else addon.description,
            )

        pages = " ".join(
            f"[reverse] {n} [/]" if n == view.current_page else str(n) for n in view.window
        )
        status = " ⏳" if view.loading else ""
        self.query_one("#page-window", Label).update(f"{pages}  of {view.total_pages}{status}")

        for source in self.orchestrator.config.sources:
            btn = self.query_one(f"#src-{source}", Button)
            btn.variant = "primary" if source == view.source else "default"
        for cat in self.orchestrator.config.categories:
            btn = self.query_one(f"#cat-{cat.id}", Button)
            active = cat.id == self.orchestrator.selection.active_category
            btn.variant = "warning" if active else "default"

    def _refresh_installed(self) -> None:
        tbl = self.query_one("#installed-table", DataTable)
        tbl.clear()
        for item in self.backend.list_installed(self.installed_dir):
            tbl.add_row(
                item.name, item.filename,
                "✅" if item.enabled else "⛔",
                _fmt_size(item.size_bytes),
            )

    async def _await_fetches(self, tasks: List[asyncio.Task]) -> None:
        self._render_results()
        for task in asyncio.as_completed(tasks):
            await task
            self._render_results()

    def _fetch(self, task: asyncio.Task) -> None:
        self.run_worker(self._await_fetches([task]))

    # ================================================================
    #  EVENTS
    # ================================================================

    def on_button_pressed(self, event: Button.Pressed) -> None:
        btn = event.button.id or ""
        if btn.startswith("src-"):
            self._fetch(self.orchestrator.set_active_source(btn[4:]))
        elif btn.startswith("cat-"):
            self.query_one("#search-input", Input).value = ""
            self._fetch(self.orchestrator.set_category(btn[4:]))
        elif btn == "btn-search":
            self._do_search()
        elif btn == "btn-prev":
            self.action_page(-1)
        elif btn == "btn-next":
            self.action_page(1)
        elif btn == "btn-install":
            self._do_install()
        elif btn == "btn-toggle":
            self._do_toggle()
        elif btn == "btn-delete":
            self._do_delete()

    def on_input_submitted(self, event: Input.Submitted) -> None:
        if event.input.id == "search-input":
            self._do_search()

    def action_page(self, delta: int) -> None:
        page = self.orchestrator.selection.current_page + delta
        self._fetch(self.orchestrator.set_page(page))

    def _do_search(self) -> None:
        query = self.query_one("#search-input", Input).value.strip()
        self._fetch(self.orchestrator.set_query(query))

    # ── Install ────────────────────────────────

    def _do_install(self) -> None:
        view = self.orchestrator.current_page_view()
        row = self.query_one("#results-table", DataTable).cursor_row
        if not (0 <= row < len(view.items)):
            self.notify("Select an add-on first", severity="warning")
            return
        self.run_worker(self._select(view.items[row]))

    async def _select(self, addon) -> None:
        try:
            job = await self.dispatcher.select_addon(addon)
        except ConcurrentInstallRejected as exc:
            self.notify(str(exc), severity="warning")
            return
        if job is not self.dispatcher.job:
            return

        self.app.push_screen(
            VersionScreen(addon.title, job.versions),
            lambda version_id: self._on_version_chosen(addon, version_id),
        )

    def _on_version_chosen(self, addon, version_id: Optional[str]) -> None:
        if version_id is None:
            self.dispatcher.cancel()
            return
        try:
            self.dispatcher.choose_version(version_id)
        except ValueError as exc:
            self.notify(str(exc), severity="warning")
            return
        self.notify(f"Installing {addon.title}…")
        self.run_worker(self._install())

    async def _install(self) -> None:
        await self.dispatcher.confirm_install()
        self._refresh_installed()

    # ── Installed items ────────────────────────

    def _selected_file(self) -> Optional[str]:
        tbl = self.query_one("#installed-table", DataTable)
        if tbl.row_count == 0:
            return None
        return str(tbl.get_row_at(tbl.cursor_row)[1])

    def _do_toggle(self) -> None:
        filename = self._selected_file()
        if not filename:
            return
        try:
            new_name = self.backend.toggle_installed(self.installed_dir, filename)
        except (OSError, ValueError) as exc:
            self.notify(str(exc), severity="error")
            return
        state = "disabled" if new_name.endswith(".disabled") else "enabled"
        self.notify(f"{filename} {state}")
        self._refresh_installed()

    def _do_delete(self) -> None:
        filename = self._selected_file()
        if not filename:
            return

        def _on_confirm(yes: bool) -> None:
            if not yes:
                return
            try:
                self.backend.delete_installed(self.installed_dir, filename)
            except (OSError, ValueError) as exc:
                self.notify(str(exc), severity="error")
                return
            self.notify(f"Deleted {filename}")
            self._refresh_installed()

        self.app.push_screen(ConfirmScreen(f"Delete {filename}?"), _on_confirm)
