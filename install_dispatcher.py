"""
install_dispatcher.py
=====================
Drives one install from add-on selection to a file on disk.

Job lifecycle::

    idle → resolving-versions → awaiting-selection → installing → succeeded
                                                               ↘ failed

Only one job can be ``installing`` at a time; a second request is rejected
immediately, never queued.  The install operation and its extra parameters
are chosen by the (registry, platform category) pair:

  - plugin-host     → ``plugins/``
  - mod-loader      → ``mods/`` with loader and game version
  - bedrock-variant → ``plugins/`` as a ``.phar``
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from discovery import Notifier, log_notifier
from server_types import PlatformCategory, TargetInstance
from source_adapters import Addon, InstallFailure, InstallRoute, SourceAdapter, VersionCandidate
from version_resolver import VersionResolver

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
#  Result Dataclass
# ──────────────────────────────────────────────

@dataclass
class Result:
    """Unified result for install operations."""

    success: bool
    message: str
    error: Optional[str] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, message: str, **details: Any) -> "Result":
        return cls(success=True, message=message, details=details)

    @classmethod
    def fail(cls, message: str, error: Optional[str] = None, **details: Any) -> "Result":
        return cls(success=False, message=message, error=error, details=details)


class ConcurrentInstallRejected(Exception):
    """Another install is still running."""

    code = "concurrent-install"


# ──────────────────────────────────────────────
#  Install Job
# ──────────────────────────────────────────────

class InstallStatus(str, Enum):
    IDLE = "idle"
    RESOLVING_VERSIONS = "resolving-versions"
    AWAITING_SELECTION = "awaiting-selection"
    INSTALLING = "installing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class InstallJob:
    addon: Optional[Addon] = None
    versions: List[VersionCandidate] = field(default_factory=list)
    version: Optional[VersionCandidate] = None
    status: InstallStatus = InstallStatus.IDLE
    message: str = ""

    def clear_selection(self) -> None:
        self.addon = None
        self.versions = []
        self.version = None


# ──────────────────────────────────────────────
#  Routing
# ──────────────────────────────────────────────

ROUTES: Dict[Tuple[str, PlatformCategory], str] = {
    ("modrinth", PlatformCategory.PLUGIN_HOST): "plugin",
    ("modrinth", PlatformCategory.MOD_LOADER): "mod",
    ("hangar", PlatformCategory.PLUGIN_HOST): "plugin",
    ("spigot", PlatformCategory.PLUGIN_HOST): "plugin",
    ("polymart", PlatformCategory.PLUGIN_HOST): "plugin",
    ("curseforge", PlatformCategory.MOD_LOADER): "mod",
    ("poggit", PlatformCategory.BEDROCK_VARIANT): "phar",
}


def route_for(source_id: str, target: TargetInstance) -> InstallRoute:
    """
    Pick the install route for a registry on ``target``.

    Raises:
        InstallFailure: if the registry cannot install onto this server type
    """
    category = target.category
    kind = ROUTES.get((source_id, category)) if category else None
    if kind is None:
        raise InstallFailure(
            f"Installing from {source_id} is unsupported on {target.server_type} servers"
        )

    if kind == "mod":
        return InstallRoute(
            kind=kind,
            dest_dir=target.mods_dir,
            loader=target.loader,
            game_version=target.version,
        )
    return InstallRoute(kind=kind, dest_dir=target.plugins_dir)


# ──────────────────────────────────────────────
#  Dispatcher
# ──────────────────────────────────────────────

class InstallDispatcher:
    """
    Owns the live ``InstallJob`` for one target instance.

    Args:
        target:    Server the add-ons are installed into
        adapters:  Source adapters keyed by source id
        resolver:  Version resolver (built from ``adapters`` if None)
        notify:    Notifier for user-visible notices
    """

    def __init__(
        self,
        target: TargetInstance,
        adapters: Dict[str, SourceAdapter],
        resolver: Optional[VersionResolver] = None,
        notify: Optional[Notifier] = None,
    ) -> None:
        self.target = target
        self.adapters = adapters
        self.resolver = resolver or VersionResolver(adapters)
        self.notify = notify or log_notifier
        self.job = InstallJob()
        self._selection_token = 0

    @property
    def busy(self) -> bool:
        return self.job.status is InstallStatus.INSTALLING

    def _ensure_idle(self) -> None:
        if self.busy:
            raise ConcurrentInstallRejected("An install is already in progress")

    # ================================================================
    #  SELECTION
    # ================================================================

    async def select_addon(self, addon: Addon) -> InstallJob:
        """
        Start a job for ``addon`` and resolve its versions.

        A newer ``select_addon`` call supersedes this one; its resolution
        result is then dropped.

        Raises:
            ConcurrentInstallRejected: while another job is installing
        """
        self._ensure_idle()

        self._selection_token += 1
        token = self._selection_token
        job = InstallJob(addon=addon, status=InstallStatus.RESOLVING_VERSIONS)
        self.job = job

        versions = await self.resolver.resolve(addon, self.target)
        if token != self._selection_token:
            logger.debug("Dropping superseded version list for %s", addon.title)
            return job

        job.versions = versions
        job.status = InstallStatus.AWAITING_SELECTION
        return job

    def choose_version(self, version_id: str) -> VersionCandidate:
        """
        Record the candidate the user picked.

        Raises:
            ValueError: if no job awaits a selection or the id is unknown
        """
        if self.job.status is not InstallStatus.AWAITING_SELECTION:
            raise ValueError("No add-on is awaiting a version selection")
        for candidate in self.job.versions:
            if candidate.id == version_id:
                self.job.version = candidate
                return candidate
        raise ValueError(f"Unknown version: {version_id!r}")

    def cancel(self) -> None:
        """Drop the pending selection (e.g. the version modal was closed)."""
        if self.busy:
            return
        self._selection_token += 1
        self.job = InstallJob()

    # ================================================================
    #  INSTALL
    # ================================================================

    async def confirm_install(self) -> Result:
        """
        Install the chosen (or first) version of the selected add-on.

        Returns:
            Result with ``filename`` and ``path`` details on success
        """
        try:
            self._ensure_idle()
        except ConcurrentInstallRejected as e:
            self.notify(str(e), "warning")
            return Result.fail(str(e), error=ConcurrentInstallRejected.code)

        job = self.job
        if job.status is not InstallStatus.AWAITING_SELECTION or job.addon is None:
            return Result.fail("No add-on selected", error="no-selection")

        addon = job.addon
        version = job.version or job.versions[0]
        job.version = version
        job.status = InstallStatus.INSTALLING
        logger.info("Installing %s %s from %s", addon.title, version.name, addon.source_id)

        try:
            adapter = self.adapters.get(addon.source_id)
            if adapter is None:
                raise InstallFailure(f"Installing from {addon.source_id} is unsupported")
            route = route_for(addon.source_id, self.target)
            filename = await adapter.install(addon, version, self.target, route)
        except InstallFailure as e:
            job.status = InstallStatus.FAILED
            job.message = e.message
            job.clear_selection()
            logger.error("Install of %s failed: %s", addon.title, e.message)
            self.notify(e.message, "error")
            return Result.fail(e.message, error="install-failed", source=addon.source_id)
        except BaseException:
            # Cancelled or crashed: release the installing slot before propagating
            job.status = InstallStatus.FAILED
            job.message = f"Install of {addon.title} was interrupted"
            job.clear_selection()
            logger.warning(job.message)
            raise

        path = route.dest_dir / filename
        job.status = InstallStatus.SUCCEEDED
        job.message = f"Installed {addon.title} ({filename})"
        job.clear_selection()
        self.notify(job.message, "information")
        return Result.ok(job.message, filename=filename, path=str(path), source=addon.source_id)
