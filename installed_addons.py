"""
installed_addons.py
===================
The installed-items view of a server's ``plugins/`` or ``mods/`` directory.

Enabled add-ons are plain ``.jar`` / ``.phar`` files; disabled ones carry an
extra ``.disabled`` suffix.  Display names come from the archive's own
descriptor when it has one:

  - ``plugin.yml`` / ``bungee.yml``  → Bukkit / Paper / BungeeCord
  - ``velocity-plugin.json``         → Velocity
  - ``fabric.mod.json``              → Fabric / Quilt

Installed items are keyed by file name and are unrelated to search result ids.
"""

from __future__ import annotations

import json
import logging
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)

ADDON_SUFFIXES = (".jar", ".phar")
DISABLED_SUFFIX = ".disabled"


@dataclass
class InstalledAddon:
    """One add-on file found in a target directory."""

    name: str
    filename: str
    enabled: bool
    size_bytes: int
    version: str = ""


# ──────────────────────────────────────────────
#  Metadata
# ──────────────────────────────────────────────

def _descriptor_meta(data: object, path: Path) -> Optional[Dict[str, str]]:
    """``name`` / ``version`` from a parsed descriptor; None unless it is a mapping."""
    if not isinstance(data, dict):
        logger.debug("Descriptor in %s is not a mapping", path.name)
        return None
    return {
        "name": str(data.get("name") or data.get("id") or path.stem),
        "version": str(data.get("version", "")),
    }


def read_addon_meta(path: Path) -> Optional[Dict[str, str]]:
    """
    Read ``name`` / ``version`` from an archive's descriptor.

    Returns None when the file is not a readable archive or carries no
    known descriptor.
    """
    try:
        with zipfile.ZipFile(path, "r") as zf:
            names = set(zf.namelist())

            for descriptor in ("plugin.yml", "bungee.yml"):
                if descriptor in names:
                    data = yaml.safe_load(zf.read(descriptor).decode("utf-8"))
                    return _descriptor_meta(data, path)

            for descriptor in ("velocity-plugin.json", "fabric.mod.json"):
                if descriptor in names:
                    data = json.loads(zf.read(descriptor))
                    return _descriptor_meta(data, path)

    except (zipfile.BadZipFile, OSError, UnicodeDecodeError, ValueError, yaml.YAMLError) as exc:
        logger.debug("No readable metadata in %s: %s", path.name, exc)

    return None


def _is_addon_file(name: str) -> bool:
    base = name[: -len(DISABLED_SUFFIX)] if name.endswith(DISABLED_SUFFIX) else name
    return base.endswith(ADDON_SUFFIXES)


def _resolve(target_path: Path, filename: str) -> Path:
    """Resolve ``filename`` inside ``target_path``, rejecting traversal."""
    if not filename or Path(filename).name != filename or filename in (".", ".."):
        raise ValueError(f"Invalid file name: {filename!r}")
    path = Path(target_path) / filename
    if not path.is_file():
        raise FileNotFoundError(f"Add-on not found: {filename}")
    return path


# ──────────────────────────────────────────────
#  Operations
# ──────────────────────────────────────────────

def list_installed(target_path: Path) -> List[InstalledAddon]:
    """List add-on files in ``target_path``, sorted by file name."""
    target_path = Path(target_path)
    if not target_path.is_dir():
        return []

    addons: List[InstalledAddon] = []
    for entry in sorted(target_path.iterdir(), key=lambda p: p.name.lower()):
        if not entry.is_file() or not _is_addon_file(entry.name):
            continue

        enabled = not entry.name.endswith(DISABLED_SUFFIX)
        meta = read_addon_meta(entry) or {}
        stem = entry.name.split(".")[0] or entry.name
        addons.append(InstalledAddon(
            name=meta.get("name") or stem,
            filename=entry.name,
            enabled=enabled,
            size_bytes=entry.stat().st_size,
            version=meta.get("version", ""),
        ))
    return addons


def toggle_installed(target_path: Path, filename: str) -> str:
    """
    Enable a disabled add-on or disable an enabled one.

    Returns:
        The file's new name
    """
    path = _resolve(target_path, filename)
    if filename.endswith(DISABLED_SUFFIX):
        new_name = filename[: -len(DISABLED_SUFFIX)]
    else:
        new_name = filename + DISABLED_SUFFIX

    path.rename(path.with_name(new_name))
    logger.info("Toggled %s → %s", filename, new_name)
    return new_name


def delete_installed(target_path: Path, filename: str) -> None:
    path = _resolve(target_path, filename)
    path.unlink()
    logger.info("Deleted %s", path)
