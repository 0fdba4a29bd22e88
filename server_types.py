"""
server_types.py
===============
Minecraft server software definitions and the add-on platform model.

Every server type belongs to at most one *platform category*:

  - **plugin-host**      – Paper, Spigot, Purpur, BungeeCord, Velocity
  - **mod-loader**       – Fabric, Forge, Quilt, NeoForge
  - **bedrock-variant**  – Bedrock (BDS), NukkitX, PocketMine-MP

Vanilla has no add-on platform at all.

The category decides which registries are browsable for a server and which
install operation (and which extra parameters) each registry needs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────
#  Enums
# ──────────────────────────────────────────────

class ServerSoftware(str, Enum):
    """Enumeration of all supported server software."""

    VANILLA = "vanilla"
    PAPER = "paper"
    SPIGOT = "spigot"
    PURPUR = "purpur"
    BUNGEECORD = "bungeecord"
    VELOCITY = "velocity"
    FABRIC = "fabric"
    FORGE = "forge"
    QUILT = "quilt"
    NEOFORGE = "neoforge"
    BEDROCK = "bedrock"
    NUKKIT = "nukkit"
    POCKETMINE = "pocketmine"


class PlatformCategory(str, Enum):
    """Class of target instance an add-on is installed into."""

    PLUGIN_HOST = "plugin-host"
    MOD_LOADER = "mod-loader"
    BEDROCK_VARIANT = "bedrock-variant"


_CATEGORY_MAP: Dict[ServerSoftware, Optional[PlatformCategory]] = {
    ServerSoftware.VANILLA:    None,
    ServerSoftware.PAPER:      PlatformCategory.PLUGIN_HOST,
    ServerSoftware.SPIGOT:     PlatformCategory.PLUGIN_HOST,
    ServerSoftware.PURPUR:     PlatformCategory.PLUGIN_HOST,
    ServerSoftware.BUNGEECORD: PlatformCategory.PLUGIN_HOST,
    ServerSoftware.VELOCITY:   PlatformCategory.PLUGIN_HOST,
    ServerSoftware.FABRIC:     PlatformCategory.MOD_LOADER,
    ServerSoftware.FORGE:      PlatformCategory.MOD_LOADER,
    ServerSoftware.QUILT:      PlatformCategory.MOD_LOADER,
    ServerSoftware.NEOFORGE:   PlatformCategory.MOD_LOADER,
    ServerSoftware.BEDROCK:    PlatformCategory.BEDROCK_VARIANT,
    ServerSoftware.NUKKIT:     PlatformCategory.BEDROCK_VARIANT,
    ServerSoftware.POCKETMINE: PlatformCategory.BEDROCK_VARIANT,
}

# Loaders Modrinth / CurseForge understand as a search facet
_MOD_LOADERS = {
    ServerSoftware.FABRIC: "fabric",
    ServerSoftware.FORGE: "forge",
    ServerSoftware.QUILT: "quilt",
    ServerSoftware.NEOFORGE: "neoforge",
}


def get_software(server_type: str) -> ServerSoftware:
    """
    Look up a server software by name (case-insensitive).

    Raises:
        ValueError: if the server type is unknown
    """
    try:
        return ServerSoftware(server_type.strip().lower())
    except ValueError:
        raise ValueError(f"Unknown server type: {server_type!r}") from None


def platform_category(server_type: str) -> Optional[PlatformCategory]:
    """Return the add-on platform category for a server type (None for vanilla)."""
    return _CATEGORY_MAP[get_software(server_type)]


# ──────────────────────────────────────────────
#  Target Instance
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class TargetInstance:
    """
    The running server an add-on is discovered for and installed into.

    Attributes:
        server_type:  Server software name (e.g. "paper", "fabric")
        version:      Minecraft version (e.g. "1.20.4")
        path:         Server root directory
    """

    server_type: str
    version: str
    path: Path

    @property
    def software(self) -> ServerSoftware:
        return get_software(self.server_type)

    @property
    def category(self) -> Optional[PlatformCategory]:
        return _CATEGORY_MAP[self.software]

    @property
    def platform(self) -> str:
        """Loader identifier for mod loaders, the server software otherwise."""
        return _MOD_LOADERS.get(self.software, self.software.value)

    @property
    def loader(self) -> Optional[str]:
        """Mod loader name, or None when the server does not load mods."""
        return _MOD_LOADERS.get(self.software)

    @property
    def plugins_dir(self) -> Path:
        return self.path / "plugins"

    @property
    def mods_dir(self) -> Path:
        return self.path / "mods"

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> "TargetInstance":
        """Build a target from a config.json dictionary."""
        server = config.get("server", {})
        paths = config.get("paths", {})
        target = cls(
            server_type=server.get("type", "paper"),
            version=server.get("version", "1.20.4"),
            path=Path(paths.get("server_dir", "./server")),
        )
        # Fail early on typos in config.json
        get_software(target.server_type)
        logger.debug(
            "Target instance: type=%s mc=%s path=%s",
            target.server_type, target.version, target.path,
        )
        return target
