"""Discovery of the locally configured default Rust toolchain."""

from __future__ import annotations

import logging
import os
import pathlib
import tomllib
from dataclasses import dataclass
from typing import Dict, Optional

from ferron_forge.utils.exceptions import ToolchainError, ToolchainNotFoundError

logger = logging.getLogger(__name__)

SETTINGS_FILE_NAME = "settings.toml"


@dataclass(frozen=True)
class ResolvedToolchain:
    """Rustup settings handed to the Cargo subprocess.

    Attributes:
        rustup_home: The rustup home directory
        name: Default toolchain name, or ``None`` when none could be read
    """

    rustup_home: pathlib.Path
    name: Optional[str] = None

    def as_environment(self) -> Dict[str, str]:
        """Environment variables pinning Cargo to this toolchain."""
        env = {"RUSTUP_HOME": str(self.rustup_home)}
        if self.name:
            env["RUSTUP_TOOLCHAIN"] = self.name
        return env


def get_rustup_home() -> pathlib.Path:
    """Return ``$RUSTUP_HOME``, or ``~/.rustup`` when it is unset."""
    rustup_home = os.environ.get("RUSTUP_HOME")
    if rustup_home:
        return pathlib.Path(rustup_home)
    return pathlib.Path.home() / ".rustup"


def get_rustup_toolchain(rustup_home: pathlib.Path) -> str:
    """Read the default toolchain from rustup's settings file.

    Args:
        rustup_home: The rustup home directory

    Returns:
        The ``default_toolchain`` value

    Raises:
        ToolchainError: If the settings file is missing or malformed
        ToolchainNotFoundError: If the settings name no default toolchain
    """
    settings_path = pathlib.Path(rustup_home) / SETTINGS_FILE_NAME
    try:
        with open(settings_path, "rb") as f:
            settings = tomllib.load(f)
    except OSError as e:
        raise ToolchainError(
            f"Cannot read rustup settings: {e}", settings_path=str(settings_path)
        ) from e
    except tomllib.TOMLDecodeError as e:
        raise ToolchainError(
            f"Cannot parse rustup settings: {e}", settings_path=str(settings_path)
        ) from e

    toolchain = settings.get("default_toolchain")
    if not isinstance(toolchain, str) or not toolchain:
        raise ToolchainNotFoundError(
            "The `rustup` configuration doesn't contain a default toolchain.",
            settings_path=str(settings_path),
        )
    return toolchain


def resolve_toolchain(rustup_home: Optional[pathlib.Path] = None) -> ResolvedToolchain:
    """Resolve the toolchain to build with.

    A missing or unreadable settings file is not an error: the build then
    runs with whatever toolchain the ambient environment selects.
    """
    home = pathlib.Path(rustup_home) if rustup_home else get_rustup_home()
    try:
        name = get_rustup_toolchain(home)
    except ToolchainError as e:
        logger.warning(f"No default toolchain override available: {e}")
        return ResolvedToolchain(rustup_home=home)

    logger.info(f"Using rustup toolchain {name}")
    return ResolvedToolchain(rustup_home=home, name=name)
