"""Pytest configuration and fixtures for Ferron Forge tests."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable, Dict, Generator, List

import pytest
import structlog
import yaml

from ferron_forge.core import interrupt


@pytest.fixture(autouse=True)
def reset_interrupt() -> Generator[None, None, None]:
    """Keep the process-wide interrupt flag from leaking between tests."""
    interrupt.reset()
    yield
    interrupt.reset()


@pytest.fixture(autouse=True)
def restore_root_logger() -> Generator[None, None, None]:
    """Undo handler and structlog changes made by LoggingManager during a test."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Create a checked-out Ferron workspace with a static asset tree."""
    root = tmp_path / "workspace"
    root.mkdir()
    (root / "Cargo.toml").write_text('[workspace]\nmembers = ["ferron", "ferron-common"]\n')

    wwwroot = root / "wwwroot"
    (wwwroot / "assets" / "empty").mkdir(parents=True)
    (wwwroot / "assets" / "css").mkdir(parents=True)
    (wwwroot / "index.html").write_text("<h1>Ferron</h1>\n")
    (wwwroot / "assets" / "css" / "style.css").write_text("body { margin: 0; }\n")
    return root


@pytest.fixture
def binaries(tmp_path: Path) -> List[Path]:
    """Create fake compiled binaries in a Cargo-like target directory."""
    release = tmp_path / "target" / "release"
    release.mkdir(parents=True)
    paths = []
    for name in ("ferron", "ferron-passwd"):
        path = release / name
        path.write_bytes(b"\x7fELF" + name.encode())
        path.chmod(0o755)
        paths.append(path)
    return paths


@pytest.fixture
def cargo_metadata() -> str:
    """``cargo metadata`` output for a two-member workspace."""
    return json.dumps({
        "packages": [
            {"id": "path+file:///ws/ferron#0.1.0", "name": "ferron"},
            {"id": "path+file:///ws/ferron-common#0.1.0", "name": "ferron-common"},
        ],
        "workspace_members": [
            "path+file:///ws/ferron#0.1.0",
            "path+file:///ws/ferron-common#0.1.0",
        ],
    })


@pytest.fixture
def rustup_home(tmp_path: Path) -> Path:
    """Create a rustup home with a default toolchain configured."""
    home = tmp_path / "rustup"
    home.mkdir()
    (home / "settings.toml").write_text('version = "12"\ndefault_toolchain = "stable-x86_64-unknown-linux-gnu"\n')
    return home


@pytest.fixture
def settings_file(tmp_path: Path) -> Callable[[Dict], Path]:
    """Return a function writing a YAML settings file."""

    def write(settings: Dict) -> Path:
        path = tmp_path / "ferron-forge.yaml"
        with open(path, "w") as f:
            yaml.dump(settings, f)
        return path

    return write
