"""The clone, compile and package pipeline behind ``ferron-forge``."""

from __future__ import annotations

import pathlib
import tempfile
import threading
from typing import Callable, Optional

import structlog

from ferron_forge.build.archive import ASSET_DIRECTORY, create_archive
from ferron_forge.build.builder import Builder, BuildOutput
from ferron_forge.build.config import DEFAULT_PACKAGE, BuildRequest
from ferron_forge.build.repository import clone_repository
from ferron_forge.build.toolchain import ResolvedToolchain, resolve_toolchain


def run_pipeline(
        request: BuildRequest,
        package: str = DEFAULT_PACKAGE,
        asset_directory: str = ASSET_DIRECTORY,
        toolchain: Optional[ResolvedToolchain] = None,
        interrupt: Optional[threading.Event] = None,
        progress: Callable[[str], None] = print,
) -> BuildOutput:
    """Build the archive described by ``request``.

    The stages run strictly in sequence inside one temporary workspace, which
    is removed when the run ends whether it succeeded or not.

    Args:
        request: What to build
        package: Package owning the feature modules
        asset_directory: Static asset directory copied from the workspace
        toolchain: Rustup settings; resolved from the local rustup home if None
        interrupt: Flag aborting the clone; defaults to the process-wide flag
        progress: Receives the plain-text milestone before each stage

    Returns:
        The build output that was archived

    Raises:
        ForgeError: If any stage fails
    """
    log = structlog.get_logger(__name__).bind(
        reference=request.reference, target=request.target or "host"
    )
    if toolchain is None:
        toolchain = resolve_toolchain()

    progress("Creating temporary directory...")
    with tempfile.TemporaryDirectory(prefix="ferron-forge-") as temporary_directory:
        log.debug("Temporary workspace created", workspace=temporary_directory)

        progress("Cloning the Git repository...")
        workspace = clone_repository(
            request.repository,
            pathlib.Path(temporary_directory),
            request.reference,
            interrupt=interrupt,
        )
        log.info("Repository cloned", repository=request.repository)

        progress("Compiling Ferron...")
        builder = Builder(
            workspace,
            toolchain=toolchain,
            package=package,
            logger=structlog.get_logger(Builder.__module__).bind(reference=request.reference),
        )
        output = builder.build(target=request.target, modules=request.modules)

        progress("Creating ZIP archive...")
        create_archive(
            output.binaries,
            request.output,
            workspace,
            output.target_triple,
            asset_directory=asset_directory,
        )
        log.info("Archive created", output=str(request.output), binaries=len(output.binaries))

    return output
