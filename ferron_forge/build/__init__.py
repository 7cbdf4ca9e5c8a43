"""Build pipeline for Ferron Forge.

This package clones the Ferron sources, compiles them with Cargo and packages
the result into a distributable ZIP archive.

Modules:
    toolchain: Discovery of the default rustup toolchain
    repository: Cloning and checking out the source repository
    config: Build request, compile kind and feature selection
    builder: Core builder class driving Cargo
    archive: ZIP archive assembly
    pipeline: The end-to-end clone, compile and package run
    cli: Command-line interface for the build pipeline
"""

from __future__ import annotations

from ferron_forge.build.archive import create_archive
from ferron_forge.build.builder import BinaryArtifact, Builder, BuildOutput, CompileSpec, compile_workspace
from ferron_forge.build.config import BuildRequest, CompileKind, FeatureSelection
from ferron_forge.build.pipeline import run_pipeline
from ferron_forge.build.repository import clone_repository
from ferron_forge.build.toolchain import ResolvedToolchain, resolve_toolchain

__all__ = [
    "BinaryArtifact",
    "Builder",
    "BuildOutput",
    "BuildRequest",
    "CompileKind",
    "CompileSpec",
    "FeatureSelection",
    "ResolvedToolchain",
    "clone_repository",
    "compile_workspace",
    "create_archive",
    "resolve_toolchain",
    "run_pipeline",
]
