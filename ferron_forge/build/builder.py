"""Builder for compiling a Ferron workspace with Cargo.

This module contains the Builder class that turns a build request into a
Cargo invocation: it enumerates the workspace members, selects the compile
kind and feature flags, runs a release build and collects the binaries Cargo
reports back.
"""

from __future__ import annotations

import collections
import json
import os
import pathlib
import subprocess
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Optional, Sequence, Tuple, Union

import structlog

from ferron_forge.build.config import DEFAULT_PACKAGE, CompileKind, FeatureSelection
from ferron_forge.build.toolchain import ResolvedToolchain
from ferron_forge.utils.exceptions import BuildError, CompilationError

MANIFEST_NAME = "Cargo.toml"
RELEASE_PROFILE = "release"

# Lines of Cargo output kept for the error raised on a failed build
DIAGNOSTIC_TAIL = 500


@dataclass(frozen=True)
class BinaryArtifact:
    """A binary produced by the build."""

    path: pathlib.Path

    @property
    def file_name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class BuildOutput:
    """Binaries produced by a build and the triple they were built for."""

    binaries: Tuple[BinaryArtifact, ...]
    target_triple: str


@dataclass(frozen=True)
class CompileSpec:
    """Everything Cargo needs to know to run one build."""

    packages: Tuple[str, ...]
    kind: CompileKind = field(default_factory=CompileKind.host)
    features: FeatureSelection = field(default_factory=FeatureSelection)
    profile: str = RELEASE_PROFILE

    def to_cargo_args(self, manifest_path: pathlib.Path) -> List[str]:
        """Convert the compile spec to ``cargo build`` command-line arguments.

        Args:
            manifest_path: Path to the workspace's ``Cargo.toml``

        Returns:
            Arguments following the ``cargo`` executable.
        """
        args = ["build", "--manifest-path", str(manifest_path)]

        if self.profile == RELEASE_PROFILE:
            args.append("--release")
        else:
            args.extend(["--profile", self.profile])

        for package in self.packages:
            args.extend(["--package", package])

        args.extend(self.kind.to_cargo_args())
        args.extend(self.features.to_cargo_args())

        # Diagnostics are rendered as text; artifacts arrive as JSON on stdout
        args.extend(["--message-format", "json-render-diagnostics"])
        return args


class Builder:
    """Builder for compiling a checked-out Ferron workspace.

    Attributes:
        workspace: Root of the checked-out source tree
        toolchain: Rustup settings injected into every Cargo/rustc process
        package: Package owning the feature modules
        logger: Logger instance for build progress
    """

    def __init__(
            self,
            workspace: Union[str, pathlib.Path],
            toolchain: Optional[ResolvedToolchain] = None,
            package: str = DEFAULT_PACKAGE,
            cargo: str = "cargo",
            rustc: str = "rustc",
            logger: Optional[Any] = None,
    ) -> None:
        """Initialize the Builder for a workspace.

        Args:
            workspace: Root of the checked-out source tree
            toolchain: Rustup settings for the build, or None for ambient defaults
            package: Package owning the feature modules
            cargo: Cargo executable
            rustc: rustc executable, used to report the host triple
            logger: Optional logger for build progress
        """
        self.workspace = pathlib.Path(workspace)
        self.toolchain = toolchain
        self.package = package
        self.cargo = cargo
        self.rustc = rustc
        self.logger = logger or structlog.get_logger(__name__)

    def log(self, message: str, level: str = "info", **context: Any) -> None:
        """Log a message with the specified level.

        Args:
            message: Message to log
            level: Log level (info, warning, error, debug)
            **context: Key-value pairs attached to the event
        """
        getattr(self.logger, level)(message, **context)

    @property
    def manifest_path(self) -> pathlib.Path:
        return self.workspace / MANIFEST_NAME

    def environment(self) -> Dict[str, str]:
        """Process environment for Cargo, with the toolchain pinned explicitly."""
        env = dict(os.environ)
        if self.toolchain is not None:
            env.update(self.toolchain.as_environment())
        return env

    def _run(self, args: Sequence[str]) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                list(args),
                cwd=self.workspace,
                env=self.environment(),
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise BuildError(f"Failed to run {args[0]}: {e}", command=" ".join(args)) from e

    def load_workspace_members(self) -> List[str]:
        """Return the name of every package in the workspace.

        Raises:
            BuildError: If the manifest is missing or Cargo cannot read it
        """
        if not self.manifest_path.is_file():
            raise BuildError(f"Manifest not found: {self.manifest_path}", manifest=str(self.manifest_path))

        completed = self._run([
            self.cargo, "metadata",
            "--format-version", "1",
            "--no-deps",
            "--manifest-path", str(self.manifest_path),
        ])
        if completed.returncode != 0:
            raise BuildError(
                f"Failed to load workspace manifest:\n{completed.stderr.strip()}",
                manifest=str(self.manifest_path),
            )

        try:
            metadata = json.loads(completed.stdout)
            names = {package["id"]: package["name"] for package in metadata["packages"]}
            members = [names[member_id] for member_id in metadata["workspace_members"]]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            raise BuildError(f"Unexpected `cargo metadata` output: {e}") from e

        self.log(f"Workspace members: {', '.join(members)}", "debug")
        return members

    def host_triple(self) -> str:
        """Return the host triple reported by ``rustc -vV``.

        Raises:
            BuildError: If rustc fails or reports no host
        """
        completed = self._run([self.rustc, "-vV"])
        if completed.returncode != 0:
            raise BuildError(f"Failed to query rustc:\n{completed.stderr.strip()}")

        for line in completed.stdout.splitlines():
            key, _, value = line.partition(":")
            if key.strip() == "host" and value.strip():
                return value.strip()
        raise BuildError("rustc did not report a host triple")

    def compile_spec(
            self, kind: CompileKind, features: FeatureSelection, members: Sequence[str]
    ) -> CompileSpec:
        """Select every workspace member for a release build."""
        return CompileSpec(packages=tuple(members), kind=kind, features=features)

    def run_cargo(self, spec: CompileSpec) -> List[BinaryArtifact]:
        """Run ``cargo build`` for ``spec`` and collect the produced binaries.

        Cargo's rendered diagnostics are logged line by line as they arrive.

        Returns:
            Binaries in the order Cargo reported them

        Raises:
            CompilationError: If Cargo exits with a non-zero status
        """
        cmd = [self.cargo] + spec.to_cargo_args(self.manifest_path)
        self.log(f"Running cargo with arguments: {' '.join(cmd[1:])}")

        try:
            process = subprocess.Popen(
                cmd,
                cwd=self.workspace,
                env=self.environment(),
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                bufsize=1,
            )
        except OSError as e:
            raise BuildError(f"Failed to run {self.cargo}: {e}", command=" ".join(cmd)) from e

        binaries: List[BinaryArtifact] = []
        diagnostics: Deque[str] = collections.deque(maxlen=DIAGNOSTIC_TAIL)

        assert process.stdout is not None
        for line in process.stdout:
            line = line.rstrip("\n")
            message = self._parse_message(line)
            if message is None:
                diagnostics.append(line)
                self.log(line)
                continue

            if message.get("reason") == "compiler-artifact" and message.get("executable"):
                artifact = BinaryArtifact(pathlib.Path(message["executable"]))
                binaries.append(artifact)
                self.log(f"Built binary {artifact.path}", "debug")

        process.wait()

        if process.returncode != 0:
            raise CompilationError(
                f"Cargo failed with return code {process.returncode}",
                returncode=process.returncode,
                stderr="\n".join(diagnostics),
            )

        return binaries

    @staticmethod
    def _parse_message(line: str) -> Optional[Dict[str, Any]]:
        """Parse a Cargo JSON message; None for human-readable output."""
        if not line.startswith("{"):
            return None
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            return None
        if not isinstance(message, dict) or "reason" not in message:
            return None
        return message

    def resolved_triple(self, kind: CompileKind) -> str:
        """The triple recorded in the archive metadata."""
        if kind.target is None:
            return self.host_triple()
        if kind.target.endswith(".json"):
            return pathlib.Path(kind.target).stem
        return kind.target

    def build(
            self, target: Optional[str] = None, modules: Optional[Sequence[str]] = None
    ) -> BuildOutput:
        """Compile the workspace for a release.

        This is the main entry point for the build process.

        Args:
            target: Target triple, or None to build for the host
            modules: Feature modules to enable, or None for default features

        Returns:
            The produced binaries and the triple they were built for

        Raises:
            InvalidTargetError: If the target triple is malformed
            BuildError: If the build fails for any reason
        """
        kind = CompileKind.from_request(target)
        features = FeatureSelection.from_modules(modules, self.package)

        target_name = kind.target or "host"
        self.log(
            "Compiling workspace",
            target=target_name,
            features="defaults" if features.uses_default_features else ",".join(features.flags),
        )

        members = self.load_workspace_members()
        spec = self.compile_spec(kind, features, members)
        binaries = self.run_cargo(spec)
        triple = self.resolved_triple(kind)

        self.log("Build completed successfully", target=target_name, target_triple=triple, binaries=len(binaries))
        return BuildOutput(binaries=tuple(binaries), target_triple=triple)


def compile_workspace(
        workspace: Union[str, pathlib.Path],
        target: Optional[str] = None,
        modules: Optional[Sequence[str]] = None,
        toolchain: Optional[ResolvedToolchain] = None,
        package: str = DEFAULT_PACKAGE,
) -> BuildOutput:
    """Compile the Ferron workspace at ``workspace``.

    Args:
        workspace: Root of the checked-out source tree
        target: Target triple, or None to build for the host
        modules: Feature modules to enable, or None for default features
        toolchain: Rustup settings for the build
        package: Package owning the feature modules

    Returns:
        The produced binaries and the triple they were built for
    """
    return Builder(workspace, toolchain=toolchain, package=package).build(target=target, modules=modules)
