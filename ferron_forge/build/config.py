"""Build configuration for Ferron Forge.

This module contains the request model built from user input, and the
compile kind and feature selection derived from it before Cargo is invoked.
"""

from __future__ import annotations

import pathlib
import re
from dataclasses import dataclass, field
from typing import FrozenSet, List, Optional, Sequence, Tuple

import pydantic

from ferron_forge.core.config_manager import DEFAULT_REPOSITORY
from ferron_forge.utils.exceptions import InvalidTargetError

DEFAULT_PACKAGE = "ferron"

# arch-[vendor-]os[-env], e.g. wasm32-wasip1 or x86_64-unknown-linux-gnu
TARGET_TRIPLE_PATTERN = re.compile(r"^[A-Za-z0-9_.]+(-[A-Za-z0-9_.]+){1,3}$")
FEATURE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_\-+.]*$")


class BuildRequest(pydantic.BaseModel):
    """What the user asked Ferron Forge to build.

    Constructed once from command-line input and never mutated.

    Attributes:
        reference: Git branch, tag or commit-like name to check out
        modules: Feature modules to enable, in the order given; ``None`` keeps
            the package's default features
        target: Target triple for cross-compilation; ``None`` builds for the host
        repository: Git repository URL containing Ferron's source code
        output: Path of the ZIP archive to produce
    """

    model_config = pydantic.ConfigDict(frozen=True)

    reference: str = "main"
    modules: Optional[Tuple[str, ...]] = None
    target: Optional[str] = None
    repository: str = DEFAULT_REPOSITORY
    output: pathlib.Path = pathlib.Path("ferron-custom.zip")

    @pydantic.field_validator("reference", "repository")
    @classmethod
    def validate_not_empty(cls, v: str, info: pydantic.ValidationInfo) -> str:
        """Reject empty reference and repository values."""
        if not v or not v.strip():
            raise ValueError(f"{info.field_name} must not be empty")
        return v.strip()

    @pydantic.field_validator("modules")
    @classmethod
    def validate_modules(cls, v: Optional[Tuple[str, ...]]) -> Optional[Tuple[str, ...]]:
        """Validate module names; they become ``<package>/<module>`` feature flags."""
        if v is None:
            return None
        for module in v:
            if not FEATURE_NAME_PATTERN.match(module):
                raise ValueError(f"Invalid module name: {module!r}")
        return tuple(v)


@dataclass(frozen=True)
class CompileKind:
    """Whether a build targets the host or an explicit target triple."""

    target: Optional[str] = None

    @classmethod
    def host(cls) -> CompileKind:
        return cls()

    @classmethod
    def for_target(cls, triple: str) -> CompileKind:
        """Create a cross-compilation kind, validating the triple first.

        Args:
            triple: A target triple, or a path to a custom ``.json`` target spec.

        Returns:
            CompileKind for the given target.

        Raises:
            InvalidTargetError: If the triple is empty or malformed.
        """
        name = (triple or "").strip()
        if not name:
            raise InvalidTargetError("Target was empty", target=triple)

        if name.endswith(".json"):
            spec_path = pathlib.Path(name)
            if not spec_path.is_file():
                raise InvalidTargetError(f"Target path {name!r} is not a valid file", target=triple)
            return cls(target=str(spec_path.resolve()))

        if not TARGET_TRIPLE_PATTERN.match(name):
            raise InvalidTargetError(f"Invalid target triple: {name!r}", target=triple)
        return cls(target=name)

    @classmethod
    def from_request(cls, target: Optional[str]) -> CompileKind:
        """Host when no target is given, otherwise the parsed target."""
        if target is None:
            return cls.host()
        return cls.for_target(target)

    @property
    def is_host(self) -> bool:
        return self.target is None

    def to_cargo_args(self) -> List[str]:
        if self.target is None:
            return []
        return ["--target", self.target]


@dataclass(frozen=True)
class FeatureSelection:
    """The feature flags passed to Cargo.

    "Use default features" and "explicit flags" are distinct states: only a
    non-empty module list disables the package's default features.
    """

    flags: Tuple[str, ...] = field(default_factory=tuple)
    uses_default_features: bool = True

    @classmethod
    def from_modules(
            cls, modules: Optional[Sequence[str]], package: str = DEFAULT_PACKAGE
    ) -> FeatureSelection:
        """Translate module names into ``<package>/<module>`` feature flags.

        Args:
            modules: Module names, or ``None`` when none were requested.
            package: Name of the package owning the features.

        Returns:
            Default features for ``None`` or an empty list, otherwise the
            explicit flags in the order first given.
        """
        if not modules:
            return cls()
        flags = tuple(dict.fromkeys(f"{package}/{module}" for module in modules))
        return cls(flags=flags, uses_default_features=False)

    @property
    def features(self) -> FrozenSet[str]:
        return frozenset(self.flags)

    def to_cargo_args(self) -> List[str]:
        if self.uses_default_features:
            return []
        return ["--no-default-features", "--features", ",".join(self.flags)]
