"""Utility functions and classes for Ferron Forge."""

from ferron_forge.utils.exceptions import (
    AcquisitionError,
    AcquisitionInterruptedError,
    ArchiveError,
    BuildError,
    CompilationError,
    ConfigurationError,
    ForgeError,
    InvalidTargetError,
    ManagerError,
    ManagerInitializationError,
    ManagerShutdownError,
    ToolchainError,
    ToolchainNotFoundError,
)
