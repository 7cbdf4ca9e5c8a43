from __future__ import annotations

from typing import Any, Dict, Optional


class ForgeError(Exception):
    """Base exception for all Ferron Forge errors."""

    def __init__(
            self,
            message: str,
            *,
            code: Optional[str] = None,
            details: Optional[Dict[str, Any]] = None,
            **kwargs: Any
    ) -> None:
        """
        Initialize exception.

        Args:
            message: Error message
            code: Machine-readable error code, defaults to the class name
            details: Additional error information
            **kwargs: Additional error information merged into ``details``
        """
        self.message = message
        self.code = code or self.__class__.__name__
        self.details: Dict[str, Any] = dict(details or {})
        self.details.update({key: value for key, value in kwargs.items() if value is not None})
        super().__init__(message)

    def __str__(self) -> str:
        """String representation."""
        return f"{self.message}"


class ConfigurationError(ForgeError):
    """Exception raised for configuration-related errors."""

    def __init__(
            self, message: str, *, config_key: Optional[str] = None, **kwargs: Any
    ) -> None:
        """Initialize a ConfigurationError.

        Args:
            message: A descriptive error message.
            config_key: The configuration key that caused the error.
            **kwargs: Additional keyword arguments stored as details.
        """
        super().__init__(message, config_key=config_key, **kwargs)


class ToolchainError(ForgeError):
    """Exception raised when the rustup settings cannot be read or parsed."""

    def __init__(
            self, message: str, *, settings_path: Optional[str] = None, **kwargs: Any
    ) -> None:
        super().__init__(message, settings_path=settings_path, **kwargs)


class ToolchainNotFoundError(ToolchainError):
    """Exception raised when the rustup settings name no default toolchain."""

    pass


class AcquisitionError(ForgeError):
    """Exception raised when the source repository cannot be cloned or checked out."""

    def __init__(
            self,
            message: str,
            *,
            repository: Optional[str] = None,
            reference: Optional[str] = None,
            **kwargs: Any
    ) -> None:
        """Initialize an AcquisitionError.

        Args:
            message: A descriptive error message.
            repository: URL of the repository being cloned.
            reference: Git reference being checked out.
            **kwargs: Additional keyword arguments stored as details.
        """
        super().__init__(message, repository=repository, reference=reference, **kwargs)


class AcquisitionInterruptedError(AcquisitionError):
    """Exception raised when an interrupt is requested during a clone."""

    pass


class BuildError(ForgeError):
    """Exception raised for errors during the build process."""

    pass


class InvalidTargetError(BuildError):
    """Exception raised when a target triple cannot be parsed."""

    def __init__(self, message: str, *, target: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, target=target, **kwargs)


class CompilationError(BuildError):
    """Exception raised when Cargo reports a failed compilation."""

    def __init__(
            self,
            message: str,
            *,
            returncode: Optional[int] = None,
            stderr: Optional[str] = None,
            **kwargs: Any
    ) -> None:
        """Initialize a CompilationError.

        Args:
            message: A descriptive error message.
            returncode: Exit status of the failed Cargo process.
            stderr: Diagnostic output produced by Cargo, passed through verbatim.
            **kwargs: Additional keyword arguments stored as details.
        """
        super().__init__(message, returncode=returncode, stderr=stderr, **kwargs)
        self.returncode = returncode
        self.stderr = stderr

    def __str__(self) -> str:
        """String representation."""
        if self.stderr:
            return f"{self.message}\n{self.stderr}"
        return super().__str__()


class ArchiveError(ForgeError):
    """Exception raised when the output archive cannot be written."""

    def __init__(self, message: str, *, path: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message, path=path, **kwargs)


class ManagerError(ForgeError):
    """Base exception for manager-related errors."""

    def __init__(self, message: str, manager_name: Optional[str] = None, **kwargs: Any) -> None:
        """
        Initialize manager error.

        Args:
            message: Error message
            manager_name: Name of the affected manager
            **kwargs: Additional error information
        """
        super().__init__(message, manager_name=manager_name, **kwargs)
        self.manager_name = manager_name


class ManagerInitializationError(ManagerError):
    """Exception raised when a manager fails to initialize."""

    pass


class ManagerShutdownError(ManagerError):
    """Exception raised when a manager fails to shut down cleanly."""

    pass
