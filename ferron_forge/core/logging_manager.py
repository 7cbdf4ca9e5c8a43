from __future__ import annotations

import logging
import logging.handlers
import os
import pathlib
import sys
from typing import Any, Dict, List, Optional, Union

import structlog
from pythonjsonlogger import jsonlogger

from ferron_forge.core.base import ForgeManager
from ferron_forge.utils.exceptions import ManagerInitializationError, ManagerShutdownError


class LoggingManager(ForgeManager):
    """Manages logging configuration for a Ferron Forge run.

    Configures Python's logging module with a console handler and an optional
    rotating file handler, in either plain text or JSON format. structlog is
    configured on top of the standard library so that build stages can emit
    events with bound context: as JSON fields, or as trailing ``key=value``
    pairs in text mode.
    """

    # Mapping from string log levels to logging module constants
    LOG_LEVELS = {
        "debug": logging.DEBUG,
        "info": logging.INFO,
        "warning": logging.WARNING,
        "error": logging.ERROR,
        "critical": logging.CRITICAL,
    }

    def __init__(self, config_manager: Any) -> None:
        """Initialize the Logging Manager.

        Args:
            config_manager: The Configuration Manager to use for logging settings.
        """
        super().__init__(name="logging_manager")
        self._config_manager = config_manager
        self._root_logger: Optional[logging.Logger] = None
        self._file_handler: Optional[logging.Handler] = None
        self._console_handler: Optional[logging.Handler] = None
        self._log_directory: Optional[pathlib.Path] = None
        self._json_output = False
        self._handlers: List[logging.Handler] = []

    def initialize(self) -> None:
        """Set up logging handlers from the ``logging`` configuration section.

        Raises:
            ManagerInitializationError: If initialization fails.
        """
        try:
            logging_config = self._config_manager.get("logging", {})
            log_level = self._parse_level(logging_config.get("level", "INFO"))
            log_format = str(logging_config.get("format", "text")).lower()
            file_config = logging_config.get("file", {})
            console_config = logging_config.get("console", {})

            self._root_logger = logging.getLogger()
            self._root_logger.setLevel(log_level)

            for handler in list(self._root_logger.handlers):
                self._root_logger.removeHandler(handler)

            if log_format == "json":
                self._json_output = True
                formatter = self._create_json_formatter()
            else:
                formatter = logging.Formatter(
                    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
                )

            # Console output goes to stderr; stdout carries progress milestones
            if console_config.get("enabled", True):
                self._console_handler = logging.StreamHandler(sys.stderr)
                self._console_handler.setLevel(
                    self._parse_level(console_config.get("level", logging_config.get("level", "INFO")))
                )
                self._console_handler.setFormatter(formatter)
                self._root_logger.addHandler(self._console_handler)
                self._handlers.append(self._console_handler)

            if file_config.get("enabled", False):
                file_path = pathlib.Path(file_config.get("path", "logs/ferron-forge.log"))
                self._log_directory = file_path.parent
                os.makedirs(self._log_directory, exist_ok=True)

                rotation = file_config.get("rotation", "10 MB")
                retention = file_config.get("retention", "5 days")

                # Parse rotation (e.g., "10 MB")
                if isinstance(rotation, str) and "MB" in rotation:
                    max_bytes = int(rotation.split()[0]) * 1024 * 1024
                else:
                    max_bytes = 10 * 1024 * 1024

                # Parse retention (e.g., "5 days")
                if isinstance(retention, str) and "days" in retention:
                    backup_count = int(retention.split()[0])
                else:
                    backup_count = 5

                self._file_handler = logging.handlers.RotatingFileHandler(
                    file_path,
                    maxBytes=max_bytes,
                    backupCount=backup_count,
                )
                self._file_handler.setLevel(log_level)
                self._file_handler.setFormatter(formatter)
                self._root_logger.addHandler(self._file_handler)
                self._handlers.append(self._file_handler)

            self._configure_structlog()

            self._root_logger.debug(
                "Logging Manager initialized",
                extra={"manager": "LoggingManager", "event": "initialization"},
            )

            self._initialized = True
            self._healthy = True

        except Exception as e:
            raise ManagerInitializationError(
                f"Failed to initialize LoggingManager: {str(e)}",
                manager_name=self.name,
            ) from e

    def _parse_level(self, level: Union[str, int]) -> int:
        if isinstance(level, int):
            return level
        return self.LOG_LEVELS.get(str(level).lower(), logging.INFO)

    def _create_json_formatter(self) -> logging.Formatter:
        """Create a JSON formatter for log records.

        Returns:
            logging.Formatter: A formatter that outputs logs in JSON format.
        """
        return jsonlogger.JsonFormatter(
            fmt="%(asctime)s %(name)s %(levelname)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S%z",
            json_ensure_ascii=False,
        )

    def _configure_structlog(self) -> None:
        """Configure structlog to hand its events to the standard library handlers."""
        if self._json_output:
            processors = [
                structlog.stdlib.filter_by_level,
                structlog.processors.TimeStamper(fmt="iso"),
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.StackInfoRenderer(),
                structlog.processors.format_exc_info,
                structlog.processors.UnicodeDecoder(),
                structlog.stdlib.render_to_log_kwargs,
            ]
        else:
            # The text formatter supplies time, logger and level
            processors = [
                structlog.stdlib.filter_by_level,
                structlog.processors.StackInfoRenderer(),
                structlog.dev.ConsoleRenderer(colors=False),
            ]

        structlog.configure(
            processors=processors,
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )

    def get_logger(self, name: str) -> Union[logging.Logger, Any]:
        """Get a logger for a specific component.

        Args:
            name: The name of the component requesting a logger.

        Returns:
            A structlog logger once initialized, otherwise a standard library
            logger.
        """
        if not self._initialized:
            return logging.getLogger(name)
        return structlog.get_logger(name)

    def shutdown(self) -> None:
        """Flush and close every handler this manager installed.

        Raises:
            ManagerShutdownError: If shutdown fails.
        """
        if not self._initialized:
            return

        try:
            for handler in self._handlers:
                if self._root_logger:
                    self._root_logger.removeHandler(handler)
                handler.flush()
                handler.close()
            self._handlers = []

            structlog.reset_defaults()
            self._json_output = False

            self._initialized = False
            self._healthy = False

        except Exception as e:
            raise ManagerShutdownError(
                f"Failed to shut down LoggingManager: {str(e)}",
                manager_name=self.name,
            ) from e

    def status(self) -> Dict[str, Any]:
        """Get the status of the Logging Manager.

        Returns:
            Dict[str, Any]: Status information about the Logging Manager.
        """
        status = super().status()

        if self._initialized:
            status.update(
                {
                    "log_directory": str(self._log_directory)
                    if self._log_directory
                    else None,
                    "handlers": {
                        "console": self._console_handler is not None,
                        "file": self._file_handler is not None,
                    },
                    "structured_logging": self._json_output,
                }
            )

        return status
