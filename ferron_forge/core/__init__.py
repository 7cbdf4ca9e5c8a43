"""Core package containing configuration, logging and interrupt handling."""

from ferron_forge.core.base import ForgeManager
from ferron_forge.core.config_manager import ConfigManager, ConfigSchema
from ferron_forge.core.logging_manager import LoggingManager
