"""Command-line interface for Ferron Forge.

Usage:
    ferron-forge -v v1.2.3 -m cache -m cgi -o ferron.zip
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional

import pydantic

from ferron_forge.__version__ import __version__
from ferron_forge.build.config import BuildRequest
from ferron_forge.build.pipeline import run_pipeline
from ferron_forge.core import interrupt
from ferron_forge.core.config_manager import ConfigManager
from ferron_forge.core.logging_manager import LoggingManager
from ferron_forge.utils.exceptions import AcquisitionInterruptedError, ForgeError

logger = logging.getLogger(__name__)

EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser.

    Flags left unset fall back to the settings file, then to built-in defaults.
    """
    parser = argparse.ArgumentParser(
        prog="ferron-forge",
        description="Ferron Forge: a compilation tool for easy compiling of the Ferron web server",
    )
    parser.add_argument("-V", "--version", action="version", version=f"Ferron Forge {__version__}")
    parser.add_argument(
        "-v", "--ferron-version", dest="reference",
        help="The Ferron version or Git reference name to compile (default: main)",
    )
    parser.add_argument(
        "-m", "--modules", action="extend", nargs="+", default=None, metavar="MODULE",
        help="Modules to enable; repeatable, comma-separated lists accepted (default: package defaults)",
    )
    parser.add_argument("-t", "--target", help="Target triple for cross-compilation (default: host)")
    parser.add_argument("-r", "--repository", help="Git repository URL containing Ferron's source code")
    parser.add_argument("-o", "--output", help="Path to the output ZIP archive (default: ferron-custom.zip)")
    parser.add_argument("-c", "--config", help="Path to a YAML or JSON settings file")
    parser.add_argument(
        "--log-level", choices=["debug", "info", "warning", "error", "critical"], type=str.lower,
        help="Logging level",
    )
    parser.add_argument("--log-format", choices=["text", "json"], help="Logging output format")
    return parser


def parse_modules(values: Optional[List[str]]) -> Optional[List[str]]:
    """Flatten repeated and comma-separated ``--modules`` values.

    Returns None when the flag was not given at all, so that package default
    features stay distinct from an explicit selection.
    """
    if values is None:
        return None
    return [module.strip() for value in values for module in value.split(",") if module.strip()]


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point for the command-line interface.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    parsed = build_parser().parse_args(args)

    config_manager = ConfigManager(config_path=parsed.config)
    logging_manager = LoggingManager(config_manager)
    try:
        config_manager.initialize()
        if parsed.log_level:
            config_manager.set("logging.level", parsed.log_level)
            config_manager.set("logging.console.level", parsed.log_level)
        if parsed.log_format:
            config_manager.set("logging.format", parsed.log_format)
        logging_manager.initialize()
    except ForgeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    interrupt.reset()
    interrupt.install_signal_handlers()

    try:
        modules = parse_modules(parsed.modules)
        request = BuildRequest(
            reference=parsed.reference or config_manager.get("forge.reference"),
            modules=tuple(modules) if modules is not None else None,
            target=parsed.target,
            repository=parsed.repository or config_manager.get("forge.repository"),
            output=parsed.output or config_manager.get("forge.output"),
        )

        output = run_pipeline(
            request,
            package=config_manager.get("forge.package"),
            asset_directory=config_manager.get("forge.asset_directory"),
        )

        print(f'Built Ferron for "{output.target_triple}" target successfully!')
        return 0

    except AcquisitionInterruptedError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_INTERRUPTED
    except KeyboardInterrupt:
        print("Error: Interrupted", file=sys.stderr)
        return EXIT_INTERRUPTED
    except pydantic.ValidationError as e:
        print(f"Error: Invalid arguments: {e}", file=sys.stderr)
        return 1
    except ForgeError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.exception("Unexpected error")
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        logging_manager.shutdown()


if __name__ == "__main__":
    sys.exit(main())
