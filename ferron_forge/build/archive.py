"""Assembly of the distributable Ferron ZIP archive.

The archive holds the compiled binaries at its root, a default ``ferron.yaml``
and a mirror of the workspace's ``wwwroot`` directory. It is written to a
temporary file next to the output path and moved into place only once the
ZIP has been finalized, so a failed run never leaves a truncated archive.
"""

from __future__ import annotations

import logging
import os
import pathlib
import shutil
import tempfile
import zipfile
from typing import Iterable, Iterator, Tuple, Union

from ferron_forge.build.builder import BinaryArtifact
from ferron_forge.utils.exceptions import ArchiveError

logger = logging.getLogger(__name__)

CONFIG_ENTRY_NAME = "ferron.yaml"
DEFAULT_CONFIG = "global:\n  wwwroot: wwwroot"
ASSET_DIRECTORY = "wwwroot"

BINARY_MODE = 0o755
FILE_MODE = 0o644
DIRECTORY_MODE = 0o755
ARCHIVE_MODE = 0o644

COPY_BUFFER_SIZE = 1024 * 1024


def archive_comment(target_triple: str) -> str:
    return f'Ferron built for "{target_triple}" target using Ferron Forge'


def _zip_info(name: str, mode: int, is_dir: bool = False) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name)
    info.compress_type = zipfile.ZIP_STORED if is_dir else zipfile.ZIP_DEFLATED
    file_type = 0o040000 if is_dir else 0o100000
    info.external_attr = (file_type | mode) << 16
    if is_dir:
        info.external_attr |= 0x10  # MS-DOS directory flag
    return info


def _write_file(zf: zipfile.ZipFile, source: pathlib.Path, name: str, mode: int) -> None:
    info = _zip_info(name, mode)
    with open(source, "rb") as src, zf.open(info, "w") as dst:
        shutil.copyfileobj(src, dst, COPY_BUFFER_SIZE)


def _has_utf8_name(name: str) -> bool:
    """Whether ``name`` can be stored as a UTF-8 ZIP entry name."""
    try:
        name.encode("utf-8")
    except UnicodeEncodeError:
        logger.debug(f"Skipping entry with a non UTF-8 name: {name!r}")
        return False
    return True


def walk_assets(asset_root: pathlib.Path) -> Iterator[Tuple[pathlib.Path, str, bool]]:
    """Walk ``asset_root`` recursively.

    Yields ``(path, relative_name, is_dir)`` for every directory and regular
    file below the root, with POSIX separators in ``relative_name``. Entries
    are visited in lexicographic order within each directory so that archive
    order is reproducible; consumers must not rely on it nonetheless.

    The root itself is never yielded: its relative path is empty. Symbolic
    links to directories are yielded as directories but not followed. Names
    that are not valid UTF-8 are skipped along with everything below them.
    """
    for root, dirs, files in os.walk(asset_root, onerror=_raise):
        root_path = pathlib.Path(root)
        rel_path = root_path.relative_to(asset_root)
        dirs[:] = sorted(d for d in dirs if _has_utf8_name((rel_path / d).as_posix()))

        if rel_path.parts:
            yield root_path, rel_path.as_posix(), True

        for directory in dirs:
            dir_path = root_path / directory
            if dir_path.is_symlink() and dir_path.is_dir():
                yield dir_path, (rel_path / directory).as_posix(), True

        for file in sorted(files):
            file_path = root_path / file
            name = (rel_path / file).as_posix()
            if file_path.is_file() and _has_utf8_name(name):
                yield file_path, name, False


def _raise(error: OSError) -> None:
    raise error


def write_archive(
        zf: zipfile.ZipFile,
        binaries: Iterable[BinaryArtifact],
        asset_root: pathlib.Path,
        target_triple: str,
) -> None:
    """Write every archive entry and the comment into an open ZIP file."""
    for binary in binaries:
        binary_name = binary.path.name
        if not binary_name:
            # A path with no file name component cannot be an executable
            logger.debug(f"Skipping binary without a file name: {binary.path}")
            continue
        if not _has_utf8_name(binary_name):
            continue
        logger.debug(f"Adding binary {binary_name}")
        _write_file(zf, binary.path, binary_name, BINARY_MODE)

    zf.writestr(_zip_info(CONFIG_ENTRY_NAME, FILE_MODE), DEFAULT_CONFIG.encode("utf-8"))

    for path, name, is_dir in walk_assets(asset_root):
        if is_dir:
            zf.writestr(_zip_info(f"{name}/", DIRECTORY_MODE, is_dir=True), b"")
        else:
            _write_file(zf, path, name, FILE_MODE)

    zf.comment = archive_comment(target_triple).encode("utf-8")


def create_archive(
        binaries: Iterable[BinaryArtifact],
        output_path: Union[str, pathlib.Path],
        workspace: Union[str, pathlib.Path],
        target_triple: str,
        asset_directory: str = ASSET_DIRECTORY,
) -> pathlib.Path:
    """Package the build outputs into a ZIP archive at ``output_path``.

    Args:
        binaries: Binaries to place at the archive root with mode 0755
        output_path: Archive to create; an existing file is replaced
        workspace: Workspace holding the static asset directory
        target_triple: Triple the binaries were built for, used in the comment
        asset_directory: Name of the static asset directory in the workspace

    Returns:
        Path to the created archive

    Raises:
        ArchiveError: If the asset directory is missing, any source file
            cannot be read or the archive cannot be written
    """
    output_path = pathlib.Path(output_path)
    asset_root = pathlib.Path(workspace) / asset_directory

    if not asset_root.is_dir():
        raise ArchiveError(f"Static asset directory not found: {asset_root}", path=str(asset_root))

    try:
        fd, temp_name = tempfile.mkstemp(
            prefix=f".{output_path.name}.", suffix=".tmp", dir=output_path.parent
        )
    except OSError as e:
        raise ArchiveError(f"Failed to create ZIP archive: {e}", path=str(output_path)) from e

    temp_path = pathlib.Path(temp_name)
    try:
        with os.fdopen(fd, "wb") as f:
            with zipfile.ZipFile(f, "w", zipfile.ZIP_DEFLATED) as zf:
                write_archive(zf, binaries, asset_root, target_triple)
        # mkstemp creates the file owner-only
        os.chmod(temp_path, ARCHIVE_MODE)
        os.replace(temp_path, output_path)
    except Exception as e:
        temp_path.unlink(missing_ok=True)
        raise ArchiveError(f"Failed to create ZIP archive: {e}", path=str(output_path)) from e
    except BaseException:
        # Interrupted; the partial archive must not outlive the run
        temp_path.unlink(missing_ok=True)
        raise

    logger.info(f"Created archive {output_path}")
    return output_path
