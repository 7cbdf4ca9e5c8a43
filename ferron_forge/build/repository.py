"""Acquisition of the Ferron source tree from a git repository."""

from __future__ import annotations

import logging
import pathlib
import threading
from typing import Any, Callable, Optional, Union

from git import GitCommandError, Repo

from ferron_forge.core.interrupt import IS_INTERRUPTED
from ferron_forge.utils.exceptions import AcquisitionError, AcquisitionInterruptedError

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.1


def clone_repository(
        url: str,
        target_dir: Union[str, pathlib.Path],
        reference: str,
        interrupt: Optional[threading.Event] = None,
) -> pathlib.Path:
    """Clone ``url`` into ``target_dir`` and check out ``reference``.

    The reference is resolved and fetched before any working tree file is
    written, then checked out as a detached HEAD. Branches, tags and commit
    hashes the remote is willing to serve are all accepted.

    Args:
        url: Git repository URL
        target_dir: Directory to clone into; must not already hold a repository
        reference: Branch, tag or commit-like name
        interrupt: Flag that aborts the clone when set; defaults to the
            process-wide interrupt flag

    Returns:
        Path to the populated working tree

    Raises:
        AcquisitionInterruptedError: If ``interrupt`` is set mid-clone
        AcquisitionError: On any other git failure; there is no retry
    """
    interrupt = interrupt if interrupt is not None else IS_INTERRUPTED
    target = pathlib.Path(target_dir)

    if (target / ".git").exists():
        raise AcquisitionError(
            f"Target directory already contains a repository: {target}",
            repository=url,
            reference=reference,
        )

    def run(start: Callable[[], Any]) -> None:
        _run_interruptible(start, interrupt, url=url, reference=reference)

    try:
        repo = Repo.init(target)
        repo.create_remote("origin", url)

        logger.info(f"Fetching {reference} from {url}")
        run(lambda: repo.git.fetch("origin", reference, quiet=True, as_process=True))

        logger.info(f"Checking out {reference}")
        run(lambda: repo.git.checkout("FETCH_HEAD", detach=True, quiet=True, as_process=True))
    except GitCommandError as e:
        stderr = (e.stderr or "").strip()
        raise AcquisitionError(
            f"Failed to clone {url} at {reference!r}: {stderr or e}",
            repository=url,
            reference=reference,
            status=e.status,
        ) from e

    if repo.working_tree_dir is None:
        raise AcquisitionError(
            "Workspace directory not found",
            repository=url,
            reference=reference,
        )

    workdir = pathlib.Path(repo.working_tree_dir)
    logger.debug(f"Checked out {reference} at {repo.head.commit.hexsha} into {workdir}")
    return workdir


def _run_interruptible(
        start: Callable[[], Any], interrupt: threading.Event, *, url: str, reference: str
) -> None:
    """Start a git process and wait for it, terminating it once ``interrupt`` is set.

    Raises:
        GitCommandError: If git exits with a non-zero status
        AcquisitionInterruptedError: If ``interrupt`` was set first
    """

    def interrupted() -> AcquisitionInterruptedError:
        return AcquisitionInterruptedError("Clone interrupted", repository=url, reference=reference)

    if interrupt.is_set():
        raise interrupted()

    process = start()
    while process.proc.poll() is None:
        if interrupt.wait(POLL_INTERVAL):
            process.proc.terminate()
            process.proc.wait()
            raise interrupted()
    process.wait()
