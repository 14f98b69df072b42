import asyncio
import logging
import shutil
import threading
from contextlib import asynccontextmanager
from pathlib import Path
from time import time

from checkrelay.exceptions import WorkspaceError
from checkrelay.schemas import RunIdentity

logger = logging.getLogger(__name__)

# Paths owned by runs that have not been released yet
_live: set[Path] = set()
_live_lock = threading.Lock()


def workspace_path(identity: RunIdentity, root: Path, stamp: int) -> Path:
    return root / f'{stamp}-{identity.commit_sha}'


def _reserve(identity: RunIdentity, root: Path) -> Path:
    stamp = int(time() * 1000)
    with _live_lock:
        while (path := workspace_path(identity, root, stamp)) in _live:
            stamp += 1
        _live.add(path)
    return path


def allocate(identity: RunIdentity, root: Path) -> Path:
    path = _reserve(identity, root)
    try:
        # Left over from a run that died without cleaning up
        if path.exists():
            shutil.rmtree(path)
        path.mkdir(parents=True)
    except OSError as e:
        with _live_lock:
            _live.discard(path)
        raise WorkspaceError(f'Cannot create working directory {path}: {e}')
    logger.debug(f'Allocated workspace {path}')
    return path


def release(path: Path):
    try:
        shutil.rmtree(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f'Cannot remove workspace {path}: {e}')
        return
    finally:
        with _live_lock:
            _live.discard(path)
    logger.debug(f'Released workspace {path}')


@asynccontextmanager
async def workspace(identity: RunIdentity, root: Path):
    path = await asyncio.to_thread(allocate, identity, root)
    try:
        yield path
    finally:
        await asyncio.to_thread(release, path)
