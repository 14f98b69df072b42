import asyncio
from asyncio import create_subprocess_exec

import logging
import os
import shutil
from collections.abc import Awaitable, Mapping
from pathlib import Path
from subprocess import DEVNULL, PIPE
from typing import Any

from checkrelay.exceptions import CommandError
from checkrelay.schemas import StageResult

logger = logging.getLogger(__name__)


def get_bin(name: str) -> str:
    abspath = shutil.which(name)
    if abspath and Path(abspath).is_symlink():
        return os.path.realpath(abspath)
    return abspath or name


GIT = get_bin('git')


def build_env(extra: Mapping[str, str] | None = None) -> dict[str, str]:
    env = dict(os.environ)
    if extra:
        env |= extra
    return env


async def async_run(
    *args: str | Path,
    cwd: Path | str,
    env: Mapping[str, str] | None = None,
) -> StageResult:
    """Run a command to completion, capturing its output.

    A nonzero exit code is returned, not raised.
    """
    logger.debug(f'Running {args} in {cwd}')
    try:
        p = await create_subprocess_exec(
            *args,
            cwd=cwd,
            stdin=DEVNULL,
            stdout=PIPE,
            stderr=PIPE,
            env=build_env(env),
        )
    except (FileNotFoundError, PermissionError) as e:
        # Same code a shell reports for a missing command
        return StageResult(exit_code=127, stdout='', stderr=f'{e}\n')
    stdout, stderr = await p.communicate()
    return StageResult(
        exit_code=p.returncode,
        stdout=stdout.decode(errors='replace'),
        stderr=stderr.decode(errors='replace'),
    )


async def async_check_output(
    *args: str | Path,
    cwd: Path | str,
    env: Mapping[str, str] | None = None,
) -> str:
    result = await async_run(*args, cwd=cwd, env=env)
    if not result.ok:
        logger.error(f'Process exited with code {result.exit_code}')
        raise CommandError(args, result.exit_code, result.output)
    return result.stdout


async def join(*aws: Awaitable[Any]) -> list[Any]:
    """Await all of `aws` concurrently and re-raise the first failure.

    Every awaitable runs to completion before this returns or raises.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


class RunLogAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        return f'[{self.extra["label"]}] {msg}', kwargs
