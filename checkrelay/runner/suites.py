import asyncio
import logging
import shutil
import weakref
from pathlib import Path

from checkrelay.config import config
from checkrelay.exceptions import TestSetupError
from checkrelay.schemas import RunIdentity, StageResult, SuiteResults, TreePaths
from checkrelay.utils import RunLogAdapter, async_run

logger = logging.getLogger(__name__)

_db_locks: 'weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, asyncio.Lock]' = (
    weakref.WeakKeyDictionary()
)


def database_lock() -> asyncio.Lock:
    """Lock serializing use of the shared test database within this process."""
    loop = asyncio.get_running_loop()
    if (lock := _db_locks.get(loop)) is None:
        lock = _db_locks[loop] = asyncio.Lock()
    return lock


class SuiteRunner:
    async def run(self, trees: TreePaths, identity: RunIdentity) -> SuiteResults:
        log = RunLogAdapter(logger, {'label': identity.label})
        async with database_lock():
            log.info('Setting up tests...')
            await self.setup(trees.companion_path)

            log.info(f'Executing {config.server_suite_name}...')
            server = await self.run_server_suite(trees)
            log.info(f'Executing {config.client_suite_name}...')
            client = await self.run_client_suite(trees)
        return SuiteResults(server=server, client=client)

    async def setup(self, cwd: Path):
        result = await async_run(
            *config.test_env_install_command,
            config.db_name,
            config.db_user,
            config.db_password,
            config.db_host,
            cwd=cwd,
        )
        if not result.ok:
            raise TestSetupError(
                f'Cannot install the test environment: exit code {result.exit_code}',
                result.output,
            )

        # A previously installed copy would be tested instead of the fresh build
        try:
            await asyncio.to_thread(shutil.rmtree, config.stale_plugin_dir)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise TestSetupError(f'Cannot remove {config.stale_plugin_dir}: {e}')

        if not (cwd / config.server_runner_path).exists():
            result = await async_run(*config.server_runner_install_command, cwd=cwd)
            if not result.ok:
                raise TestSetupError(
                    f'Cannot install {config.server_suite_name}: '
                    f'exit code {result.exit_code}',
                    result.output,
                )

    async def run_server_suite(self, trees: TreePaths) -> StageResult:
        return await async_run(
            *config.server_suite_command,
            cwd=trees.companion_path,
            env={
                config.server_suite_env_var: str(
                    trees.core_path / config.core_entrypoint
                ),
            },
        )

    async def run_client_suite(self, trees: TreePaths) -> StageResult:
        return await async_run(*config.client_suite_command, cwd=trees.companion_path)
