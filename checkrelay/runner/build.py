import logging
from pathlib import Path

from checkrelay.config import config
from checkrelay.exceptions import BuildError
from checkrelay.schemas import TreePaths
from checkrelay.utils import async_run, join

logger = logging.getLogger(__name__)


class BuildRunner:
    async def build(self, trees: TreePaths):
        await join(
            self._build_tree(trees.companion_path),
            self._build_tree(trees.core_path),
        )

    async def _build_tree(self, path: Path):
        for command in config.build_commands:
            result = await async_run(*command, cwd=path)
            if not result.ok:
                logger.error(
                    f'{" ".join(command)} failed in {path.name} '
                    f'with code {result.exit_code}'
                )
                raise BuildError(
                    f'Cannot build {path.name}: {" ".join(command)} '
                    f'exited with code {result.exit_code}',
                    result.output,
                )
