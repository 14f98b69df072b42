import logging
from base64 import b64encode
from pathlib import Path

from checkrelay.config import config
from checkrelay.exceptions import CommandError, FetchError
from checkrelay.schemas import RunIdentity, TreePaths
from checkrelay.utils import GIT, RunLogAdapter, async_check_output, join

logger = logging.getLogger(__name__)


def git_auth_env(token: str, host: str = 'https://github.com/') -> dict[str, str]:
    """Environment that makes git send `token` as basic auth to `host`.

    Keeps the credential out of the command line and the remote URL.
    """
    env = {'GIT_TERMINAL_PROMPT': '0'}
    if not token:
        return env
    basic = b64encode(f'x-access-token:{token}'.encode()).decode()
    env |= {
        'GIT_CONFIG_COUNT': '1',
        'GIT_CONFIG_KEY_0': f'http.{host}.extraheader',
        'GIT_CONFIG_VALUE_0': f'AUTHORIZATION: basic {basic}',
    }
    return env


async def shallow_clone(url: str, branch: str, dest: Path, env: dict[str, str]):
    await async_check_output(
        GIT,
        'clone',
        '--depth',
        '1',
        '--single-branch',
        '--branch',
        branch,
        '--',
        url,
        dest.name,
        cwd=dest.parent,
        env=env,
    )


async def pin_commit(repo_path: Path, commit_sha: str, env: dict[str, str]):
    """Check out exactly `commit_sha`, even if the branch moved since cloning."""
    head = (await async_check_output(GIT, 'rev-parse', 'HEAD', cwd=repo_path)).strip()
    if head != commit_sha:
        await async_check_output(
            GIT,
            'fetch',
            '--depth',
            '1',
            'origin',
            commit_sha,
            cwd=repo_path,
            env=env,
        )
    await async_check_output(
        GIT,
        'switch',
        '-d',
        commit_sha,
        cwd=repo_path,
    )


class SourceFetcher:
    async def fetch(self, workspace: Path, identity: RunIdentity) -> TreePaths:
        log = RunLogAdapter(logger, {'label': identity.label})
        trees = TreePaths(
            core_path=workspace / config.core_dir_name,
            companion_path=workspace / config.companion_dir_name,
        )
        try:
            await join(
                self._fetch_core(trees.core_path, identity),
                self._fetch_companion(trees.companion_path),
            )
        except CommandError as e:
            log.error(f'Clone failed: {e}')
            raise FetchError(f'Cannot clone repos: {e}', e.output)
        log.info(f'Cloned {identity.clone_url}@{identity.commit_sha}')
        return trees

    async def _fetch_core(self, path: Path, identity: RunIdentity):
        env = git_auth_env('')
        await shallow_clone(identity.clone_url, identity.ref, path, env)
        await pin_commit(path, identity.commit_sha, env)

    async def _fetch_companion(self, path: Path):
        await shallow_clone(
            config.companion_clone_url,
            config.companion_branch,
            path,
            git_auth_env(config.access_token),
        )
