from collections.abc import Callable
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from checkrelay.config import config
from checkrelay.github import ChecksClient
from checkrelay.reporter import StatusReporter
from checkrelay.schemas import RunIdentity, StageResult
from checkrelay.slack import SlackNotifier

COMMIT_SHA = '3f786850e387550fdab836ed7e6dc881de23001b'
SLACK_URL = 'https://acme.slack.com/archives/C123/p1700000000000100'


def make_identity(commit_sha: str = COMMIT_SHA, ref: str = 'feature/widgets') -> RunIdentity:
    return RunIdentity(
        commit_sha=commit_sha,
        ref=ref,
        owner='octo',
        repo='elementor',
        clone_url='https://github.com/octo/elementor.git',
        label=f'octo:{ref}',
        check_owner='elementor',
        check_repo='elementor',
        installation_id=42,
    )


@pytest.fixture
def identity() -> RunIdentity:
    return make_identity()


@pytest.fixture
def workdir_root(tmp_path: Path, monkeypatch) -> Path:
    root = tmp_path / 'runs'
    monkeypatch.setattr(config, 'workdir_root', root)
    return root


@pytest.fixture(autouse=True)
def relay_config(tmp_path: Path, monkeypatch):
    monkeypatch.setattr(config, 'slack_token', 'xoxb-test')
    monkeypatch.setattr(config, 'slack_channel', 'C123')
    monkeypatch.setattr(config, 'slack_workspace', 'acme')
    monkeypatch.setattr(config, 'access_token', 'companion-secret')
    monkeypatch.setattr(config, 'stale_plugin_dir', tmp_path / 'wordpress' / 'elementor')
    monkeypatch.setattr(config, 'gh_token', None)
    return config


class FakeCommands:
    """Stands in for `async_run`, recording every command it receives."""

    calls: list[tuple[tuple[str, ...], Path, dict | None]]
    _rules: list[tuple[tuple[str, ...], StageResult | Callable[..., StageResult]]]

    def __init__(self):
        self.calls = []
        self._rules = []

    def on(self, *prefix: str, exit_code: int = 0, stdout: str = '', stderr: str = ''):
        self._rules.append(
            (prefix, StageResult(exit_code=exit_code, stdout=stdout, stderr=stderr))
        )

    def on_call(self, *prefix: str, handler: Callable[..., StageResult]):
        self._rules.append((prefix, handler))

    async def __call__(self, *args, cwd, env=None) -> StageResult:
        args = tuple(str(x) for x in args)
        self.calls.append((args, Path(cwd), env))
        for prefix, result in reversed(self._rules):
            if args[: len(prefix)] == prefix:
                if callable(result):
                    return result(args, Path(cwd), env)
                return result
        return StageResult(exit_code=0, stdout='', stderr='')

    @property
    def commands(self) -> list[tuple[str, ...]]:
        return [args for args, _, _ in self.calls]


@pytest.fixture
def commands(monkeypatch) -> FakeCommands:
    fake = FakeCommands()
    monkeypatch.setattr('checkrelay.utils.async_run', fake)
    monkeypatch.setattr('checkrelay.runner.build.async_run', fake)
    monkeypatch.setattr('checkrelay.runner.suites.async_run', fake)
    monkeypatch.setattr('checkrelay.runner.fetch.GIT', 'git')
    return fake


@pytest.fixture
def checks() -> AsyncMock:
    checks = AsyncMock(spec=ChecksClient)
    checks.create.return_value = {'id': 7}
    checks.update.return_value = {'id': 7}
    return checks


@pytest.fixture
def notifier() -> AsyncMock:
    notifier = AsyncMock(spec=SlackNotifier)
    notifier.post_message.return_value = SLACK_URL
    return notifier


@pytest.fixture
def reporter(checks: AsyncMock, notifier: AsyncMock) -> StatusReporter:
    return StatusReporter(checks, notifier, check_name='Elementor Tests')


def pull_request_event(action: str = 'opened') -> dict:
    return {
        'action': action,
        'installation': {'id': 42},
        'repository': {'name': 'elementor', 'owner': {'login': 'elementor'}},
        'pull_request': {
            'head': {
                'sha': COMMIT_SHA,
                'ref': 'feature/widgets',
                'label': 'octo:feature/widgets',
                'repo': {
                    'name': 'elementor',
                    'owner': {'login': 'octo'},
                    'clone_url': 'https://github.com/octo/elementor.git',
                },
            },
        },
    }
