import enum
from enum import Enum
from pathlib import Path
from pydantic import BaseModel, ConfigDict


class RunIdentity(BaseModel):
    model_config = ConfigDict(frozen=True)

    commit_sha: str
    ref: str
    owner: str
    repo: str
    clone_url: str
    label: str
    # Repository the check run is posted to (the pull request base)
    check_owner: str
    check_repo: str
    installation_id: int | None = None

    @classmethod
    def from_pull_request_event(cls, payload: dict) -> 'RunIdentity':
        head = payload['pull_request']['head']
        head_repo = head['repo']
        owner = head_repo['owner']['login']
        repo = head_repo['name']
        base_repo = payload.get('repository') or payload['pull_request']['base']['repo']
        installation = payload.get('installation') or {}
        return cls(
            commit_sha=head['sha'],
            ref=head['ref'],
            owner=owner,
            repo=repo,
            clone_url=(
                head_repo.get('clone_url') or f'https://github.com/{owner}/{repo}.git'
            ),
            label=head.get('label') or f'{owner}:{head["ref"]}',
            check_owner=base_repo['owner']['login'],
            check_repo=base_repo['name'],
            installation_id=installation.get('id'),
        )


class TreePaths(BaseModel):
    core_path: Path
    companion_path: Path


class StageResult(BaseModel):
    exit_code: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        return self.stdout + self.stderr


class SuiteResults(BaseModel):
    server: StageResult
    client: StageResult

    @property
    def success(self) -> bool:
        return self.server.ok and self.client.ok


class CheckStatus(str, Enum):
    queued = 'queued'
    in_progress = 'in_progress'
    completed = 'completed'


class Conclusion(str, Enum):
    success = 'success'
    failure = 'failure'


class CheckRecord(BaseModel):
    owner: str
    repo: str
    head_sha: str
    name: str
    id: int | None = None


class PipelineState(Enum):
    start = enum.auto()
    announced = enum.auto()
    workspace_ready = enum.auto()
    fetched = enum.auto()
    built = enum.auto()
    tested = enum.auto()
    reported = enum.auto()
    done = enum.auto()
    failed = enum.auto()


class PipelineResult(BaseModel):
    state: PipelineState
    conclusion: Conclusion
    suites: SuiteResults | None = None
    error: str | None = None
