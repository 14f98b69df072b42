from collections.abc import Sequence
from pathlib import Path


class CheckRelayError(Exception):
    pass


class CommandError(CheckRelayError):
    """A subprocess exited with a nonzero code."""

    command: tuple[str, ...]
    exit_code: int
    output: str

    def __init__(self, command: Sequence[str | Path], exit_code: int, output: str = ''):
        self.command = tuple(str(x) for x in command)
        self.exit_code = exit_code
        self.output = output
        super().__init__(f'{" ".join(self.command)} exited with code {exit_code}')


class PipelineError(CheckRelayError):
    """A fatal stage failure. The pipeline stops and reports this message."""

    stage: str = 'pipeline'

    def __init__(self, message: str, output: str = ''):
        self.message = message
        self.output = output
        super().__init__(message)


class WorkspaceError(PipelineError):
    stage = 'workspace'


class FetchError(PipelineError):
    stage = 'clone'


class BuildError(PipelineError):
    stage = 'build'


class TestSetupError(PipelineError):
    __test__ = False
    stage = 'test setup'


class ReportError(CheckRelayError):
    """A GitHub or Slack call failed. Never fatal for a run."""
