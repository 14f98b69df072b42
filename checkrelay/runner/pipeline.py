import asyncio
import logging
from pathlib import Path

from checkrelay.config import config
from checkrelay.exceptions import PipelineError, ReportError, WorkspaceError
from checkrelay.reporter import StatusReporter, suite_message, suite_summary
from checkrelay.runner.build import BuildRunner
from checkrelay.runner.fetch import SourceFetcher
from checkrelay.runner.suites import SuiteRunner
from checkrelay.schemas import (
    CheckRecord,
    Conclusion,
    PipelineResult,
    PipelineState,
    RunIdentity,
    SuiteResults,
)
from checkrelay.utils import RunLogAdapter
from checkrelay.workspace import workspace

logger = logging.getLogger(__name__)

ERROR_TITLE = 'CI Server Error'


class PipelineRunner:
    """Processes one pull request head commit from check announcement to cleanup.

    Stages run in order and the first fatal failure skips the rest. The
    workspace is removed on every exit path and exactly one terminal check
    update is sent per run.
    """

    identity: RunIdentity
    reporter: StatusReporter
    fetcher: SourceFetcher
    builder: BuildRunner
    suites: SuiteRunner
    workdir_root: Path
    state: PipelineState
    record: CheckRecord | None
    log: RunLogAdapter

    def __init__(
        self,
        identity: RunIdentity,
        reporter: StatusReporter,
        *,
        fetcher: SourceFetcher | None = None,
        builder: BuildRunner | None = None,
        suites: SuiteRunner | None = None,
        workdir_root: Path | None = None,
    ):
        self.identity = identity
        self.reporter = reporter
        self.fetcher = fetcher or SourceFetcher()
        self.builder = builder or BuildRunner()
        self.suites = suites or SuiteRunner()
        self.workdir_root = workdir_root or config.workdir_root
        self.state = PipelineState.start
        self.record = None
        self.log = RunLogAdapter(logger, {'label': identity.label})
        self._finished = False

    async def run(self) -> PipelineResult:
        self.log.info('New PR. Processing...')
        await self._announce()
        try:
            async with workspace(self.identity, self.workdir_root) as path:
                self.state = PipelineState.workspace_ready
                try:
                    result = await self._process(path)
                except PipelineError as e:
                    result = await self._fail(e)
        except WorkspaceError as e:
            result = await self._fail(e)
        except asyncio.CancelledError:
            self.state = PipelineState.failed
            self.log.warning('Run cancelled')
            await self._finish(
                Conclusion.failure, ERROR_TITLE, 'The run was cancelled.'
            )
            raise
        except Exception:
            self.state = PipelineState.failed
            self.log.exception('Unexpected error')
            await self._finish(
                Conclusion.failure,
                ERROR_TITLE,
                'Unexpected error while processing the PR.',
            )
            raise
        if self.state != PipelineState.failed:
            self.state = PipelineState.done
            result = result.model_copy(update={'state': self.state})
        self.log.info('Finished processing PR.')
        return result

    async def _announce(self):
        self.record = self.reporter.record_for(self.identity)
        try:
            self.record = await self.reporter.announce(self.identity)
        except ReportError as e:
            self.log.error(f'Cannot create the check run: {e}')
        self.state = PipelineState.announced

    async def _process(self, path: Path) -> PipelineResult:
        self.log.info('Cloning repos...')
        trees = await self.fetcher.fetch(path, self.identity)
        self.state = PipelineState.fetched

        self.log.info('Building the projects files...')
        await self.builder.build(trees)
        self.state = PipelineState.built

        results = await self.suites.run(trees, self.identity)
        self.state = PipelineState.tested

        conclusion = await self._report(results)
        self.state = PipelineState.reported
        return PipelineResult(
            state=self.state, conclusion=conclusion, suites=results
        )

    async def _report(self, results: SuiteResults) -> Conclusion:
        suites = (
            (config.server_suite_name, results.server),
            (config.client_suite_name, results.client),
        )
        blocks = []
        for name, result in suites:
            url = None
            unavailable = False
            if not result.ok:
                try:
                    url = await self.reporter.notify(
                        suite_message(self.identity, name, result)
                    )
                except ReportError as e:
                    self.log.error(f'Cannot send message to Slack: {e}')
                    unavailable = True
            blocks.append(suite_summary(name, result, url, unavailable))

        if results.success:
            conclusion, title = Conclusion.success, 'Successful'
        else:
            conclusion, title = Conclusion.failure, 'Failed'
        await self._finish(conclusion, title, '\n\n'.join(blocks))
        return conclusion

    async def _fail(self, error: PipelineError) -> PipelineResult:
        self.state = PipelineState.failed
        self.log.error(f'ERROR: {error.message}')
        summary = error.message
        if error.output:
            summary += f'\n```\n{error.output}\n```'
        await self._finish(Conclusion.failure, ERROR_TITLE, summary)
        return PipelineResult(
            state=self.state, conclusion=Conclusion.failure, error=error.message
        )

    async def _finish(self, conclusion: Conclusion, title: str, summary: str):
        if self._finished:
            self.log.warning('Terminal check update already sent')
            return
        self._finished = True
        try:
            await self.reporter.update(
                self.record, conclusion=conclusion, title=title, summary=summary
            )
        except ReportError as e:
            self.log.error(f'Cannot send the check run result: {e}')
