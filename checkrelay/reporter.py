import logging

from checkrelay.config import config
from checkrelay.github import ChecksClient
from checkrelay.schemas import (
    CheckRecord,
    CheckStatus,
    Conclusion,
    RunIdentity,
    StageResult,
)
from checkrelay.slack import SlackNotifier

logger = logging.getLogger(__name__)

MESSAGE_UNAVAILABLE = 'message unavailable'


def status_label(result: StageResult) -> str:
    return 'Success' if result.ok else 'Failed'


def suite_message(identity: RunIdentity, suite_name: str, result: StageResult) -> str:
    """Slack text for one suite: the PR label, the outcome and the full output."""
    return '\n'.join(
        (
            f'*PR: {identity.label}*',
            f'*{suite_name}: {status_label(result)}*',
            f'```{result.output}```',
        )
    )


def suite_summary(
    suite_name: str,
    result: StageResult,
    message_url: str | None = None,
    unavailable: bool = False,
) -> str:
    """Check run summary block for one suite.

    `unavailable` marks a suite whose Slack message could not be sent.
    """
    header = f'{suite_name} ( {status_label(result)} )'
    if message_url:
        header += f': {message_url}'
    elif unavailable:
        header += f': {MESSAGE_UNAVAILABLE}'
    return f'{header}\n```\n{result.output}\n```'


class StatusReporter:
    checks: ChecksClient
    notifier: SlackNotifier
    check_name: str

    def __init__(
        self,
        checks: ChecksClient,
        notifier: SlackNotifier,
        check_name: str | None = None,
    ):
        self.checks = checks
        self.notifier = notifier
        self.check_name = check_name or config.check_run_name

    def record_for(self, identity: RunIdentity) -> CheckRecord:
        return CheckRecord(
            owner=identity.check_owner,
            repo=identity.check_repo,
            head_sha=identity.commit_sha,
            name=self.check_name,
        )

    async def announce(self, identity: RunIdentity) -> CheckRecord:
        record = self.record_for(identity)
        resp = await self.checks.create(
            record, {'status': CheckStatus.in_progress.value}
        )
        return record.model_copy(update={'id': resp.get('id')})

    async def update(
        self,
        record: CheckRecord,
        *,
        title: str,
        summary: str,
        conclusion: Conclusion | None = None,
        status: CheckStatus | None = None,
    ):
        data = {'output': {'title': title, 'summary': summary}}
        if conclusion is not None:
            data['conclusion'] = conclusion.value
            status = status or CheckStatus.completed
        if status is not None:
            data['status'] = status.value
        if record.id is None:
            await self.checks.create(record, data)
        else:
            await self.checks.update(record, data)

    async def notify(self, text: str) -> str | None:
        return await self.notifier.post_message(text)
