import logging
from time import time

import httpx
from pydantic import ValidationError
from starlette.applications import Starlette
from starlette.background import BackgroundTask
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route

from checkrelay.config import config
from checkrelay.exceptions import ReportError
from checkrelay.github import ChecksClient, get_installation_client
from checkrelay.reporter import StatusReporter
from checkrelay.runner import PipelineRunner
from checkrelay.schemas import RunIdentity
from checkrelay.slack import SlackNotifier

PR_ACTIONS = ('opened', 'reopened')

logger = logging.getLogger(__name__)


async def run_pull_request(identity: RunIdentity):
    s = time()
    try:
        gh_client = await get_installation_client(identity.installation_id)
    except ReportError as e:
        logger.error(f'[{identity.label}] Cannot authenticate to GitHub: {e}')
        return
    async with gh_client, httpx.AsyncClient() as slack_client:
        reporter = StatusReporter(ChecksClient(gh_client), SlackNotifier(slack_client))
        result = await PipelineRunner(identity, reporter).run()
    logger.info(
        f'[{identity.label}] {result.conclusion.value} in {time() - s:.1f}s'
    )


async def webhook(request: Request):
    event = request.headers.get('x-github-event')
    try:
        payload = await request.json()
    except ValueError:
        return Response(None, 400)
    if event != 'pull_request' or payload.get('action') not in PR_ACTIONS:
        return Response(None, 204)
    try:
        identity = RunIdentity.from_pull_request_event(payload)
    except (KeyError, TypeError, ValidationError) as e:
        logger.warning(f'Malformed pull_request payload: {e!r}')
        return Response(None, 400)
    return Response(None, 202, background=BackgroundTask(run_pull_request, identity))


app = Starlette(
    debug=config.debug, routes=[Route('/webhook', webhook, methods=['POST'])]
)
