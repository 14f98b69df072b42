import logging

import httpx

from checkrelay.config import config
from checkrelay.exceptions import ReportError

SLACK_POST_MESSAGE = 'https://slack.com/api/chat.postMessage'

logger = logging.getLogger(__name__)


def message_url(channel: str, ts: str) -> str:
    return (
        f'https://{config.slack_workspace}.slack.com/archives/'
        f'{channel}/p{ts.replace(".", "")}'
    )


class SlackNotifier:
    client: httpx.AsyncClient

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    @property
    def configured(self) -> bool:
        return bool(config.slack_token and config.slack_channel)

    async def post_message(self, text: str, markdown: bool = True) -> str | None:
        """Post `text` to the configured channel and return its permalink.

        Returns None when Slack is not configured or rejects the message.
        Raises ReportError when Slack cannot be reached.
        """
        if not self.configured:
            logger.debug('Slack is not configured, skipping message')
            return None
        try:
            resp = await self.client.post(
                SLACK_POST_MESSAGE,
                headers={'Authorization': f'Bearer {config.slack_token}'},
                json={
                    'channel': config.slack_channel,
                    'text': text,
                    'mrkdwn': markdown,
                },
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ReportError(f'Cannot send message to Slack: {e}')
        if not data.get('ok'):
            logger.warning(f'Slack rejected the message: {data.get("error")}')
            return None
        return message_url(data['channel'], data['ts'])
