import logging

import httpx
from datetime import datetime
from joserfc import jwt
from joserfc.jwk import RSAKey

from checkrelay.config import config
from checkrelay.exceptions import ReportError
from checkrelay.schemas import CheckRecord

GH_API_BASE = 'https://api.github.com'
# Maximum length GitHub accepts for check run output fields
MAX_OUTPUT_LENGTH = 65535

logger = logging.getLogger(__name__)


def get_app_token() -> str:
    now = int(datetime.now().timestamp()) - 60
    data = {
        'iat': now,
        'exp': now + 60 * 10,
        'iss': str(config.gh_app_id),
    }
    key = RSAKey.import_key(config.gh_key)
    return jwt.encode({'alg': 'RS256'}, data, key)


async def get_installation_client(installation_id: int | None) -> httpx.AsyncClient:
    if config.gh_token:
        token = config.gh_token
    else:
        if config.gh_app_id is None or config.gh_key is None or installation_id is None:
            raise ReportError('Neither gh_token nor GitHub App credentials are set')
        async with httpx.AsyncClient(
            base_url=GH_API_BASE,
            headers={'Authorization': f'Bearer {get_app_token()}'},
        ) as app_client:
            try:
                resp = await app_client.post(
                    f'/app/installations/{installation_id}/access_tokens'
                )
                resp.raise_for_status()
            except httpx.HTTPError as e:
                raise ReportError(f'Cannot get an installation token: {e}')
            token = resp.json()['token']
    return httpx.AsyncClient(
        base_url=GH_API_BASE,
        headers={
            'Authorization': f'Bearer {token}',
            'Accept': 'application/vnd.github+json',
        },
    )


def truncate_output(text: str, limit: int = MAX_OUTPUT_LENGTH) -> str:
    """Keep the tail of `text`, where test failures are usually reported."""
    if len(text) <= limit:
        return text
    marker = '...(truncated)\n'
    return marker + text[len(text) - limit + len(marker) :]


class ChecksClient:
    client: httpx.AsyncClient

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def create(self, record: CheckRecord, data: dict) -> dict:
        return await self._send(
            'POST',
            f'/repos/{record.owner}/{record.repo}/check-runs',
            {'name': record.name, 'head_sha': record.head_sha, **data},
        )

    async def update(self, record: CheckRecord, data: dict) -> dict:
        return await self._send(
            'PATCH',
            f'/repos/{record.owner}/{record.repo}/check-runs/{record.id}',
            data,
        )

    async def _send(self, method: str, url: str, data: dict) -> dict:
        if output := data.get('output'):
            data = {
                **data,
                'output': {k: truncate_output(v) for k, v in output.items()},
            }
        try:
            resp = await self.client.request(method, url, json=data)
            resp.raise_for_status()
            return resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise ReportError(f'Cannot send check run data: {e}')
