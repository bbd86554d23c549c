"""
Network collaborators: the streaming completion call and the stored-record
lookup, plus the request payload the completion endpoint expects.
"""

import logging
import uuid
from typing import Any, AsyncIterator, Protocol, Sequence

import httpx

from core.config import EngineConfig
from core.errors import TransportError
from models import Turn

logger = logging.getLogger(__name__)


class StreamCompletion(Protocol):
    def stream_completion(self, payload: dict[str, Any]) -> AsyncIterator[bytes]:
        ...


class HistoryStore(Protocol):
    async def fetch_records(self, chat_id: str) -> list[dict[str, Any]]:
        ...


def context_messages(turns: Sequence[Turn]) -> list[dict[str, str]]:
    return [
        {'role': 'user' if t.role == 'user' else 'assistant', 'content': t.plain_text()}
        for t in turns
    ]


def build_request_payload(
    config: EngineConfig,
    chat_id: str,
    text: str,
    history: Sequence[Turn] = (),
    choice_reply: bool = False,
) -> dict[str, Any]:
    """
    A free-text send carries the whole prior transcript as context. A choice
    reply carries only the chosen value.
    """
    if choice_reply:
        messages: list[dict[str, Any]] = [{
            'dataId': uuid.uuid4().hex[:13],
            'hideInUI': False,
            'role': 'user',
            'content': text,
        }]
    else:
        messages = [*context_messages(history), {'role': 'user', 'content': text}]

    payload: dict[str, Any] = {
        'chatId': chat_id,
        'stream': True,
        'detail': False,
        'messages': messages,
    }
    if config.app_id:
        payload['appId'] = config.app_id
    if config.share_id:
        payload['shareId'] = config.share_id
    if config.out_link_uid:
        payload['outLinkUid'] = config.out_link_uid
    return payload


class HttpStreamTransport:
    """Completion stream and record lookup over one httpx.AsyncClient."""

    def __init__(self, config: EngineConfig, client: httpx.AsyncClient | None = None) -> None:
        self.config = config
        self.headers = {'Authorization': f'Bearer {config.api_key}'} if config.api_key else {}
        self.client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(30.0, read=None),
        )

    async def stream_completion(self, payload: dict[str, Any]) -> AsyncIterator[bytes]:
        try:
            async with self.client.stream('POST', self.config.completions_path, json=payload, headers=self.headers) as resp:
                if resp.status_code >= 400:
                    body = await resp.aread()
                    raise TransportError(
                        f"completion request failed: {resp.status_code} {body[:200]!r}",
                        status_code=resp.status_code,
                    )
                async for chunk in resp.aiter_bytes():
                    yield chunk
        except httpx.HTTPError as e:
            logger.warning("completion stream failed: %s", e)
            raise TransportError(f"completion stream failed: {e}") from e

    async def fetch_records(self, chat_id: str) -> list[dict[str, Any]]:
        body = {
            'appId': self.config.app_id,
            'chatId': chat_id,
            'offset': 0,
            'pageSize': 50,
            'loadCustomFeedbacks': False,
        }
        try:
            resp = await self.client.post(self.config.records_path, json=body, headers=self.headers)
            resp.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f"record lookup failed: {e}") from e

        try:
            data = resp.json().get('data')
        except (ValueError, AttributeError) as e:
            raise TransportError(f"record lookup returned an unexpected body: {e}") from e
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            return data.get('list') or []
        return []

    async def aclose(self) -> None:
        await self.client.aclose()
