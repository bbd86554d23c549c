import asyncio
import functools
import logging
import uuid
from typing import Any, Iterable, Mapping, Optional

from core import gate
from core.config import EngineConfig
from core.domain import EngineEvent
from core.errors import ChatEngineError, PreconditionError, TransportError
from core.records import find_reply, parse_record
from core.reveal import RevealScheduler
from core.stream_decoder import adapt_stream
from core.transcript import TranscriptModel
from core.transport import HistoryStore, StreamCompletion, build_request_payload
from core.views import ItemView, TurnView
from models import InteractiveItem, ReasoningItem, TextItem, Turn

logger = logging.getLogger(__name__)


def new_chat_id() -> str:
    return uuid.uuid4().hex[:13]


class ChatOrchestrator:
    """
    Drives one conversation: sends messages, ingests the reply stream into
    the transcript, keeps the typing reveal in step and publishes events on
    events_q for the renderer.

    Every transcript mutation happens on the event loop, either in a caller's
    coroutine or in the single ingestion task, so the transcript has exactly
    one writer at a time.
    """

    def __init__(
        self,
        transport: StreamCompletion,
        events_q: asyncio.Queue,
        config: Optional[EngineConfig] = None,
        history: Optional[HistoryStore] = None,
        reveals: Optional[RevealScheduler] = None,
        chat_id: Optional[str] = None,
    ):
        self.config = config or EngineConfig()
        self.transport = transport
        self.history = history
        self.events_q = events_q
        self.model = TranscriptModel()
        self.reveals = reveals or RevealScheduler(self.config.reveal)
        self.chat_id = chat_id or new_chat_id()

        self._stream_token = 0
        self._ingest_task: Optional[asyncio.Task] = None
        self._abandoned: set[asyncio.Task] = set()
        self._streaming_turn_id: Optional[str] = None
        # finished turns waiting for their stored version, keyed by turn id
        self._refresh_tasks: dict[str, asyncio.Task] = {}

    async def _emit(self, ev: EngineEvent):
        await self.events_q.put(ev)

    @property
    def streaming_turn_id(self) -> Optional[str]:
        return self._streaming_turn_id

    @property
    def gate_state(self) -> gate.GateState:
        return gate.state(self.model)

    # -- inbound -------------------------------------------------------------

    async def send_user_message(self, text: str) -> tuple[Turn, Turn]:
        gate.check_free_text(self.model)
        return await self._send(text, choice_reply=False)

    async def select_interactive_option(self, value: str) -> tuple[Turn, Turn]:
        turn, _ = gate.check_choice(self.model, value)
        if not value.strip():
            raise PreconditionError("cannot send an empty choice")
        self.model.resolve_interactive(turn.turn_id, value)
        return await self._send(value, choice_reply=True)

    async def load_history_turns(self, records: Iterable[Mapping[str, Any]]) -> list[Turn]:
        """
        Replace the transcript with stored records. Records are decoded before
        anything is touched, so a bad record leaves the transcript as it was.
        """
        parsed = [parse_record(raw) for raw in records]

        self._interrupt()
        self._cancel_refreshes()
        self.reveals.shutdown()
        self.model.clear()
        turns = [
            self.model.append_turn(rec.role, rec.items, rec.sources, rec.duration_seconds)
            for rec in parsed
        ]

        await self._emit({'type': 'history_loaded', 'count': len(turns)})
        await self._announce_pending_choice()
        return turns

    async def start_new_chat(self, welcome_text: Optional[str] = None, chat_id: Optional[str] = None) -> str:
        self._interrupt()
        self._cancel_refreshes()
        self.reveals.shutdown()
        self.model.clear()
        self.chat_id = chat_id or new_chat_id()

        if welcome_text:
            turn = self.model.append_turn('assistant', [TextItem(welcome_text)])
            await self._emit({'type': 'turn_added', 'turn_id': turn.turn_id, 'role': turn.role})
        return self.chat_id

    async def shutdown(self) -> None:
        self._interrupt()
        self._cancel_refreshes()
        if self._abandoned:
            await asyncio.gather(*self._abandoned, return_exceptions=True)
        await self.reveals.aclose()

    # -- outbound ------------------------------------------------------------

    def citation_ordinal(self, turn_id: str, token: str) -> Optional[int]:
        return self.model.citations(turn_id).ordinal(token)

    def referenced_turn(self, turn_id: Optional[str] = None) -> Optional[Turn]:
        """The given turn, or the latest assistant turn with sources when turn_id is None."""
        if turn_id is not None:
            return self.model.get(turn_id)
        return next((t for t in reversed(self.model.turns) if t.role == 'assistant' and t.sources), None)

    def snapshot(self) -> list[TurnView]:
        views = []
        for turn in self.model.turns:
            items = []
            for idx, item in enumerate(turn.items):
                if isinstance(item, InteractiveItem):
                    items.append(ItemView(
                        kind=item.kind,
                        prompt=item.prompt,
                        options=tuple(item.options),
                        resolved_value=item.resolved_value,
                    ))
                    continue
                shown = self.reveals.view((turn.turn_id, idx), item.content)
                items.append(ItemView(
                    kind=item.kind,
                    content=item.content,
                    displayed=shown.text,
                    cursor_visible=shown.cursor_visible,
                    typing=shown.typing,
                    duration_seconds=item.duration_seconds if isinstance(item, ReasoningItem) else None,
                ))

            loading = (
                turn.turn_id == self._streaming_turn_id
                and len(turn.items) == 1
                and isinstance(turn.items[0], TextItem)
                and not turn.items[0].content
            )
            views.append(TurnView(
                turn_id=turn.turn_id,
                role=turn.role,
                status=turn.status,
                items=tuple(items),
                sources=turn.sources,
                duration_seconds=turn.duration_seconds,
                loading=loading,
            ))
        return views

    # -- internals -----------------------------------------------------------

    async def _send(self, text: str, choice_reply: bool) -> tuple[Turn, Turn]:
        text = text.strip()
        if not text:
            raise PreconditionError("cannot send an empty message")

        self._interrupt()
        context = self.model.turns
        user_turn = self.model.append_user_turn(text)
        assistant_turn = self.model.append_empty_assistant_turn()

        payload = build_request_payload(self.config, self.chat_id, text, context, choice_reply=choice_reply)

        self._stream_token += 1
        self._streaming_turn_id = assistant_turn.turn_id
        self._ingest_task = asyncio.create_task(
            self._ingest(assistant_turn, payload, self._stream_token),
            name=f"ingest-{assistant_turn.turn_id}",
        )

        await self._emit({'type': 'turn_added', 'turn_id': user_turn.turn_id, 'role': user_turn.role})
        await self._emit({'type': 'turn_added', 'turn_id': assistant_turn.turn_id, 'role': assistant_turn.role})
        return user_turn, assistant_turn

    def _interrupt(self) -> None:
        """Abandon the in-flight stream, if any. Its late chunks are discarded."""
        self._stream_token += 1
        task, self._ingest_task = self._ingest_task, None
        if task is not None:
            self._abandon(task)

        turn_id, self._streaming_turn_id = self._streaming_turn_id, None
        if turn_id is not None:
            self.reveals.release_turn(turn_id)
            turn = self.model.get(turn_id)
            if turn.status in ('thinking', 'streaming'):
                turn.status = 'interrupted'
            logger.info("stream for turn %s interrupted", turn_id)

    def _abandon(self, task: asyncio.Task) -> None:
        if task.done():
            return
        task.cancel()
        self._abandoned.add(task)
        task.add_done_callback(self._abandoned.discard)

    def _cancel_refreshes(self) -> None:
        tasks, self._refresh_tasks = self._refresh_tasks, {}
        for task in tasks.values():
            self._abandon(task)

    def _current(self, token: int) -> bool:
        return token == self._stream_token

    def _track_reveal(self, turn: Turn) -> None:
        """Reveal the turn's last text-bearing item; everything before it is terminal."""
        last = len(turn.items) - 1
        for key in self.reveals.active_keys():
            if key[0] == turn.turn_id and key[1] != last:
                self.reveals.stop(key)

        item = turn.items[last]
        if isinstance(item, (TextItem, ReasoningItem)):
            self.reveals.start((turn.turn_id, last), lambda: item.content)

    async def _ingest(self, turn: Turn, payload: dict[str, Any], token: int) -> None:
        try:
            async for ev in adapt_stream(self.transport.stream_completion(payload)):
                if not self._current(token):
                    return
                self.model.apply_delta(turn.turn_id, ev)
                turn.status = 'streaming'
                self._track_reveal(turn)
                await self._emit({'type': 'delta', 'turn_id': turn.turn_id})
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if not self._current(token):
                return
            if not isinstance(e, TransportError):
                logger.exception("stream for turn %s failed", turn.turn_id)
            else:
                logger.warning("stream for turn %s failed: %s", turn.turn_id, e)
            self._finish_stream(turn, 'failed')
            await self._emit({'type': 'error', 'turn_id': turn.turn_id, 'message': f"Failed to get a response: {e}"})
            return

        if not self._current(token):
            return
        self._finish_stream(turn, 'final')
        await self._emit({'type': 'done', 'turn_id': turn.turn_id})

        if self.history is not None:
            self._schedule_refresh(turn)

    def _finish_stream(self, turn: Turn, status: str) -> None:
        turn.status = status
        self.reveals.release_turn(turn.turn_id)
        self._streaming_turn_id = None

    def _schedule_refresh(self, turn: Turn) -> None:
        """
        Fetch the stored version of a finished turn in its own task. A later
        send does not cancel it; a new chat, a history load or shutdown does.
        """
        task = asyncio.create_task(self._refresh(turn), name=f"refresh-{turn.turn_id}")
        self._refresh_tasks[turn.turn_id] = task
        task.add_done_callback(functools.partial(self._refresh_finished, turn.turn_id))

    def _refresh_finished(self, turn_id: str, task: asyncio.Task) -> None:
        if self._refresh_tasks.get(turn_id) is task:
            del self._refresh_tasks[turn_id]
        if not task.cancelled() and task.exception() is not None:
            logger.error("refresh of turn %s crashed", turn_id, exc_info=task.exception())

    def _question_number(self, turn: Turn) -> int:
        asked = 0
        for t in self.model.turns:
            if t is turn:
                break
            if t.role == 'user':
                asked += 1
        return asked

    async def _refresh(self, turn: Turn) -> None:
        """
        Replace the streamed turn with the stored version, which also carries
        sources, reasoning duration and any choice prompt.
        """
        await asyncio.sleep(self.config.refresh_delay)

        try:
            raw = await self.history.fetch_records(self.chat_id)
            records = [parse_record(r) for r in raw]
        except ChatEngineError as e:
            logger.warning("could not refresh turn %s: %s", turn.turn_id, e)
            return

        stored = find_reply(records, self._question_number(turn))
        if stored is None:
            logger.info("no stored reply for turn %s in chat %s", turn.turn_id, self.chat_id)
            return

        try:
            self.model.replace_turn_items(turn.turn_id, stored.items, stored.sources, stored.duration_seconds)
        except ChatEngineError as e:
            logger.warning("stored record for turn %s rejected: %s", turn.turn_id, e)
            return
        await self._emit({'type': 'delta', 'turn_id': turn.turn_id})
        await self._announce_pending_choice()

    async def _announce_pending_choice(self) -> None:
        pending = gate.pending_choice(self.model)
        if pending is None:
            return
        turn, item = pending
        await self._emit({
            'type': 'interactive',
            'turn_id': turn.turn_id,
            'prompt': item.prompt,
            'options': item.option_values(),
        })
