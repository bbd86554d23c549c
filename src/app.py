"""
Stream Chat: terminal client for a streaming assistant service.
"""

import asyncio
import logging
from typing import Optional

from textual import work
from textual.app import App, ComposeResult

from core.config import EngineConfig, configure_logging, load_config
from core.errors import GateClosedError, NotFoundError, PreconditionError
from core.gate import GateState, pending_choice
from core.orchestrator import ChatOrchestrator
from core.transport import HttpStreamTransport
from screens import ReferenceScreen
from widgets import InputArea, SelectOption, SelectionMade, TranscriptView

logger = logging.getLogger(__name__)


class ChatApp(App):
    BINDINGS = [
        ('ctrl+r', 'references', 'references'),
        ('ctrl+n', 'new_chat', 'new chat'),
    ]

    def __init__(self, config: Optional[EngineConfig] = None, welcome_text: Optional[str] = None):
        """Initialize the chat application with default state."""
        super().__init__()
        self.config = config or load_config()
        self.welcome_text = welcome_text
        self.event_q: asyncio.Queue = asyncio.Queue()
        self.transport = HttpStreamTransport(self.config)
        self.orchestrator = ChatOrchestrator(
            self.transport, self.event_q, self.config, history=self.transport,
        )

    def compose(self) -> ComposeResult:
        """
        Create the main UI layout.
        """
        yield TranscriptView(id="chat_log")
        yield InputArea(id="input_text", placeholder="how can i help you")
        yield SelectOption(id="input_selection")

    async def on_mount(self) -> None:
        """Initialize the application after the UI is mounted."""
        self._change_input_mode(is_selection=False)
        await self.orchestrator.start_new_chat(self.welcome_text)
        # repaint at reveal speed so the typing effect is visible
        self.set_interval(self.config.reveal.tick_seconds, self._repaint)
        self._pump()

    async def on_unmount(self) -> None:
        await self.orchestrator.shutdown()
        await self.transport.aclose()

    async def on_input_area_submit(self, message: InputArea.Submit) -> None:
        try:
            await self.orchestrator.send_user_message(message.value)
        except GateClosedError:
            self.notify("Pick one of the options first.", severity="warning")
            self._change_input_mode(is_selection=True)
        except PreconditionError:
            logger.error("send rejected", exc_info=True)
        self._repaint()

    async def on_selection_made(self, message: SelectionMade) -> None:
        try:
            await self.orchestrator.select_interactive_option(message.value)
        except PreconditionError:
            logger.error("choice %r rejected", message.value, exc_info=True)
            return
        self._change_input_mode(is_selection=False)
        self._repaint()

    def _change_input_mode(self, is_selection: bool):
        input_selection = self.query_one('#input_selection', SelectOption)
        input_text = self.query_one('#input_text', InputArea)

        if is_selection:
            input_selection.display, input_text.display = True, False
            input_selection.focus()
        else:
            input_selection.display, input_text.display = False, True
            input_text.focus()

    def _repaint(self) -> None:
        self.query_one("#chat_log", TranscriptView).show(self.orchestrator.snapshot())

    async def action_new_chat(self) -> None:
        await self.orchestrator.start_new_chat(self.welcome_text)
        self._change_input_mode(is_selection=False)
        self._repaint()

    def action_references(self) -> None:
        turn = self.orchestrator.referenced_turn()
        if turn is None:
            self.notify("No references in this conversation yet.")
            return
        self.action_open_reference(turn.turn_id, 0)

    def action_open_reference(self, turn_id: str, index: int = 0) -> None:
        """Open the reference viewer on one turn's sources, at a 0-based index."""
        try:
            turn = self.orchestrator.referenced_turn(turn_id)
        except NotFoundError:
            logger.error("reference link to unknown turn %s", turn_id)
            return
        if not turn.sources:
            return
        index = index if 0 <= index < len(turn.sources) else 0
        self.push_screen(ReferenceScreen(list(turn.sources), start=index))

    @work(exclusive=True, group='pump')
    async def _pump(self):
        """
        Event processing loop.

        Event types handled:
        - 'interactive': a choice prompt is waiting, switch to the option list
        - 'error': the reply stream failed, partial text stays visible
        - 'history_loaded': the transcript was replaced wholesale
        - anything else just triggers a repaint
        """
        while True:
            ev = await self.event_q.get()
            etype = ev.get('type', '')

            if etype == 'interactive':
                pending = pending_choice(self.orchestrator.model)
                if pending is not None:
                    _, item = pending
                    self.query_one(SelectOption).set_selection_options(item.options)
                    self._change_input_mode(is_selection=True)
            elif etype == 'error':
                self.notify(ev.get('message', 'Request failed'), severity="error", timeout=6)
            elif etype == 'history_loaded':
                is_selection = self.orchestrator.gate_state is GateState.AWAITING_CHOICE
                self._change_input_mode(is_selection=is_selection)

            self._repaint()


def main():
    config = load_config()
    configure_logging(config.log_level, filename="stream-chat.log")
    app = ChatApp(config)
    app.run()


if __name__ == "__main__":
    main()
