"""
Free-text input for the chat application.
"""
from textual.widgets import Input
from textual.message import Message


class InputArea(Input):
    class Submit(Message, bubble=True):
        def __init__(self, value: str) -> None:
            super().__init__()
            self.value = value

    async def on_key(self, event) -> None:
        if event.key != "enter":
            return
        event.stop()
        text = self.value.strip()
        if not text:
            return
        self.post_message(self.Submit(text))
        self.value = ""
