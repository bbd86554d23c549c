from textual import on
from textual.widgets import OptionList
from textual.widgets.option_list import Option
from textual.message import Message

from models import ChoiceOption


class SelectionMade(Message):
    def __init__(self, label: str, value: str) -> None:
        super().__init__()
        self.label = label
        self.value = value


class SelectOption(OptionList):
    """Answers a pending choice prompt. Shown instead of the text input."""

    def __init__(self, id: str, options: list[ChoiceOption] | None = None) -> None:
        super().__init__(id=id)
        self._values: list[str] = []
        if options:
            self.set_selection_options(options)

    @property
    def values(self) -> list[str]:
        return list(self._values)

    def set_selection_options(self, options: list[ChoiceOption]):
        self.clear_options()
        self._values = [opt.value for opt in options]
        self.add_options(
            Option(f"{n}. {opt.value}", id=f"choice-{n}") for n, opt in enumerate(options, start=1)
        )
        if options:
            self.highlighted = 0

    @on(OptionList.OptionSelected)
    def on_option_selected(self, event: OptionList.OptionSelected) -> None:
        idx = event.option_index
        if not 0 <= idx < len(self._values):
            return
        self.post_message(SelectionMade(str(event.option.prompt), self._values[idx]))
        event.stop()
