"""
Modal viewer for the sources cited by one assistant turn.
"""

from rich.markdown import Markdown
from rich.markup import escape
from textual.widgets import Static
from textual.containers import Horizontal, Vertical, VerticalScroll
from textual.screen import ModalScreen

from core.citations import ReferenceNavigator
from models import Source


class ReferenceScreen(ModalScreen[None]):
    """Pages through a turn's sources, wrapping around at both ends."""
    CSS = """
#panel {
    width: 80%;
    max-width: 120;
    height: 80%;
    border: round $secondary;
    padding: 1 2;
}
#ref_meta {
    margin-bottom: 1;
    color: $text-muted;
}
#ref_note {
    color: $warning;
    margin-bottom: 1;
}
    """
    BINDINGS = [
        ('left', 'prev', 'previous'),
        ('right', 'next', 'next'),
        ('escape', 'close', 'close'),
    ]

    def __init__(self, sources: list[Source], start: int = 0) -> None:
        """
        Args:
            sources: the turn's source list, in citation order
            start: 0-based index of the source to open first
        """
        super().__init__()
        self.navigator = ReferenceNavigator(sources, start)

    def compose(self):
        yield Vertical(
            Static(id="ref_title", markup=True),
            Horizontal(Static(id="ref_meta", markup=True)),
            Static("Shows the text as it was cited; later edits to the source are not reflected.", id="ref_note"),
            VerticalScroll(Static(id="ref_body")),
            id="panel",
        )

    def on_mount(self) -> None:
        self._refresh_source()

    def _refresh_source(self) -> None:
        src = self.navigator.current
        if src is None:
            return

        self.query_one("#ref_title", Static).update(f"[bold]{escape(src.source_name or 'Reference')}[/bold]")

        meta = f"reference {self.navigator.position} / {self.navigator.total}"
        if src.score:
            meta += f"  [green]score: {escape(src.score)}[/green]"
        if self.navigator.can_page:
            meta += "  [dim](left/right to page)[/dim]"
        self.query_one("#ref_meta", Static).update(meta)

        body = f"# {src.title}\n\n{src.body}" if src.title else (src.body or "No content")
        self.query_one("#ref_body", Static).update(Markdown(body))

    def action_prev(self) -> None:
        self.navigator.prev()
        self._refresh_source()

    def action_next(self) -> None:
        self.navigator.next()
        self._refresh_source()

    def action_close(self) -> None:
        self.dismiss(None)
