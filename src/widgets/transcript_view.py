"""
Scrollable transcript: paints TurnView snapshots as rich markup.
"""
from typing import Sequence

from rich.markup import escape
from textual.containers import VerticalScroll
from textual.widgets import Static

from core.citations import preview, render_citations
from core.views import ItemView, TurnView

CURSOR = "▌"


def _duration(seconds) -> str:
    return f" ({seconds:g}s)" if seconds else ""


def reference_link(turn_id: str, index: int, label: str) -> str:
    """Markup that opens the reference viewer on source index (0-based) of a turn."""
    return f"[@click=app.open_reference('{turn_id}', {index})]{label}[/]"


def render_item(item: ItemView, turn: TurnView) -> str:
    if item.kind == 'interactive':
        if item.resolved_value is not None:
            return f"[dim]selected: {escape(item.resolved_value)}[/dim]"
        lines = [f"[bold]{escape(item.prompt)}[/bold]"] if item.prompt else []
        lines += [f"  {n}. {escape(opt.value)}" for n, opt in enumerate(item.options, start=1)]
        return "\n".join(lines)

    cursor = CURSOR if item.typing and item.cursor_visible else ""
    if item.kind == 'reasoning':
        header = f"[dim italic]thinking{_duration(item.duration_seconds or turn.duration_seconds)}[/dim italic]"
        # collapsed once the reasoning is finished
        if not item.typing:
            return header
        return f"{header}\n[dim]{escape(item.displayed)}{cursor}[/dim]"

    def _marker(pos: int, token: str) -> str:
        return reference_link(turn.turn_id, pos - 1, f"\\[{pos}]")

    return render_citations(item.displayed, turn.sources, marker=_marker, plain=escape) + cursor


def render_turn(turn: TurnView) -> str:
    who = "[bold cyan]you[/bold cyan]" if turn.role == 'user' else "[bold green]assistant[/bold green]"
    if turn.loading:
        return f"{who}\n[dim]...[/dim]"

    parts = [render_item(item, turn) for item in turn.items]
    body = "\n".join(p for p in parts if p)

    footer = []
    if turn.status == 'failed':
        footer.append("[red]response failed[/red]")
    if turn.sources:
        names = ", ".join(
            reference_link(turn.turn_id, n, escape(s.source_name or f"Reference {n + 1}"))
            for n, s in enumerate(preview(turn.sources))
        )
        more = f" (+{len(turn.sources) - 1} more, click a name to browse)" if len(turn.sources) > 1 else ""
        footer.append(f"[dim]{len(turn.sources)} references: {names}{more}[/dim]")

    return "\n".join([who, body, *footer])


class TranscriptView(VerticalScroll):
    def compose(self):
        yield Static(id="transcript_body", markup=True)

    def show(self, turns: Sequence[TurnView]) -> None:
        body = self.query_one("#transcript_body", Static)
        body.update("\n\n".join(render_turn(t) for t in turns))
        self.scroll_end(animate=False)
