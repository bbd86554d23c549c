"""
Citation lookup and reference navigation over a turn's source list.
"""

import re
from typing import Callable, Iterable, Optional, Sequence

from models import Source

# inline marker emitted by the service: [token](CITE)
CITE_PATTERN = re.compile(r"\[([^\[\]]+)\]\(CITE\)")


def index_of(sources: Sequence[Source], token: str) -> Optional[int]:
    """
    1-based position of the first source whose id or secondary id equals
    token, None when nothing matches.
    """
    for pos, src in enumerate(sources, start=1):
        if src.id == token or (src.secondary_id and src.secondary_id == token):
            return pos
    return None


class CitationIndex:
    """
    Ordinals for one source list. Rebuild it whenever a turn's sources are
    (re)attached; it never mutates the sources it was built from.
    """

    def __init__(self, sources: Iterable[Source]) -> None:
        self.sources: tuple[Source, ...] = tuple(sources)
        self._ordinals: dict[str, int] = {}
        for pos, src in enumerate(self.sources, start=1):
            self._ordinals.setdefault(src.id, pos)
            if src.secondary_id:
                self._ordinals.setdefault(src.secondary_id, pos)

    def __len__(self) -> int:
        return len(self.sources)

    def ordinal(self, token: str) -> Optional[int]:
        return self._ordinals.get(token)


def find_citations(text: str) -> list[str]:
    return CITE_PATTERN.findall(text)


def _ordinal_marker(pos: int, token: str) -> str:
    return f"[{pos}]"


def render_citations(
    text: str,
    sources: Sequence[Source],
    marker: Callable[[int, str], str] = _ordinal_marker,
    plain: Callable[[str], str] = str,
) -> str:
    """
    Replace citation markers with `[n]`, or whatever marker(n, token)
    returns. Markers that resolve to nothing become their raw token. Text
    outside resolved markers, raw tokens included, goes through plain.
    """
    out = []
    last = 0
    for match in CITE_PATTERN.finditer(text):
        out.append(plain(text[last:match.start()]))
        token = match.group(1)
        pos = index_of(sources, token)
        out.append(marker(pos, token) if pos is not None else plain(token))
        last = match.end()
    out.append(plain(text[last:]))
    return "".join(out)


def preview(sources: Sequence[Source], expanded: bool = False) -> list[Source]:
    """A collapsed reference list shows only its first entry."""
    return list(sources) if expanded else list(sources[:1])


class ReferenceNavigator:
    """
    Cursor over a turn's sources with wrap-around paging, used by the
    reference viewer.
    """

    def __init__(self, sources: Sequence[Source], start: int = 0) -> None:
        self.sources = tuple(sources)
        if self.sources and not 0 <= start < len(self.sources):
            raise IndexError(f"start {start} outside 0..{len(self.sources) - 1}")
        self.index = start if self.sources else 0

    @property
    def total(self) -> int:
        return len(self.sources)

    @property
    def position(self) -> int:
        return self.index + 1 if self.sources else 0

    @property
    def current(self) -> Optional[Source]:
        return self.sources[self.index] if self.sources else None

    @property
    def can_page(self) -> bool:
        return self.total > 1

    def next(self) -> Optional[Source]:
        if self.sources:
            self.index = self.index + 1 if self.index < self.total - 1 else 0
        return self.current

    def prev(self) -> Optional[Source]:
        if self.sources:
            self.index = self.index - 1 if self.index > 0 else self.total - 1
        return self.current
