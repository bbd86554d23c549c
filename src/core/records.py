"""
Decoding of stored chat records into transcript items.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

from core.errors import RecordFormatError
from models import ChoiceOption, InteractiveItem, Item, ReasoningItem, Source, TextItem


@dataclass(frozen=True)
class HistoryRecord:
    record_id: str
    role: str
    items: list[Item]
    sources: list[Source]
    duration_seconds: Optional[float] = None


def safe_text(val: Any) -> str:
    """Coerce the loosely typed values found in stored records to display text."""
    if isinstance(val, str):
        return val
    if isinstance(val, bool):
        return str(val).lower()
    if isinstance(val, (int, float)):
        return str(val)
    if not val:
        return ""
    if isinstance(val, dict):
        if val.get('value'):
            return safe_text(val['value'])
        if val.get('content'):
            return safe_text(val['content'])
        return ""
    return str(val)


def _nested_content(entry: Mapping[str, Any], key: str) -> str:
    inner = entry.get(key)
    if isinstance(inner, dict):
        return safe_text(inner.get('content'))
    return ""


def parse_interactive(payload: Any) -> InteractiveItem:
    if not isinstance(payload, dict):
        raise RecordFormatError("interactive item without payload")
    if payload.get('type') != 'userSelect':
        raise RecordFormatError(f"unsupported interactive type: {payload.get('type')!r}")

    params = payload.get('params') or {}
    if not isinstance(params, dict):
        raise RecordFormatError(f"interactive params is not an object: {params!r}")
    raw_options = params.get('userSelectOptions') or []
    if not isinstance(raw_options, list):
        raise RecordFormatError(f"userSelectOptions is not a list: {raw_options!r}")

    options = []
    for opt in raw_options:
        if not isinstance(opt, dict) or 'value' not in opt:
            raise RecordFormatError(f"malformed choice option: {opt!r}")
        options.append(ChoiceOption(key=safe_text(opt.get('key')), value=safe_text(opt['value'])))

    resolved = params.get('userSelectedVal')
    return InteractiveItem(
        prompt=safe_text(params.get('description')),
        options=options,
        resolved_value=safe_text(resolved) if resolved else None,
    )


def parse_items(value: Any) -> list[Item]:
    if not isinstance(value, list):
        return [TextItem(safe_text(value))]

    items: list[Item] = []
    for entry in value:
        if not isinstance(entry, dict):
            raise RecordFormatError(f"record item is not an object: {entry!r}")
        kind = entry.get('type')
        if kind == 'text':
            items.append(TextItem(_nested_content(entry, 'text')))
        elif kind == 'reasoning':
            items.append(ReasoningItem(_nested_content(entry, 'reasoning')))
        elif kind == 'interactive':
            items.append(parse_interactive(entry.get('interactive')))
        else:
            raise RecordFormatError(f"unknown item type: {kind!r}")
    return items


def parse_source(raw: Mapping[str, Any]) -> Source:
    if not isinstance(raw, dict):
        raise RecordFormatError(f"source is not an object: {raw!r}")
    return Source(
        id=safe_text(raw.get('id')),
        secondary_id=safe_text(raw.get('_id')),
        source_name=safe_text(raw.get('sourceName')),
        title=safe_text(raw.get('title')),
        body=safe_text(raw.get('q') or raw.get('content')),
        score=safe_text(raw.get('score')),
    )


def parse_record(raw: Mapping[str, Any]) -> HistoryRecord:
    if not isinstance(raw, dict):
        raise RecordFormatError(f"record is not an object: {raw!r}")

    if 'obj' in raw:
        role = 'user' if raw['obj'] == 'Human' else 'assistant'
    else:
        role = 'user' if raw.get('role') == 'user' else 'assistant'

    duration = raw.get('durationSeconds')
    if duration is not None and not isinstance(duration, (int, float)):
        raise RecordFormatError(f"durationSeconds is not a number: {duration!r}")

    quotes = raw.get('totalQuoteList') or []
    if not isinstance(quotes, list):
        raise RecordFormatError(f"totalQuoteList is not a list: {quotes!r}")

    return HistoryRecord(
        record_id=safe_text(raw.get('_id') or raw.get('dataId')),
        role=role,
        items=parse_items(raw.get('value')),
        sources=[parse_source(s) for s in quotes],
        duration_seconds=duration,
    )


def find_reply(records: Sequence[HistoryRecord], question: int) -> Optional[HistoryRecord]:
    """
    The stored assistant record answering the question-th user record
    (1-based). A record list with no user entries at all yields its last
    assistant record.
    """
    if not any(rec.role == 'user' for rec in records):
        return next((rec for rec in reversed(records) if rec.role == 'assistant'), None)

    asked = 0
    for rec in records:
        if rec.role == 'user':
            asked += 1
            if asked > question:
                return None
        elif asked == question:
            return rec
    return None
