"""
Snapshot Codec — flat, line-oriented text format for cold-start recovery.

    VERSION:<string>
    TIMESTAMP:<epoch-millis>
    ENTITIES:
      ENTITY|<id>|<name>|<type>|<tierName>|<createdAtMillis>
    THREADS:
      THREAD|<id>|<topic>|<createdAtMillis>
        TURN|<sender>|<content>|<timestampMillis>
    QUESTIONS:
      QUESTION|<id>|<text>|<askedBy>|<context>|<status>[|<answer>]

Free-text fields escape backslash as \\\\, pipe as \\| and newline as \\n, so
every record fits on one line and fields split on unescaped pipes only.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from context_kernel.models.entity import MemoryTier
from context_kernel.models.question import QuestionStatus
from context_kernel.models.snapshot import (
    PersistedEntity,
    PersistedQuestion,
    PersistedThread,
    PersistedTurn,
    Snapshot,
)

_ESCAPES = {"n": "\n", "r": "\r"}
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MILLI = timedelta(milliseconds=1)


class SnapshotFormatError(ValueError):
    """The snapshot text could not be decoded."""


def to_millis(value: datetime) -> int:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // _ONE_MILLI


def from_millis(value: int) -> datetime:
    return _EPOCH + value * _ONE_MILLI


def escape_field(value: Optional[str]) -> str:
    if value is None:
        return ""
    return (
        value.replace("\\", "\\\\")
        .replace("|", "\\|")
        .replace("\n", "\\n")
        .replace("\r", "\\r")
    )


def split_fields(line: str) -> List[str]:
    """Split a record on unescaped pipes, undoing the escapes."""
    fields: List[str] = []
    current: List[str] = []
    i = 0
    while i < len(line):
        char = line[i]
        if char == "\\" and i + 1 < len(line):
            nxt = line[i + 1]
            current.append(_ESCAPES.get(nxt, nxt))
            i += 2
            continue
        if char == "|":
            fields.append("".join(current))
            current = []
        else:
            current.append(char)
        i += 1
    fields.append("".join(current))
    return fields


def _record(*fields: str) -> str:
    return "|".join(fields)


def encode(snapshot: Snapshot) -> str:
    lines = [
        f"VERSION:{snapshot.version}",
        f"TIMESTAMP:{to_millis(snapshot.timestamp)}",
        "ENTITIES:",
    ]
    for entity in snapshot.entities:
        lines.append("  " + _record(
            "ENTITY",
            escape_field(entity.id),
            escape_field(entity.name),
            escape_field(entity.entity_type),
            entity.tier.value,
            str(to_millis(entity.created_at)),
        ))

    lines.append("THREADS:")
    for thread in snapshot.threads:
        lines.append("  " + _record(
            "THREAD",
            escape_field(thread.id),
            escape_field(thread.topic),
            str(to_millis(thread.created_at)),
        ))
        for turn in thread.turns:
            lines.append("    " + _record(
                "TURN",
                escape_field(turn.sender),
                escape_field(turn.content),
                str(to_millis(turn.timestamp)),
            ))

    lines.append("QUESTIONS:")
    for question in snapshot.questions:
        fields = [
            "QUESTION",
            escape_field(question.id),
            escape_field(question.text),
            escape_field(question.asked_by),
            escape_field(question.context),
            question.status.value,
        ]
        if question.answer_text is not None:
            fields.append(escape_field(question.answer_text))
        lines.append("  " + _record(*fields))

    return "\n".join(lines) + "\n"


def decode(text: str) -> Snapshot:
    """Parse snapshot text. Raises SnapshotFormatError on malformed input."""
    version = "1.0"
    timestamp: Optional[datetime] = None
    entities: List[PersistedEntity] = []
    threads: List[PersistedThread] = []
    questions: List[PersistedQuestion] = []
    section: Optional[str] = None

    # Not splitlines(): escaped content may hold Unicode line separators.
    # Encoded fields never contain a raw "\r", so a trailing one is a CRLF ending.
    for lineno, raw in enumerate(text.split("\n"), start=1):
        raw = raw.rstrip("\r")
        if not raw.strip():
            continue
        if raw.startswith("VERSION:"):
            version = raw[len("VERSION:"):]
            continue
        if raw.startswith("TIMESTAMP:"):
            timestamp = from_millis(_parse_int(raw[len("TIMESTAMP:"):], lineno))
            continue
        if raw in ("ENTITIES:", "THREADS:", "QUESTIONS:"):
            section = raw[:-1]
            continue

        fields = split_fields(raw.lstrip(" "))
        tag = fields[0]

        if section == "ENTITIES" and tag == "ENTITY":
            _expect(fields, 6, lineno)
            entities.append(PersistedEntity(
                id=fields[1],
                name=fields[2],
                entity_type=fields[3],
                tier=_parse_enum(MemoryTier, fields[4], lineno),
                created_at=from_millis(_parse_int(fields[5], lineno)),
            ))
        elif section == "THREADS" and tag == "THREAD":
            _expect(fields, 4, lineno)
            threads.append(PersistedThread(
                id=fields[1],
                topic=fields[2],
                created_at=from_millis(_parse_int(fields[3], lineno)),
            ))
        elif section == "THREADS" and tag == "TURN" and threads:
            _expect(fields, 4, lineno)
            threads[-1].turns.append(PersistedTurn(
                sender=fields[1],
                content=fields[2],
                timestamp=from_millis(_parse_int(fields[3], lineno)),
            ))
        elif section == "QUESTIONS" and tag == "QUESTION":
            if len(fields) not in (6, 7):
                raise SnapshotFormatError(
                    f"line {lineno}: expected 6 or 7 fields, got {len(fields)}"
                )
            questions.append(PersistedQuestion(
                id=fields[1],
                text=fields[2],
                asked_by=fields[3],
                context=fields[4],
                status=_parse_enum(QuestionStatus, fields[5], lineno),
                answer_text=fields[6] if len(fields) == 7 else None,
            ))
        else:
            raise SnapshotFormatError(f"line {lineno}: unexpected record {tag!r}")

    if timestamp is None:
        raise SnapshotFormatError("missing TIMESTAMP header")

    return Snapshot(
        version=version,
        timestamp=timestamp,
        entities=entities,
        threads=threads,
        questions=questions,
    )


def _expect(fields: List[str], count: int, lineno: int) -> None:
    if len(fields) != count:
        raise SnapshotFormatError(
            f"line {lineno}: expected {count} fields, got {len(fields)}"
        )


def _parse_int(value: str, lineno: int) -> int:
    try:
        return int(value)
    except ValueError:
        raise SnapshotFormatError(f"line {lineno}: not an integer: {value!r}")


def _parse_enum(enum_cls, value: str, lineno: int):
    try:
        return enum_cls(value)
    except ValueError:
        raise SnapshotFormatError(f"line {lineno}: unknown {enum_cls.__name__} {value!r}")
