"""
Incremental extraction of tool-call JSON objects from streamed model text.

The model is instructed to answer with one JSON object per tool call:

    {"action": "listFiles", "params": {"path": "."}}
    {"action": "readFile", "params": {"path": "notes.txt"}}

Text arrives in arbitrary fragments, so extraction runs against an
accumulating buffer. Only objects carrying both a non-empty string
``action`` and an object ``params`` count as actions.

Known limitation: the brace scanner counts every ``{`` and ``}``, including
ones inside JSON string values. A string such as ``"a } b"`` inside params
throws the count off and that object is not extracted.
"""

import json
import logging

from toolgate.domain.tool import ToolInvocation

logger = logging.getLogger(__name__)


def _parse_candidate(text: str) -> ToolInvocation | None:
    try:
        value = json.loads(text)
    except ValueError:
        return None
    return ToolInvocation.from_json(value)


def scan_actions(text: str) -> tuple[list[ToolInvocation], int]:
    """
    Find every complete tool-call object in ``text``, left to right.

    The whole text is tried as one JSON document first. Failing that, a
    brace counter marks each balanced ``{...}`` span and each span is parsed
    on its own. Spans that do not parse, or parse to something that is not
    a tool call, are skipped.

    Returns:
        (actions, consumed). ``consumed`` is the index just past the last
        extracted action, or 0 when none was found. Text from there on may
        hold the start of the next action.
    """
    stripped = text.strip()
    if not stripped:
        return [], 0

    whole = _parse_candidate(stripped)
    if whole is not None:
        return [whole], len(text)

    actions: list[ToolInvocation] = []
    consumed = 0
    depth = 0
    start = -1
    for index, char in enumerate(text):
        if char == "{":
            if depth == 0:
                start = index
            depth += 1
        elif char == "}":
            if depth == 0:
                # Stray closing brace outside any object
                continue
            depth -= 1
            if depth == 0:
                invocation = _parse_candidate(text[start : index + 1])
                if invocation is not None:
                    actions.append(invocation)
                    consumed = index + 1
                start = -1

    return actions, consumed


def extract_actions(text: str) -> list[ToolInvocation]:
    """Find every complete tool-call object in ``text``, left to right."""
    actions, _ = scan_actions(text)
    return actions


class ActionExtractor:
    """
    Buffer for one model turn.

    ``feed`` appends a delta and returns the actions found in the buffer.
    When any are found the buffer is cut just past the last one, so a
    partial action that follows it in the same delta is kept for the next
    delta. ``finish`` drains whatever is left at end of stream.
    """

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, delta: str) -> list[ToolInvocation]:
        if not delta:
            return []
        self._buffer += delta

        actions, consumed = scan_actions(self._buffer)
        if actions:
            logger.debug(f"Extracted {len(actions)} action(s) from {consumed} buffered chars")
            self._buffer = self._buffer[consumed:]
        return actions

    def finish(self) -> tuple[list[ToolInvocation], str]:
        """
        Drain the buffer at end of stream.

        Returns:
            (actions, leftover_text). At most one of the two is non-empty;
            leftover text is returned only when no action was found and the
            buffer holds more than whitespace.
        """
        remaining = self._buffer
        self._buffer = ""
        if not remaining.strip():
            return [], ""

        actions = extract_actions(remaining)
        if actions:
            return actions, ""
        return [], remaining
