"""
Best-effort recovery of a JSON object from partially streamed model output.

The text is scanned once, left to right, by a small state machine:

- ``SCANNING``: looking for the first ``{``; everything before it (prose,
  markdown fences, a ``json:`` label) is skipped.
- ``BALANCED``: the first top-level object closed; trailing text is ignored.
- ``NEEDS_REPAIR``: input ended (or broke) inside the object.

While scanning, string/escape state and a stack of open containers are
tracked so the repair can close an unterminated string, drop trailing commas,
close the innermost container on a closer of the wrong kind, complete or drop
dangling keys and partial literals, and append the closers of every container
that is still open, innermost first.
"""
import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

_FENCED_OBJECT_RE = re.compile(r"```(?:json)?\s*(\{[\s\S]*\})\s*```", re.IGNORECASE)
_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_PARTIAL_UNICODE_ESCAPE_RE = re.compile(r"\\u[0-9a-fA-F]{0,3}$")
_NUMBER_RE = re.compile(r"^-?(0|[1-9]\d*)(\.\d+)?([eE][+-]?\d+)?$")
_LITERALS = ("true", "false", "null")


class ScanState(str, Enum):
    SCANNING = "scanning"
    BALANCED = "balanced"
    NEEDS_REPAIR = "needs_repair"


class _Expect(str, Enum):
    KEY = "key"
    COLON = "colon"
    VALUE = "value"
    COMMA = "comma"


@dataclass
class _Frame:
    closer: str
    expect: _Expect
    key_start: Optional[int] = None


class JsonScanner:
    def __init__(self) -> None:
        self.state = ScanState.SCANNING
        self._out: List[str] = []
        self._stack: List[_Frame] = []
        self._in_string = False
        self._escape = False
        self._string_is_key = False
        self._literal_start: Optional[int] = None

    def feed(self, text: str) -> "JsonScanner":
        for ch in text:
            if self.state is ScanState.BALANCED:
                break
            if self.state is ScanState.SCANNING:
                if ch == "{":
                    self._stack.append(_Frame("}", _Expect.KEY))
                    self._out.append(ch)
                    self.state = ScanState.NEEDS_REPAIR
                continue
            if self._in_string:
                self._feed_string_char(ch)
            else:
                self._feed_char(ch)
        return self

    def finish(self) -> Optional[str]:
        """Return the (possibly repaired) object text, or None if no object started."""
        if self.state is ScanState.SCANNING:
            return None
        if self.state is ScanState.BALANCED:
            return "".join(self._out)

        if self._in_string:
            if self._escape:
                self._out.pop()
                self._escape = False
            tail = "".join(self._out[-6:])
            partial = _PARTIAL_UNICODE_ESCAPE_RE.search(tail)
            start = len(self._out) - len(partial.group(0)) if partial else None
            if start is not None and self._backslash_run(start) % 2 == 1:
                del self._out[start:]
            self._close_string()
        self._finish_literal()

        while self._stack:
            frame = self._stack.pop()
            self._settle_frame(frame)
            self._out.append(frame.closer)
        return "".join(self._out)

    # -- scanning ---------------------------------------------------------

    def _feed_string_char(self, ch: str) -> None:
        if self._escape:
            self._escape = False
            self._out.append(ch)
        elif ch == "\\":
            self._escape = True
            self._out.append(ch)
        elif ch == '"':
            self._close_string()
        elif ch == "\n":
            # Unterminated on this line: close it here, keeping a separator typed inside it
            moved_comma = self._pop_trailing_comma_in_string()
            self._close_string()
            if moved_comma:
                self._feed_char(",")
            self._out.append(ch)
        else:
            self._out.append(ch)

    def _feed_char(self, ch: str) -> None:
        if ch.isspace():
            self._end_literal()
            self._out.append(ch)
        elif ch == '"':
            self._end_literal()
            self._open_string()
        elif ch in "{[":
            self._end_literal()
            self._begin_value()
            self._stack.append(_Frame("}" if ch == "{" else "]", _Expect.KEY if ch == "{" else _Expect.VALUE))
            self._out.append(ch)
        elif ch in "}]":
            self._close_container(ch)
        elif ch == ":":
            self._end_literal()
            self._stack[-1].expect = _Expect.VALUE
            self._out.append(ch)
        elif ch == ",":
            self._end_literal()
            top = self._stack[-1]
            top.expect = _Expect.KEY if top.closer == "}" else _Expect.VALUE
            self._out.append(ch)
        else:
            if self._literal_start is None:
                self._begin_value()
                self._literal_start = len(self._out)
            self._out.append(ch)

    def _open_string(self) -> None:
        top = self._stack[-1]
        self._string_is_key = top.closer == "}" and top.expect is _Expect.KEY
        if self._string_is_key:
            top.key_start = len(self._out)
        else:
            self._begin_value()
        self._in_string = True
        self._out.append('"')

    def _close_string(self) -> None:
        self._out.append('"')
        self._in_string = False
        if self._string_is_key:
            self._stack[-1].expect = _Expect.COLON
            self._string_is_key = False

    def _begin_value(self) -> None:
        if self._stack:
            top = self._stack[-1]
            top.expect = _Expect.COMMA
            top.key_start = None

    def _close_container(self, ch: str) -> None:
        self._end_literal()
        top = self._stack[-1]
        if top.closer != ch:
            # Wrong kind of closer: it closes the innermost container
            ch = top.closer
        self._settle_frame(top)
        self._out.append(ch)
        self._stack.pop()
        if not self._stack:
            self.state = ScanState.BALANCED

    # -- repair helpers ---------------------------------------------------

    def _settle_frame(self, frame: _Frame) -> None:
        if frame.expect is _Expect.COLON and frame.key_start is not None:
            del self._out[frame.key_start :]
            frame.key_start = None
            self._strip_trailing_comma()
        elif frame.expect is _Expect.VALUE and frame.closer == "}":
            self._out.append("null")
        else:
            self._strip_trailing_comma()

    def _strip_trailing_comma(self) -> None:
        i = len(self._out) - 1
        while i >= 0 and self._out[i].isspace():
            i -= 1
        if i >= 0 and self._out[i] == ",":
            del self._out[i]

    def _pop_trailing_comma_in_string(self) -> bool:
        i = len(self._out) - 1
        while i >= 0 and self._out[i] in (" ", "\t", "\r"):
            i -= 1
        if i >= 0 and self._out[i] == "," and not (i > 0 and self._out[i - 1] == "\\"):
            del self._out[i:]
            return True
        return False

    def _backslash_run(self, end: int) -> int:
        # Backslashes ending at ``end`` (inclusive); an even run is an escaped backslash
        count = 0
        i = end
        while i >= 0 and self._out[i] == "\\":
            count += 1
            i -= 1
        return count

    def _end_literal(self) -> None:
        self._literal_start = None

    def _finish_literal(self) -> None:
        if self._literal_start is None:
            return
        literal = "".join(self._out[self._literal_start :])
        del self._out[self._literal_start :]
        self._out.append(_complete_literal(literal))
        self._literal_start = None


def _complete_literal(literal: str) -> str:
    if literal in _LITERALS or _NUMBER_RE.match(literal):
        return literal
    for candidate in _LITERALS:
        if candidate.startswith(literal):
            return candidate
    trimmed = literal.rstrip(".eE+-")
    if trimmed and _NUMBER_RE.match(trimmed):
        return trimmed
    return "null"


def extract_candidate(text: str) -> str:
    """Prefer a fenced ```json block; otherwise drop fence markers so the scanner sees raw JSON."""
    fenced = _FENCED_OBJECT_RE.search(text)
    if fenced:
        return fenced.group(1).strip()
    return _FENCE_RE.sub("", text)


def scan(text: str) -> JsonScanner:
    return JsonScanner().feed(extract_candidate(text))


def repair_json(text: str) -> Optional[str]:
    return scan(text).finish()


def parse_partial_json(text: str) -> Optional[Any]:
    """
    Parse streamed model output that may be truncated or wrapped in prose.

    Valid JSON is returned exactly as ``json.loads`` would; otherwise the
    repaired first object is parsed. Returns None when nothing is recoverable.
    """
    stripped = (text or "").strip()
    if not stripped:
        return None
    try:
        return json.loads(stripped, strict=False)
    except json.JSONDecodeError:
        pass
    repaired = repair_json(stripped)
    if repaired is None:
        return None
    try:
        return json.loads(repaired, strict=False)
    except json.JSONDecodeError as exc:
        logger.debug("Repaired JSON still invalid (%s): %s", exc, repaired[:500])
        return None


_STRING_FIELDS = ("title", "description_md", "yield_text", "cuisine", "difficulty")
_INT_FIELDS = ("total_time_min", "active_time_min")


def extract_recipe_fields(text: str) -> Dict[str, Any]:
    """Last resort: pull simple recipe fields out of text that no longer parses as JSON."""
    fields: Dict[str, Any] = {}
    for name in _STRING_FIELDS:
        match = re.search(rf'"{name}"\s*:\s*"([^"]*)"', text, re.IGNORECASE)
        if match:
            fields[name] = match.group(1)
    for name in _INT_FIELDS:
        match = re.search(rf'"{name}"\s*:\s*(\d+)', text, re.IGNORECASE)
        if match:
            fields[name] = int(match.group(1))
    return fields
