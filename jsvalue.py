"""
jsvalue - JavaScript-flavoured value parser

A hand-written, zero-dependency recursive-descent parser for a JSON superset
that reads values the way JavaScript literals are written:

    - unquoted and bracket-computed object keys ({a: 1, [5]: 2, [[1, 2]]: 3})
    - single- or double-quoted strings
    - undefined, hexadecimal (0x1F), octal (0o17) and scientific (.5e-2) numbers
    - array elision ([1,,3]) and ';' as an alternate object separator

Usage:
    import jsvalue

    value = jsvalue.loads("{ a: 'hi', [5]: [1,, 0x1F] }")

    try:
        jsvalue.loads(text)
    except jsvalue.ParseError as e:
        print(jsvalue.format_error(text, e))

    # Several values out of one buffer
    for value in jsvalue.iter_values("'string' 123 [1, 2, 3]"):
        ...
"""

import json
import string
from collections import deque
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, NamedTuple, Optional, Tuple, Union

__all__ = [
    'String', 'Number', 'Boolean', 'Null', 'Undefined', 'Array', 'Object', 'Value',
    'NULL', 'UNDEFINED', 'TRUE', 'FALSE',
    'ParseError', 'ParseResult', 'DEFAULT_MAX_DEPTH',
    'skip_whitespace', 'escape', 'parse_value', 'parse_document', 'loads',
    'iter_values', 'parse_all', 'try_parse', 'render_context', 'format_error',
    'to_python',
]

# Deep enough for real documents, shallow enough to stay clear of the
# interpreter's recursion limit (two frames per nesting level).
DEFAULT_MAX_DEPTH = 256

# ==========================================
# Values
# ==========================================

@dataclass(frozen=True)
class String:
    value: str

@dataclass(frozen=True)
class Number:
    value: float

@dataclass(frozen=True)
class Boolean:
    value: bool

@dataclass(frozen=True)
class Null:
    pass

@dataclass(frozen=True)
class Undefined:
    """Explicit `undefined`, and the placeholder for an elided array slot."""

@dataclass(frozen=True)
class Array:
    items: Tuple['Value', ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'items', tuple(self.items))

    def __len__(self):
        return len(self.items)

    def __getitem__(self, index):
        return self.items[index]

    def __iter__(self):
        return iter(self.items)

@dataclass(frozen=True, eq=False)
class Object(Mapping):
    """Read-only mapping from key values to values, in insertion order.

    Keys are values themselves, so arrays and objects can be keys too.
    Lookups also accept plain Python scalars: obj['a'] is obj[String('a')].
    Equality ignores entry order.
    """
    entries: Tuple[Tuple['Value', 'Value'], ...] = ()
    _index: Dict['Value', 'Value'] = field(default_factory=dict, init=False, repr=False)

    def __post_init__(self):
        pairs = self.entries.items() if isinstance(self.entries, Mapping) else self.entries
        index = {}
        for key, value in pairs:
            index[key] = value
        object.__setattr__(self, '_index', index)
        object.__setattr__(self, 'entries', tuple(index.items()))

    def __getitem__(self, key):
        return self._index[_coerce_key(key)]

    def __contains__(self, key):
        try:
            return _coerce_key(key) in self._index
        except TypeError:
            return False

    def __iter__(self):
        return iter(self._index)

    def __len__(self):
        return len(self._index)

    def __eq__(self, other):
        if not isinstance(other, Object):
            return NotImplemented
        return self._index == other._index

    def __hash__(self):
        return hash(frozenset(self._index.items()))

Value = Union[String, Number, Boolean, Null, Undefined, Array, Object]

_VALUE_TYPES = (String, Number, Boolean, Null, Undefined, Array, Object)

NULL = Null()
UNDEFINED = Undefined()
TRUE = Boolean(True)
FALSE = Boolean(False)

# Matched by raw prefix, in this order
_KEYWORDS = (('true', TRUE), ('false', FALSE), ('null', NULL), ('undefined', UNDEFINED))

def _coerce_key(key):
    if isinstance(key, _VALUE_TYPES): return key
    if key is None: return NULL
    if isinstance(key, bool): return Boolean(key)
    if isinstance(key, (int, float)): return Number(float(key))
    if isinstance(key, str): return String(key)
    raise TypeError(f"Cannot use {type(key).__name__} as an object key")

def to_python(value: Value) -> Any:
    """Convert a value tree to plain Python data.

    Undefined stays the Undefined value (Python has no equivalent). Array and
    object keys stay as values since lists and dicts are not hashable.
    """
    if isinstance(value, (String, Number, Boolean)): return value.value
    if isinstance(value, Null): return None
    if isinstance(value, Undefined): return value
    if isinstance(value, Array):
        return [to_python(item) for item in value]
    if isinstance(value, Object):
        return {
            key if isinstance(key, (Array, Object)) else to_python(key): to_python(item)
            for key, item in value.entries
        }
    raise TypeError(f"Not a value: {value!r}")

# ==========================================
# Errors
# ==========================================

class ParseError(Exception):
    """The only error raised while parsing: a message and the 0-based offset."""

    def __init__(self, message: str, offset: int):
        super().__init__(message)
        self.message = message
        self.offset = offset

class ParseResult(NamedTuple):
    value: Optional[Value] = None
    error: Optional[ParseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

# ==========================================
# Cursor Utilities
# ==========================================

_DIGITS = '0123456789'
_HEX_DIGITS = '0123456789abcdefABCDEF'
_OCTAL_DIGITS = '01234567'
_NAME_START = string.ascii_letters + '_$'
_NAME_CHARS = _NAME_START + _DIGITS

def skip_whitespace(text: str, pos: int) -> int:
    """Advance past spaces, newlines and carriage returns (tabs are not whitespace)."""
    length = len(text)
    while pos < length and text[pos] in ' \n\r':
        pos += 1
    return pos

def escape(text: str) -> str:
    """Escape text like a JSON string literal, minus the surrounding quotes."""
    return json.dumps(text, ensure_ascii=False)[1:-1]

def _scan(text, pos, chars):
    length = len(text)
    while pos < length and text[pos] in chars:
        pos += 1
    return pos

def _scan_name(text, pos):
    if pos < len(text) and text[pos] in _NAME_START:
        return _scan(text, pos + 1, _NAME_CHARS)
    return pos

def _scan_number(text, pos):
    """Return the end of the numeric literal at pos, or pos if there is none.

    Tries 0x-hex, then 0o-octal, then decimal; a prefix without digits falls
    through to the decimal branch, so '0x' scans as '0'. An exponent is only
    taken when it has digits.
    """
    prefix = text[pos:pos + 2].lower()
    for marker, digits in (('0x', _HEX_DIGITS), ('0o', _OCTAL_DIGITS)):
        if prefix == marker:
            end = _scan(text, pos + 2, digits)
            if end > pos + 2:
                return end

    end = _scan(text, pos, _DIGITS)
    if text[end:end + 1] == '.':
        fraction = _scan(text, end + 1, _DIGITS)
        if fraction > end + 1:
            end = fraction
    if end == pos:
        return pos

    if text[end:end + 1] in ('e', 'E'):
        exponent = end + 1
        if text[exponent:exponent + 1] in ('+', '-'):
            exponent += 1
        exponent_end = _scan(text, exponent, _DIGITS)
        if exponent_end > exponent:
            end = exponent_end
    return end

def _to_number(literal):
    marker = literal[:2].lower()
    if marker in ('0x', '0o'):
        integer = int(literal[2:], 16 if marker == '0x' else 8)
        try:
            return float(integer)
        except OverflowError:
            # Beyond the largest double, like 1e400
            return float('inf')
    return float(literal)

# ==========================================
# Parser
# ==========================================

class _ValueParser:
    """Recursive descent over one input string.

    Every rule takes a start offset and returns (value, end offset); the
    parser itself holds only the input and the depth limit.
    """

    def __init__(self, text: str, max_depth: Optional[int] = DEFAULT_MAX_DEPTH):
        self.text = text
        self.length = len(text)
        self.max_depth = max_depth

    def error(self, message: str, offset: int):
        raise ParseError(message, offset)

    def describe(self, pos):
        if pos >= self.length:
            return 'end of input'
        return f'"{escape(self.text[pos])}"'

    def enter(self, offset, depth):
        depth += 1
        if self.max_depth is not None and depth > self.max_depth:
            self.error(f"Maximum nesting depth of {self.max_depth} exceeded at {offset}", offset)
        return depth

    def value(self, start: int, depth: int = 0) -> Tuple[Value, int]:
        first = skip_whitespace(self.text, start)
        if first >= self.length:
            self.error(f"Unexpected EOF at {first}", first)

        ch = self.text[first]
        if ch in '"\'':
            return self.string(first)
        for word, keyword in _KEYWORDS:
            if self.text.startswith(word, first):
                return keyword, first + len(word)
        if ch == '[':
            return self.array(first, self.enter(first, depth))
        if ch == '{':
            return self.object(first, self.enter(first, depth))
        return self.number(first)

    def string(self, first):
        text = self.text
        quote = text[first]
        chars = []
        escaped = False
        for i in range(first + 1, self.length):
            ch = text[i]
            if escaped:
                chars.append(ch)
                escaped = False
            elif ch == '\\':
                escaped = True
            elif ch == quote:
                return String(''.join(chars)), i + 1
            else:
                chars.append(ch)
        self.error(f"Unfinished string started at {first}", first)

    def array(self, first, depth):
        text = self.text
        items = []
        allowed = True      # no value since the last ','
        trailing = False    # the last ',' followed a value
        i = skip_whitespace(text, first + 1)
        while i < self.length:
            ch = text[i]
            if ch == ']':
                # '[1,]' keeps the slot after the ','
                if trailing:
                    items.append(UNDEFINED)
                return Array(tuple(items)), i + 1
            if ch == ',':
                if allowed:
                    items.append(UNDEFINED)
                trailing = not allowed
                allowed = True
                i = skip_whitespace(text, i + 1)
                continue
            if not allowed:
                self.error(f"Expected ']' or ',' after value in array at {i} "
                           f"but got {self.describe(i)} instead", i)
            item, i = self.value(i, depth)
            items.append(item)
            allowed = False
            trailing = False
            i = skip_whitespace(text, i)
        self.error(f"Expected ']' to close array at {first}", first)

    def object(self, first, depth):
        text = self.text
        entries = {}
        allowed = True
        i = skip_whitespace(text, first + 1)
        while i < self.length:
            ch = text[i]
            if ch == '}':
                return Object(entries), i + 1
            if ch in ',;':
                if allowed:
                    self.error(f'Unexpected character "{escape(ch)}" at {i}', i)
                allowed = True
                i = skip_whitespace(text, i + 1)
                continue
            if not allowed:
                self.error(f"Expected '}}', ',' or ';' after value in object at {i} "
                           f"but got {self.describe(i)} instead", i)

            key, i = self.key(i, depth)
            i = skip_whitespace(text, i)
            if text[i:i + 1] != ':':
                self.error(f"Expected ':' after key in object at {i} "
                           f"but got {self.describe(i)} instead", i)
            value, i = self.value(i + 1, depth)
            entries[key] = value
            allowed = False
            i = skip_whitespace(text, i)
        self.error(f"Expected '}}' to close object at {first}", first)

    def key(self, i, depth):
        text = self.text
        ch = text[i]
        if ch == '[':
            key, end = self.value(i + 1, depth)
            end = skip_whitespace(text, end)
            if text[end:end + 1] != ']':
                self.error(f"Expected ']' to close '[' in object at {end} "
                           f"but got {self.describe(end)} instead", end)
            return key, end + 1
        if ch in '"\'':
            return self.string(i)
        end = _scan_name(text, i)
        if end == i:
            self.error(f'Unexpected character "{escape(ch)}" at {i}', i)
        return String(text[i:end]), end

    def number(self, first):
        end = _scan_number(self.text, first)
        if end == first:
            self.error(f'Unexpected character "{escape(self.text[first])}" at {first}', first)
        literal = self.text[first:end]
        try:
            number = _to_number(literal)
        except ValueError:
            self.error(f'Could not convert "{escape(literal)}" to a number at {first}', first)
        return Number(number), end

# ==========================================
# Public API
# ==========================================

def parse_value(text: str, start: int = 0, *,
                max_depth: Optional[int] = DEFAULT_MAX_DEPTH) -> Tuple[Value, int]:
    """Parse the value at or after `start`; return it and the offset just past it."""
    return _ValueParser(text, max_depth).value(start)

def parse_document(text: str, *, max_depth: Optional[int] = DEFAULT_MAX_DEPTH) -> Value:
    """Parse a string holding exactly one value (surrounding whitespace allowed)."""
    value, end = parse_value(text, 0, max_depth=max_depth)
    i = skip_whitespace(text, end)
    if i != len(text):
        raise ParseError(f'Unexpected character "{escape(text[i])}" at {i}', i)
    return value

loads = parse_document

def iter_values(text: str, *, max_depth: Optional[int] = DEFAULT_MAX_DEPTH) -> Iterator[Value]:
    """Yield every value in a string of whitespace-separated values."""
    parser = _ValueParser(text, max_depth)
    i = skip_whitespace(text, 0)
    # Parsing an all-whitespace remainder is an EOF error, so check first
    while i < len(text):
        value, end = parser.value(i)
        yield value
        i = skip_whitespace(text, end)

def parse_all(text: str, *, max_depth: Optional[int] = DEFAULT_MAX_DEPTH) -> List[Value]:
    return list(iter_values(text, max_depth=max_depth))

def try_parse(text: str, *, max_depth: Optional[int] = DEFAULT_MAX_DEPTH) -> ParseResult:
    """Like parse_document, but report failure in the result instead of raising."""
    try:
        return ParseResult(value=parse_document(text, max_depth=max_depth))
    except ParseError as e:
        return ParseResult(error=e)

# ==========================================
# Error Context
# ==========================================

def render_context(text: str, offset: int, context: int = 2) -> str:
    """Show the line holding `offset` with `context` lines around it and a caret.

        2|    "b": 'not' ok,
                         ^
        3|}

    Scans forward once, keeping only the last few line positions, and stops
    `context` lines past the failing line.
    """
    if not 0 <= offset <= len(text):
        raise ValueError(f"Offset {offset} is outside the text (length {len(text)})")
    if context < 0:
        raise ValueError(f"Context must not be negative, got {context}")

    window = deque()  # (start, end, line number), end excludes the newline
    found = None
    start = 0
    number = 0
    newline = text.find('\n')
    while newline != -1:
        number += 1
        window.append((start, newline, number))
        start = newline + 1
        if found is None:
            if newline >= offset:
                found = number
            elif len(window) > context:
                window.popleft()
        if found is not None and number - found == context:
            break
        newline = text.find('\n', start)
    else:
        # The last line ends at the end of the input
        number += 1
        window.append((start, len(text), number))
        if found is None:
            found = number

    width = len(str(window[-1][2]))
    lines = []
    for line_start, line_end, line_number in window:
        line = text[line_start:line_end]
        if line.endswith('\r'):
            line = line[:-1]
        lines.append(f"{str(line_number).rjust(width)}|{line}")
        if line_number == found:
            lines.append(' ' * (width + 1 + offset - line_start) + '^')
    return '\n'.join(lines)

def format_error(text: str, error: ParseError, context: int = 2) -> str:
    """The error message followed by the excerpt of `text` where it happened."""
    return f"{error.message}:\n{render_context(text, error.offset, context)}"
