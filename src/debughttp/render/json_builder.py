"""
=============================================================================
JSON BUILDER
=============================================================================

Incremental, stack-based JSON emitter for handlers that stream out nested
state (registers, memory pages, breakpoint lists) without first building
a dict tree.

=============================================================================
HOW SEPARATORS ARE PLACED
=============================================================================

Every open container is a scope on a stack. Each scope carries one flag:
"the next sibling needs a comma in front of it".

    call                     output so far              stack (kind:flag)
    ─────────────────────    ───────────────────────    ─────────────────
    begin_object()           {                          obj:F
    add("a", 1)              {"a":1                     obj:T
    begin_array("b")         {"a":1,"b":[               obj:F arr:F
    value(2)                 {"a":1,"b":[2              obj:F arr:T
    value(3)                 {"a":1,"b":[2,3            obj:F arr:T
    end_array()              {"a":1,"b":[2,3]           obj:T
    end_object()             {"a":1,"b":[2,3]}          (empty)

    - Writing a separator clears the flag; writing an element sets it.
    - A key is not an element: "k": is written, the value after it is.
    - Closing a scope pops it and sets the PARENT's flag, because the
      closed container is itself an element of the parent.

So the first element of a scope never gets a leading comma and siblings
get exactly one.

=============================================================================
"""

from dataclasses import dataclass
from typing import Any, List, Optional
import json
import math


class JsonBuilderError(Exception):
    """Raised on unbalanced or misplaced builder calls."""


@dataclass
class _Scope:
    kind: str                   # "object" or "array"
    needs_comma: bool = False
    pending_key: bool = False   # object scopes: key written, value not yet


_INT_RANGES = {
    (8, True): (-(1 << 7), (1 << 7) - 1),
    (16, True): (-(1 << 15), (1 << 15) - 1),
    (32, True): (-(1 << 31), (1 << 31) - 1),
    (64, True): (-(1 << 63), (1 << 63) - 1),
    (8, False): (0, (1 << 8) - 1),
    (16, False): (0, (1 << 16) - 1),
    (32, False): (0, (1 << 32) - 1),
    (64, False): (0, (1 << 64) - 1),
}


class JsonBuilder:
    """
    Builds compact JSON text one token at a time.

    Example:
        builder = JsonBuilder()
        builder.begin_object()
        builder.add("pc", 0xC600)
        builder.add_hex16("pc_hex", 0xC600)
        builder.begin_array("flags")
        builder.value("N").value("Z")
        builder.end_array()
        builder.end_object()
        builder.to_string()
        # '{"pc":50688,"pc_hex":"$C600","flags":["N","Z"]}'

    All emitters return self so calls can be chained.
    """

    def __init__(self):
        self._parts: List[str] = []
        self._stack: List[_Scope] = []

    def __repr__(self) -> str:
        return f"JsonBuilder(depth={self.depth}, length={sum(map(len, self._parts))})"

    # =========================================================================
    # INTERNALS
    # =========================================================================

    def _begin_element(self) -> None:
        """Write a separator if the current scope needs one."""
        if not self._stack:
            return
        scope = self._stack[-1]
        if scope.kind == "object":
            if not scope.pending_key:
                raise JsonBuilderError("Value in object without a key")
            scope.pending_key = False
            return
        if scope.needs_comma:
            self._parts.append(",")
            scope.needs_comma = False

    def _end_element(self) -> None:
        if self._stack:
            self._stack[-1].needs_comma = True

    def _emit(self, token: str) -> "JsonBuilder":
        self._begin_element()
        self._parts.append(token)
        self._end_element()
        return self

    # =========================================================================
    # CONTAINERS
    # =========================================================================

    def begin_object(self, key: Optional[str] = None) -> "JsonBuilder":
        """Open an object. With key, first write "key": in the enclosing object."""
        if key is not None:
            self.key(key)
        self._begin_element()
        self._parts.append("{")
        self._stack.append(_Scope("object"))
        return self

    def end_object(self) -> "JsonBuilder":
        return self._end_scope("object", "}")

    def begin_array(self, key: Optional[str] = None) -> "JsonBuilder":
        """Open an array. With key, first write "key": in the enclosing object."""
        if key is not None:
            self.key(key)
        self._begin_element()
        self._parts.append("[")
        self._stack.append(_Scope("array"))
        return self

    def end_array(self) -> "JsonBuilder":
        return self._end_scope("array", "]")

    def _end_scope(self, kind: str, closer: str) -> "JsonBuilder":
        if not self._stack:
            raise JsonBuilderError(f"end_{kind}() with no open scope")
        scope = self._stack[-1]
        if scope.kind != kind:
            raise JsonBuilderError(f"end_{kind}() while an {scope.kind} is open")
        if scope.pending_key:
            raise JsonBuilderError("end_object() after a key with no value")
        self._stack.pop()
        self._parts.append(closer)
        self._end_element()
        return self

    def key(self, name: str) -> "JsonBuilder":
        """Write "name": inside the current object."""
        if not self._stack or self._stack[-1].kind != "object":
            raise JsonBuilderError(f"key({name!r}) outside an object")
        scope = self._stack[-1]
        if scope.pending_key:
            raise JsonBuilderError(f"key({name!r}) right after another key")
        if scope.needs_comma:
            self._parts.append(",")
            scope.needs_comma = False
        self._parts.append(f'"{escape_json_string(name)}":')
        scope.pending_key = True
        return self

    # =========================================================================
    # SCALARS
    # =========================================================================

    def value(self, val: Any) -> "JsonBuilder":
        """Write a scalar, dispatching on its Python type."""
        if val is None:
            return self.null()
        if isinstance(val, bool):
            return self.boolean(val)
        if isinstance(val, int):
            # int64 or uint64, whichever holds it
            return self.integer(val, signed=val < (1 << 63))
        if isinstance(val, float):
            return self.number(val)
        if isinstance(val, str):
            return self.string(val)
        raise TypeError(f"Cannot write {type(val).__name__} as a JSON scalar")

    def string(self, val: str) -> "JsonBuilder":
        return self._emit(f'"{escape_json_string(val)}"')

    def integer(self, val: int, bits: int = 64, signed: bool = True) -> "JsonBuilder":
        """
        Write an integer, checked against a fixed-width range.

        Args:
            val: The value.
            bits: 8, 16, 32 or 64.
            signed: Two's-complement range if True, else unsigned.

        Raises:
            ValueError: If val does not fit.
        """
        try:
            low, high = _INT_RANGES[(bits, signed)]
        except KeyError:
            raise ValueError(f"Unsupported integer width: {bits}")
        val = int(val)
        if not low <= val <= high:
            kind = "int" if signed else "uint"
            raise ValueError(f"{val} does not fit in {kind}{bits}")
        return self._emit(str(val))

    def number(self, val: float, precision: int = 6) -> "JsonBuilder":
        """Fixed-point decimal. NaN and infinities have no JSON form and become null."""
        if not math.isfinite(val):
            return self.null()
        return self._emit(f"{val:.{precision}f}")

    def boolean(self, val: bool) -> "JsonBuilder":
        return self._emit("true" if val else "false")

    def null(self) -> "JsonBuilder":
        return self._emit("null")

    def raw(self, text: str) -> "JsonBuilder":
        """Insert pre-serialized JSON verbatim. Not validated."""
        return self._emit(text)

    # =========================================================================
    # KEY + VALUE HELPERS
    # =========================================================================

    def add(self, key: str, val: Any, precision: Optional[int] = None) -> "JsonBuilder":
        """Write "key": value. precision applies to floats only."""
        self.key(key)
        if precision is not None and isinstance(val, float):
            return self.number(val, precision)
        return self.value(val)

    def add_integer(self, key: str, val: int, bits: int = 64, signed: bool = True) -> "JsonBuilder":
        return self.key(key).integer(val, bits, signed)

    def add_number(self, key: str, val: float, precision: int = 6) -> "JsonBuilder":
        return self.key(key).number(val, precision)

    def add_null(self, key: str) -> "JsonBuilder":
        return self.key(key).null()

    def add_raw(self, key: str, text: str) -> "JsonBuilder":
        return self.key(key).raw(text)

    # Register-style hex strings: "$FF", "$C600", "$0001FFFE"

    def add_hex8(self, key: str, val: int) -> "JsonBuilder":
        return self.add(key, f"${val & 0xFF:02X}")

    def add_hex16(self, key: str, val: int) -> "JsonBuilder":
        return self.add(key, f"${val & 0xFFFF:04X}")

    def add_hex32(self, key: str, val: int) -> "JsonBuilder":
        return self.add(key, f"${val & 0xFFFFFFFF:08X}")

    # =========================================================================
    # OUTPUT
    # =========================================================================

    @property
    def depth(self) -> int:
        """Number of open scopes."""
        return len(self._stack)

    @property
    def is_empty(self) -> bool:
        return not self._parts

    def to_string(self) -> str:
        """
        Return the compact JSON text.

        Raises:
            JsonBuilderError: If any scope is still open.
        """
        if self._stack:
            kinds = ", ".join(scope.kind for scope in self._stack)
            raise JsonBuilderError(f"Unbalanced output, still open: {kinds}")
        return "".join(self._parts)

    def __str__(self) -> str:
        return self.to_string()

    def to_pretty_string(self, indent: int = 2) -> str:
        return format_pretty(self.to_string(), indent)

    def clear(self) -> "JsonBuilder":
        self._parts.clear()
        self._stack.clear()
        return self


# =============================================================================
# STRING ESCAPING
# =============================================================================

_ESCAPES = {
    '"': '\\"',
    "\\": "\\\\",
    "\b": "\\b",
    "\f": "\\f",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def escape_json_string(text: str) -> str:
    """
    Escape text for use between JSON double quotes.

    Quote, backslash and the short control escapes get their two-character
    forms; any other control character below 0x20 becomes \\u00xx.
    Everything else, non-ASCII included, passes through unchanged.
    """
    out = []
    for ch in text:
        escaped = _ESCAPES.get(ch)
        if escaped is not None:
            out.append(escaped)
        elif ch < " ":
            out.append(f"\\u{ord(ch):04x}")
        else:
            out.append(ch)
    return "".join(out)


def unescape_json_string(text: str) -> str:
    """
    Inverse of escape_json_string.

    Raises:
        ValueError: If text is not a valid JSON string body.
    """
    return json.loads(f'"{text}"')


# =============================================================================
# PRETTY PRINTING
# =============================================================================

def format_pretty(compact: str, indent: int = 2) -> str:
    """
    Re-indent compact JSON text.

    A single left-to-right pass that tracks nesting depth and whether it
    is inside a string literal; structural characters inside strings are
    copied untouched. Whitespace outside strings is dropped and replaced
    by the layout below. Empty containers stay on one line.

        {"a":[1,2],"b":{}}   →   {
                                   "a": [
                                     1,
                                     2
                                   ],
                                   "b": {}
                                 }
    """
    out: List[str] = []
    level = 0
    in_string = False
    escaped = False
    i = 0
    n = len(compact)

    while i < n:
        ch = compact[i]

        if in_string:
            out.append(ch)
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            i += 1
            continue

        if ch == '"':
            in_string = True
            out.append(ch)
        elif ch in "{[":
            closer = "}" if ch == "{" else "]"
            j = i + 1
            while j < n and compact[j].isspace():
                j += 1
            if j < n and compact[j] == closer:
                out.append(ch + closer)
                i = j + 1
                continue
            level += 1
            out.append(ch + "\n" + " " * (level * indent))
        elif ch in "}]":
            level = max(level - 1, 0)
            out.append("\n" + " " * (level * indent) + ch)
        elif ch == ",":
            out.append(",\n" + " " * (level * indent))
        elif ch == ":":
            out.append(": ")
        elif not ch.isspace():
            out.append(ch)
        i += 1

    return "".join(out)
