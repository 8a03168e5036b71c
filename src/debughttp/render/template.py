"""
=============================================================================
TEMPLATE ENGINE
=============================================================================

A small logic-less template language for debug pages.

    {{name}}               variable, empty if unbound
    {{#items}}...{{/items}} repeat for each item of the bound array
    {{?flag}}...{{/flag}}   render if the condition holds
    {{!flag}}...{{/flag}}   render if it does not
    {{>header}}            partial, fetched from the resolver at render time

Inside a loop each item's variables overlay the outer context, plus:

    _index   0, 1, 2, ...
    _index1  1, 2, 3, ...
    _first   "true" on the first item, "" otherwise
    _last    "true" on the last item, "" otherwise

=============================================================================
PARSE THEN RENDER
=============================================================================

Template text is parsed once into a node tree, and the tree is walked
once per render:

    "Regs: {{#regs}}{{name}}={{value}} {{/regs}}"
                          │
                          ▼
    [Text("Regs: "), Section("#", "regs", [Var("name"), Text("="),
                                           Var("value"), Text(" ")])]

Blocks pair with their close tag leftmost-outermost: an opening tag takes
the first "{{/name}}" that is not claimed by a nested open of the same
name (of any block kind). Substituted values are never re-scanned, so a
variable whose value contains "{{" renders literally.

Parsing is cached per template text, and rendering never mutates the
template, so rendering the same template with the same bindings always
gives the same output.

=============================================================================
ERRORS
=============================================================================

Rendering never raises for bad markup:

    - An open block with no close records last_error and the rest of the
      enclosing region, starting at the open tag, is output unprocessed.
    - A close tag with no open block is output literally.
    - Without a partial resolver, {{>name}} is output literally.

=============================================================================
"""

from collections import ChainMap
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Mapping, NamedTuple, Optional, Tuple, Union
import logging
import re


logger = logging.getLogger(__name__)

PartialResolver = Callable[[str], Optional[str]]

MAX_PARTIAL_DEPTH = 32

_TAG_PATTERN = re.compile(r"\{\{(.*?)\}\}")

_BLOCK_KINDS = {
    "#": "array",
    "?": "condition",
    "!": "negated condition",
}


# =============================================================================
# NODE TREE
# =============================================================================

class Text(NamedTuple):
    text: str


class Raw(NamedTuple):
    """Unprocessed text after an unclosed block."""
    text: str


class Variable(NamedTuple):
    name: str


class Section(NamedTuple):
    kind: str                   # "#", "?" or "!"
    name: str
    children: tuple


class Partial(NamedTuple):
    name: str
    source: str                 # the literal tag, output when there is no resolver


Node = Union[Text, Raw, Variable, Section, Partial]


class _Tag(NamedTuple):
    kind: str                   # "var", "#", "?", "!", "/", ">"
    name: str
    start: int
    end: int


class ParsedTemplate(NamedTuple):
    nodes: tuple
    errors: tuple


def _scan_tags(text: str) -> List[_Tag]:
    tags = []
    for match in _TAG_PATTERN.finditer(text):
        content = match.group(1).strip()
        if content and content[0] in "#?!/>":
            kind, name = content[0], content[1:].strip()
        else:
            kind, name = "var", content
        tags.append(_Tag(kind, name, match.start(), match.end()))
    return tags


def _find_close(tags: List[_Tag], open_index: int, last: int) -> int:
    """Index of the tag closing tags[open_index], or -1."""
    name = tags[open_index].name
    depth = 0
    for k in range(open_index + 1, last):
        tag = tags[k]
        if tag.name != name:
            continue
        if tag.kind in _BLOCK_KINDS:
            depth += 1
        elif tag.kind == "/":
            if depth == 0:
                return k
            depth -= 1
    return -1


def _build(text: str, tags: List[_Tag], first: int, last: int,
           pos: int, stop: int, errors: List[str]) -> tuple:
    """Build nodes for text[pos:stop], whose tags are tags[first:last]."""
    nodes: List[Node] = []
    i = first
    while i < last:
        tag = tags[i]
        if tag.start > pos:
            nodes.append(Text(text[pos:tag.start]))

        if tag.kind in _BLOCK_KINDS:
            close = _find_close(tags, i, last)
            if close == -1:
                errors.append(f"Unclosed {_BLOCK_KINDS[tag.kind]} block: {tag.name}")
                nodes.append(Raw(text[tag.start:stop]))
                return tuple(nodes)
            children = _build(text, tags, i + 1, close, tag.end, tags[close].start, errors)
            nodes.append(Section(tag.kind, tag.name, children))
            pos = tags[close].end
            i = close + 1
            continue

        if tag.kind == "var":
            nodes.append(Variable(tag.name))
        elif tag.kind == ">":
            nodes.append(Partial(tag.name, text[tag.start:tag.end]))
        else:
            # Close tag with nothing open
            nodes.append(Text(text[tag.start:tag.end]))
        pos = tag.end
        i += 1

    if pos < stop:
        nodes.append(Text(text[pos:stop]))
    return tuple(nodes)


@lru_cache(maxsize=256)
def parse_template(text: str) -> ParsedTemplate:
    """Parse template text into a node tree. Results are cached per text."""
    tags = _scan_tags(text)
    errors: List[str] = []
    nodes = _build(text, tags, 0, len(tags), 0, len(text), errors)
    return ParsedTemplate(nodes, tuple(errors))


# =============================================================================
# VALUE FORMATTING
# =============================================================================

def format_value(value: Any, precision: int = 2) -> str:
    """Format a binding value as template text."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        return f"{value:.{precision}f}"
    return str(value)


def _is_truthy(value: Optional[str]) -> bool:
    return value not in (None, "", "false", "0")


# =============================================================================
# TEMPLATE
# =============================================================================

class Template:
    """
    A template plus its bindings.

    Example:
        page = Template("<h1>{{title}}</h1>{{#regs}}<b>{{name}}</b>{{/regs}}")
        page.set_variable("title", "CPU")
        page.add_array_item("regs", {"name": "A"})
        page.add_array_item("regs", {"name": "X"})
        page.render()
        # '<h1>CPU</h1><b>A</b><b>X</b>'
    """

    def __init__(self, text: str = "", partial_resolver: Optional[PartialResolver] = None):
        self._text = text
        self._partial_resolver = partial_resolver
        self._variables: Dict[str, str] = {}
        self._arrays: Dict[str, List[Dict[str, str]]] = {}
        self._conditions: Dict[str, bool] = {}
        self._last_error = ""

    @property
    def text(self) -> str:
        return self._text

    @property
    def last_error(self) -> str:
        """Error from the most recent render, or "" if it was clean."""
        return self._last_error

    # =========================================================================
    # LOADING
    # =========================================================================

    def load_from_string(self, text: str) -> "Template":
        self._text = text
        return self

    def load_from_file(self, path: Union[str, Path], encoding: str = "utf-8") -> "Template":
        """
        Load template text from a file.

        Raises:
            OSError: If the file cannot be read.
        """
        self._text = Path(path).read_text(encoding=encoding)
        logger.debug(f"Loaded template {path} ({len(self._text)} chars)")
        return self

    # =========================================================================
    # BINDINGS
    # =========================================================================

    def set_variable(self, name: str, value: Any, precision: int = 2) -> "Template":
        """
        Bind a variable.

        Booleans render as "true"/"false" and also set the same-named
        condition. Floats render with `precision` decimals.
        """
        self._variables[name] = format_value(value, precision)
        if isinstance(value, bool):
            self._conditions[name] = value
        return self

    def set_variables(self, values: Mapping[str, Any]) -> "Template":
        for name, value in values.items():
            self.set_variable(name, value)
        return self

    def set_array(self, name: str, items: Iterable[Mapping[str, Any]]) -> "Template":
        self._arrays[name] = [self._format_item(item) for item in items]
        return self

    def add_array_item(self, name: str, item: Mapping[str, Any]) -> "Template":
        self._arrays.setdefault(name, []).append(self._format_item(item))
        return self

    @staticmethod
    def _format_item(item: Mapping[str, Any]) -> Dict[str, str]:
        return {key: format_value(value) for key, value in item.items()}

    def set_condition(self, name: str, value: bool) -> "Template":
        self._conditions[name] = bool(value)
        return self

    def set_partial_resolver(self, resolver: Optional[PartialResolver]) -> "Template":
        self._partial_resolver = resolver
        return self

    def clear_variables(self) -> "Template":
        """Drop all bindings but keep the text and resolver."""
        self._variables.clear()
        self._arrays.clear()
        self._conditions.clear()
        return self

    def clear(self) -> "Template":
        """Drop the text, bindings, resolver and last error."""
        self._text = ""
        self._partial_resolver = None
        self._last_error = ""
        return self.clear_variables()

    # =========================================================================
    # RENDERING
    # =========================================================================

    def render(self, extra_vars: Optional[Mapping[str, Any]] = None) -> str:
        """
        Render the template.

        Args:
            extra_vars: Variables for this render only; they shadow bound
                        variables of the same name.
        """
        context: Mapping[str, str] = self._variables
        if extra_vars:
            overlay = {name: format_value(value) for name, value in extra_vars.items()}
            context = ChainMap(overlay, self._variables)

        errors: List[str] = []
        out: List[str] = []
        self._render_text(self._text, context, out, errors, depth=0)

        self._last_error = errors[-1] if errors else ""
        if errors:
            logger.debug(f"Template render errors: {errors}")
        return "".join(out)

    @classmethod
    def render_string(cls, text: str, variables: Optional[Mapping[str, Any]] = None) -> str:
        """Render text once with plain variable bindings."""
        template = cls(text)
        if variables:
            template.set_variables(variables)
        return template.render()

    def _render_text(self, text: str, context: Mapping[str, str],
                     out: List[str], errors: List[str], depth: int) -> None:
        parsed = parse_template(text)
        errors.extend(parsed.errors)
        self._render_nodes(parsed.nodes, context, out, errors, depth)

    def _render_nodes(self, nodes: Tuple[Node, ...], context: Mapping[str, str],
                      out: List[str], errors: List[str], depth: int) -> None:
        for node in nodes:
            if isinstance(node, (Text, Raw)):
                out.append(node.text)

            elif isinstance(node, Variable):
                out.append(context.get(node.name, ""))

            elif isinstance(node, Section):
                if node.kind == "#":
                    self._render_loop(node, context, out, errors, depth)
                elif self._condition(node.name, context) == (node.kind == "?"):
                    self._render_nodes(node.children, context, out, errors, depth)

            elif isinstance(node, Partial):
                self._render_partial(node, context, out, errors, depth)

    def _render_loop(self, node: Section, context: Mapping[str, str],
                     out: List[str], errors: List[str], depth: int) -> None:
        items = self._arrays.get(node.name, [])
        count = len(items)
        for index, item in enumerate(items):
            loop_vars = {
                "_index": str(index),
                "_index1": str(index + 1),
                "_first": "true" if index == 0 else "",
                "_last": "true" if index == count - 1 else "",
            }
            self._render_nodes(
                node.children, ChainMap(loop_vars, item, context), out, errors, depth
            )

    def _condition(self, name: str, context: Mapping[str, str]) -> bool:
        if name in self._conditions:
            return self._conditions[name]
        return _is_truthy(context.get(name))

    def _render_partial(self, node: Partial, context: Mapping[str, str],
                        out: List[str], errors: List[str], depth: int) -> None:
        if self._partial_resolver is None:
            out.append(node.source)
            return
        if depth >= MAX_PARTIAL_DEPTH:
            errors.append(f"Partial nesting too deep: {node.name}")
            return
        text = self._partial_resolver(node.name)
        if text:
            self._render_text(text, context, out, errors, depth + 1)
