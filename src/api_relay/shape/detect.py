"""Dialect detection and parsing for spec documents."""

import json
from typing import Any

import yaml

from api_relay.errors import EmptyDocument, ParseError

MAX_YAML_ALIASES = 100
MAX_ALIAS_EXPANSION = 10_000  # nodes reachable through aliases, summed
MAX_DEPTH = 128


class AliasLimitExceeded(yaml.YAMLError):
    pass


class SpecLoader(yaml.SafeLoader):
    """SafeLoader that refuses alias-heavy documents.

    Aliases are shared references after loading but are copied out again on
    serialization, so both the alias count and the number of nodes they
    reach are capped.
    """

    def __init__(self, stream):
        super().__init__(stream)
        self.alias_count = 0
        self.alias_expansion = 0
        self._weights: dict[int, int] = {}

    def compose_node(self, parent, index):
        if self.check_event(yaml.AliasEvent):
            anchor = self.peek_event().anchor
            self.alias_count += 1
            if self.alias_count > MAX_YAML_ALIASES:
                raise AliasLimitExceeded(f"more than {MAX_YAML_ALIASES} aliases")
            if anchor in self.anchors:
                self.alias_expansion += self._weight(self.anchors[anchor])
                if self.alias_expansion > MAX_ALIAS_EXPANSION:
                    raise AliasLimitExceeded("aliases expand to too many nodes")
        return super().compose_node(parent, index)

    def _weight(self, node: yaml.Node) -> int:
        key = id(node)
        if key in self._weights:
            return self._weights[key]
        # an anchor can be aliased from inside itself
        self._weights[key] = 1
        if isinstance(node, yaml.SequenceNode):
            weight = 1 + sum(self._weight(child) for child in node.value)
        elif isinstance(node, yaml.MappingNode):
            weight = 1 + sum(self._weight(k) + self._weight(v) for k, v in node.value)
        else:
            weight = 1
        self._weights[key] = weight
        return weight


def detect_dialect(text: str) -> str:
    """Return 'json' or 'yaml' for a spec document.

    Text that opens with ``{`` or ``[`` is JSON; everything else goes
    through YAML, which accepts JSON too.
    """
    trimmed = text.strip()
    if trimmed.startswith(("{", "[")):
        return "json"
    return "yaml"


def check_depth(tree: Any, limit: int = MAX_DEPTH) -> None:
    """Raise ParseError if containers nest deeper than ``limit``."""
    stack = [(tree, 1)]
    while stack:
        node, depth = stack.pop()
        if isinstance(node, dict):
            children = node.values()
        elif isinstance(node, list):
            children = node
        else:
            continue
        if depth > limit:
            raise ParseError(f"Spec nests deeper than {limit} levels")
        stack.extend((child, depth + 1) for child in children)


def parse_spec_text(text: str) -> Any:
    """Parse a spec document into a plain Python tree."""
    trimmed = (text or "").strip()
    if not trimmed:
        raise EmptyDocument()

    if detect_dialect(trimmed) == "json":
        try:
            tree = json.loads(trimmed)
        except json.JSONDecodeError as e:
            raise ParseError(f"Invalid JSON spec: {e.msg} (line {e.lineno})") from None
        except RecursionError:
            raise ParseError("Invalid JSON spec: nested too deeply") from None
    else:
        try:
            tree = yaml.load(trimmed, Loader=SpecLoader)
        except AliasLimitExceeded as e:
            raise ParseError(f"Invalid YAML spec: {e}") from None
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            where = f" (line {mark.line + 1})" if mark is not None else ""
            raise ParseError(f"Invalid YAML spec{where}") from None
        except RecursionError:
            raise ParseError("Invalid YAML spec: nested too deeply") from None

    check_depth(tree)
    return tree
