"""Typed access to YAML/JSON documents with source locations.

Documents are composed (not constructed) with PyYAML so that every node
keeps its start mark; the wrappers below expose the node graph as map,
sequence and scalar views that fail with a YamlStructureError naming the
file and line when a node has an unexpected shape.
"""

from pathlib import Path
from typing import Any, Iterator

import yaml
from yaml.constructor import SafeConstructor

from api_bindgen.errors import DocumentLoadError, YamlStructureError

NULL_TAG = "tag:yaml.org,2002:null"


def _kind_of(node: yaml.Node | None) -> str:
    if node is None:
        return "undefined"
    if isinstance(node, yaml.MappingNode):
        return "map"
    if isinstance(node, yaml.SequenceNode):
        return "sequence"
    if node.tag == NULL_TAG:
        return "null"
    return "scalar"


class YamlNode:
    """A node of a composed YAML document; may be undefined."""

    def __init__(self, node: yaml.Node | None, file_name: str = "", line: int = 0):
        self._node = node
        self.file_name = file_name
        self.line = node.start_mark.line if node is not None else line

    @property
    def kind(self) -> str:
        """One of 'map', 'sequence', 'scalar', 'null' or 'undefined'."""
        return _kind_of(self._node)

    @property
    def defined(self) -> bool:
        return self.kind not in ("undefined", "null")

    def __bool__(self) -> bool:
        return self.defined

    def location(self) -> str:
        return f"{self.file_name}:{self.line + 1}"

    @property
    def node_id(self) -> int | None:
        """Identity of the underlying document node, shared by all views of it."""
        return id(self._node) if self._node is not None else None

    def is_map(self) -> bool:
        return self.kind == "map"

    def is_sequence(self) -> bool:
        return self.kind == "sequence"

    def is_scalar(self) -> bool:
        return self.kind == "scalar"

    def empty(self) -> bool:
        """True for undefined/null nodes and for empty maps or sequences."""
        if not self.defined:
            return True
        if self.kind == "scalar":
            return False
        return len(self._node.value) == 0

    def check_kind(self, expected: str) -> None:
        """Raise YamlStructureError unless the node is of the expected kind."""
        actual = self.kind
        if actual == expected:
            return
        if actual == "undefined":
            raise YamlStructureError(f"the node is undefined (expected {expected})", self.location())
        raise YamlStructureError(
            f"the node has a wrong type (expected {expected}, got {actual})", self.location()
        )

    def as_map(self) -> "YamlMap":
        """View this node as a map; undefined nodes become empty maps."""
        if self.defined:
            self.check_kind("map")
        return YamlMap(self._node if self.defined else None, self.file_name, self.line)

    def as_sequence(self) -> "YamlSequence":
        """View this node as a sequence; undefined nodes become empty sequences."""
        if self.defined:
            self.check_kind("sequence")
        return YamlSequence(self._node if self.defined else None, self.file_name, self.line)

    def as_str(self, default: str | None = None) -> str:
        """Return the raw scalar text, or ``default`` when the node is undefined."""
        if not self.defined and default is not None:
            return default
        self.check_kind("scalar")
        return self._node.value

    def as_bool(self, default: bool | None = None) -> bool:
        if not self.defined and default is not None:
            return default
        value = self.value()
        if not isinstance(value, bool):
            raise YamlStructureError(f"expected a boolean, got '{self._node.value}'", self.location())
        return value

    def value(self) -> Any:
        """Construct the plain Python value of this node."""
        if not self.defined:
            return None
        return SafeConstructor().construct_object(self._node, deep=True)

    def __repr__(self) -> str:
        return f"<YamlNode {self.kind} at {self.location()}>"


class YamlMap(YamlNode):
    """A map node; keys are the raw scalar texts."""

    def _pairs(self) -> list[tuple[yaml.Node, yaml.Node]]:
        return self._node.value if self._node is not None else []

    def get(self, key: str, allow_missing: bool = False) -> YamlNode:
        """Look up ``key``; a missing key is an error unless ``allow_missing``."""
        for key_node, value_node in self._pairs():
            if key_node.value == key:
                return YamlNode(value_node, self.file_name)
        if not allow_missing:
            raise YamlStructureError(f"{key} is undefined", self.location())
        return YamlNode(None, self.file_name, self.line)

    def __getitem__(self, key: str) -> YamlNode:
        return self.get(key, allow_missing=True)

    def __contains__(self, key: str) -> bool:
        return any(key_node.value == key for key_node, _ in self._pairs())

    def __len__(self) -> int:
        return len(self._pairs())

    def keys(self) -> list[str]:
        return [key_node.value for key_node, _ in self._pairs()]

    def items(self) -> Iterator[tuple[str, YamlNode]]:
        """Iterate (key, value) pairs in document order."""
        for key_node, value_node in self._pairs():
            if not isinstance(key_node, yaml.ScalarNode):
                raise YamlStructureError("map keys must be scalars", f"{self.file_name}:{key_node.start_mark.line + 1}")
            yield key_node.value, YamlNode(value_node, self.file_name)


class YamlSequence(YamlNode):
    """A sequence node."""

    def _items(self) -> list[yaml.Node]:
        return self._node.value if self._node is not None else []

    def __len__(self) -> int:
        return len(self._items())

    def __iter__(self) -> Iterator[YamlNode]:
        for item in self._items():
            yield YamlNode(item, self.file_name)

    def __getitem__(self, index: int) -> YamlNode:
        items = self._items()
        if 0 <= index < len(items):
            return YamlNode(items[index], self.file_name)
        return YamlNode(None, self.file_name, self.line)


def parse_yaml(text: str, file_name: str = "<string>") -> YamlNode:
    """Compose a document from text."""
    try:
        node = yaml.compose(text, Loader=yaml.SafeLoader)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        location = f"{file_name}:{mark.line + 1}" if mark is not None else file_name
        raise DocumentLoadError(f"cannot parse document: {getattr(e, 'problem', e)}", location) from e
    return YamlNode(node, file_name)


def load_yaml_file(path: Path, substitutions: list[tuple[str, str]] | None = None) -> YamlNode:
    """Read a YAML or JSON file, applying literal text substitutions first."""
    try:
        raw = Path(path).read_bytes()
    except OSError as e:
        raise DocumentLoadError(f"cannot read {path}: {e.strerror}") from e
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as e:
        line = raw.count(b"\n", 0, e.start) + 1
        raise DocumentLoadError(f"cannot decode {path}: {e.reason}", f"{path}:{line}") from e

    for old, new in substitutions or []:
        text = text.replace(old, new)

    return parse_yaml(text, str(path))
