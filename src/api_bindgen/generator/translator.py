"""Translator: maps schema types and identifiers onto the target language.

The rule tables come from a YAML configuration file loaded once per run:

  types:
    integer:
      - int64: qint64
      - //: int
    string: QString
    array:
      - string: QStringList
      - /.+/: { type: "QVector<{{1}}>", imports: <QtCore/QVector> }
      - //: QJsonArray
  identifiers:
    signed: isSigned
    /^.*/type$/: eventType

The Translator also owns the cross-file model cache: every document is
resolved at most once per run, and reference cycles between documents are
rejected.
"""

import logging
import re
from pathlib import Path
from typing import Callable

from pydantic import BaseModel, PrivateAttr

from api_bindgen.errors import ConfigurationError, GeneratorError, MappingError, ReferenceCycleError
from api_bindgen.parser.base import InOut, Model, TypeUsage
from api_bindgen.parser.swagger import Analyzer
from api_bindgen.parser.yaml_node import YamlMap, YamlNode, load_yaml_file

logger = logging.getLogger(__name__)

DocumentLoader = Callable[[Path, list[tuple[str, str]]], YamlNode]

ANY_FORMAT = "//"


class MatchRule(BaseModel):
    """A pattern that is either an exact string or a /regex/."""

    pattern: str
    is_regex: bool = False
    _regex: re.Pattern | None = PrivateAttr(default=None)

    @classmethod
    def parse(cls, text: str, location: str = "") -> "MatchRule":
        """Make a rule from config text; '/.../' denotes a regex."""
        if len(text) >= 2 and text.startswith("/") and text.endswith("/"):
            rule = cls(pattern=text[1:-1], is_regex=True)
            try:
                rule._regex = re.compile(rule.pattern)
            except re.error as e:
                raise ConfigurationError(f"invalid regular expression {text}: {e}", location) from e
            return rule
        return cls(pattern=text)

    def search(self, *candidates: str) -> re.Match | str | None:
        """Return the match (regex) or the matched candidate (exact), else None.

        A regex is searched in the first candidate only; an exact pattern is
        compared against every candidate.
        """
        if self.is_regex:
            return self._regex.search(candidates[0])
        for candidate in candidates:
            if candidate == self.pattern:
                return candidate
        return None


class FormatRule(BaseModel):
    """One entry of a type mapping: format pattern -> target type."""

    format: MatchRule
    type: TypeUsage


class IdentifierRule(BaseModel):
    """Identifier substitution: pattern -> replacement."""

    match: MatchRule
    replacement: str

    @classmethod
    def parse(cls, pattern: str, value: YamlNode) -> "IdentifierRule":
        """Make a rule from a config entry; regex replacements may use group references."""
        rule = cls(match=MatchRule.parse(pattern, value.location()), replacement=value.as_str(""))
        if rule.match.is_regex:
            try:
                rule.match._regex.sub(rule.replacement, "")
            except re.error as e:
                raise ConfigurationError(f"invalid replacement {rule.replacement!r} for {pattern}: {e}", value.location()) from e
        return rule


class ModelCache:
    """Per-run memo of resolved documents, keyed by absolute path."""

    def __init__(self):
        self._models: dict[Path, Model] = {}
        self._in_progress: list[Path] = []

    def get(self, path: Path) -> Model | None:
        return self._models.get(path)

    def begin(self, path: Path) -> None:
        """Mark ``path`` as being resolved; a second mark is a reference cycle."""
        if path in self._in_progress:
            chain = " -> ".join(p.name for p in self._in_progress[self._in_progress.index(path):])
            raise ReferenceCycleError(f"reference cycle detected: {chain} -> {path.name}")
        self._in_progress.append(path)

    def finish(self, path: Path, model: Model) -> None:
        self._in_progress.remove(path)
        self._models[path] = model

    def abort(self, path: Path) -> None:
        if path in self._in_progress:
            self._in_progress.remove(path)

    def __contains__(self, path: Path) -> bool:
        return path in self._models

    def __len__(self) -> int:
        return len(self._models)

    def items(self) -> list[tuple[Path, Model]]:
        """Resolved models in the order they were completed."""
        return list(self._models.items())


def _parse_type_entry(node: YamlNode) -> TypeUsage:
    if node.is_scalar():
        return TypeUsage(name=node.as_str())
    if not node.is_map():
        raise ConfigurationError("malformed type entry", node.location())

    entry = node.as_map()
    if "type" not in entry:
        raise ConfigurationError("type entry has no 'type' key", entry.location())
    type_usage = TypeUsage(name=entry.get("type").as_str())
    for key, value in entry.items():
        if key == "type":
            continue
        if key == "imports":
            imports = value.as_sequence() if value.is_sequence() else [value]
            for item in imports:
                type_usage.add_import(item.as_str())
        elif value.is_scalar():
            type_usage.attributes[key] = value.as_str()
        elif value.is_sequence():
            type_usage.lists[key] = [item.as_str() for item in value.as_sequence()]
        else:
            raise ConfigurationError(f"malformed attribute '{key}' in a type entry", value.location())
    return type_usage


def _parse_type_rules(types: YamlMap) -> list[tuple[str, list[FormatRule]]]:
    type_rules = []
    for schema_type, value in types.items():
        formats: list[FormatRule] = []
        if value.is_scalar() or value.is_map():
            formats.append(FormatRule(format=MatchRule.parse(ANY_FORMAT), type=_parse_type_entry(value)))
            logger.debug("Mapped type %s to %s", schema_type, formats[-1].type.name)
        elif value.is_sequence():
            for item in value.as_sequence():
                if not item.is_map() or len(item.as_map()) != 1:
                    raise ConfigurationError("malformed types map", item.location())
                pattern, entry = next(item.as_map().items())
                formats.append(FormatRule(
                    format=MatchRule.parse(pattern or ANY_FORMAT, item.location()),
                    type=_parse_type_entry(entry),
                ))
                logger.debug("Mapped format %s of %s to %s", pattern, schema_type, formats[-1].type.name)
        else:
            raise ConfigurationError("malformed types map", value.location())
        type_rules.append((schema_type, formats))
    return type_rules


def _parse_env(env: YamlMap) -> dict[str, object]:
    result: dict[str, object] = {}
    for name, value in env.items():
        if value.is_scalar():
            result[name] = value.as_str()
            continue
        if not value.is_map() or len(value.as_map()) != 1:
            raise ConfigurationError(f"malformed env entry '{name}'", value.location())
        kind, default = next(value.as_map().items())
        if kind == "set":
            result[name] = []
        elif kind == "bool":
            result[name] = default.as_bool(False)
        else:
            result[name] = default.as_str("")
    return result


class Translator:
    """Rule tables, cross-file processing and the resolved-model cache."""

    def __init__(
        self,
        config: YamlNode,
        config_dir: Path = Path("."),
        source_root: Path | None = None,
        cache: ModelCache | None = None,
        loader: DocumentLoader = load_yaml_file,
    ):
        if not config.defined:
            raise ConfigurationError("configuration is empty", config.location())
        config_map = config.as_map()

        self.config_dir = Path(config_dir)
        self.source_root = Path(source_root).resolve() if source_root else None
        self.cache = cache if cache is not None else ModelCache()
        self.loader = loader

        self.substitutions = [
            (old, new.as_str("")) for old, new in config_map["preprocess"].as_map().items()
        ]
        self.type_rules = _parse_type_rules(config_map["types"].as_map())
        self.identifier_rules = [
            IdentifierRule.parse(pattern, value) for pattern, value in config_map["identifiers"].as_map().items()
        ]
        self.env = _parse_env(config_map["env"].as_map())
        self.templates = [t.as_str() for t in config_map["templates"].as_sequence()]
        self.out_files_list = config_map["outFilesList"].as_str("")

    @classmethod
    def from_file(cls, config_path: Path, **kwargs) -> "Translator":
        """Load the rule configuration from a YAML file."""
        config_path = Path(config_path)
        return cls(load_yaml_file(config_path), config_dir=config_path.parent, **kwargs)

    def map_type(self, schema_type: str, schema_format: str = "", base_name: str = "") -> TypeUsage:
        """Map a schema type/format pair to a target type; empty if unmapped."""
        for type_name, formats in self.type_rules:
            if type_name != schema_type:
                continue
            for rule in formats:
                if rule.format.search(schema_format) is not None:
                    result = rule.type.model_copy(deep=True)
                    result.base_name = base_name or schema_format or schema_type
                    return result
        return TypeUsage()

    def map_identifier(self, base_name: str, scope: str = "", required: bool = False) -> str:
        """Map an API identifier to a target one; '' means "drop it"."""
        scoped_name = f"{scope}/{base_name}"
        result = base_name
        for rule in self.identifier_rules:
            found = rule.match.search(scoped_name, base_name)
            if found is None:
                continue
            result = found.expand(rule.replacement) if isinstance(found, re.Match) else rule.replacement
            break

        if not result and required:
            raise MappingError(f"attempt to skip required identifier {scoped_name}")
        return result

    def output_names(self, source_path: Path) -> list[str]:
        """Output files (relative to the output dir) rendered for a source document."""
        source_path = Path(source_path)
        relative = Path(source_path.name)
        if self.source_root is not None:
            try:
                relative = source_path.relative_to(self.source_root)
            except ValueError:
                pass
        stem = relative.with_suffix("")
        names = []
        for template in self.templates:
            suffixes = [s for s in Path(template).suffixes if s != ".j2"]
            names.append(stem.as_posix() + "".join(suffixes[-1:]))
        return names

    def process_file(self, file_path: str | Path, base_dir: str | Path = ".", role: InOut = InOut.IN_AND_OUT) -> Model:
        """Resolve a document into a Model, once per run per absolute path."""
        full_path = (Path(base_dir) / file_path).resolve()
        cached = self.cache.get(full_path)
        if cached is not None:
            return cached

        self.cache.begin(full_path)
        try:
            document = self.loader(full_path, self.substitutions)
            model = Analyzer(self, full_path).load_model(document, role)
        except GeneratorError as e:
            self.cache.abort(full_path)
            raise e.add_context(f"while loading {full_path}")
        model.dst_files = self.output_names(full_path)
        self.cache.finish(full_path, model)
        return model
