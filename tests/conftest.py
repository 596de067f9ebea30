from pathlib import Path

import pytest

from api_bindgen.errors import DocumentLoadError
from api_bindgen.generator.translator import Translator
from api_bindgen.parser.yaml_node import parse_yaml

RULES = """
identifiers:
  signed: is_signed
  unsigned: ""
  /^.*/type$/: event_type
types:
  integer:
    - int64: qint64
    - //: int
  number: float
  boolean: bool
  string:
    - date-time: { type: datetime, imports: datetime }
    - //: string
  array:
    - string: "list[str]"
    - /.+/: { type: "list[{{1}}]", imports: typing }
    - //: list
  map:
    - /.+/: "dict[str, {{1}}]"
    - //: dict
  object: dict
  $ref:
    - /predeclared\\.yaml$/: { type: PredeclaredEvent, imports: events.predeclared }
templates:
  - data.py.j2
"""


class DocumentStore:
    """In-memory documents for the Translator; counts loads per file name."""

    def __init__(self, docs: dict[str, str]):
        self.docs = docs
        self.loads: list[str] = []

    def __call__(self, path: Path, substitutions):
        self.loads.append(path.name)
        if path.name not in self.docs:
            raise DocumentLoadError(f"cannot read {path}: No such file or directory")
        text = self.docs[path.name]
        for old, new in substitutions:
            text = text.replace(old, new)
        return parse_yaml(text, str(path))


@pytest.fixture
def make_translator():
    """Build a Translator over in-memory documents: make_translator(docs, rules=RULES)."""

    def factory(docs: dict[str, str] | None = None, rules: str = RULES) -> Translator:
        store = DocumentStore(docs or {})
        translator = Translator(parse_yaml(rules, "gtad.yaml"), loader=store)
        translator.store = store
        return translator

    return factory
