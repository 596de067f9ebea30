from pathlib import Path

import pytest

from api_bindgen.errors import ConfigurationError, DocumentLoadError, MappingError, ReferenceCycleError
from api_bindgen.generator.translator import MatchRule, ModelCache, Translator
from api_bindgen.parser.base import Model
from api_bindgen.parser.yaml_node import parse_yaml

FIXTURES = Path(__file__).parent / "fixtures"


class TestMatchRule:
    def test_exact_rule(self):
        rule = MatchRule.parse("int64")
        assert rule.is_regex is False
        assert rule.search("int64") == "int64"
        assert rule.search("int32") is None

    def test_exact_rule_checks_all_candidates(self):
        assert MatchRule.parse("from").search("getRoomEvents/from", "from") == "from"

    def test_regex_rule(self):
        rule = MatchRule.parse("/^m\\.room\\./")
        assert rule.is_regex is True
        assert rule.search("m.room.member") is not None
        assert rule.search("m.presence") is None

    def test_empty_regex_matches_anything(self):
        assert MatchRule.parse("//").search("") is not None

    def test_invalid_regex(self):
        with pytest.raises(ConfigurationError, match="invalid regular expression"):
            MatchRule.parse("/([unclosed/", "gtad.yaml:3")


class TestMapType:
    def test_first_matching_format_wins(self, make_translator):
        translator = make_translator()
        assert translator.map_type("integer", "int64").name == "qint64"
        assert translator.map_type("integer", "int32").name == "int"
        assert translator.map_type("integer").name == "int"

    def test_base_name_fallback_chain(self, make_translator):
        translator = make_translator()
        assert translator.map_type("string", "date-time", "Timestamp").base_name == "Timestamp"
        assert translator.map_type("string", "date-time").base_name == "date-time"
        assert translator.map_type("string").base_name == "string"

    def test_type_with_imports(self, make_translator):
        t = make_translator().map_type("string", "date-time")
        assert t.name == "datetime"
        assert t.imports == ["datetime"]

    def test_unmapped_type_is_empty(self, make_translator):
        translator = make_translator()
        assert translator.map_type("uuid").empty()
        assert translator.map_type("$ref", "event.yaml").empty()

    def test_mapping_is_idempotent(self, make_translator):
        translator = make_translator()
        first = translator.map_type("array", "Event", "[Event]")
        second = translator.map_type("array", "Event", "[Event]")
        assert first == second
        first.imports.append("changed")
        assert translator.map_type("array", "Event", "[Event]").imports == ["typing"]

    def test_predeclared_ref(self, make_translator):
        t = make_translator().map_type("$ref", "definitions/predeclared.yaml")
        assert t.name == "PredeclaredEvent"
        assert t.imports == ["events.predeclared"]

    def test_attributes_and_lists(self, make_translator):
        translator = make_translator(rules="""
types:
  string:
    - //:
        type: str
        avoidCopy: "true"
        initializer: '""'
        traits: [hashable, ordered]
""")
        t = translator.map_type("string")
        assert t.attributes == {"avoidCopy": "true", "initializer": '""'}
        assert t.lists == {"traits": ["hashable", "ordered"]}

    def test_malformed_types_map(self, make_translator):
        with pytest.raises(ConfigurationError, match="malformed types map"):
            make_translator(rules="types:\n  integer:\n    - int64: qint64\n      int32: qint32\n")

    def test_empty_configuration(self):
        with pytest.raises(ConfigurationError, match="configuration is empty"):
            Translator(parse_yaml("", "gtad.yaml"))


class TestMapIdentifier:
    def test_no_match_passes_through(self, make_translator):
        assert make_translator().map_identifier("user_id", "inviteUser") == "user_id"

    def test_literal_rule(self, make_translator):
        assert make_translator().map_identifier("signed", "Event") == "is_signed"

    def test_regex_rule_sees_scoped_name(self, make_translator):
        translator = make_translator()
        assert translator.map_identifier("type", "getEvents") == "event_type"
        assert translator.map_identifier("type") == "event_type"
        assert translator.map_identifier("types", "getEvents") == "types"

    def test_first_match_wins(self, make_translator):
        translator = make_translator(rules="""
identifiers:
  /^getEvents//: by_scope
  /from$/: by_suffix
  from: by_literal
""")
        assert translator.map_identifier("from", "getEvents") == "by_scope"
        assert translator.map_identifier("from", "sync") == "by_suffix"

    def test_regex_replacement_groups(self, make_translator):
        translator = make_translator(rules="identifiers:\n  /^.*/m\\.(\\w+)$/: 'm_\\1'\n")
        assert translator.map_identifier("m.direct", "Event") == "m_direct"

    def test_invalid_replacement_is_rejected_at_load(self, make_translator):
        with pytest.raises(ConfigurationError, match="invalid replacement") as exc_info:
            make_translator(rules="identifiers:\n  signed: is_signed\n  /^(.*)$/: '\\d'\n")
        assert exc_info.value.location == "gtad.yaml:3"

    def test_unknown_group_reference_is_rejected(self, make_translator):
        with pytest.raises(ConfigurationError, match="invalid replacement"):
            make_translator(rules="identifiers:\n  /^m\\.(\\w+)$/: 'm_\\2'\n")

    def test_drop_optional_identifier(self, make_translator):
        assert make_translator().map_identifier("unsigned", "Event") == ""

    def test_drop_required_identifier_fails(self, make_translator):
        with pytest.raises(MappingError, match="attempt to skip required identifier Event/unsigned"):
            make_translator().map_identifier("unsigned", "Event", required=True)


class TestConfiguration:
    def test_from_file(self):
        translator = Translator.from_file(FIXTURES / "gtad.yaml")
        assert translator.config_dir == FIXTURES
        assert translator.substitutions == [("%CLIENT_RELEASE_LABEL%", "r0")]
        assert translator.templates == ["templates/data.py.j2", "templates/index.json.j2"]
        assert translator.out_files_list == "generated.txt"

    def test_env(self):
        translator = Translator.from_file(FIXTURES / "gtad.yaml")
        assert translator.env == {"generator_name": "api-bindgen", "with_docs": True, "extra_imports": []}

    def test_output_names(self, tmp_path):
        root = tmp_path.resolve()
        translator = Translator.from_file(FIXTURES / "gtad.yaml", source_root=root)
        names = translator.output_names(root / "definitions" / "event.yaml")
        assert names == ["definitions/event.py", "definitions/event.json"]

    def test_output_names_outside_source_root(self, tmp_path):
        translator = Translator.from_file(FIXTURES / "gtad.yaml", source_root=tmp_path / "api")
        assert translator.output_names(tmp_path / "other" / "event.yaml") == ["event.py", "event.json"]


class TestModelCache:
    def test_begin_and_finish(self):
        cache = ModelCache()
        path = Path("/api/event.yaml")
        cache.begin(path)
        assert path not in cache
        cache.finish(path, Model(src_filename="event.yaml"))
        assert path in cache
        assert cache.get(path).src_filename == "event.yaml"
        assert len(cache) == 1

    def test_reentry_is_a_cycle(self):
        cache = ModelCache()
        cache.begin(Path("/api/a.yaml"))
        cache.begin(Path("/api/b.yaml"))
        with pytest.raises(ReferenceCycleError, match="a.yaml -> b.yaml -> a.yaml"):
            cache.begin(Path("/api/a.yaml"))

    def test_abort_releases_path(self):
        cache = ModelCache()
        cache.begin(Path("/api/a.yaml"))
        cache.abort(Path("/api/a.yaml"))
        cache.begin(Path("/api/a.yaml"))


class TestProcessFile:
    def test_document_is_resolved_once(self, make_translator):
        translator = make_translator({
            "a.yaml": "type: object\ntitle: A\nproperties:\n  event:\n    $ref: event.yaml\n",
            "b.yaml": "type: object\ntitle: B\nproperties:\n  events:\n    type: array\n    items:\n      $ref: event.yaml\n",
            "event.yaml": "type: object\ntitle: Event\nproperties:\n  sender:\n    type: string\n",
        })
        translator.process_file("a.yaml", "/api")
        translator.process_file("b.yaml", "/api")
        translator.process_file("event.yaml", "/api")
        assert translator.store.loads == ["a.yaml", "event.yaml", "b.yaml"]

    def test_same_document_from_different_dirs(self, make_translator):
        translator = make_translator({
            "a.yaml": "type: object\nproperties:\n  e:\n    $ref: ../api/event.yaml\n",
            "event.yaml": "type: object\ntitle: Event\nproperties:\n  sender:\n    type: string\n",
        })
        translator.process_file("a.yaml", "/api")
        model = translator.process_file("event.yaml", "/api/sub/..")
        assert model.schemas[0].name == "Event"
        assert translator.store.loads == ["a.yaml", "event.yaml"]

    def test_reference_cycle(self, make_translator):
        translator = make_translator({
            "cycle_a.yaml": "type: object\nproperties:\n  b:\n    $ref: cycle_b.yaml\n",
            "cycle_b.yaml": "type: object\nproperties:\n  a:\n    $ref: cycle_a.yaml\n",
        })
        with pytest.raises(ReferenceCycleError, match="cycle_a.yaml -> cycle_b.yaml -> cycle_a.yaml"):
            translator.process_file("cycle_a.yaml", "/api")
        assert len(translator.cache) == 0

    def test_reference_cycle_names_the_ref_lines(self, make_translator):
        translator = make_translator({
            "cycle_a.yaml": "type: object\nproperties:\n  b:\n    $ref: cycle_b.yaml\n",
            "cycle_b.yaml": "type: object\nproperties:\n  a:\n    $ref: cycle_a.yaml\n",
        })
        with pytest.raises(ReferenceCycleError) as exc_info:
            translator.process_file("cycle_a.yaml", "/api")
        assert exc_info.value.location == "/api/cycle_b.yaml:4"
        assert str(exc_info.value).splitlines() == [
            "/api/cycle_b.yaml:4: reference cycle detected: cycle_a.yaml -> cycle_b.yaml -> cycle_a.yaml",
            "  while loading /api/cycle_b.yaml",
            "  referenced from /api/cycle_a.yaml:4",
            "  while loading /api/cycle_a.yaml",
        ]

    def test_missing_ref_target_names_the_ref_line(self, make_translator):
        translator = make_translator({"a.yaml": "type: object\ntitle: A\nproperties:\n  e:\n    $ref: missing.yaml\n"})
        with pytest.raises(DocumentLoadError, match="cannot read /api/missing.yaml") as exc_info:
            translator.process_file("a.yaml", "/api")
        assert exc_info.value.location == "/api/a.yaml:5"
        assert "while loading /api/a.yaml" in str(exc_info.value)
        assert len(translator.cache) == 0

    def test_error_inside_ref_target_keeps_its_location(self, make_translator):
        translator = make_translator({
            "a.yaml": "type: object\ntitle: A\nproperties:\n  e:\n    $ref: event.yaml\n",
            "event.yaml": "type: object\ntitle: Event\nproperties:\n  id:\n    type: uuid\n",
        })
        with pytest.raises(MappingError) as exc_info:
            translator.process_file("a.yaml", "/api")
        assert exc_info.value.location == "/api/event.yaml:5"
        assert "  referenced from /api/a.yaml:5" in str(exc_info.value).splitlines()

    def test_data_document_named_after_file(self, make_translator):
        translator = make_translator({"room_member.yaml": "type: object\nproperties:\n  membership:\n    type: string\n"})
        model = translator.process_file("room_member.yaml", "/api")
        assert model.schemas[0].name == "RoomMember"
        assert model.dst_files == ["room_member.py"]

    def test_ref_to_trivial_document_inlines_parent(self, make_translator):
        translator = make_translator({
            "event.yaml": "type: object\ntitle: Event\nproperties:\n  ts:\n    $ref: timestamp.yaml\n",
            "timestamp.yaml": "type: integer\nformat: int64\n",
        })
        model = translator.process_file("event.yaml", "/api")
        assert model.schemas[0].fields[0].type.name == "qint64"

    def test_ref_imports_primary_output(self, make_translator):
        translator = make_translator({
            "batch.yaml": "type: object\ntitle: Batch\nallOf:\n  - $ref: event.yaml\nproperties:\n  next:\n    type: string\n",
            "event.yaml": "type: object\ntitle: Event\nproperties:\n  sender:\n    type: string\n",
        })
        model = translator.process_file("batch.yaml", "/api")
        parent = model.schemas[0].parent_types[0]
        assert parent.name == "Event"
        assert parent.imports == ["event.py"]
        assert model.imports == ["event.py"]
