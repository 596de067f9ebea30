from api_bindgen.generator.validator import validate_files, validate_json, validate_python, validate_yaml


class TestValidatePython:
    def test_valid_code(self):
        errors = validate_python({"event.py": "import os\nx = 1\n"})
        assert errors == {}

    def test_syntax_error(self):
        errors = validate_python({"event_bad.py": "def foo(\n"})
        assert "event_bad.py" in errors
        assert "SyntaxError" in errors["event_bad.py"]

    def test_skips_non_python(self):
        errors = validate_python({"event.yaml": "key: value", "event.py": "x = 1"})
        assert errors == {}

    def test_skips_empty_files(self):
        errors = validate_python({"__init__.py": ""})
        assert errors == {}


class TestValidateYaml:
    def test_valid_yaml(self):
        errors = validate_yaml({"event.yaml": "name: test\nage: 20\n"})
        assert errors == {}

    def test_invalid_yaml(self):
        errors = validate_yaml({"bad.yaml": "key: [invalid\n"})
        assert "bad.yaml" in errors

    def test_skips_non_yaml(self):
        errors = validate_yaml({"event.py": "x = 1", "ok.yml": "a: 1"})
        assert errors == {}


class TestValidateJson:
    def test_valid_json(self):
        assert validate_json({"index.json": '{"classes": ["Invite"]}'}) == {}

    def test_invalid_json(self):
        errors = validate_json({"index.json": '{"classes": [}'})
        assert errors["index.json"].startswith("JSONDecodeError")


class TestValidateFiles:
    def test_all_valid(self):
        files = {
            "event.py": "from dataclasses import dataclass\n",
            "event.json": "{}",
            "data.yaml": "key: value\n",
        }
        errors = validate_files(files)
        assert errors == {}

    def test_python_error_caught(self):
        files = {
            "event_bad.py": "def foo(\n",
            "data.yaml": "key: value\n",
        }
        errors = validate_files(files)
        assert "event_bad.py" in errors

    def test_yaml_error_caught(self):
        files = {
            "event.py": "x = 1\n",
            "bad.yaml": "key: [invalid\n",
        }
        errors = validate_files(files)
        assert "bad.yaml" in errors

    def test_other_files_are_not_checked(self):
        assert validate_files({"event.h": "struct Event {"}) == {}
