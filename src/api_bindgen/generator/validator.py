"""Syntax checks for rendered outputs, run before anything is written.

Only formats that can be parsed here are checked; other outputs (C++
headers, Markdown...) pass through as they are.
"""

import ast
import json
from typing import Callable

import yaml

Checker = Callable[[str, str], str | None]


def _check_python(filename: str, content: str) -> str | None:
    if not content.strip():
        return None
    try:
        ast.parse(content, filename=filename)
    except SyntaxError as e:
        return f"SyntaxError: {e.msg} (line {e.lineno})"
    return None


def _check_yaml(filename: str, content: str) -> str | None:
    try:
        yaml.safe_load(content)
    except yaml.YAMLError as e:
        mark = getattr(e, "problem_mark", None)
        where = f" (line {mark.line + 1})" if mark is not None else ""
        return f"YAMLError: {getattr(e, 'problem', None) or e}{where}"
    return None


def _check_json(filename: str, content: str) -> str | None:
    try:
        json.loads(content)
    except json.JSONDecodeError as e:
        return f"JSONDecodeError: {e.msg} (line {e.lineno})"
    return None


CHECKERS: dict[tuple[str, ...], Checker] = {
    (".py",): _check_python,
    (".yaml", ".yml"): _check_yaml,
    (".json",): _check_json,
}


def _validate(files: dict[str, str], suffixes: tuple[str, ...], checker: Checker) -> dict[str, str]:
    errors = {}
    for filename, content in files.items():
        if not filename.endswith(suffixes):
            continue
        error = checker(filename, content)
        if error:
            errors[filename] = error
    return errors


def validate_python(files: dict[str, str]) -> dict[str, str]:
    """Check generated Python files; returns {filename: error_message}."""
    return _validate(files, (".py",), _check_python)


def validate_yaml(files: dict[str, str]) -> dict[str, str]:
    return _validate(files, (".yaml", ".yml"), _check_yaml)


def validate_json(files: dict[str, str]) -> dict[str, str]:
    return _validate(files, (".json",), _check_json)


def validate_files(files: dict[str, str]) -> dict[str, str]:
    """Run every applicable check on the rendered files.

    Returns {filename: error_message} for the files that failed.
    """
    errors = {}
    for suffixes, checker in CHECKERS.items():
        errors.update(_validate(files, suffixes, checker))
    return errors
