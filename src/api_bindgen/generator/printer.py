"""Render resolved models through Jinja2 templates.

The model is dumped into a plain dict context (``Printer.dump_model``) so
templates only deal with strings, lists and dicts:

  {% for schema in schemas %}
  class {{ schema.name }}({{ schema.parent_types | map(attribute="name") | join(", ") }}):
  {% for field in schema.fields %}
      {{ field.name | snake_case }}: {{ field.type | qualified }}
  {% endfor %}
  {% endfor %}
"""

import logging
from pathlib import Path
from typing import Any

import jinja2

from api_bindgen.errors import RenderError
from api_bindgen.generator.naming import camel_case, capitalize, lower_camel_case, snake_case
from api_bindgen.generator.validator import validate_files
from api_bindgen.parser.base import Model

logger = logging.getLogger(__name__)


def _qualified(type_dump: dict[str, Any] | None) -> str:
    if not type_dump:
        return ""
    scope = type_dump.get("scope", "")
    return f"{scope}.{type_dump['name']}" if scope else type_dump["name"]


class Printer:
    """Renders every configured template for a model and writes the results."""

    def __init__(
        self,
        templates: list[str],
        template_dir: Path,
        output_dir: Path,
        env: dict[str, Any] | None = None,
        out_files_list: str = "",
        validate: bool = True,
    ):
        self.output_dir = Path(output_dir)
        self.env = dict(env or {})
        self.out_files_list = out_files_list
        self.validate = validate
        self.generated: list[Path] = []

        self.jinja = jinja2.Environment(
            loader=jinja2.FileSystemLoader(str(template_dir)),
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
        self.jinja.filters.update({
            "camel_case": camel_case,
            "lower_camel_case": lower_camel_case,
            "snake_case": snake_case,
            "capitalize_first": capitalize,
            "qualified": _qualified,
        })
        try:
            self.templates = [self.jinja.get_template(name) for name in templates]
        except jinja2.TemplateError as e:
            raise RenderError(f"cannot load template: {e}") from e

    @classmethod
    def from_translator(cls, translator, output_dir: Path, validate: bool = True) -> "Printer":
        """A printer using the templates, env and file list of a Translator's config."""
        return cls(
            translator.templates,
            translator.config_dir,
            output_dir,
            env=translator.env,
            out_files_list=translator.out_files_list,
            validate=validate,
        )

    def dump_model(self, model: Model) -> dict[str, Any]:
        """Build the template context for a model."""
        context = dict(self.env)
        context.update(model.model_dump(mode="json"))
        context["filename_base"] = Path(model.src_filename).stem
        context["schemas"] = [s for s in context["schemas"] if s["name"]]
        for class_dump, call_class in zip(context["call_classes"], model.call_classes):
            for call_dump, call in zip(class_dump["calls"], call_class.calls):
                call_dump["all_params"] = [p.model_dump(mode="json") for p in call.collate_params()]
        return context

    def render(self, model: Model) -> dict[str, str]:
        """Render all templates; returns {output name: content}."""
        if len(model.dst_files) != len(self.templates):
            raise RenderError(
                f"{model.src_filename}: expected {len(self.templates)} output names, got {len(model.dst_files)}"
            )
        context = self.dump_model(model)
        files = {}
        for dst_name, template in zip(model.dst_files, self.templates):
            try:
                files[dst_name] = template.render(**context)
            except jinja2.TemplateError as e:
                raise RenderError(f"{template.name}: {e}") from e
        return files

    def print(self, model: Model) -> list[Path]:
        """Render and write all outputs for a model; returns the written paths."""
        files = self.render(model)
        if self.validate:
            errors = validate_files(files)
            if errors:
                details = "; ".join(f"{name}: {error}" for name, error in errors.items())
                raise RenderError(f"generated code failed validation: {details}")

        written = []
        for dst_name, content in files.items():
            path = self.output_dir / dst_name
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                path.write_text(content, encoding="utf-8")
            except OSError as e:
                raise RenderError(f"cannot write {path}: {e.strerror}") from e
            logger.debug("Written %s", path)
            written.append(path)
        self.generated.extend(written)
        return written

    def write_files_list(self) -> Path | None:
        """Write the list of generated files if the configuration asks for it."""
        if not self.out_files_list:
            return None
        list_path = self.output_dir / self.out_files_list
        list_path.parent.mkdir(parents=True, exist_ok=True)
        list_path.write_text("".join(f"{p}\n" for p in self.generated), encoding="utf-8")
        return list_path
