"""CLI entry point for api-bindgen."""

import logging
import os
import sys
from pathlib import Path

import click

from api_bindgen.errors import GeneratorError
from api_bindgen.generator.printer import Printer
from api_bindgen.generator.translator import Translator
from api_bindgen.logger import setup_logging
from api_bindgen.parser.base import InOut

logger = logging.getLogger(__name__)

ROLES = {"i": InOut.IN, "o": InOut.OUT, "io": InOut.IN_AND_OUT}

EXIT_FAILURE = 3


def _collect_inputs(files: tuple[str, ...]) -> list[Path]:
    """Expand directories and drop exclusions (arguments ending with '-')."""
    exclusions = {f[:-1] for f in files if f.endswith("-")}

    def excluded(path: Path) -> bool:
        return path.name in exclusions or str(path) in exclusions

    inputs = []
    for arg in files:
        if arg.endswith("-"):
            continue
        path = Path(arg)
        if path.is_file():
            inputs.append(path)
        elif path.is_dir():
            inputs.extend(p for p in sorted(path.iterdir()) if p.is_file() and not excluded(p))
        else:
            logger.warning("%s is neither a file nor a directory, skipping", path)
    return inputs


def _source_root(inputs: list[Path]) -> Path | None:
    if not inputs:
        return None
    return Path(os.path.commonpath([str(p.resolve().parent) for p in inputs]))


def _load_models(translator: Translator, inputs: list[Path], role: InOut) -> None:
    for path in inputs:
        translator.process_file(path.name, path.parent, role)


@click.group()
def main():
    """API bindings generator: turns Swagger / JSON Schema into source files."""
    pass


@main.command()
@click.argument("files", nargs=-1, required=True)
@click.option("--config", "config_path", required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path), help="API generator configuration in YAML format.")
@click.option("-o", "--out", "output_dir", required=True, type=click.Path(file_okay=False, path_type=Path), help="Write generated files to this directory.")
@click.option("--role", default="io", type=click.Choice(["i", "o", "io"]), help="For JSON Schema, generate code assuming input, output or both directions.")
@click.option("--messages", "verbosity", default="basic", type=click.Choice(["quiet", "basic", "debug"]), help="Verbosity of messages.")
@click.option("--validate/--no-validate", default=True, help="Check generated Python/YAML/JSON files for syntax errors.")
def generate(files: tuple[str, ...], config_path: Path, output_dir: Path, role: str, verbosity: str, validate: bool):
    """Generate source files from API definition FILES (append '-' to exclude one)."""
    setup_logging(verbosity)
    inputs = _collect_inputs(files)
    click.echo(f"Processing {len(inputs)} input files...")
    try:
        translator = Translator.from_file(config_path, source_root=_source_root(inputs))
        _load_models(translator, inputs, ROLES[role])

        printer = Printer.from_translator(translator, output_dir, validate=validate)
        files_count = 0
        for _, model in translator.cache.items():
            if model.empty() or model.trivial():
                continue
            files_count += len(printer.print(model))
        printer.write_files_list()
    except GeneratorError as e:
        click.echo(str(e), err=True)
        sys.exit(EXIT_FAILURE)

    click.echo(f"Generated {files_count} files in {output_dir}")


@main.command()
@click.argument("file_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--config", "config_path", required=True, type=click.Path(exists=True, dir_okay=False, path_type=Path), help="API generator configuration in YAML format.")
@click.option("--role", default="io", type=click.Choice(["i", "o", "io"]), help="For JSON Schema, generate code assuming input, output or both directions.")
def dump(file_path: Path, config_path: Path, role: str):
    """Print the resolved model of FILE_PATH as JSON."""
    setup_logging("quiet")
    try:
        translator = Translator.from_file(config_path, source_root=file_path.resolve().parent)
        model = translator.process_file(file_path.name, file_path.parent, ROLES[role])
    except GeneratorError as e:
        click.echo(str(e), err=True)
        sys.exit(EXIT_FAILURE)

    click.echo(model.model_dump_json(indent=2))
