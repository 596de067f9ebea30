"""Exception hierarchy for the generator.

Every failure is fatal for the run; the CLI turns any GeneratorError into
a non-zero exit status after printing it.
"""


class GeneratorError(Exception):
    """Base class for all generator failures."""

    def __init__(self, message: str, location: str | None = None):
        super().__init__(message)
        self.message = message
        self.location = location
        self.context: list[str] = []

    def add_context(self, note: str) -> "GeneratorError":
        """Record where the error was unwinding through; returns self."""
        self.context.append(note)
        return self

    def __str__(self) -> str:
        text = f"{self.location}: {self.message}" if self.location else self.message
        for note in self.context:
            text += f"\n  {note}"
        return text


class DocumentLoadError(GeneratorError):
    """A document could not be read or parsed."""


class YamlStructureError(GeneratorError):
    """A node has the wrong shape or is missing where required."""


class MappingError(GeneratorError):
    """A schema type or identifier could not be mapped to the target language."""


class ConfigurationError(GeneratorError):
    """Unsupported input or malformed rule configuration."""


class ReferenceCycleError(ConfigurationError):
    """A document transitively references itself."""


class RenderError(GeneratorError):
    """Templates could not be rendered or outputs failed validation."""
