"""Language-neutral model of an API description.

The analyzer resolves every input document into a Model made of these
types; the printer later dumps the Model into a template context.
"""

import re
from enum import Enum

from pydantic import BaseModel, Field

_PLACEHOLDER_RE = re.compile(r"\{\{\s*(\d+)\s*\}\}")


class InOut(str, Enum):
    """Direction in which a type is used."""

    IN = "in"
    OUT = "out"
    IN_AND_OUT = "in_and_out"


class ApiSpec(str, Enum):
    """Kind of the input document."""

    UNDEFINED = "undefined"
    SWAGGER = "swagger"
    JSON_SCHEMA = "json_schema"


class TypeUsage(BaseModel):
    """A reference to a target-language type.

    ``name`` is the type expression for the generated code, ``base_name``
    is how the type is known in the API description. An empty ``name``
    means "no type" (e.g. a response without a meaningful body).
    """

    name: str = ""
    base_name: str = ""
    scope: str = ""
    inner_types: list["TypeUsage"] = []  # ordered, e.g. map key/value
    attributes: dict[str, str] = {}
    lists: dict[str, list[str]] = {}
    imports: list[str] = []

    def empty(self) -> bool:
        return not self.name

    def qualified_name(self) -> str:
        return f"{self.scope}.{self.name}" if self.scope else self.name

    def add_import(self, import_name: str) -> None:
        if import_name and import_name not in self.imports:
            self.imports.append(import_name)

    def specialize(self, inner_types: list["TypeUsage"], base_name: str = "") -> "TypeUsage":
        """Return a copy parameterized by ``inner_types``.

        ``{{1}}``, ``{{2}}``... placeholders in the target name are replaced
        with the names of the corresponding inner types; imports of the
        inner types are carried over to the result.
        """
        result = self.model_copy(deep=True)
        result.inner_types = [t.model_copy(deep=True) for t in inner_types]

        def substitute(match: re.Match) -> str:
            index = int(match.group(1)) - 1
            if 0 <= index < len(inner_types):
                return inner_types[index].qualified_name()
            return match.group(0)

        result.name = _PLACEHOLDER_RE.sub(substitute, result.name)
        if base_name:
            result.base_name = base_name
        for inner in inner_types:
            for import_name in inner.imports:
                result.add_import(import_name)
        return result

    @classmethod
    def for_schema(cls, schema: "ObjectSchema") -> "TypeUsage":
        """A reference to a named schema."""
        return cls(name=schema.name, base_name=schema.name, scope=schema.scope)


class VarDecl(BaseModel):
    """A field or parameter: schema-space name, target-space name and type."""

    name: str  # as mapped for the generated code
    base_name: str  # as used in the API description
    type: TypeUsage
    required: bool = False
    default_value: str = ""  # raw literal, passed through
    description: str = ""


class ObjectSchema(BaseModel):
    """A named or anonymous aggregate type."""

    name: str = ""
    scope: str = ""
    direction: InOut = InOut.IN_AND_OUT
    description: str = ""
    parent_types: list[TypeUsage] = []
    fields: list[VarDecl] = []

    def empty(self) -> bool:
        return not self.parent_types and not self.fields

    def trivial(self) -> bool:
        """A pure alias: exactly one parent type and no own fields."""
        return len(self.parent_types) == 1 and not self.fields

    def has_parents(self) -> bool:
        return bool(self.parent_types)


class Response(BaseModel):
    """One response of a call, keyed by its status code."""

    code: str
    description: str = ""
    body: TypeUsage = TypeUsage()
    headers: list[VarDecl] = []


PARAM_LOCATIONS = ("path", "query", "header", "body")


class Call(BaseModel):
    """One API operation (a path and a verb)."""

    name: str  # operationId
    class_name: str
    path: str
    verb: str
    needs_auth: bool = False
    deprecated: bool = False
    summary: str = ""
    description: str = ""
    params: dict[str, list[VarDecl]] = Field(default_factory=lambda: {loc: [] for loc in PARAM_LOCATIONS})
    inline_body: bool = False  # body is a single bare value, not a set of fields
    consumes: list[str] = []
    produces: list[str] = []
    responses: list[Response] = []

    def params_block(self, location: str) -> list[VarDecl]:
        """The parameter list for ``location`` (path/query/header/body)."""
        if location not in PARAM_LOCATIONS:
            raise KeyError(f"unknown parameter location: {location}")
        return self.params.setdefault(location, [])

    @property
    def path_params(self) -> list[VarDecl]:
        return self.params_block("path")

    @property
    def query_params(self) -> list[VarDecl]:
        return self.params_block("query")

    @property
    def header_params(self) -> list[VarDecl]:
        return self.params_block("header")

    @property
    def body_params(self) -> list[VarDecl]:
        return self.params_block("body")

    def collate_params(self) -> list[VarDecl]:
        """All parameters, required ones first, block order preserved otherwise."""
        all_params = [p for loc in PARAM_LOCATIONS for p in self.params_block(loc)]
        return [p for p in all_params if p.required] + [p for p in all_params if not p.required]


class CallClass(BaseModel):
    """Consecutive calls sharing a class name; each call is an overload."""

    class_name: str
    calls: list[Call] = []


class Model(BaseModel):
    """Everything resolved from one input document."""

    api_spec: ApiSpec = ApiSpec.UNDEFINED
    file_dir: str = ""  # directory of the source, relative to the base dir
    src_filename: str = ""
    dst_files: list[str] = []
    host: str = ""
    base_path: str = ""
    schemes: list[str] = []
    consumes: list[str] = []
    produces: list[str] = []
    imports: list[str] = []
    schemas: list[ObjectSchema] = []
    call_classes: list[CallClass] = []

    def empty(self) -> bool:
        return not self.call_classes and not self.schemas

    def trivial(self) -> bool:
        """No calls and a single schema that is a pure alias."""
        return not self.call_classes and len(self.schemas) == 1 and self.schemas[0].trivial()

    def primary_output(self) -> str:
        return self.dst_files[0] if self.dst_files else ""

    def add_schema(self, schema: ObjectSchema) -> None:
        self.schemas.append(schema)
        for parent in schema.parent_types:
            self.add_imports_from(parent)
        for field in schema.fields:
            self.add_imports_from(field.type)

    def add_imports_from(self, type_usage: TypeUsage) -> None:
        for import_name in type_usage.imports:
            if import_name not in self.imports:
                self.imports.append(import_name)
        for inner in type_usage.inner_types:
            self.add_imports_from(inner)

    def add_call(self, path: str, verb: str, name: str, needs_auth: bool, class_name: str) -> Call:
        """Append a call, merging it into the previous class if names match.

        Only adjacent calls are merged; a same-named class further back in
        the list is not looked up.
        """
        call = Call(name=name, class_name=class_name, path=path, verb=verb, needs_auth=needs_auth)
        if self.call_classes and self.call_classes[-1].class_name == class_name:
            self.call_classes[-1].calls.append(call)
        else:
            self.call_classes.append(CallClass(class_name=class_name, calls=[call]))
        return call

    def all_calls(self) -> list[Call]:
        return [call for call_class in self.call_classes for call in call_class.calls]


TypeUsage.model_rebuild()
