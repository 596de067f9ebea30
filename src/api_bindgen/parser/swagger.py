"""Swagger 2.0 / JSON Schema analyzer.

Walks one document and resolves it into a Model: schema nodes become
TypeUsage and ObjectSchema values, operations become Calls. Leaf types
are mapped through the Translator; ``$ref`` targets in other files are
resolved (once per run) through ``Translator.process_file``.
"""

import logging
from pathlib import Path
from typing import TYPE_CHECKING

from api_bindgen.errors import (
    ConfigurationError,
    GeneratorError,
    MappingError,
    ReferenceCycleError,
    YamlStructureError,
)
from api_bindgen.generator.naming import camel_case, make_class_name
from api_bindgen.parser.base import (
    PARAM_LOCATIONS,
    ApiSpec,
    Call,
    InOut,
    Model,
    ObjectSchema,
    Response,
    TypeUsage,
    VarDecl,
)
from api_bindgen.parser.detect import detect_api_spec
from api_bindgen.parser.yaml_node import YamlMap, YamlNode

if TYPE_CHECKING:
    from api_bindgen.generator.translator import Translator

logger = logging.getLogger(__name__)

HTTP_VERBS = ("get", "put", "post", "delete", "options", "head", "patch")


def _strings(node: YamlNode) -> list[str]:
    return [item.as_str() for item in node.as_sequence()]


class Analyzer:
    """Resolves a single document into a Model."""

    def __init__(self, translator: "Translator", file_path: Path):
        self.translator = translator
        self.file_path = Path(file_path)
        self.model = Model(file_dir=str(self.file_path.parent), src_filename=self.file_path.name)
        self.document = YamlMap(None, str(self.file_path))
        self._local_refs: dict[str, TypeUsage] = {}
        self._resolving_local: list[str] = []
        self._registered: dict[int, TypeUsage] = {}

    # -- entry point ---------------------------------------------------------

    def load_model(self, document: YamlNode, role: InOut = InOut.IN_AND_OUT) -> Model:
        """Resolve the whole document; ``role`` applies to data definitions."""
        logger.info("Loading from %s", self.file_path)
        self.document = document.as_map()
        self.model.api_spec = detect_api_spec(self.document)

        if self.model.api_spec == ApiSpec.SWAGGER:
            self._load_swagger(self.document)
        else:
            self._load_data_definition(self.document, role)
        return self.model

    # -- types and schemas ---------------------------------------------------

    def resolve_type(self, node: YamlNode, direction: InOut, scope: str, top_level: bool = False) -> TypeUsage:
        """Resolve a schema node to a type reference.

        Named object schemas are registered in the model and referenced;
        trivial ones (pure aliases) collapse to their parent type. For a
        top-level output type without any content, the empty TypeUsage is
        returned.
        """
        node = node.as_map()
        type_node = node["type"]
        if type_node.is_sequence():
            logger.debug("%s: multiple types are not supported, using a generic object", type_node.location())
            return self._map_or_fail(node, "object")

        yaml_type = type_node.as_str("object")
        if yaml_type == "array":
            items = node["items"]
            if items.is_map() and len(items.as_map()) > 0:
                element_type = self.resolve_type(items, direction, scope)
                return self._container_type(node, "array", element_type, f"[{element_type.base_name}]")
            return self._map_or_fail(node, "array")

        if yaml_type == "object":
            schema = self.resolve_schema(node, direction, scope)
            if schema.empty():
                additional = node["additionalProperties"]
                if additional.is_map():
                    value_type = self.resolve_type(additional, direction, scope)
                    return self._container_type(node, "map", value_type, f"{{string:{value_type.base_name}}}")
                if additional.defined and self._additional_properties_flag(additional):
                    return self._map_or_fail(node, "map")
                if top_level and direction == InOut.OUT:
                    return TypeUsage()
                return self._map_or_fail(node, "object")

            if schema.name:
                return self._register_schema(node, schema)
            if schema.trivial():
                return schema.parent_types[0]
            logger.debug("%s: anonymous object, using a generic object type", node.location())
            return self._map_or_fail(node, "object")

        return self._map_or_fail(node, yaml_type, node["format"].as_str(""))

    def resolve_schema(self, node: YamlNode, direction: InOut, scope: str, locus: str = "") -> ObjectSchema:
        """Resolve an object schema node: parent types, fields and naming.

        An empty result (no parents, no fields) means there's no schema to
        speak of, e.g. a freeform object.
        """
        node = node.as_map()
        if locus:
            logger.debug("Resolving schema for %s", locus)
        schema = ObjectSchema(direction=direction, description=node["description"].as_str(""))

        schema.parent_types = self._resolve_refs(node, direction)
        type_node = node["type"]
        if not schema.parent_types and type_node.defined and (
            type_node.is_sequence() or type_node.as_str() != "object"
        ):
            schema.parent_types.append(self.resolve_type(node, direction, scope))

        required_names = set(_strings(node["required"])) if node["required"].is_sequence() else set()
        for name, property_node in node["properties"].as_map().items():
            property_type = self.resolve_type(property_node, direction, scope)
            field = self.make_var_decl(property_type, name, scope, name in required_names, property_node)
            if field is not None:
                schema.fields.append(field)

        if not schema.empty():
            title = node["title"].as_str("")
            # Comparing the title against the sole parent's name is disabled;
            # trivial schemas always stay anonymous.
            if not schema.trivial():
                schema.name = camel_case(title)
                schema.scope = scope
        return schema

    def make_var_decl(
        self, type_usage: TypeUsage, base_name: str, scope: str, required: bool, node: YamlNode | None = None
    ) -> VarDecl | None:
        """Create a field; returns None if the identifier maps to nothing."""
        try:
            name = self.translator.map_identifier(base_name, scope, required)
        except MappingError as e:
            if e.location is None and node is not None:
                e.location = node.location()
            raise
        if not name:
            logger.debug("Skipping identifier %s/%s", scope, base_name)
            return None

        default_value = ""
        description = ""
        if node is not None and node.is_map():
            default_node = node.as_map()["default"]
            if default_node.is_scalar():
                default_value = default_node.as_str()
            description = node.as_map()["description"].as_str("")
        return VarDecl(
            name=name,
            base_name=base_name,
            type=type_usage,
            required=required,
            default_value=default_value,
            description=description,
        )

    def _register_schema(self, node: YamlNode, schema: ObjectSchema) -> TypeUsage:
        """Add a named schema to the model, once per source node."""
        registered = self._registered.get(node.node_id)
        if registered is None:
            self.model.add_schema(schema)
            registered = self._registered[node.node_id] = TypeUsage.for_schema(schema)
        return registered.model_copy(deep=True)

    def _map_or_fail(self, node: YamlNode, schema_type: str, schema_format: str = "") -> TypeUsage:
        type_usage = self.translator.map_type(schema_type, schema_format)
        if type_usage.empty():
            suffix = f" (format: {schema_format})" if schema_format else ""
            raise MappingError(f"Unknown type: {schema_type}{suffix}", node.location())
        return type_usage

    def _container_type(self, node: YamlMap, container: str, inner_type: TypeUsage, default_name: str) -> TypeUsage:
        title = node["title"].as_str("")
        base_name = camel_case(title) if title else default_name
        container_type = self.translator.map_type(container, inner_type.base_name, base_name)
        if container_type.empty():
            raise MappingError(f"Unknown type: {container} of {inner_type.base_name}", node.location())
        return container_type.specialize([inner_type])

    @staticmethod
    def _additional_properties_flag(node: YamlNode) -> bool:
        value = node.value() if node.is_scalar() else None
        if not isinstance(value, bool):
            raise ConfigurationError("additionalProperties must be either a boolean or a map", node.location())
        return value

    # -- references ----------------------------------------------------------

    def _resolve_refs(self, node: YamlMap, direction: InOut) -> list[TypeUsage]:
        ref_nodes: list[YamlNode] = []
        if "$ref" in node:
            ref_nodes.append(node["$ref"])
        elif node["allOf"].defined:
            for member in node["allOf"].as_sequence():
                member_map = member.as_map()
                if "$ref" not in member_map:
                    raise YamlStructureError("allOf members without $ref are not supported", member.location())
                ref_nodes.append(member_map["$ref"])
        return [self._resolve_ref(ref_node, direction) for ref_node in ref_nodes]

    def _resolve_ref(self, ref_node: YamlNode, direction: InOut) -> TypeUsage:
        ref_path = ref_node.as_str()
        predeclared = self.translator.map_type("$ref", ref_path)
        if not predeclared.empty():
            return predeclared

        if ref_path.startswith("#"):
            return self._resolve_local_ref(ref_node, direction)

        ref_file = ref_path.split("#", 1)[0]
        try:
            ref_model = self.translator.process_file(ref_file, self.file_path.parent)
        except GeneratorError as e:
            if e.location is None:
                e.location = ref_node.location()
            else:
                e.add_context(f"referenced from {ref_node.location()}")
            raise
        if not ref_model.schemas:
            raise YamlStructureError(f"File {ref_file} doesn't have data definitions", ref_node.location())
        if ref_model.trivial():
            return ref_model.schemas[0].parent_types[0].model_copy(deep=True)

        target = ref_model.schemas[-1]
        type_usage = TypeUsage.for_schema(target)
        type_usage.add_import(ref_model.primary_output())
        return type_usage

    def _resolve_local_ref(self, ref_node: YamlNode, direction: InOut) -> TypeUsage:
        ref_path = ref_node.as_str()
        if ref_path in self._local_refs:
            return self._local_refs[ref_path].model_copy(deep=True)
        if ref_path in self._resolving_local:
            raise ReferenceCycleError(f"recursive reference {ref_path} is not supported", ref_node.location())

        target: YamlNode = self.document
        segments = [s for s in ref_path[1:].split("/") if s]
        for segment in segments:
            target = target.as_map()[segment.replace("~1", "/").replace("~0", "~")]
            if not target.defined:
                raise YamlStructureError(f"cannot resolve reference {ref_path}", ref_node.location())

        self._resolving_local.append(ref_path)
        try:
            schema = self.resolve_schema(target, direction, "")
            if schema.trivial():
                type_usage = schema.parent_types[0]
            elif schema.empty():
                type_usage = self.resolve_type(target, direction, "")
            else:
                if not schema.name:
                    schema.name = camel_case(segments[-1] if segments else self.file_path.stem)
                    schema.scope = ""
                type_usage = self._register_schema(target, schema)
        finally:
            self._resolving_local.remove(ref_path)

        self._local_refs[ref_path] = type_usage.model_copy(deep=True)
        return type_usage

    # -- data definitions ----------------------------------------------------

    def _load_data_definition(self, document: YamlMap, role: InOut) -> None:
        schema = self.resolve_schema(document, role, "")
        if schema.empty():
            if not document["additionalProperties"].defined:
                logger.info("%s: no data definitions found", self.file_path)
                return
            schema.parent_types.append(self.resolve_type(document, role, ""))
        if not schema.name:
            schema.name = camel_case(document["title"].as_str("") or self.file_path.stem)
            schema.scope = ""
        self.model.add_schema(schema)

    # -- operations ----------------------------------------------------------

    def _load_swagger(self, document: YamlMap) -> None:
        self.model.host = document["host"].as_str("")
        self.model.base_path = document["basePath"].as_str("")
        self.model.schemes = _strings(document["schemes"])
        self.model.consumes = _strings(document["consumes"])
        self.model.produces = _strings(document["produces"])
        global_security = not document["security"].empty()

        for path, path_item in document.get("paths").as_map().items():
            # Trailing slashes and spaces are quirks of some API descriptions
            path = path.rstrip(" /") or "/"
            path_item = path_item.as_map()
            shared_params = list(path_item["parameters"].as_sequence())
            for verb, operation in path_item.items():
                if verb not in HTTP_VERBS:
                    continue
                try:
                    self._load_call(path, verb, operation.as_map(), shared_params, global_security)
                except GeneratorError as e:
                    raise e.add_context(f"while processing {verb} {path}")

    def _load_call(
        self, path: str, verb: str, operation: YamlMap, shared_params: list[YamlNode], global_security: bool
    ) -> Call:
        operation_id = operation.get("operationId").as_str()
        class_name = make_class_name(path, verb) or camel_case(operation_id)
        if not class_name:
            raise YamlStructureError(f"cannot make a class name for {verb} {path}", operation.location())

        security = operation["security"]
        needs_auth = not security.empty() if security.defined else global_security
        call = self.model.add_call(path, verb, operation_id, needs_auth, class_name)
        call.summary = operation["summary"].as_str("")
        call.description = operation["description"].as_str("")
        call.deprecated = operation["deprecated"].as_bool(False)
        call.consumes = _strings(operation["consumes"]) or list(self.model.consumes)
        call.produces = _strings(operation["produces"]) or list(self.model.produces)
        logger.info("Loading %s: %s - %s", operation_id, path, verb)

        scope = operation_id
        for param in [*shared_params, *operation["parameters"].as_sequence()]:
            self._add_parameter(call, param.as_map(), scope)

        for code, response in operation["responses"].as_map().items():
            call.responses.append(self._load_response(code, response.as_map(), scope))

        for param in call.collate_params():
            self.model.add_imports_from(param.type)
        for response in call.responses:
            self.model.add_imports_from(response.body)
        return call

    def _add_parameter(self, call: Call, param: YamlMap, scope: str) -> None:
        name = param.get("name").as_str()
        location = param.get("in").as_str()
        if location == "formData":
            location = "body"
        if location not in PARAM_LOCATIONS:
            raise YamlStructureError(f"unknown parameter location '{location}'", param.location())

        required = param["required"].as_bool(False)
        if location == "path" and not required:
            logger.warning("%s: path parameter '%s' is not marked as required; assuming it is", param.location(), name)
            required = True

        if location == "body" and "schema" in param:
            self._add_body(call, name, param.get("schema").as_map(), required, scope)
            return
        if location == "body" and "type" not in param:
            raise YamlStructureError(f"body parameter '{name}' has no schema", param.location())

        if "schema" in param and "type" not in param:
            param_type = self._single_type_from_schema(param.get("schema").as_map(), name, scope)
        else:
            param_type = self.resolve_type(param, InOut.IN, scope)

        var = self.make_var_decl(param_type, name, scope, required, param)
        if var is not None:
            call.params_block(location).append(var)

    def _single_type_from_schema(self, schema_node: YamlMap, name: str, scope: str) -> TypeUsage:
        schema = self.resolve_schema(schema_node, InOut.IN, scope)
        if schema.empty():
            return self.resolve_type(schema_node, InOut.IN, scope)
        if schema.trivial():
            return schema.parent_types[0]
        if not schema.fields:
            logger.warning(
                "%s: parameter '%s' has a non-trivial schema; only single-type parameters are supported, using a generic object",
                schema_node.location(),
                name,
            )
            return self._map_or_fail(schema_node, "object")
        # Best effort: the parameter takes the type of a single synthetic field
        field = schema.fields[0]
        logger.warning(
            "%s: parameter '%s' has a non-trivial schema; only single-type parameters are supported, using the type of its first field '%s'",
            schema_node.location(),
            name,
            field.base_name,
        )
        return field.type

    def _add_body(self, call: Call, name: str, schema_node: YamlMap, required: bool, scope: str) -> None:
        schema = self.resolve_schema(schema_node, InOut.IN, scope, locus=f"{call.name} body")
        if schema.empty():
            body_type = self.resolve_type(schema_node, InOut.IN, scope)
        elif schema.trivial():
            body_type = schema.parent_types[0]
        elif not schema.has_parents():
            call.body_params.extend(schema.fields)
            call.inline_body = False
            return
        else:
            # Parent types and own fields: the body can't be unpacked
            if not schema.name:
                schema.name = camel_case(name)
                schema.scope = scope
            body_type = self._register_schema(schema_node, schema)

        var = self.make_var_decl(body_type, name, scope, required, schema_node)
        if var is not None:
            call.body_params.append(var)
            call.inline_body = True

    def _load_response(self, code: str, response: YamlMap, scope: str) -> Response:
        result = Response(code=code, description=response["description"].as_str(""))
        if response["schema"].defined:
            result.body = self.resolve_type(response["schema"], InOut.OUT, scope, top_level=True)
        for header_name, header in response["headers"].as_map().items():
            header_type = self.resolve_type(header, InOut.OUT, scope)
            var = self.make_var_decl(header_type, header_name, scope, False, header)
            if var is not None:
                result.headers.append(var)
        return result
