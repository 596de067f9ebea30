"""Detect the kind of an input document."""

from api_bindgen.errors import ConfigurationError
from api_bindgen.parser.base import ApiSpec
from api_bindgen.parser.yaml_node import YamlMap

SUPPORTED_SWAGGER_VERSION = "2.0"


def detect_api_spec(document: YamlMap) -> ApiSpec:
    """Tell an operations document from a plain data definition.

    Returns ApiSpec.SWAGGER for documents with ``paths`` and
    ApiSpec.JSON_SCHEMA for everything else. Raises ConfigurationError
    for API descriptions in a version this generator doesn't support.
    """
    if "paths" not in document:
        return ApiSpec.JSON_SCHEMA

    if "openapi" in document:
        raise ConfigurationError(
            f"OpenAPI {document['openapi'].as_str('')} is not supported;"
            f" only Swagger {SUPPORTED_SWAGGER_VERSION} is",
            document["openapi"].location(),
        )
    version = document["swagger"].as_str(SUPPORTED_SWAGGER_VERSION)
    if version != SUPPORTED_SWAGGER_VERSION:
        raise ConfigurationError(
            f"This software only supports swagger version {SUPPORTED_SWAGGER_VERSION} for now",
            document["swagger"].location(),
        )
    return ApiSpec.SWAGGER
