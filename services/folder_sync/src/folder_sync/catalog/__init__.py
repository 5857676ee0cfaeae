from .schema_provider import SchemaProvider, StaticSchemaProvider, HttpSchemaProvider, DEFAULT_TYPES
from .type_catalog import TypeCatalog

__all__ = ["SchemaProvider", "StaticSchemaProvider", "HttpSchemaProvider", "DEFAULT_TYPES", "TypeCatalog"]
