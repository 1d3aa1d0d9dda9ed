from schemasync.normalize.architecture import (
    normalize_architecture,
    normalize_decisions,
    normalize_integrations,
    normalize_modules,
    normalize_patterns,
    normalize_roadmap,
    normalize_security,
    normalize_tech_stack,
    parse_stack_section,
)
from schemasync.normalize.endpoint import (
    normalize_endpoint,
    normalize_endpoints,
)
from schemasync.normalize.entity import (
    normalize_cardinality,
    normalize_database_schema,
    normalize_entity,
    normalize_field,
)

__all__ = [
    "normalize_architecture",
    "normalize_cardinality",
    "normalize_database_schema",
    "normalize_decisions",
    "normalize_endpoint",
    "normalize_endpoints",
    "normalize_entity",
    "normalize_field",
    "normalize_integrations",
    "normalize_modules",
    "normalize_patterns",
    "normalize_roadmap",
    "normalize_security",
    "normalize_tech_stack",
    "parse_stack_section",
]
