"""Normalize a completion-service architecture proposal."""

from __future__ import annotations

from typing import Any

import structlog

from schemasync.models import (
    Architecture,
    ArchitectureDecision,
    ArchitectureModule,
    Integration,
    PatternUsage,
    RoadmapPhase,
    SecurityPolicy,
)
from schemasync.normalize._common import as_dict, as_list, as_str, first_of
from schemasync.normalize.endpoint import normalize_endpoints

logger = structlog.get_logger(__name__)

# positional slots for string-list stack sections
STACK_FIELDS: dict[str, list[str]] = {
    "frontend": [
        "framework",
        "language",
        "ui_library",
        "state_management",
        "routing",
        "build_tool",
        "testing",
    ],
    "backend": ["framework", "language", "orm", "api_style", "auth", "testing"],
    "database": ["primary", "cache", "search", "file_storage"],
    "infrastructure": [
        "hosting_frontend",
        "hosting_backend",
        "ci_cd",
        "containers",
        "monitoring",
        "logging",
        "cdn",
    ],
}

STACK_ALIASES = {"devops": "infrastructure"}


def parse_stack_section(value: Any, category: str) -> dict:
    """Normalize one tech-stack subsection.

    A dict passes through unchanged. A list maps its strings positionally
    onto the category's slots and merges any embedded dicts; strings past
    the last slot are dropped.
    """
    if isinstance(value, dict):
        return value
    slots = STACK_FIELDS.get(STACK_ALIASES.get(category, category), [])
    result: dict = {}
    for position, item in enumerate(as_list(value)):
        if isinstance(item, str):
            if position < len(slots):
                result[slots[position]] = item
        elif isinstance(item, dict):
            result.update(item)
    return result


def normalize_tech_stack(raw: Any) -> dict[str, dict]:
    data = as_dict(raw)
    stack = {}
    for category in STACK_FIELDS:
        value = data.get(category)
        if value is None or value == []:
            # devops -> infrastructure
            for alias, target in STACK_ALIASES.items():
                if target == category and alias in data:
                    value = data[alias]
        stack[category] = parse_stack_section(value, category)
    return stack


def normalize_modules(raw: Any) -> list[ArchitectureModule]:
    modules = []
    for position, item in enumerate(as_list(raw), start=1):
        if isinstance(item, str):
            modules.append(ArchitectureModule(name=item))
            continue
        data = as_dict(item)
        modules.append(
            ArchitectureModule(
                name=as_str(
                    first_of(data, "name", "module_name"), f"Module {position}"
                ),
                description=as_str(data.get("description")),
                type=as_str(data.get("type"), "backend"),
                features=list(
                    as_list(
                        first_of(data, "features", "technologies", default=[])
                    )
                ),
                dependencies=list(as_list(data.get("dependencies"))),
                estimated_complexity=as_str(
                    first_of(data, "complexity", "estimated_complexity"),
                    "medium",
                ),
                notes=as_str(data.get("notes")),
            )
        )
    return modules


def normalize_decisions(raw: Any) -> list[ArchitectureDecision]:
    decisions = []
    for item in as_list(raw):
        if isinstance(item, str):
            decisions.append(ArchitectureDecision(title=item, decision=item))
            continue
        data = as_dict(item)
        decisions.append(
            ArchitectureDecision(
                title=as_str(first_of(data, "decision", "title"), "Decision"),
                context=as_str(data.get("context")),
                decision=as_str(first_of(data, "decision", "title")),
                consequences=as_str(
                    first_of(data, "rationale", "consequences")
                ),
                alternatives_considered=list(
                    as_list(
                        first_of(
                            data,
                            "alternatives",
                            "alternatives_considered",
                            default=[],
                        )
                    )
                ),
            )
        )
    return decisions


def normalize_roadmap(raw: Any) -> list[RoadmapPhase]:
    phases = []
    for position, item in enumerate(as_list(raw), start=1):
        if isinstance(item, str):
            phases.append(
                RoadmapPhase(
                    phase=f"Phase {position}", name=item, description=item
                )
            )
            continue
        data = as_dict(item)
        phases.append(
            RoadmapPhase(
                phase=as_str(
                    first_of(data, "phase", "name"), f"Phase {position}"
                ),
                name=as_str(first_of(data, "name", "phase")),
                description=as_str(data.get("description")),
                modules_included=list(
                    as_list(
                        first_of(
                            data, "modules", "modules_included", default=[]
                        )
                    )
                ),
                features=list(as_list(data.get("features"))),
            )
        )
    return phases


def normalize_patterns(raw: Any) -> list[PatternUsage]:
    patterns = []
    for item in as_list(raw):
        if isinstance(item, str):
            patterns.append(PatternUsage(pattern=item))
            continue
        data = as_dict(item)
        patterns.append(
            PatternUsage(
                pattern=as_str(first_of(data, "pattern", "name"), "Unknown"),
                applied_to=as_str(data.get("applied_to"), "all"),
                description=as_str(data.get("description")),
            )
        )
    return patterns


def normalize_integrations(raw: Any) -> list[Integration]:
    integrations = []
    for item in as_list(raw):
        if isinstance(item, str):
            integrations.append(Integration(name=item))
            continue
        data = as_dict(item)
        integrations.append(
            Integration(
                name=as_str(data.get("name"), "Integration"),
                type=as_str(data.get("type"), "other"),
                provider=as_str(data.get("provider")),
            )
        )
    return integrations


def normalize_security(raw: Any) -> SecurityPolicy | None:
    data = as_dict(raw)
    if not data:
        return None
    return SecurityPolicy(
        authentication_method=as_str(
            first_of(data, "authentication", "authentication_method")
        ),
        authorization_model=as_str(
            first_of(data, "authorization", "authorization_model")
        ),
    )


def normalize_architecture(
    raw: Any, product_name: str | None = None
) -> Architecture:
    """Normalize a full architecture proposal.

    The ``database_schema`` section is not part of the architecture; it is
    imported into the schema store through ``normalize_database_schema``.
    """
    data = as_dict(raw)
    architecture = Architecture(
        project_name=as_str(
            first_of(data, "name", "project_name") or product_name,
            "Project Architecture",
        ),
        description=as_str(data.get("description")),
        project_type=as_str(first_of(data, "project_type", "type"), "web_app"),
        scale=as_str(data.get("scale"), "mvp"),
        tech_stack=normalize_tech_stack(data.get("tech_stack")),
        modules=normalize_modules(data.get("modules")),
        architecture_patterns=normalize_patterns(
            first_of(data, "patterns", "architecture_patterns")
        ),
        api_endpoints=normalize_endpoints(data.get("api_endpoints")),
        integrations=normalize_integrations(data.get("integrations")),
        architecture_decisions=normalize_decisions(
            data.get("architecture_decisions")
        ),
        technical_roadmap=normalize_roadmap(
            first_of(data, "roadmap", "technical_roadmap")
        ),
        security=normalize_security(data.get("security")),
        directory_structure=first_of(
            data, "project_structure", "directory_structure", "folder_structure"
        ),
    )
    logger.debug(
        "normalized architecture",
        project=architecture.project_name,
        modules=len(architecture.modules),
        endpoints=len(architecture.api_endpoints),
    )
    return architecture
