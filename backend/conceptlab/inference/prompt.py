import json
import logging
from typing import Any, Dict, List, Optional, Sequence

from conceptlab.errors import TemplateNotFound
from conceptlab.ir.graph import (
    Attribute,
    Category,
    Concept,
    ConceptGraph,
    Connection,
    SynthesisParams,
    ThesisGenerationParams,
)
from conceptlab.templates.store import PromptTemplateStore

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """
Ты помощник исследователя философских концепций.

Правила:
- Отвечай на русском языке
- Строго соблюдай структуру ответа, заданную в запросе
- Используй заголовки Markdown (#, ##, ###) и маркированные списки ровно там, где они требуются
- Не добавляй вступлений и заключений вне заданной структуры
"""

ATTRIBUTES_LABEL = "Характеристики"


def _placeholder(name: str) -> str:
    return "{{" + name + "}}"


def _to_prompt_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, indent=2, ensure_ascii=False)
    return str(value)


class PromptBuilder:
    """
    Renders stored templates against a context mapping.

    Only declared parameters are substituted; a placeholder the template
    does not declare is left as-is. A declared parameter missing from the
    context renders as an empty string.
    """

    def __init__(self, store: PromptTemplateStore):
        self.store = store

    def render(self, template_name: str, context: Dict[str, Any]) -> str:
        template = self.store.get(template_name)
        if template is None:
            raise TemplateNotFound(template_name)

        prompt = template.template
        for param in template.parameters:
            if param not in context or context[param] is None:
                logger.warning(
                    "[PromptBuilder] Parameter %s is missing in data for template %s",
                    param,
                    template_name,
                )
                value = ""
            else:
                value = _to_prompt_text(context[param])
            prompt = prompt.replace(_placeholder(param), value)
        return prompt


# ============================================================
# LINE FORMATS
# ============================================================

def _format_attributes(attributes: Sequence[Attribute]) -> str:
    pairs = ", ".join(f"{a.attribute_type}: {a.value}" for a in attributes)
    return f" [{ATTRIBUTES_LABEL}: {pairs}]"


def format_category_line(category: Category, use_weights: bool = False) -> str:
    line = f"- {category.name}: {category.definition}"
    if use_weights and category.attributes:
        line += _format_attributes(category.attributes)
    return line


def format_connection_line(
    connection: Connection,
    graph: ConceptGraph,
    use_weights: bool = False,
) -> str:
    arrow = "->" if connection.direction == "directed" else "<->"
    source = graph.category_name(connection.source_category_id)
    target = graph.category_name(connection.target_category_id)
    line = f"- {source} {arrow} {target} ({connection.connection_type}): {connection.description or ''}"
    if use_weights and connection.attributes:
        line += _format_attributes(connection.attributes)
    return line


def _category_lines(graph: ConceptGraph, use_weights: bool = False) -> str:
    return "\n".join(format_category_line(c, use_weights) for c in graph.categories)


def _connection_lines(graph: ConceptGraph, use_weights: bool = False) -> str:
    return "\n".join(format_connection_line(c, graph, use_weights) for c in graph.connections)


def _attributes_payload(attributes: Sequence[Attribute], use_weights: bool) -> List[dict]:
    # omitted, never zeroed, when weighting is off
    if not use_weights:
        return []
    return [a.model_dump(exclude_none=True) for a in attributes]


def _graph_summary(graph: ConceptGraph) -> Dict[str, Any]:
    return {
        "name": graph.concept_name,
        "description": graph.concept_description,
        "categories": [
            {"name": c.name, "definition": c.definition} for c in graph.categories
        ],
        "connections": [
            {
                "source": graph.category_name(conn.source_category_id),
                "target": graph.category_name(conn.target_category_id),
                "type": conn.connection_type,
                "direction": conn.direction,
                "description": conn.description,
            }
            for conn in graph.connections
        ],
    }


# ============================================================
# CONTEXT ASSEMBLERS (one per operation kind)
# ============================================================

def graph_validation_context(graph: ConceptGraph) -> Dict[str, Any]:
    return {
        "concept_name": graph.concept_name,
        "concept_description": graph.concept_description or "",
        "categories": [
            {
                "name": c.name,
                "definition": c.definition,
                "attributes": [a.model_dump(exclude_none=True) for a in c.attributes],
            }
            for c in graph.categories
        ],
        "connections": [
            {
                "source": graph.category_name(conn.source_category_id),
                "target": graph.category_name(conn.target_category_id),
                "type": conn.connection_type,
                "direction": conn.direction,
                "description": conn.description,
                "attributes": [a.model_dump(exclude_none=True) for a in conn.attributes],
            }
            for conn in graph.connections
        ],
    }


def category_enrichment_context(category: Category, concept: Concept) -> Dict[str, Any]:
    return {
        "category_name": category.name,
        "category_definition": category.definition,
        "concept_name": concept.name,
        "concept_description": concept.description or "",
    }


def connection_enrichment_context(
    connection: Connection,
    graph: ConceptGraph,
    concept: Concept,
) -> Dict[str, Any]:
    return {
        "connection_type": connection.connection_type,
        "source_category": graph.category_name(connection.source_category_id),
        "target_category": graph.category_name(connection.target_category_id),
        "connection_description": connection.description or "",
        "concept_name": concept.name,
        "concept_description": concept.description or "",
    }


def thesis_generation_context(
    graph: ConceptGraph,
    params: ThesisGenerationParams,
) -> Dict[str, Any]:
    focus = [graph.category_name(cid) for cid in params.focus_categories]
    return {
        "concept_name": graph.concept_name,
        "concept_description": graph.concept_description or "",
        "categories": _category_lines(graph, params.use_weights),
        "connections": _connection_lines(graph, params.use_weights),
        "thesis_count": params.count,
        "thesis_type": params.type,
        "style": params.style or "academic",
        "detail_level": params.detail_level or "",
        "use_weights": "да" if params.use_weights else "нет",
        "focus_categories": ", ".join(name for name in focus if name),
    }


def thesis_development_context(thesis_text: str, concept: Concept) -> Dict[str, Any]:
    return {
        "thesis_text": thesis_text,
        "concept_name": concept.name,
        "concept_description": concept.description or "",
    }


def compatibility_context(
    concepts: Sequence[Concept],
    graphs: Sequence[ConceptGraph],
) -> Dict[str, Any]:
    data = []
    for concept, graph in zip(concepts, graphs):
        summary = _graph_summary(graph)
        data.append(
            {
                "name": concept.name,
                "description": concept.description,
                "categories": summary["categories"],
                "connections": summary["connections"],
            }
        )
    return {"concepts": data}


def synthesis_context(
    concepts: Sequence[Concept],
    graphs: Sequence[ConceptGraph],
    method: str,
    params: SynthesisParams,
) -> Dict[str, Any]:
    data = []
    for concept, graph in zip(concepts, graphs):
        data.append(
            {
                "id": concept.concept_id,
                "name": concept.name,
                "description": concept.description,
                "priority": params.priorities.get(concept.concept_id, 1),
                "graph": {
                    "categories": [
                        {
                            "id": c.category_id,
                            "name": c.name,
                            "definition": c.definition,
                            "attributes": _attributes_payload(c.attributes, params.use_weights),
                        }
                        for c in graph.categories
                    ],
                    "connections": [
                        {
                            "id": conn.connection_id,
                            "source": {
                                "id": conn.source_category_id,
                                "name": graph.category_name(conn.source_category_id),
                            },
                            "target": {
                                "id": conn.target_category_id,
                                "name": graph.category_name(conn.target_category_id),
                            },
                            "type": conn.connection_type,
                            "direction": conn.direction,
                            "description": conn.description,
                            "attributes": _attributes_payload(conn.attributes, params.use_weights),
                        }
                        for conn in graph.connections
                    ],
                },
            }
        )

    return {
        "concepts": data,
        "synthesis_method": method,
        "innovation_level": params.innovation_level or "moderate",
        "abstraction_level": params.abstraction_level or "intermediate",
        "historical_context": params.historical_context or "contemporary",
        "focus_area": params.focus_area or "",
        "target_application": params.target_application or "",
        "use_weights": "да" if params.use_weights else "нет",
    }


def critical_analysis_context(
    synthesis: ConceptGraph,
    sources: Sequence[ConceptGraph],
) -> Dict[str, Any]:
    return {
        "synthesis": _graph_summary(synthesis),
        "source_concepts": [_graph_summary(g) for g in sources],
    }


def concept_overview_context(concept: Concept, graph: ConceptGraph) -> Dict[str, Any]:
    """Shared by historical contextualization and concept evolution."""
    return {
        "concept_name": concept.name,
        "concept_description": concept.description or "",
        "categories": "\n".join(f"{c.name}: {c.definition}" for c in graph.categories),
        # same line format as theses, without the leading bullet
        "connections": "\n".join(
            format_connection_line(conn, graph)[2:] for conn in graph.connections
        ),
    }


def practical_application_context(concept: Concept, theses: Sequence[str]) -> Dict[str, Any]:
    return {
        "concept_name": concept.name,
        "concept_description": concept.description or "",
        "theses": "\n\n".join(theses),
    }


def dialogical_context(
    first: Concept,
    second: Concept,
    question: Optional[str],
) -> Dict[str, Any]:
    return {
        "concept1_name": first.name,
        "concept1_description": first.description or "",
        "concept2_name": second.name,
        "concept2_description": second.description or "",
        "philosophical_question": question or "",
    }
