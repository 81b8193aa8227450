from enum import Enum


class OperationKind(str, Enum):
    """Closed set of model-backed use cases; each has a template and a parser."""

    GRAPH_VALIDATION = "graph_validation"
    CATEGORY_ENRICHMENT = "category_enrichment"
    CONNECTION_ENRICHMENT = "connection_enrichment"
    THESIS_GENERATION = "thesis_generation"
    THESIS_DEVELOPMENT = "thesis_development"
    COMPATIBILITY_ANALYSIS = "compatibility_analysis"
    CONCEPT_SYNTHESIS = "concept_synthesis"
    CRITICAL_ANALYSIS = "critical_analysis"
    HISTORICAL_CONTEXTUALIZATION = "historical_contextualization"
    PRACTICAL_APPLICATION = "practical_application"
    DIALOGICAL_INTERPRETATION = "dialogical_interpretation"
    CONCEPT_EVOLUTION = "concept_evolution"


# Operation kind -> template name. Compatibility analysis is logged under
# its own kind but rendered from the synthesis_compatibility template.
TEMPLATE_FOR_OPERATION = {
    kind: kind.value for kind in OperationKind
}
TEMPLATE_FOR_OPERATION[OperationKind.COMPATIBILITY_ANALYSIS] = "synthesis_compatibility"
