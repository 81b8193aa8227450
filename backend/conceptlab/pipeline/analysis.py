import logging
from typing import List, Optional, Sequence

from conceptlab.inference import prompt as contexts
from conceptlab.ir.graph import (
    Category,
    Concept,
    ConceptGraph,
    Connection,
    ThesisGenerationParams,
)
from conceptlab.ir.operations import OperationKind
from conceptlab.ir.results import (
    EnrichmentResult,
    TextResult,
    ThesisDevelopment,
    ThesisDraft,
    ValidationResult,
)
from conceptlab.llm import parser
from conceptlab.pipeline.operation import ModelOperation

logger = logging.getLogger(__name__)


class ConceptAnalyzer(ModelOperation):
    """Single-concept operations: one prompt, one call, one parse."""

    def validate_graph(self, user_id: str, graph: ConceptGraph) -> ValidationResult:
        text = self.ask(
            user_id,
            graph.concept_id,
            OperationKind.GRAPH_VALIDATION,
            contexts.graph_validation_context(graph),
        )
        result = parser.parse_validation(text)
        logger.info(
            "[ConceptAnalyzer] Validation of %s: %d contradictions, %d missing elements",
            graph.concept_id,
            len(result.contradictions),
            len(result.missing_elements),
        )
        return result

    def enrich_category(self, user_id: str, category: Category, concept: Concept) -> EnrichmentResult:
        text = self.ask(
            user_id,
            concept.concept_id,
            OperationKind.CATEGORY_ENRICHMENT,
            contexts.category_enrichment_context(category, concept),
        )
        return parser.parse_enrichment(text, "category")

    def enrich_connection(
        self,
        user_id: str,
        connection: Connection,
        graph: ConceptGraph,
        concept: Concept,
    ) -> EnrichmentResult:
        text = self.ask(
            user_id,
            concept.concept_id,
            OperationKind.CONNECTION_ENRICHMENT,
            contexts.connection_enrichment_context(connection, graph, concept),
        )
        return parser.parse_enrichment(text, "connection")

    def generate_theses(
        self,
        user_id: str,
        graph: ConceptGraph,
        params: Optional[ThesisGenerationParams] = None,
    ) -> List[ThesisDraft]:
        params = params or ThesisGenerationParams()
        text = self.ask(
            user_id,
            graph.concept_id,
            OperationKind.THESIS_GENERATION,
            contexts.thesis_generation_context(graph, params),
            max_tokens=5000,
            temperature=0.7,
        )
        theses = parser.parse_theses(text, graph, params, resolver=self.resolver)
        logger.info("[ConceptAnalyzer] Generated %d theses for %s", len(theses), graph.concept_id)
        return theses

    def develop_thesis(self, user_id: str, thesis_text: str, concept: Concept) -> ThesisDevelopment:
        text = self.ask(
            user_id,
            concept.concept_id,
            OperationKind.THESIS_DEVELOPMENT,
            contexts.thesis_development_context(thesis_text, concept),
        )
        return parser.parse_thesis_development(text, thesis_text)

    def historical_contextualize(self, user_id: str, concept: Concept, graph: ConceptGraph) -> TextResult:
        text = self.ask(
            user_id,
            concept.concept_id,
            OperationKind.HISTORICAL_CONTEXTUALIZATION,
            contexts.concept_overview_context(concept, graph),
        )
        return parser.parse_text(text)

    def practical_application(self, user_id: str, concept: Concept, theses: Sequence[str]) -> TextResult:
        text = self.ask(
            user_id,
            concept.concept_id,
            OperationKind.PRACTICAL_APPLICATION,
            contexts.practical_application_context(concept, theses),
        )
        return parser.parse_text(text)

    def dialogical_interpretation(
        self,
        user_id: str,
        first: Concept,
        second: Concept,
        question: Optional[str] = None,
    ) -> TextResult:
        # not tied to a single concept
        text = self.ask(
            user_id,
            None,
            OperationKind.DIALOGICAL_INTERPRETATION,
            contexts.dialogical_context(first, second, question),
            max_tokens=6000,
            temperature=0.8,
        )
        return parser.parse_text(text)

    def concept_evolution(self, user_id: str, concept: Concept, graph: ConceptGraph) -> TextResult:
        text = self.ask(
            user_id,
            concept.concept_id,
            OperationKind.CONCEPT_EVOLUTION,
            contexts.concept_overview_context(concept, graph),
        )
        return parser.parse_text(text)
