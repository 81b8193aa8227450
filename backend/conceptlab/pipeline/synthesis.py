import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple

from pydantic import ValidationError

from conceptlab.errors import InsufficientConcepts, SynthesisFailed
from conceptlab.inference import prompt as contexts
from conceptlab.ir.graph import Concept, ConceptGraph, SynthesisParams
from conceptlab.ir.operations import OperationKind
from conceptlab.ir.results import (
    CompatibilityAnalysis,
    CriticalAnalysis,
    OriginMapping,
    OriginRef,
    SynthesisResult,
)
from conceptlab.llm import parser
from conceptlab.pipeline.context import SynthesisContext
from conceptlab.pipeline.operation import ModelOperation
from conceptlab.pipeline.resolver import NameResolver
from conceptlab.pipeline.stage import StageResult, SynthesisStage

logger = logging.getLogger(__name__)

# Separators an origin note is cut on before each fragment is resolved,
# e.g. "Бытие (Гегель) + Становление" or "from Being, Heraclitus".
_ORIGIN_SPLIT = re.compile(r"\s*(?:<->|->|<-|[,;:+/()«»\"]|\s-\s|\s—\s|\bи\b|\band\b|\bиз\b|\bfrom\b)\s*", re.IGNORECASE)
_NOTE_ARROW = re.compile(r"([^,;()]+?)\s*(?:<->|->|<-)\s*([^,;()]+)")


def _require_pair(operation: str, concepts: Sequence[Concept], graphs: Sequence[ConceptGraph]) -> None:
    if len(concepts) < 2:
        raise InsufficientConcepts(operation, len(concepts))
    if len(graphs) != len(concepts):
        raise ValueError(
            f"{operation}: got {len(concepts)} concepts but {len(graphs)} graphs"
        )


# ============================================================
# ORIGIN MAPPING
# ============================================================

def origin_fragments(note: str) -> List[str]:
    return [f for f in _ORIGIN_SPLIT.split(note or "") if f and f.strip()]


class OriginMatcher:
    """
    Best-effort link from an origin note to the source concept / category
    it names. Matching goes through the injected resolver, so it inherits
    its precision: fragments that do not resolve are dropped.
    """

    def __init__(
        self,
        concepts: Sequence[Concept],
        graphs: Sequence[ConceptGraph],
        resolver: NameResolver,
    ):
        self.resolver = resolver
        self.concept_candidates = [(c.concept_id, c.name) for c in concepts]
        # category id -> owning concept id
        self.category_owner: Dict[str, str] = {}
        self.category_candidates: List[Tuple[str, str]] = []
        for concept, graph in zip(concepts, graphs):
            for cat in graph.categories:
                self.category_owner[cat.category_id] = concept.concept_id
                self.category_candidates.append((cat.category_id, cat.name))
        self.graphs = list(zip(concepts, graphs))

    def match_note(self, note: str) -> Optional[OriginRef]:
        if not note:
            return None
        fragments = origin_fragments(note)

        for fragment in fragments:
            category_id = self.resolver.resolve(fragment, self.category_candidates)
            if category_id:
                return OriginRef(
                    origin_concept_id=self.category_owner[category_id],
                    origin_category_id=category_id,
                    transformation=note,
                )

        for fragment in fragments:
            concept_id = self.resolver.resolve(fragment, self.concept_candidates)
            if concept_id:
                return OriginRef(origin_concept_id=concept_id, transformation=note)
        return None

    def _find_connection(self, first: str, second: str, note: str) -> Optional[OriginRef]:
        for concept, graph in self.graphs:
            candidates = [(c.category_id, c.name) for c in graph.categories]
            first_id = self.resolver.resolve(first, candidates)
            second_id = self.resolver.resolve(second, candidates)
            if not first_id or not second_id:
                continue
            for conn in graph.connections:
                if {conn.source_category_id, conn.target_category_id} == {first_id, second_id}:
                    return OriginRef(
                        origin_concept_id=concept.concept_id,
                        origin_connection_id=conn.connection_id,
                        transformation=note or None,
                    )
        return None

    def match_connection(self, source_name: str, target_name: str, note: str) -> Optional[OriginRef]:
        """
        Order: a source connection between the same-named endpoints, then a
        source connection spelled out in the note ("A -> B"), then the note
        as a plain category / concept reference.
        """
        ref = self._find_connection(source_name, target_name, note)
        if ref:
            return ref
        arrow = _NOTE_ARROW.search(note or "")
        if arrow:
            ref = self._find_connection(arrow.group(1), arrow.group(2), note)
            if ref:
                return ref
        return self.match_note(note)


# ============================================================
# STAGES
# ============================================================

class DraftStage(SynthesisStage):
    """Asks the model for the synthesized concept and parses the textual draft."""

    name = "draft"

    def __init__(self, operation: ModelOperation):
        self.operation = operation

    def run(self, context: SynthesisContext) -> StageResult:
        response = self.operation.ask(
            context.user_id,
            None,
            OperationKind.CONCEPT_SYNTHESIS,
            contexts.synthesis_context(context.concepts, context.graphs, context.method, context.params),
            max_tokens=8000,
            temperature=0.8,
        )
        context.draft = parser.parse_synthesis(response, context.fallback_name)
        return StageResult.success()


class MaterializeStage(SynthesisStage):
    """
    Draft -> graph with temporary ids, plus origin mapping.
    Connections with an unresolved endpoint are set aside, never kept.
    """

    name = "materialize"

    def __init__(self, resolver: NameResolver):
        self.resolver = resolver

    def run(self, context: SynthesisContext) -> StageResult:
        if context.draft is None:
            return StageResult.failure(["no synthesis draft to materialize"])

        draft = context.draft
        categories, connections = parser.materialize_synthesis(draft)

        kept = []
        for conn, draft_conn in zip(connections, draft.connections):
            if conn.source_category_id and conn.target_category_id:
                kept.append((conn, draft_conn))
                continue
            logger.warning(
                "[SynthesisOrchestrator] Skipping connection with unknown endpoint: %s -> %s",
                draft_conn.source_category_name,
                draft_conn.target_category_name,
            )
            context.unresolved_connections.append(draft_conn)

        try:
            context.draft_graph = ConceptGraph(
                concept_id="",
                concept_name=draft.name,
                concept_description=draft.description,
                categories=categories,
                connections=[conn for conn, _ in kept],
            )
        except ValidationError as e:
            return StageResult.failure([str(e)])
        context.categories = categories
        context.connections = [conn for conn, _ in kept]

        matcher = OriginMatcher(context.concepts, context.graphs, self.resolver)
        mapping = OriginMapping()
        for cat, draft_cat in zip(categories, draft.categories):
            ref = matcher.match_note(draft_cat.origin_note)
            if ref:
                mapping.category_mapping[cat.category_id] = ref
        for conn, draft_conn in kept:
            ref = matcher.match_connection(
                draft_conn.source_category_name,
                draft_conn.target_category_name,
                draft_conn.origin_note,
            )
            if ref:
                mapping.connection_mapping[conn.connection_id] = ref
        context.origin_mapping = mapping

        return StageResult.success()


class CriticalStage(SynthesisStage):
    """Critical re-analysis of the in-memory result against its sources."""

    name = "critical_analysis"

    def __init__(self, orchestrator: "SynthesisOrchestrator"):
        self.orchestrator = orchestrator

    def run(self, context: SynthesisContext) -> StageResult:
        if context.draft_graph is None:
            return StageResult.failure(["no synthesized graph to analyze"])
        context.critical_analysis = self.orchestrator.critically_analyze(
            context.user_id, context.draft_graph, context.graphs
        )
        return StageResult.success()


# ============================================================
# ORCHESTRATOR
# ============================================================

class SynthesisOrchestrator(ModelOperation):
    """
    Multi-concept operations.

    synthesize() runs draft -> materialize (-> critical_analysis) in order.
    There is no retry and no resumption: the first failing stage aborts the
    whole call with SynthesisFailed and nothing is returned for it.
    Template and model errors propagate unchanged.
    """

    def analyze_compatibility(
        self,
        user_id: str,
        concepts: Sequence[Concept],
        graphs: Sequence[ConceptGraph],
    ) -> CompatibilityAnalysis:
        _require_pair("compatibility analysis", concepts, graphs)
        text = self.ask(
            user_id,
            None,
            OperationKind.COMPATIBILITY_ANALYSIS,
            contexts.compatibility_context(concepts, graphs),
            max_tokens=6000,
        )
        return parser.parse_compatibility(text)

    def _stages(self, params: SynthesisParams) -> List[SynthesisStage]:
        stages = [DraftStage(self), MaterializeStage(self.resolver)]
        if params.run_critical_analysis:
            stages.append(CriticalStage(self))
        return stages

    def synthesize(
        self,
        user_id: str,
        concepts: Sequence[Concept],
        graphs: Sequence[ConceptGraph],
        method: Optional[str] = None,
        params: Optional[SynthesisParams] = None,
    ) -> SynthesisResult:
        _require_pair("synthesis", concepts, graphs)
        params = params or SynthesisParams()
        method = method or params.synthesis_method

        context = SynthesisContext(
            user_id=user_id,
            concepts=list(concepts),
            graphs=list(graphs),
            method=method,
            params=params,
        )

        for stage in self._stages(params):
            result = stage.run(context)
            if not result.ok:
                logger.error(
                    "[SynthesisOrchestrator] Stage %s failed: %s",
                    stage.name,
                    "; ".join(result.errors),
                )
                raise SynthesisFailed(stage.name, result.errors)
            logger.debug("[SynthesisOrchestrator] Stage %s done", stage.name)

        logger.info(
            "[SynthesisOrchestrator] Synthesized '%s': %d categories, %d connections, %d unresolved",
            context.draft_graph.concept_name,
            len(context.categories),
            len(context.connections),
            len(context.unresolved_connections),
        )

        return SynthesisResult(
            draft_concept={
                "name": context.draft.name,
                "description": context.draft.description,
                "is_synthesis": True,
                "parent_concepts": [c.concept_id for c in context.concepts],
                "synthesis_method": method,
                "focus_area": params.focus_area,
                "synthesis_meta": {
                    "source_concept_ids": [c.concept_id for c in context.concepts],
                    "synthesis_method": method,
                    "innovation_level": params.innovation_level,
                    "abstraction_level": params.abstraction_level,
                    "historical_context": params.historical_context,
                    "target_application": params.target_application,
                },
            },
            draft_graph=context.draft_graph,
            origin_mapping=context.origin_mapping,
            unresolved_connections=context.unresolved_connections,
            critical_analysis=context.critical_analysis,
        )

    def synthesize_with_weights(self, user_id, concepts, graphs, method=None, params=None) -> SynthesisResult:
        params = (params or SynthesisParams()).model_copy(update={"use_weights": True})
        return self.synthesize(user_id, concepts, graphs, method, params)

    def synthesize_without_weights(self, user_id, concepts, graphs, method=None, params=None) -> SynthesisResult:
        params = (params or SynthesisParams()).model_copy(update={"use_weights": False})
        return self.synthesize(user_id, concepts, graphs, method, params)

    def critically_analyze(
        self,
        user_id: str,
        result_graph: ConceptGraph,
        source_graphs: Sequence[ConceptGraph],
    ) -> CriticalAnalysis:
        text = self.ask(
            user_id,
            result_graph.concept_id or None,
            OperationKind.CRITICAL_ANALYSIS,
            contexts.critical_analysis_context(result_graph, source_graphs),
        )
        return parser.parse_critical_analysis(text)
