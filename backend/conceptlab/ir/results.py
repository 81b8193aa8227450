from dataclasses import dataclass, field, asdict
from typing import List, Optional, Dict, Any

from conceptlab.ir.graph import ConceptGraph


class _Serializable:
    def to_dict(self) -> dict:
        return asdict(self)


# ============================================================
# VALIDATION
# ============================================================

@dataclass
class Issue(_Serializable):
    issue_type: str  # contradiction | missing_element
    description: str
    severity: str = "medium"  # low | medium | high


@dataclass
class Suggestion(_Serializable):
    suggestion_type: str  # add_category | add_connection | modify_category | modify_connection
    description: str


@dataclass
class ValidationResult(_Serializable):
    general_analysis: str = ""
    contradictions: List[Issue] = field(default_factory=list)
    missing_elements: List[Issue] = field(default_factory=list)
    improvement_suggestions: List[Suggestion] = field(default_factory=list)


# ============================================================
# ENRICHMENT / THESES
# ============================================================

@dataclass
class EnrichmentResult(_Serializable):
    extended_description: str = ""
    alternative_interpretations: List[str] = field(default_factory=list)
    historical_analogs: List[str] = field(default_factory=list)
    related_concepts: List[str] = field(default_factory=list)


@dataclass
class DerivedFrom(_Serializable):
    categories: List[str] = field(default_factory=list)
    connections: List[str] = field(default_factory=list)


@dataclass
class ThesisDraft(_Serializable):
    """Not yet persisted; ids are assigned by the storage layer."""
    text: str
    derived_from: DerivedFrom = field(default_factory=DerivedFrom)
    type: str = ""
    style: str = ""
    used_weights: bool = False
    justification: str = ""
    concept_id: Optional[str] = None


@dataclass
class ThesisDevelopment(_Serializable):
    text: str
    justification: str = ""
    counterarguments: str = ""
    historical_analogs: str = ""
    practical_implications: str = ""


@dataclass
class TextResult(_Serializable):
    """Free-form answer for operation kinds without a structured parser."""
    text: str


# ============================================================
# COMPATIBILITY
# ============================================================

@dataclass
class CompatibilityElement(_Serializable):
    element_type: str  # category | connection
    name: str
    description: str
    compatibility_explanation: str
    element_id: str = ""


@dataclass
class SynthesisStrategy(_Serializable):
    strategy_name: str
    description: str = ""
    benefits: List[str] = field(default_factory=list)
    limitations: List[str] = field(default_factory=list)
    recommended: bool = False


@dataclass
class CompatibilityAnalysis(_Serializable):
    fully_compatible: List[CompatibilityElement] = field(default_factory=list)
    potentially_compatible: List[CompatibilityElement] = field(default_factory=list)
    incompatible: List[CompatibilityElement] = field(default_factory=list)
    synthesis_strategies: List[SynthesisStrategy] = field(default_factory=list)
    raw_text: str = ""


# ============================================================
# SYNTHESIS
# ============================================================

@dataclass
class DraftCategory(_Serializable):
    name: str
    definition: str
    origin_note: str = ""


@dataclass
class DraftConnection(_Serializable):
    source_category_name: str
    target_category_name: str
    connection_type: str
    direction: str
    description: str = ""
    origin_note: str = ""


@dataclass
class SynthesisDraft(_Serializable):
    """Textual pre-image of a new graph, before names are resolved to ids."""
    name: str
    description: str = ""
    categories: List[DraftCategory] = field(default_factory=list)
    connections: List[DraftConnection] = field(default_factory=list)


@dataclass
class OriginRef(_Serializable):
    origin_concept_id: str
    origin_category_id: Optional[str] = None
    origin_connection_id: Optional[str] = None
    transformation: Optional[str] = None


@dataclass
class OriginMapping(_Serializable):
    category_mapping: Dict[str, OriginRef] = field(default_factory=dict)
    connection_mapping: Dict[str, OriginRef] = field(default_factory=dict)


@dataclass
class SynthesisResult:
    draft_concept: Dict[str, Any]
    draft_graph: ConceptGraph
    origin_mapping: OriginMapping
    unresolved_connections: List[DraftConnection] = field(default_factory=list)
    critical_analysis: Optional["CriticalAnalysis"] = None

    def to_dict(self) -> dict:
        return {
            "concept": self.draft_concept,
            "graph": self.draft_graph.model_dump(),
            "origin_mapping": self.origin_mapping.to_dict(),
            "unresolved_connections": [c.to_dict() for c in self.unresolved_connections],
            "critical_analysis": (
                self.critical_analysis.to_dict() if self.critical_analysis else None
            ),
        }


# ============================================================
# CRITICAL ANALYSIS
# ============================================================

@dataclass
class DimensionScore(_Serializable):
    score: float = 0.0  # 0.0 – 1.0
    analysis: str = ""
    lists: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class PotentialIssue(_Serializable):
    severity: str
    issue: str
    potential_solution: Optional[str] = None


@dataclass
class CriticalAnalysis(_Serializable):
    internal_consistency: DimensionScore = field(default_factory=DimensionScore)
    philosophical_novelty: DimensionScore = field(default_factory=DimensionScore)
    preservation_of_value: DimensionScore = field(default_factory=DimensionScore)
    contradiction_resolution: DimensionScore = field(default_factory=DimensionScore)
    potential_issues: List[PotentialIssue] = field(default_factory=list)
    raw_text: str = ""
