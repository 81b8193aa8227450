from dataclasses import dataclass, field
from typing import List, Optional

from conceptlab.ir.graph import Category, Concept, ConceptGraph, Connection, SynthesisParams
from conceptlab.ir.results import (
    CriticalAnalysis,
    DraftConnection,
    OriginMapping,
    SynthesisDraft,
)


@dataclass
class SynthesisContext:
    # Input (authoritative)
    user_id: str
    concepts: List[Concept]
    graphs: List[ConceptGraph]
    method: str
    params: SynthesisParams

    # Draft stage
    draft: Optional[SynthesisDraft] = None

    # Materialize stage
    categories: List[Category] = field(default_factory=list)
    connections: List[Connection] = field(default_factory=list)
    unresolved_connections: List[DraftConnection] = field(default_factory=list)
    draft_graph: Optional[ConceptGraph] = None
    origin_mapping: OriginMapping = field(default_factory=OriginMapping)

    # Critical stage (optional)
    critical_analysis: Optional[CriticalAnalysis] = None

    @property
    def fallback_name(self) -> str:
        return "Синтез: " + " + ".join(c.name for c in self.concepts)
