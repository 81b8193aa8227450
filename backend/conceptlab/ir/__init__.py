from .graph import (
    Attribute,
    Category,
    Connection,
    Concept,
    ConceptGraph,
    ThesisGenerationParams,
    SynthesisParams,
)
from .results import (
    Issue,
    Suggestion,
    ValidationResult,
    EnrichmentResult,
    DerivedFrom,
    ThesisDraft,
    ThesisDevelopment,
    TextResult,
    CompatibilityElement,
    SynthesisStrategy,
    CompatibilityAnalysis,
    DraftCategory,
    DraftConnection,
    SynthesisDraft,
    OriginRef,
    OriginMapping,
    SynthesisResult,
    DimensionScore,
    PotentialIssue,
    CriticalAnalysis,
)
