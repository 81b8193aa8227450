from pydantic import BaseModel, Field, model_validator
from typing import Optional, Dict, List, Literal


Direction = Literal["directed", "bidirectional", "undirected"]


class Attribute(BaseModel):
    """Bounded numeric annotation. Out-of-range values are rejected, never clamped."""
    attribute_type: str
    value: float = Field(ge=0.0, le=1.0)
    justification: Optional[str] = None


class Category(BaseModel):
    category_id: str
    name: str
    definition: str = ""
    extended_description: Optional[str] = None
    source: Optional[str] = None
    attributes: List[Attribute] = []


class Connection(BaseModel):
    connection_id: str
    source_category_id: str
    target_category_id: str
    connection_type: str
    direction: Direction = "directed"
    description: Optional[str] = None
    attributes: List[Attribute] = []


class Concept(BaseModel):
    concept_id: str
    name: str
    description: Optional[str] = None
    historical_context: Optional[str] = None


class ConceptGraph(BaseModel):
    concept_id: str
    concept_name: str
    concept_description: Optional[str] = None
    categories: List[Category] = []
    connections: List[Connection] = []

    @model_validator(mode="after")
    def _endpoints_exist(self):
        known = {c.category_id for c in self.categories}
        for conn in self.connections:
            for endpoint in (conn.source_category_id, conn.target_category_id):
                if endpoint not in known:
                    raise ValueError(
                        f"connection {conn.connection_id} references unknown "
                        f"category {endpoint}"
                    )
        return self

    def category_by_id(self, category_id: str) -> Optional[Category]:
        for cat in self.categories:
            if cat.category_id == category_id:
                return cat
        return None

    def category_name(self, category_id: str) -> str:
        cat = self.category_by_id(category_id)
        return cat.name if cat else ""


class ThesisGenerationParams(BaseModel):
    count: int = Field(default=5, ge=1)
    type: str = "ontological"
    style: str = "academic"
    detail_level: Optional[str] = None
    focus_categories: List[str] = []  # category ids
    use_weights: bool = False


class SynthesisParams(BaseModel):
    synthesis_method: str = "dialectical"
    innovation_level: str = "moderate"
    abstraction_level: str = "intermediate"
    historical_context: str = "contemporary"
    focus_area: Optional[str] = None
    target_application: Optional[str] = None
    priorities: Dict[str, float] = {}  # concept_id -> priority
    use_weights: bool = False
    run_critical_analysis: bool = False
