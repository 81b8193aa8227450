from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List

from conceptlab.pipeline.context import SynthesisContext


@dataclass
class StageResult:
    ok: bool
    errors: List[str] = field(default_factory=list)

    @classmethod
    def success(cls):
        return cls(ok=True, errors=[])

    @classmethod
    def failure(cls, errors: List[str]):
        return cls(ok=False, errors=errors)


class SynthesisStage(ABC):
    name: str

    @abstractmethod
    def run(self, context: SynthesisContext) -> StageResult:
        """
        Must:
        - read from context
        - write to context
        - NEVER call other stages
        """
        pass
