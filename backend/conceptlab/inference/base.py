from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ModelRequest:
    prompt: str
    max_tokens: int
    temperature: float
    system: Optional[str] = None


@dataclass(frozen=True)
class ModelResponse:
    content: str
    input_tokens: int
    output_tokens: int

    @property
    def tokens_used(self) -> int:
        return self.input_tokens + self.output_tokens


class ModelClient(ABC):
    @abstractmethod
    def complete(self, request: ModelRequest) -> ModelResponse:
        """Send one request to the generative model. Raise on any failure."""
        pass
