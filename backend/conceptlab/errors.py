from typing import List, Optional


class ConceptLabError(Exception):
    """Base class for errors raised by the orchestration layer."""


class ConfigurationError(ConceptLabError):
    pass


class TemplateNotFound(ConceptLabError):
    def __init__(self, name: str):
        super().__init__(f"Template not found: {name}")
        self.name = name


class ModelRequestFailed(ConceptLabError):
    """
    Any transport error, timeout or non-success answer from the model API.
    Never retried here.
    """

    def __init__(self, cause: Exception | str):
        super().__init__(f"Failed to get response from model API: {cause}")
        self.cause = cause


class InsufficientConcepts(ConceptLabError):
    def __init__(self, operation: str, count: int):
        super().__init__(
            f"At least two concepts are required for {operation} (got {count})"
        )
        self.operation = operation
        self.count = count


class SynthesisFailed(ConceptLabError):
    def __init__(self, stage: str, errors: Optional[List[str]] = None):
        self.stage = stage
        self.errors = errors or []
        detail = "; ".join(self.errors) if self.errors else "unknown error"
        super().__init__(f"Synthesis stage '{stage}' failed: {detail}")
