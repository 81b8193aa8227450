import logging
from typing import Any, Dict, Optional

from conceptlab.inference.prompt import SYSTEM_PROMPT, PromptBuilder
from conceptlab.ir.operations import TEMPLATE_FOR_OPERATION, OperationKind
from conceptlab.llm.gateway import ModelGateway
from conceptlab.pipeline.resolver import DEFAULT_RESOLVER, NameResolver

logger = logging.getLogger(__name__)


class ModelOperation:
    """
    render template -> gateway -> raw text

    Parsing is left to the caller so every operation keeps its own
    result type.
    """

    def __init__(
        self,
        builder: PromptBuilder,
        gateway: ModelGateway,
        resolver: NameResolver = DEFAULT_RESOLVER,
        system_prompt: Optional[str] = SYSTEM_PROMPT,
    ):
        self.builder = builder
        self.gateway = gateway
        self.resolver = resolver
        self.system_prompt = system_prompt

    def ask(
        self,
        user_id: str,
        concept_id: Optional[str],
        kind: OperationKind,
        context: Dict[str, Any],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> str:
        prompt = self.builder.render(TEMPLATE_FOR_OPERATION[kind], context)
        logger.debug("[%s] %s prompt rendered (%d chars)", type(self).__name__, kind.value, len(prompt))

        completion = self.gateway.complete(
            user_id,
            concept_id,
            kind,
            prompt,
            max_tokens=max_tokens,
            temperature=temperature,
            system_prompt=self.system_prompt,
        )
        return completion.text
