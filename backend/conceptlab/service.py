import logging
from dataclasses import dataclass
from typing import Optional

from conceptlab.cache import CacheBackend, build_cache
from conceptlab.config import CACHE_BACKEND, PROMPT_TEMPLATES_DIR, ModelConfig
from conceptlab.db.interaction_log import InteractionLog, SqlInteractionLog
from conceptlab.inference.base import ModelClient
from conceptlab.inference.config import get_model_client
from conceptlab.inference.prompt import PromptBuilder
from conceptlab.llm.gateway import ModelGateway
from conceptlab.pipeline.analysis import ConceptAnalyzer
from conceptlab.pipeline.resolver import DEFAULT_RESOLVER, NameResolver
from conceptlab.pipeline.synthesis import SynthesisOrchestrator
from conceptlab.templates.store import PromptTemplateStore

logger = logging.getLogger(__name__)


@dataclass
class Services:
    store: PromptTemplateStore
    gateway: ModelGateway
    analyzer: ConceptAnalyzer
    synthesis: SynthesisOrchestrator


def build_services(
    config: Optional[ModelConfig] = None,
    client: Optional[ModelClient] = None,
    cache: Optional[CacheBackend] = None,
    interaction_log: Optional[InteractionLog] = None,
    templates_dir: Optional[str] = None,
    resolver: NameResolver = DEFAULT_RESOLVER,
) -> Services:
    """
    Wire the orchestration layer. Anything not passed in is built from
    the environment: ModelConfig.from_env(), CACHE_BACKEND, DATABASE_URL.
    """
    if client is None:
        config = config or ModelConfig.from_env()
        client = get_model_client(config)

    if cache is None:
        cache = build_cache(CACHE_BACKEND)

    if interaction_log is None:
        from conceptlab.db.session import engine
        interaction_log = SqlInteractionLog(engine)

    gateway_kwargs = {}
    if config is not None:
        gateway_kwargs = dict(
            cache_ttl=config.cache_ttl,
            default_max_tokens=config.max_tokens,
            default_temperature=config.temperature,
        )

    store = PromptTemplateStore(templates_dir or PROMPT_TEMPLATES_DIR, cache=cache)
    builder = PromptBuilder(store)
    gateway = ModelGateway(client, cache=cache, interaction_log=interaction_log, **gateway_kwargs)

    logger.info(
        "[Services] Ready: templates=%s cache=%s log=%s",
        store.templates_dir,
        type(cache).__name__,
        type(interaction_log).__name__,
    )

    return Services(
        store=store,
        gateway=gateway,
        analyzer=ConceptAnalyzer(builder, gateway, resolver),
        synthesis=SynthesisOrchestrator(builder, gateway, resolver),
    )
