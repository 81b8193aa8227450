import threading
import time

import pytest

from conceptlab.cache import InMemoryCache
from conceptlab.db.interaction_log import InMemoryInteractionLog
from conceptlab.inference.base import ModelClient, ModelResponse
from conceptlab.ir.graph import Attribute, Category, Concept, ConceptGraph, Connection
from conceptlab.service import build_services


class FakeClient(ModelClient):
    """
    Replays canned replies in order; the last one repeats.
    ``delay`` keeps a call in flight long enough for racing callers.
    """

    def __init__(self, *replies, input_tokens=10, output_tokens=5, delay=0.0, error=None):
        self.replies = list(replies) or [""]
        self.input_tokens = input_tokens
        self.output_tokens = output_tokens
        self.delay = delay
        self.error = error
        self.requests = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> int:
        return len(self.requests)

    def complete(self, request):
        with self._lock:
            self.requests.append(request)
            index = min(len(self.requests), len(self.replies)) - 1
        if self.delay:
            time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return ModelResponse(
            content=self.replies[index],
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
        )


@pytest.fixture
def cache():
    return InMemoryCache()


@pytest.fixture
def interaction_log():
    return InMemoryInteractionLog()


@pytest.fixture
def make_services(cache, interaction_log):
    def _make(*replies, **client_kwargs):
        client = FakeClient(*replies, **client_kwargs)
        services = build_services(client=client, cache=cache, interaction_log=interaction_log)
        return services, client

    return _make


@pytest.fixture
def flux_graph():
    return ConceptGraph(
        concept_id="k2",
        concept_name="Гераклит",
        concept_description="Всё течёт",
        categories=[
            Category(category_id="c1", name="Being", definition="what is"),
            Category(
                category_id="c2",
                name="Becoming",
                definition="what changes",
                attributes=[Attribute(attribute_type="centrality", value=0.9)],
            ),
        ],
        connections=[
            Connection(
                connection_id="e1",
                source_category_id="c1",
                target_category_id="c2",
                connection_type="causal",
                direction="directed",
                description="being grounds becoming",
                attributes=[Attribute(attribute_type="strength", value=0.4)],
            )
        ],
    )


@pytest.fixture
def unity_graph():
    return ConceptGraph(
        concept_id="k1",
        concept_name="Парменид",
        concept_description="Бытие есть",
        categories=[
            Category(category_id="p1", name="One", definition="the whole"),
            Category(category_id="p2", name="Many", definition="appearance"),
        ],
        connections=[
            Connection(
                connection_id="pe1",
                source_category_id="p1",
                target_category_id="p2",
                connection_type="negation",
                direction="bidirectional",
            )
        ],
    )


@pytest.fixture
def concepts():
    return [
        Concept(concept_id="k1", name="Парменид", description="Бытие есть"),
        Concept(concept_id="k2", name="Гераклит", description="Всё течёт"),
    ]
