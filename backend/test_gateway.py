import json
import threading

import pytest
import requests

from conceptlab.config import ModelConfig
from conceptlab.errors import ConfigurationError, ModelRequestFailed
from conceptlab.inference.base import ModelRequest
from conceptlab.inference.messages_client import MessagesClient, parse_response_payload
from conceptlab.llm.gateway import ModelGateway, cache_key

from conftest import FakeClient


class BrokenCache:
    def get(self, key):
        raise ConnectionError("cache down")

    def set(self, key, value, ttl_seconds):
        raise ConnectionError("cache down")

    def delete(self, key):
        raise ConnectionError("cache down")


class BrokenLog:
    def append(self, record):
        raise RuntimeError("disk full")

    def usage_stats(self, user_id):
        raise RuntimeError("disk full")


def complete(gateway, prompt="prompt", **kwargs):
    return gateway.complete("u1", "k1", "graph_validation", prompt, **kwargs)


class TestCaching:
    def test_hit_returns_same_tokens_and_skips_log(self, cache, interaction_log):
        client = FakeClient("answer")
        gateway = ModelGateway(client, cache=cache, interaction_log=interaction_log)

        first = complete(gateway)
        second = complete(gateway)

        assert client.calls == 1
        assert (first.text, first.cached) == ("answer", False)
        assert (second.text, second.cached) == ("answer", True)
        assert second.tokens_used == first.tokens_used == 15
        assert len(interaction_log.records) == 1

    def test_key_covers_max_tokens_and_temperature(self, cache):
        client = FakeClient("answer")
        gateway = ModelGateway(client, cache=cache)

        complete(gateway)
        complete(gateway, max_tokens=5000)
        complete(gateway, temperature=0.8)
        assert client.calls == 3

    def test_entry_written_with_ttl(self, cache):
        now = [1000.0]
        cache._clock = lambda: now[0]
        gateway = ModelGateway(FakeClient("answer"), cache=cache, cache_ttl=60)

        complete(gateway)
        key = cache_key("prompt", 4000, 0.7)
        assert json.loads(cache.get(key)) == {"response": "answer", "tokensUsed": 15}

        now[0] += 61
        assert cache.get(key) is None

    def test_use_cache_false_always_calls(self, cache, interaction_log):
        client = FakeClient("answer")
        gateway = ModelGateway(client, cache=cache, interaction_log=interaction_log)

        complete(gateway, use_cache=False)
        complete(gateway, use_cache=False)
        assert client.calls == 2
        assert len(interaction_log.records) == 2
        assert cache.get(cache_key("prompt", 4000, 0.7)) is None

    def test_cache_key_shape(self):
        key = cache_key("p", 4000, 0.7)
        assert key.startswith("claude:")
        assert len(key) == len("claude:") + 64
        assert key == cache_key("p", 4000, 0.7)
        assert key != cache_key("p", 4000, 0.71)

    def test_concurrent_misses_make_one_call(self, cache, interaction_log):
        client = FakeClient("answer", delay=0.05)
        gateway = ModelGateway(client, cache=cache, interaction_log=interaction_log)
        results = []

        threads = [threading.Thread(target=lambda: results.append(complete(gateway))) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert client.calls == 1
        assert len(interaction_log.records) == 1
        assert {r.text for r in results} == {"answer"}


class TestInteractionLog:
    def test_record_fields(self, interaction_log):
        gateway = ModelGateway(FakeClient("answer"), interaction_log=interaction_log)
        gateway.complete("u1", None, "concept_synthesis", "prompt text")

        record = interaction_log.records[0]
        assert record.user_id == "u1"
        assert record.concept_id is None
        assert record.interaction_type == "concept_synthesis"
        assert record.prompt == "prompt text"
        assert record.response == "answer"
        assert record.tokens_used == 15
        assert record.duration_ms >= 0

    def test_usage_stats(self, interaction_log):
        gateway = ModelGateway(FakeClient("a"), interaction_log=interaction_log)
        gateway.complete("u1", "k1", "graph_validation", "p1")
        gateway.complete("u1", "k1", "graph_validation", "p2")
        gateway.complete("u1", "k1", "critical_analysis", "p3")
        gateway.complete("u2", "k1", "critical_analysis", "p4")

        stats = interaction_log.usage_stats("u1")
        assert stats.total_interactions == 3
        assert stats.total_tokens == 45
        assert stats.interaction_types == {"graph_validation": 2, "critical_analysis": 1}


class TestFailures:
    def test_transport_error_is_wrapped(self, cache, interaction_log):
        cause = RuntimeError("boom")
        gateway = ModelGateway(FakeClient(error=cause), cache=cache, interaction_log=interaction_log)

        with pytest.raises(ModelRequestFailed) as exc:
            complete(gateway)

        assert exc.value.cause is cause
        assert interaction_log.records == []
        assert cache.get(cache_key("prompt", 4000, 0.7)) is None

    def test_no_retry(self):
        client = FakeClient(error=RuntimeError("boom"))
        with pytest.raises(ModelRequestFailed):
            complete(ModelGateway(client))
        assert client.calls == 1

    def test_cache_outage_degrades_to_miss(self, interaction_log):
        client = FakeClient("answer")
        gateway = ModelGateway(client, cache=BrokenCache(), interaction_log=interaction_log)

        assert complete(gateway).text == "answer"
        assert complete(gateway).text == "answer"
        assert client.calls == 2

    def test_log_failure_does_not_fail_call(self, cache):
        gateway = ModelGateway(FakeClient("answer"), cache=cache, interaction_log=BrokenLog())
        assert complete(gateway).text == "answer"

    def test_unreadable_cache_entry_is_a_miss(self, cache):
        client = FakeClient("answer")
        cache.set(cache_key("prompt", 4000, 0.7), "not json", 60)
        assert complete(ModelGateway(client, cache=cache)).cached is False
        assert client.calls == 1

    def test_unknown_operation_kind(self):
        gateway = ModelGateway(FakeClient("answer"))
        with pytest.raises(ValueError):
            gateway.complete("u1", None, "poetry", "prompt")


# ============================================================
# TRANSPORT
# ============================================================

class FakeHttpResponse:
    def __init__(self, status, body):
        self.status_code = status
        self._body = body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        if isinstance(self._body, Exception):
            raise self._body
        return self._body


class FakeSession:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.posts = []

    def post(self, url, json=None, headers=None, timeout=None):
        self.posts.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        if self.error:
            raise self.error
        return self.response


@pytest.fixture
def config():
    return ModelConfig(api_key="secret", api_url="https://model.test/v1/messages", timeout=30)


class TestMessagesClient:
    def test_request_shape(self, config):
        session = FakeSession(FakeHttpResponse(200, {"content": "hi", "usage": {"input_tokens": 3, "output_tokens": 4}}))
        client = MessagesClient(config, session=session)

        response = client.complete(ModelRequest(prompt="p", max_tokens=100, temperature=0.5, system="sys"))

        post = session.posts[0]
        assert post["url"] == "https://model.test/v1/messages"
        assert post["timeout"] == 30
        assert post["headers"]["x-api-key"] == "secret"
        assert post["headers"]["anthropic-version"] == "2023-06-01"
        assert post["json"]["messages"] == [{"role": "user", "content": "p"}]
        assert post["json"]["max_tokens"] == 100
        assert post["json"]["system"] == "sys"
        assert response.tokens_used == 7

    def test_system_is_optional(self, config):
        payload = MessagesClient(config, session=FakeSession()).build_payload(
            ModelRequest(prompt="p", max_tokens=1, temperature=0.0)
        )
        assert "system" not in payload

    @pytest.mark.parametrize(
        "session",
        [
            FakeSession(error=requests.Timeout("slow")),
            FakeSession(FakeHttpResponse(529, {})),
            FakeSession(FakeHttpResponse(200, ValueError("not json"))),
        ],
    )
    def test_failures_are_wrapped(self, config, session):
        with pytest.raises(ModelRequestFailed):
            MessagesClient(config, session=session).complete(
                ModelRequest(prompt="p", max_tokens=1, temperature=0.0)
            )

    def test_content_shapes(self):
        blocks = {"content": [{"type": "text", "text": "a"}, {"type": "text", "text": "b"}], "usage": {}}
        message = {"message": {"content": "m"}, "usage": {"input_tokens": 1, "output_tokens": 1}}

        assert parse_response_payload(blocks).content == "ab"
        assert parse_response_payload(message).content == "m"
        assert parse_response_payload(message).tokens_used == 2

        with pytest.raises(ModelRequestFailed):
            parse_response_payload({"usage": {}})
        with pytest.raises(ModelRequestFailed):
            parse_response_payload(["not", "an", "object"])


def test_config_requires_api_key():
    with pytest.raises(ConfigurationError):
        ModelConfig(api_key="")
