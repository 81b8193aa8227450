import json
import re

import pytest
import yaml

from conceptlab.cache import InMemoryCache
from conceptlab.templates.store import CACHE_KEY, PromptTemplate, PromptTemplateStore


def write_template(directory, name, **body):
    data = {"name": name, "template": "Hello {{who}}", "parameters": ["who"]}
    data.update(body)
    (directory / f"{name}.yaml").write_text(yaml.safe_dump(data, allow_unicode=True), encoding="utf-8")


@pytest.fixture
def templates_dir(tmp_path):
    write_template(tmp_path, "greeting")
    write_template(tmp_path, "farewell", template="Bye {{who}}")
    return tmp_path


class TestLoading:
    def test_get_and_list(self, templates_dir):
        store = PromptTemplateStore(str(templates_dir))

        template = store.get("greeting")
        assert template.template == "Hello {{who}}"
        assert template.parameters == ["who"]
        assert sorted(store.list_names()) == ["farewell", "greeting"]
        assert store.get("missing") is None

    def test_malformed_entry_only_skips_itself(self, templates_dir):
        (templates_dir / "broken.yaml").write_text("template: [unclosed", encoding="utf-8")
        write_template(templates_dir, "empty", template="   ")

        store = PromptTemplateStore(str(templates_dir))
        assert sorted(store.list_names()) == ["farewell", "greeting"]

    def test_missing_directory_yields_empty_store(self, tmp_path):
        store = PromptTemplateStore(str(tmp_path / "nope"))
        assert store.list_names() == []

    def test_parameters_are_deduplicated_in_order(self):
        template = PromptTemplate(name="t", template="x", parameters=["b", "a", "b"])
        assert template.parameters == ["b", "a"]

    def test_full_set_is_published_to_shared_cache(self, templates_dir):
        cache = InMemoryCache()
        PromptTemplateStore(str(templates_dir), cache=cache).get("greeting")

        cached = json.loads(cache.get(CACHE_KEY))
        assert sorted(cached) == ["farewell", "greeting"]

    def test_loads_from_shared_cache_first(self, templates_dir, tmp_path_factory):
        cache = InMemoryCache()
        PromptTemplateStore(str(templates_dir), cache=cache).list_names()

        # a second process pointing at an empty directory still sees the set
        other = PromptTemplateStore(str(tmp_path_factory.mktemp("empty")), cache=cache)
        assert other.get("farewell").template == "Bye {{who}}"


class TestWrites:
    def test_create(self, templates_dir):
        cache = InMemoryCache()
        store = PromptTemplateStore(str(templates_dir), cache=cache)
        new = PromptTemplate(name="question", template="Why {{what}}?", parameters=["what"])

        assert store.create("question", new) is True
        assert store.get("question") == new
        assert (templates_dir / "question.yaml").exists()
        assert "question" in json.loads(cache.get(CACHE_KEY))

    def test_create_existing_fails(self, templates_dir):
        store = PromptTemplateStore(str(templates_dir))
        assert store.create("greeting", PromptTemplate(name="greeting", template="x")) is False
        assert store.get("greeting").template == "Hello {{who}}"

    def test_update(self, templates_dir):
        cache = InMemoryCache()
        store = PromptTemplateStore(str(templates_dir), cache=cache)
        updated = PromptTemplate(name="greeting", template="Hi {{who}}", parameters=["who"])

        assert store.update("greeting", updated) is True
        assert store.get("greeting").template == "Hi {{who}}"
        assert json.loads(cache.get(CACHE_KEY))["greeting"]["template"] == "Hi {{who}}"

        reloaded = PromptTemplateStore(str(templates_dir))
        assert reloaded.get("greeting").template == "Hi {{who}}"

    def test_update_missing_fails(self, templates_dir):
        store = PromptTemplateStore(str(templates_dir))
        assert store.update("nope", PromptTemplate(name="nope", template="x")) is False

    def test_delete(self, templates_dir):
        cache = InMemoryCache()
        store = PromptTemplateStore(str(templates_dir), cache=cache)

        assert store.delete("farewell") is True
        assert store.get("farewell") is None
        assert not (templates_dir / "farewell.yaml").exists()
        assert "farewell" not in json.loads(cache.get(CACHE_KEY))
        assert store.delete("farewell") is False


class TestBundledTemplates:
    """The templates shipped with the package."""

    def test_every_operation_has_a_template(self):
        store = PromptTemplateStore()
        for name in PromptTemplateStore.EXPECTED_TEMPLATES:
            assert store.get(name) is not None, name

    def test_placeholders_match_declared_parameters(self):
        store = PromptTemplateStore()
        for name in store.list_names():
            template = store.get(name)
            used = set(re.findall(r"\{\{(\w+)\}\}", template.template))
            assert used == set(template.parameters), name
