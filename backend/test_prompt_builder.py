import json
import logging

import pytest
from pydantic import ValidationError

from conceptlab.errors import TemplateNotFound
from conceptlab.inference import prompt as contexts
from conceptlab.inference.prompt import PromptBuilder, format_category_line, format_connection_line
from conceptlab.ir.graph import Attribute, SynthesisParams, ThesisGenerationParams
from conceptlab.templates.store import PromptTemplate, PromptTemplateStore


@pytest.fixture
def builder(tmp_path):
    store = PromptTemplateStore(str(tmp_path))
    store.create(
        "probe",
        PromptTemplate(
            name="probe",
            template="A={{a}} B={{b}} again={{a}} other={{undeclared}}",
            parameters=["a", "b"],
        ),
    )
    return PromptBuilder(store)


class TestRender:
    def test_all_parameters_substituted(self, builder):
        text = builder.render("probe", {"a": "1", "b": "2"})
        assert text == "A=1 B=2 again=1 other={{undeclared}}"

    def test_missing_parameter_becomes_empty(self, builder, caplog):
        with caplog.at_level(logging.WARNING):
            text = builder.render("probe", {"a": "1"})
        assert text == "A=1 B= again=1 other={{undeclared}}"
        assert "Parameter b is missing" in caplog.text

    def test_structured_values_are_json(self, builder):
        text = builder.render("probe", {"a": {"name": "Бытие"}, "b": 3})
        assert json.dumps({"name": "Бытие"}, indent=2, ensure_ascii=False) in text
        assert "B=3" in text

    def test_unknown_template(self, builder):
        with pytest.raises(TemplateNotFound) as exc:
            builder.render("nope", {})
        assert exc.value.name == "nope"

    def test_bundled_templates_render_without_leftovers(self, flux_graph):
        builder = PromptBuilder(PromptTemplateStore())
        text = builder.render(
            "thesis_generation",
            contexts.thesis_generation_context(flux_graph, ThesisGenerationParams(count=3)),
        )
        assert "{{" not in text
        assert "- Being -> Becoming (causal): being grounds becoming" in text


class TestLineFormats:
    def test_category_line_weights(self, flux_graph):
        becoming = flux_graph.categories[1]
        assert format_category_line(becoming) == "- Becoming: what changes"
        assert format_category_line(becoming, use_weights=True) == (
            "- Becoming: what changes [Характеристики: centrality: 0.9]"
        )

    def test_connection_arrow(self, flux_graph, unity_graph):
        assert format_connection_line(flux_graph.connections[0], flux_graph, use_weights=True) == (
            "- Being -> Becoming (causal): being grounds becoming [Характеристики: strength: 0.4]"
        )
        assert format_connection_line(unity_graph.connections[0], unity_graph) == "- One <-> Many (negation): "


class TestContexts:
    def test_thesis_focus_categories_by_name(self, flux_graph):
        params = ThesisGenerationParams(focus_categories=["c2", "unknown"])
        context = contexts.thesis_generation_context(flux_graph, params)
        assert context["focus_categories"] == "Becoming"
        assert "Характеристики" not in context["categories"]

    def test_synthesis_context_omits_attributes_without_weights(self, concepts, unity_graph, flux_graph):
        params = SynthesisParams(priorities={"k2": 2.5})
        context = contexts.synthesis_context(concepts, [unity_graph, flux_graph], "dialectical", params)

        first, second = context["concepts"]
        assert first["priority"] == 1
        assert second["priority"] == 2.5
        becoming = second["graph"]["categories"][1]
        assert becoming["attributes"] == []
        assert second["graph"]["connections"][0]["attributes"] == []

    def test_synthesis_context_with_weights(self, concepts, unity_graph, flux_graph):
        params = SynthesisParams(use_weights=True)
        context = contexts.synthesis_context(concepts, [unity_graph, flux_graph], "dialectical", params)
        becoming = context["concepts"][1]["graph"]["categories"][1]
        assert becoming["attributes"] == [{"attribute_type": "centrality", "value": 0.9}]

    def test_overview_context_lines(self, concepts, flux_graph):
        context = contexts.concept_overview_context(concepts[1], flux_graph)
        assert context["categories"] == "Being: what is\nBecoming: what changes"
        assert context["connections"] == "Being -> Becoming (causal): being grounds becoming"


@pytest.mark.parametrize("value", [-0.1, 1.5])
def test_attribute_out_of_range_is_rejected(value):
    with pytest.raises(ValidationError):
        Attribute(attribute_type="weight", value=value)
