"""Unit tests for prompt placeholder substitution."""

from __future__ import annotations

import pytest

from technodog.services.prompt_builder import (
    PromptTemplate,
    bullet_list,
    render,
    to_json_block,
)
from technodog.utils.errors import PromptRenderError


class TestPromptTemplate:
    def test_substitutes_placeholder(self) -> None:
        assert render("Count: {n}", n=42) == "Count: 42"

    def test_repeated_placeholder(self) -> None:
        assert render("{a}-{a}", a="x") == "x-x"

    def test_json_example_braces_survive(self) -> None:
        template = 'Stats: {stats}. Return JSON: { "recommendations": ["rec1"], "confidence": 0.0-1.0 }'
        rendered = render(template, stats='{"total": 3}')
        assert rendered == 'Stats: {"total": 3}. Return JSON: { "recommendations": ["rec1"], "confidence": 0.0-1.0 }'

    def test_values_are_not_rescanned(self) -> None:
        assert render("{a} {b}", a="{b}", b="B") == "{b} B"

    def test_missing_placeholder_left_in_place(self) -> None:
        assert render("Hello {name}, {missing}", name="dog") == "Hello dog, {missing}"

    def test_strict_raises_on_missing(self) -> None:
        template = PromptTemplate("{channel} / {videos} / {threshold}")
        with pytest.raises(PromptRenderError) as excinfo:
            template.render_strict(channel="x")
        assert excinfo.value.missing == ["videos", "threshold"]

    def test_strict_renders_when_complete(self) -> None:
        template = PromptTemplate("{channel}: {videos}")
        assert template.render_strict(channel="tdog", videos=3) == "tdog: 3"

    @pytest.mark.parametrize("name", ["strict", "self", "template", "values"])
    def test_any_identifier_can_be_a_placeholder(self, name: str) -> None:
        template = PromptTemplate("Mode: {" + name + "}")
        assert template.render(**{name: "on"}) == "Mode: on"
        assert template.render_strict(**{name: "on"}) == "Mode: on"
        assert render("Mode: {" + name + "}", **{name: "on"}) == "Mode: on"

    def test_placeholders_in_order_without_duplicates(self) -> None:
        template = PromptTemplate("{b} {a} {b} {c_1}")
        assert template.placeholders == ["b", "a", "c_1"]

    def test_non_string_values(self) -> None:
        assert render("{n} / {ok}", n=0.5, ok=True) == "0.5 / True"


def test_bullet_list() -> None:
    assert bullet_list(["one", "two"]) == "- one\n- two"


def test_bullet_list_empty() -> None:
    assert bullet_list([], empty="No critical issues detected") == "No critical issues detected"


def test_to_json_block_is_indented() -> None:
    assert to_json_block({"a": 1}) == '{\n  "a": 1\n}'
