"""Tests for perch.templating — kida environment, loading and rendering."""

from dataclasses import dataclass

import pytest

from perch.config import AppConfig
from perch.errors import TemplateLoadError, TemplateRenderError
from perch.templating import (
    compile_template,
    create_environment,
    load_template,
    render,
    render_template,
)


@dataclass(frozen=True, slots=True)
class Todo:
    title: str
    done: bool


@pytest.fixture
def env(tmp_path):
    (tmp_path / "list.html").write_text(
        "<ul>{% for t in todos %}<li>{{ t.title }}{% if t.done %} (done){% end %}</li>{% end %}</ul>"
    )
    (tmp_path / "broken.html").write_text("{% if x %}never closed")
    return create_environment(AppConfig(template_dir=tmp_path))


class TestRender:
    def test_substitution(self) -> None:
        assert render("<p>{{ name }}</p>", {"name": "dune"}) == b"<p>dune</p>"

    def test_script_is_escaped(self) -> None:
        out = render("<p>{{ value }}</p>", {"value": "<script>alert(1)</script>"})
        assert b"<script>" not in out
        assert b"&lt;script&gt;" in out

    def test_quotes_and_ampersands_escaped(self) -> None:
        out = render('<a title="{{ v }}">x</a>', {"v": '"a" & b'})
        assert b'"a"' not in out
        assert b"&amp;" in out

    def test_if_and_for(self) -> None:
        source = "{% for t in todos %}{% if t.done %}[x]{% else %}[ ]{% end %}{{ t.title }};{% end %}"
        todos = [Todo("a", True), Todo("b", False)]
        assert render(source, {"todos": todos}) == b"[x]a;[ ]b;"

    def test_compiled_template_reused(self) -> None:
        template = compile_template("{{ n }}")
        assert render(template, {"n": 1}) == b"1"
        assert render(template, {"n": 2}) == b"2"

    def test_missing_field_raises_render_error(self) -> None:
        with pytest.raises(TemplateRenderError) as exc_info:
            render("<p>{{ missing }}</p>", {})
        assert exc_info.value.__cause__ is not None


class TestLoad:
    def test_malformed_source(self) -> None:
        with pytest.raises(TemplateLoadError):
            compile_template("{% if x %}never closed")

    def test_load_file(self, env) -> None:
        template = load_template(env, "list.html")
        html = render_template(template, {"todos": [Todo("<b>", True)]})
        assert html == "<ul><li>&lt;b&gt; (done)</li></ul>"

    def test_missing_file(self, env) -> None:
        with pytest.raises(TemplateLoadError) as exc_info:
            load_template(env, "nope.html")
        assert "nope.html" in str(exc_info.value)

    def test_malformed_file(self, env) -> None:
        with pytest.raises(TemplateLoadError):
            load_template(env, "broken.html")
