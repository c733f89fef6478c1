"""Kida environment setup, loading and rendering.

The app creates one kida ``Environment`` when it freezes. Autoescape is
on by default, so every ``{{ value }}`` is HTML-escaped unless marked
safe. Failures are reported as perch errors:

- malformed source or a missing file raises ``TemplateLoadError`` when
  the template is loaded,
- a missing variable or a failing expression raises
  ``TemplateRenderError`` when it is rendered.

Rendering is not transactional: nothing has been sent yet when a render
fails, but any partial output is simply discarded.
"""

from collections.abc import Mapping
from typing import Any

from kida import Environment, FileSystemLoader

from perch.config import AppConfig
from perch.errors import TemplateLoadError, TemplateRenderError

# kida's compiled template type; only its render() is used here
type CompiledTemplate = Any


def create_environment(config: AppConfig) -> Environment:
    """Create the app's kida Environment from configuration.

    Called once during ``App._freeze()``.
    """
    return Environment(
        loader=FileSystemLoader(str(config.template_dir)),
        autoescape=config.autoescape,
        auto_reload=config.debug,
    )


def _default_environment() -> Environment:
    return Environment(autoescape=True)


def _describe(exc: Exception) -> str:
    return f"{type(exc).__name__}: {exc}"


def compile_template(source: str, env: Environment | None = None) -> CompiledTemplate:
    """Compile *source* into a reusable template.

    Raises ``TemplateLoadError`` if the source is malformed.
    """
    if env is None:
        env = _default_environment()
    try:
        return env.from_string(source)
    except Exception as exc:
        msg = f"Malformed template: {_describe(exc)}"
        raise TemplateLoadError(msg) from exc


def load_template(env: Environment, name: str) -> CompiledTemplate:
    """Load a template file through *env*'s loader.

    Raises ``TemplateLoadError`` if the file is missing or malformed.
    """
    try:
        return env.get_template(name)
    except Exception as exc:
        msg = f"Cannot load template {name!r}: {_describe(exc)}"
        raise TemplateLoadError(msg) from exc


def render_template(template: CompiledTemplate, data: Mapping[str, Any], name: str = "<string>") -> str:
    """Render an already loaded template to a string.

    Raises ``TemplateRenderError`` naming the cause when rendering fails.
    """
    try:
        return template.render(dict(data))
    except Exception as exc:
        msg = f"Cannot render template {name!r}: {_describe(exc)}"
        raise TemplateRenderError(msg) from exc


def render(
    source_or_template: str | CompiledTemplate,
    data: Mapping[str, Any] | None = None,
    env: Environment | None = None,
) -> bytes:
    """Render a template source string (or compiled template) to UTF-8 bytes.

    Usage::

        html = render("<li>{{ item }}</li>", {"item": "<script>"})
        # b"<li>&lt;script&gt;</li>"
    """
    if isinstance(source_or_template, str):
        template = compile_template(source_or_template, env)
    else:
        template = source_or_template
    return render_template(template, data or {}).encode("utf-8")
