"""perch.templating: kida-backed HTML rendering with autoescape."""

from perch.templating.integration import (
    compile_template,
    create_environment,
    load_template,
    render,
    render_template,
)
from perch.templating.returns import InlineTemplate, Template

__all__ = [
    "InlineTemplate",
    "Template",
    "compile_template",
    "create_environment",
    "load_template",
    "render",
    "render_template",
]
