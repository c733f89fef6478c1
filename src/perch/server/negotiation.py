"""Content negotiation: maps handler return values to responses.

isinstance-based dispatch, no magic, fully predictable.
"""

import json as json_module
from typing import Any

from kida import Environment

from perch.errors import ConfigurationError
from perch.http.response import AnyResponse, Redirect, Response, StreamingResponse
from perch.templating.integration import compile_template, load_template, render_template
from perch.templating.returns import InlineTemplate, Template


def _html_response(body: str) -> Response:
    return Response(body=body, content_type="text/html; charset=utf-8")


def negotiate(value: Any, *, kida_env: Environment | None = None) -> AnyResponse:
    """Convert a route handler's return value to a response.

    Dispatch order:

    1. ``Response`` / ``StreamingResponse`` -> pass through
    2. ``Redirect``          -> 302 (or given status) with Location header
    3. ``Template``          -> load from the template dir, render
    4. ``InlineTemplate``    -> compile source, render
    5. ``str``               -> 200, text/html
    6. ``bytes``             -> 200, application/octet-stream
    7. ``dict`` / ``list``   -> 200, application/json
    8. ``None``              -> 204, empty body
    9. ``(value, int)``      -> negotiate value, override status
    10. ``(value, int, dict)`` -> negotiate value, override status + headers
    """
    match value:
        case Response() | StreamingResponse():
            return value
        case Redirect():
            return (
                Response(body="")
                .with_status(value.status)
                .with_header("Location", value.url)
                .with_headers(dict(value.headers))
            )
        case Template():
            if kida_env is None:
                msg = (
                    "Template return type requires a template environment. "
                    "Return it from a handler registered on an App."
                )
                raise ConfigurationError(msg)
            template = load_template(kida_env, value.name)
            return _html_response(render_template(template, value.context, value.name))
        case InlineTemplate():
            template = compile_template(value.source, kida_env)
            return _html_response(render_template(template, value.context))
        case str():
            return _html_response(value)
        case bytes():
            return Response(body=value, content_type="application/octet-stream")
        case dict() | list():
            return Response(
                body=json_module.dumps(value, default=str),
                content_type="application/json; charset=utf-8",
            )
        case None:
            return Response(body="", status=204)
        case (inner, int() as status):
            return negotiate(inner, kida_env=kida_env).with_status(status)
        case (inner, int() as status, dict() as headers):
            return negotiate(inner, kida_env=kida_env).with_status(status).with_headers(headers)
        case _:
            msg = (
                f"Cannot convert {type(value).__name__} to a response. "
                f"Return str, bytes, dict, list, Template, InlineTemplate, "
                f"Response, StreamingResponse or Redirect."
            )
            raise TypeError(msg)
