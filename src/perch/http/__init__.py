"""HTTP primitives — immutable Request, chainable Response, multi-value mappings."""

from perch.http.multidict import Headers, QueryParams
from perch.http.request import Request
from perch.http.response import AnyResponse, Redirect, Response, StreamingResponse

__all__ = [
    "AnyResponse",
    "Headers",
    "QueryParams",
    "Redirect",
    "Request",
    "Response",
    "StreamingResponse",
]
