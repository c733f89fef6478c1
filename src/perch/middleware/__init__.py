"""perch.middleware: adapters that wrap handlers.

Every middleware is ``async (request, next) -> response``. The app's
middleware tuple is composed once with :func:`adapt`; the first listed
runs outermost.
"""

from perch.middleware.auth import TokenAuth, bearer_token, require_method
from perch.middleware.chain import adapt, adapt_all
from perch.middleware.database import DatabaseSession
from perch.middleware.headers import SECURITY_HEADERS, DefaultHeaders
from perch.middleware.logging import RequestLogging, log_path
from perch.middleware.protocol import AnyResponse, Middleware, Next
from perch.middleware.static import StaticFiles

__all__ = [
    "SECURITY_HEADERS",
    "AnyResponse",
    "DatabaseSession",
    "DefaultHeaders",
    "Middleware",
    "Next",
    "RequestLogging",
    "StaticFiles",
    "TokenAuth",
    "adapt",
    "adapt_all",
    "bearer_token",
    "log_path",
    "require_method",
]
