"""ASGI server pipeline: request handling, negotiation, sending."""

from perch.server.handler import build_pipeline, handle_request
from perch.server.negotiation import negotiate

__all__ = ["build_pipeline", "handle_request", "negotiate"]
