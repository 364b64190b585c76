"""
Middleware: behavior wrapped around every routed request.

Chain of Responsibility: each middleware may act before and after the rest
of the chain, or answer the request itself.
"""

from .base import Middleware, MiddlewarePipeline, NextHandler
from .logging import LoggingMiddleware, RequestLog

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "LoggingMiddleware",
    "RequestLog",
]
