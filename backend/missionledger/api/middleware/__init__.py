"""Request middleware and exception handlers"""
from .correlation import CORRELATION_HEADER, CorrelationIdMiddleware
from .error_handlers import register_error_handlers

__all__ = ["CORRELATION_HEADER", "CorrelationIdMiddleware", "register_error_handlers"]
