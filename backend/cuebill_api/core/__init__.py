"""
Application core: lifespan, dependencies and exception handlers.
"""

from .lifespan import lifespan
from .exception_handlers import register_exception_handlers

__all__ = ["lifespan", "register_exception_handlers"]
