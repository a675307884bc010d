"""Dependency resolver producing installation plans."""

from .engine import Resolver
from .models import ResolutionResult

__all__ = ["Resolver", "ResolutionResult"]
