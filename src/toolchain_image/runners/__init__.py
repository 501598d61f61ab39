"""Command runners used by pipeline steps and collaborators."""

from .base import CommandRunner
from .inprocess import InProcessRunner
from .local import LocalRunner

__all__ = ["CommandRunner", "InProcessRunner", "LocalRunner"]
