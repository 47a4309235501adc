"""Reporting utilities for convstep."""

from .artifacts import write_manifest
from .summary import build_summary, write_summary
from .trace import JsonlSink, StepCounter

__all__ = ["JsonlSink", "StepCounter", "build_summary", "write_manifest", "write_summary"]
