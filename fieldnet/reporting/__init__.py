"""Reporting sinks for fieldnet training runs."""

from .metrics import CsvSink, JsonlSink

__all__ = ["CsvSink", "JsonlSink"]
