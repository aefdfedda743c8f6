"""Conversational BI agent: tool-calling turn engine, NDJSON event stream and
triangulated metric verification."""

__version__ = "0.1.0"
