"""CSV ingestion: header detection and per-broker parsers."""

from .parsers import ParseResult, detect, parse_tradebook

__all__ = ["ParseResult", "detect", "parse_tradebook"]
