"""Addon querying: dialects, transports, normalization and ranking."""
