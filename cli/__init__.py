"""Command line interface for fieldnet."""
