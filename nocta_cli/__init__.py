"""Command line interface for nocta."""
