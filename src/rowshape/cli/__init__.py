"""Command line interface for rowshape."""
