"""Command line interface for the object store facade."""
