"""Command line interface for dbgateway."""
