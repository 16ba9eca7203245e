"""Command line tools for varstore."""
