"""Command line tool for pivot."""
