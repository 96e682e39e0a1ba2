"""Command modules for opshub CLI."""
