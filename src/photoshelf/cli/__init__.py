"""Command-line tasks for operators."""
