"""deployforge CLI — Typer-based command-line interface.

Provides the ``deployforge`` command with subcommands for running the
provisioning pipeline, inspecting recorded deployments, browsing the action
journal, and classifying network ids.

All output uses Rich for formatted terminal display.
"""
