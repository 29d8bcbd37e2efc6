"""Workflow and action models, runner commands, executable lookup and expression parsing."""

__version__ = "0.1.0"