"""Workflow and action models, job planning, expression parsing and functions, runner-command parsing and executable lookup."""

__version__ = "0.1.0"