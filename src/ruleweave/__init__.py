"""Ruleweave - declarative rule evaluation over repository facts."""

__version__ = "0.4.0"
