"""Integrations with external services."""

from linking_engine.integrations.link_checker import HttpLinkChecker

__all__ = ["HttpLinkChecker"]
