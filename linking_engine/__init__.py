"""Automated content-linking engine.

Decides which internal articles, external authority sources and affiliate
offers a published article links to, where each link goes, and which
localized anchor text it carries.
"""

__version__ = "2.0.0"
