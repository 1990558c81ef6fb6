"""Repositories layer - data access for the engine."""

from linking_engine.repositories.article import ArticleRepository

__all__ = ["ArticleRepository"]
