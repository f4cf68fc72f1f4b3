"""
Backend package for the survey insight API.

This package provides a FastAPI application that proxies the relational
survey store and a language-model provider, with swappable knowledge-base
and AI adapters behind the route handlers.
"""

__version__ = "0.1.0"
