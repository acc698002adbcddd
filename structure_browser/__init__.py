"""
Top-level package for the structure search engine.

This package exposes the client-side search/aggregation engine of the
TCR/epitope structure browser. Most code should import from submodules such as:
    structure_browser.core
    structure_browser.services
    structure_browser.config
"""

__all__: list[str] = []
