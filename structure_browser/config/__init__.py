"""
Config package for structure_browser.

Responsible for:
- the BrowserConfig model
- loading it from a JSON file plus environment overrides
"""

from .model import BrowserConfig
from .loader import load_browser_config

__all__ = ["BrowserConfig", "load_browser_config"]
