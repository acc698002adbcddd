from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from structure_browser.config.model import BrowserConfig
from structure_browser.core.exceptions import ConfigError

logger = logging.getLogger(__name__)

# Environment variable -> config field
ENV_OVERRIDES: Dict[str, str] = {
    "STRUCTURE_BROWSER_API_URL": "api_base_url",
    "STRUCTURE_BROWSER_TIMEOUT": "request_timeout",
}

CONFIG_PATH_ENV = "STRUCTURE_BROWSER_CONFIG"


def load_browser_config(
        path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
) -> BrowserConfig:
    """
    Load the browser configuration.

    Resolution order (later wins):
        1) BrowserConfig defaults
        2) JSON file at `path` (or at $STRUCTURE_BROWSER_CONFIG when path is None)
        3) STRUCTURE_BROWSER_* environment overrides

    :param path: JSON config file; optional.
    :param environ: environment mapping, defaults to os.environ.
    :return: a BrowserConfig instance.
    :raises FileNotFoundError: if an explicitly requested file does not exist.
    :raises ConfigError: if the file is not a JSON object or holds invalid values.
    """
    env = os.environ if environ is None else environ

    if path is None and env.get(CONFIG_PATH_ENV):
        path = Path(env[CONFIG_PATH_ENV])

    raw: Dict[str, Any] = {}
    if path is not None:
        logger.info("Loading browser config", extra={"config_path": str(path)})
        if not path.is_file():
            raise FileNotFoundError(f"File not found at {path}")
        with path.open() as f:
            try:
                loaded = json.load(f)
            except ValueError as e:
                raise ConfigError(f"Config file {path} is not valid JSON") from e
        if not isinstance(loaded, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")
        raw.update(loaded)

    for var, field_name in ENV_OVERRIDES.items():
        if env.get(var):
            raw[field_name] = env[var]

    cfg = BrowserConfig.from_dict(raw)
    logger.debug("Browser config resolved", extra={"api_base_url": cfg.api_base_url})
    return cfg
