from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Any, Dict

from structure_browser.core.exceptions import ConfigError


@dataclass(frozen=True)
class BrowserConfig:
    """
    Runtime settings of the structure search engine.

    - api_base_url: scheme+host the endpoint paths are resolved against
    - *_endpoint: API paths of the structures backend
    - request_timeout: per-request timeout in seconds for the default transport
    - scroll_update_delay: debounce (s) between UPDATE_SELECTED and the follow-up UPDATE_SCROLL
    - hide_scroll_delay: debounce (s) before UPDATE_SCROLL after an epitope is hidden/shown
    - min_substring_cdr3_length: shortest query allowed in substring mode
    - default_cdr3_top / default_cdr3_gene: defaults of a CDR3 search
    - structure_files_root: URL prefix of structure images
    - success_notification_timeout: how long (ms) success notifications stay visible
    """

    api_base_url: str = "http://localhost:8080"

    metadata_endpoint: str = "/api/structures/metadata"
    filter_endpoint: str = "/api/structures/filter"
    cdr3_endpoint: str = "/api/structures/cdr3"
    members_endpoint: str = "/api/structures/members"
    availability_endpoint: str = "/api/search/availability"

    request_timeout: float = 30.0

    scroll_update_delay: float = 0.1
    hide_scroll_delay: float = 0.05

    min_substring_cdr3_length: int = 3
    default_cdr3_top: int = 15
    default_cdr3_gene: str = "Both"

    structure_files_root: str = "/structure-files"
    success_notification_timeout: int = 1000

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> BrowserConfig:
        """
        Build a config from a raw mapping, coercing values to the declared field types.

        :raises ConfigError: on unknown keys or values that cannot be coerced.
        """
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

        kwargs: Dict[str, Any] = {}
        for name, value in data.items():
            default = getattr(cls, name)
            try:
                if isinstance(default, int):
                    kwargs[name] = int(value)
                elif isinstance(default, float):
                    kwargs[name] = float(value)
                else:
                    kwargs[name] = str(value)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Invalid value for '{name}': {value!r}") from e

        cfg = cls(**kwargs)
        if cfg.min_substring_cdr3_length < 1:
            raise ConfigError("min_substring_cdr3_length must be >= 1")
        if cfg.scroll_update_delay < 0 or cfg.hide_scroll_delay < 0:
            raise ConfigError("Debounce delays must be non-negative")
        return cfg

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
