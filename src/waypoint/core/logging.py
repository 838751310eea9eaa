"""
Logging setup shared by the API app and the CLI.

The packaged `logging.yaml` defines formatters and handlers; the level comes from
`app.log_level` (`WAYPOINT_LOG_LEVEL`) unless the caller passes one explicitly.
"""

from __future__ import annotations

import copy
import logging.config

from waypoint.config.settings import get_logging_config, get_settings


def configure_logging(level: str | None = None) -> str:
    """Apply the packaged config at `level` (default: settings). Returns the level used."""
    resolved = (level or get_settings().app.log_level).upper()
    config = copy.deepcopy(get_logging_config())

    config.setdefault("root", {})["level"] = resolved
    # Handlers pass everything through; the root level is the single filter.
    for handler in config.get("handlers", {}).values():
        handler.pop("level", None)

    logging.config.dictConfig(config)
    return resolved
