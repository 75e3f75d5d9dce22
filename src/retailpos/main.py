from __future__ import annotations

import logging
from typing import Mapping

from retailpos.application.container import AppContainer, build_container
from retailpos.config import get_app_paths, load_settings
from retailpos.logging_config import setup_logging


def bootstrap(environ: Mapping[str, str] | None = None) -> AppContainer:
    """Configure logging and wire the services for a POS terminal."""
    paths = get_app_paths()
    setup_logging(paths.logs_dir, level=logging.INFO)

    settings = load_settings(environ)
    container = build_container(settings)
    logging.getLogger(__name__).info(
        "pos_started backend=%s user=%s",
        settings.api_url or "sqlite",
        settings.user_id,
    )
    return container
