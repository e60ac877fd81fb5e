"""Matrix client factory for pushrules."""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv

from pushrules.adapters.matrix_client import MatrixClient
from pushrules.settings import Settings


def build_client(settings: Settings) -> MatrixClient:
    """Create a Matrix client from settings and environment variables.

    We read MATRIX_ACCESS_TOKEN via python-dotenv to keep secrets out of the
    config file.
    """

    load_dotenv()

    access_token = os.getenv("MATRIX_ACCESS_TOKEN")

    # Fail fast on missing credentials to avoid a confusing 401 later.
    if not access_token:
        raise RuntimeError("Missing MATRIX_ACCESS_TOKEN in environment")

    logging.getLogger(__name__).info("Initializing Matrix client for %s", settings.homeserver)

    return MatrixClient(settings.homeserver, access_token, api_prefix=settings.api_prefix)
