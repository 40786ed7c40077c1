from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_FILE_VAR = "KRATOS_ENV_FILE"


def env_candidates() -> List[Path]:
    explicit = os.getenv(ENV_FILE_VAR)
    if explicit:
        return [Path(explicit)]
    backend_dir = Path(__file__).resolve().parents[1]
    return [backend_dir / ".env", backend_dir.parent / ".env"]


def load_env() -> List[Path]:
    """Load ``.env`` files into the process environment.

    ``KRATOS_ENV_FILE`` names a single file to use instead of the backend and
    repository root candidates. Variables already set are never overridden.
    Returns the files that were read.
    """
    loaded = [path for path in env_candidates() if path.is_file()]
    for path in loaded:
        load_dotenv(path)
    if loaded:
        return loaded
    if os.getenv(ENV_FILE_VAR):
        logger.warning(f"[Config] {ENV_FILE_VAR} points at a missing file, nothing loaded")
    else:
        load_dotenv()
    return loaded
