from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict

from omegaconf import OmegaConf

logger = logging.getLogger(__name__)

# secrets file key -> environment variable
API_KEY_ENV = {
    "openai_api": "OPENAI_API_KEY",
    "deepseek_api": "DEEPSEEK_API_KEY",
}


def export_api_keys(path: Path | str = Path("secrets.yml")) -> Dict[str, str]:
    """Copy API keys from a local secrets file into the environment.

    Variables that are already set win over the file. Returns the variables
    that were exported.
    """
    path = Path(path)
    if not path.exists():
        return {}
    secrets = OmegaConf.load(path)
    exported: Dict[str, str] = {}
    for key, env_name in API_KEY_ENV.items():
        value = secrets.get(key)
        if value and not os.environ.get(env_name):
            os.environ[env_name] = str(value)
            exported[env_name] = str(value)
    if exported:
        logger.debug("exported %s from %s", ", ".join(sorted(exported)), path)
    return exported
