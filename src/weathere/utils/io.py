from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from weathere.utils.logging import get_logger

logger = get_logger(__name__)


def maybe_load_yaml(path: Optional[str | Path]) -> Dict[str, Any]:
    """Load YAML config file with fallback to empty dict."""
    if not path:
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Could not load config file {path}: {e}")
        return {}
    return data if isinstance(data, dict) else {}


def ensure_dir(path: str | Path) -> Path:
    """Ensure the directory exists and return the Path."""
    p = Path(path)
    p.mkdir(parents=True, exist_ok=True)
    return p
