"""
Common utilities for the weather client.
"""

import dataclasses
import datetime
import json
import logging
import os
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


def toJsonable(value: Any) -> Any:
    """
    Convert dataclasses (recursively), datetimes and exceptions into JSON-friendly values.
    """
    if dataclasses.is_dataclass(value) and not isinstance(value, type):
        return {field.name: toJsonable(getattr(value, field.name)) for field in dataclasses.fields(value)}
    if isinstance(value, datetime.datetime):
        return value.isoformat()
    if isinstance(value, BaseException):
        return str(value)
    if isinstance(value, dict):
        return {str(k): toJsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [toJsonable(item) for item in value]
    return value


def jsonDumps(data: Any, compact: Optional[bool] = None, **kwargs) -> str:
    dumpKwargs = {
        "ensure_ascii": False,
        "default": str,
        "sort_keys": True,
    }

    if compact is None:
        # If indent is passed, then user want pretty-printed JSON,
        #  no need to use compact separators
        compact = "indent" not in kwargs

    if compact:
        dumpKwargs["separators"] = (",", ":")
    dumpKwargs.update(kwargs)
    return json.dumps(toJsonable(data), **dumpKwargs)


def load_dotenv(path: str = ".env", populateEnv: bool = True) -> Dict[str, str]:
    """
    Simple dotenv file loader.
    Just read file line by line and put key-value pairs into dictionary.
    Missing file is not an error: the environment is used as is.

    Args:
        path: Path to .env file (default ".env")
        populateEnv: Whether to populate environment variables (default True).
            Variables already set in the environment are not overridden.

    Returns:
        Dictionary of key-value pairs from .env file
    """
    ret: Dict[str, str] = {}
    if not os.path.isfile(path):
        logger.debug(f"No dotenv file at {path}, skipping")
        return ret

    with open(path, "rt") as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            key, sep, value = line.partition("=")
            if not sep:
                continue
            ret[key.strip()] = value.strip().strip('"')

    if populateEnv:
        for k, v in ret.items():
            os.environ.setdefault(k, v)
    return ret
