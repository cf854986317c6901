#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Serialization Utilities for Cluster Tree Explorer

Provides safe JSON serialization functions that handle numpy data types,
pandas objects, dataclass snapshots and other objects that are not
natively JSON serializable.
"""

import dataclasses
import json
import logging
import math
from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Any, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


def make_json_serializable(obj: Any) -> Any:
    """
    Convert objects to JSON-serializable formats.

    This function recursively processes objects to ensure they can be
    serialized to JSON, converting numpy types, pandas objects, dataclasses
    and enums to their JSON-compatible equivalents. Non-finite floats become
    None so the output stays strict JSON.

    Args:
        obj: Object to make JSON serializable

    Returns:
        JSON-serializable version of the object
    """
    if obj is None:
        return None

    if isinstance(obj, bool):
        return obj

    if isinstance(obj, (int, str)):
        return obj

    if isinstance(obj, float):
        return obj if math.isfinite(obj) else None

    if isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        value = float(obj)
        return value if math.isfinite(value) else None
    elif isinstance(obj, np.ndarray):
        return [make_json_serializable(item) for item in obj.tolist()]

    elif isinstance(obj, Enum):
        return make_json_serializable(obj.value)

    elif isinstance(obj, (datetime, date)):
        return obj.isoformat()

    elif isinstance(obj, Path):
        return str(obj)

    elif isinstance(obj, pd.Series):
        return make_json_serializable(obj.to_dict())

    elif isinstance(obj, pd.DataFrame):
        return make_json_serializable(obj.to_dict('records'))

    elif dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {field.name: make_json_serializable(getattr(obj, field.name))
                for field in dataclasses.fields(obj)}

    elif isinstance(obj, dict):
        return {_json_key(k): make_json_serializable(v)
                for k, v in obj.items()}

    elif isinstance(obj, (list, tuple)):
        return [make_json_serializable(item) for item in obj]

    elif isinstance(obj, set):
        return [make_json_serializable(item) for item in sorted(obj, key=str)]

    else:
        try:
            return str(obj)
        except Exception as e:
            logger.warning(f"Could not serialize object of type {type(obj)}: {e}")
            return f"<non-serializable: {type(obj).__name__}>"


def _json_key(key: Any) -> Union[str, int, float, bool, None]:
    """JSON object keys must be plain scalars"""
    key = make_json_serializable(key)
    if key is None or isinstance(key, (str, int, float, bool)):
        return key
    return str(key)


def safe_json_dump(obj: Any, file_path: Union[str, Path], indent: int = 2) -> bool:
    """
    Safely dump an object to JSON file with proper error handling.

    Args:
        obj: Object to serialize
        file_path: Path to output file
        indent: JSON indentation

    Returns:
        True if successful, False otherwise
    """
    try:
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        with open(file_path, 'w', encoding='utf-8') as f:
            json.dump(make_json_serializable(obj), f, indent=indent)

        logger.debug(f"Wrote JSON snapshot to {file_path}")
        return True

    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Error writing JSON to {file_path}: {e}", exc_info=True)
        return False


def safe_json_dumps(obj: Any, indent: int = 2) -> str:
    """Serialize an object to a JSON string"""
    return json.dumps(make_json_serializable(obj), indent=indent)
