"""Load store state from YAML or JSON files."""

from pathlib import Path
from typing import Any

import yaml

from varstore.errors import StateFileError


def load_state(path: str | Path) -> dict[str, Any]:
    """Read a state file into a dict suitable as a store context.

    JSON documents are valid YAML, so both formats go through
    yaml.safe_load. An empty file yields an empty dict.

    Args:
        path: Path to the YAML or JSON file

    Returns:
        The document's top-level mapping

    Raises:
        StateFileError: If the file is not valid YAML or its top level is
            not a mapping
    """
    path = Path(path)
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise StateFileError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise StateFileError(
            f"State file {path} must contain a mapping, got {type(data).__name__}"
        )
    return data
