import os
from pathlib import Path

import yaml
from pydantic import ValidationError

from blobfs.rules.models import StoreRules


def _strip_fences(content: str) -> str:
    # Rules files may be kept inside markdown docs; use the first ```yaml block.
    yaml_lines = []
    in_block = False
    found_block = False

    for line in content.splitlines():
        s_line = line.strip()
        if s_line.startswith("```yaml"):
            in_block = True
            found_block = True
            continue
        if in_block and s_line.startswith("```"):
            break
        if in_block:
            yaml_lines.append(line)

    return "\n".join(yaml_lines) if found_block else content


def load_rules(path: Path) -> StoreRules:
    """
    Load and validate a store rules file.
    Raises FileNotFoundError if file missing.
    Raises ValueError if YAML or schema invalid.
    """
    if not path.exists():
        raise FileNotFoundError(f"Rules file not found at: {path}")

    with open(path) as f:
        content = f.read()

    try:
        data = yaml.safe_load(_strip_fences(content))
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML syntax in rules file: {e}") from e

    # Allow either a top-level `store:` section or a bare mapping.
    if isinstance(data, dict) and isinstance(data.get("store"), dict):
        data = data["store"]

    try:
        return StoreRules.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Rules validation failed:\n{e}") from e


def rules_from_env(
    *,
    root_var: str = "BLOBFS_ROOT",
    collection_var: str = "BLOBFS_COLLECTION",
    rules_var: str = "BLOBFS_RULES",
) -> StoreRules | None:
    """
    Build rules from the environment.

    BLOBFS_RULES points at a rules file; otherwise BLOBFS_ROOT and
    BLOBFS_COLLECTION are used. Returns None if neither is configured.
    """
    rules_path = os.environ.get(rules_var)
    if rules_path:
        return load_rules(Path(rules_path))

    root = os.environ.get(root_var)
    collection = os.environ.get(collection_var)
    if root is None and collection is None:
        return None
    try:
        return StoreRules(root=root or "", collection=collection or "")
    except ValidationError as e:
        raise ValueError(f"Rules validation failed:\n{e}") from e
