"""
Loader — read the instance manifest.

The manifest is a JSON list of instance entries, each carrying its tree
path explicitly, so nesting never has to be guessed from object shape:

    [
      {"path": ["tests", "tls"], "simulate": ["./tls/simulate"],
       "requires": ["full_runtime"], "can_automate": true}
    ]
"""
import json
import logging
from pathlib import Path
from typing import List

from pydantic import ValidationError

from crossworld.io.schema import InstanceSpec

logger = logging.getLogger(__name__)


def load_manifest(manifest_path: Path) -> List[InstanceSpec]:
    """Load and validate every manifest entry.

    Raises ``ValueError`` naming the first malformed entry.
    """
    data = json.loads(manifest_path.read_text(encoding="utf-8"))

    if not isinstance(data, list):
        raise ValueError(f"Manifest {manifest_path} must be a JSON list, got {type(data).__name__}")

    specs: List[InstanceSpec] = []
    for index, entry in enumerate(data):
        try:
            specs.append(InstanceSpec.model_validate(entry))
        except ValidationError as exc:
            raise ValueError(f"Manifest {manifest_path} entry {index} is invalid: {exc}") from exc

    logger.info(f"Loaded {len(specs)} instance specs from {manifest_path}")
    return specs
