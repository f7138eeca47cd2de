"""
State file persistence — atomic read/write for ProvisionState.

State is stored as JSON in .state/current.json. Writes are atomic
(write to temp file, then rename) to prevent corruption if the
process crashes mid-write.
"""

from __future__ import annotations

import json
import logging
import tempfile
from pathlib import Path

from pydantic import ValidationError

from provisioner.core.models.state import ProvisionState

logger = logging.getLogger(__name__)

# Default state file path (relative to the state root)
DEFAULT_STATE_DIR = ".state"
DEFAULT_STATE_FILE = "current.json"


def default_state_path(state_root: Path) -> Path:
    """Get the default state file path under a state root."""
    return state_root / DEFAULT_STATE_DIR / DEFAULT_STATE_FILE


def load_state(path: Path) -> ProvisionState:
    """Load provisioning state from a JSON file.

    Args:
        path: Path to the state JSON file.

    Returns:
        ProvisionState. If the file doesn't exist or is corrupt,
        returns a fresh state.
    """
    if not path.is_file():
        logger.info("No state file at %s — starting fresh", path)
        return ProvisionState()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        state = ProvisionState.model_validate(data)
        logger.debug("Loaded state from %s (updated_at=%s)", path, state.updated_at)
        return state
    except json.JSONDecodeError as e:
        logger.warning("Corrupt state file %s: %s — starting fresh", path, e)
    except (ValidationError, OSError) as e:
        logger.warning("Cannot load state from %s: %s — starting fresh", path, e)
    return ProvisionState()


def save_state(state: ProvisionState, path: Path) -> None:
    """Save provisioning state to a JSON file (atomic write).

    Uses write-to-temp-then-rename to prevent corruption.
    """
    state.touch()

    path.parent.mkdir(parents=True, exist_ok=True)

    data = state.model_dump(mode="json")
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    _fd, tmp_path = tempfile.mkstemp(
        dir=path.parent,
        prefix=".state_",
        suffix=".tmp",
    )
    tmp = Path(tmp_path)
    try:
        with open(_fd, "w", encoding="utf-8") as f:
            f.write(content)
        tmp.replace(path)
        logger.debug("State saved to %s", path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        logger.error("Failed to save state to %s: %s", path, e)
        raise
