from __future__ import annotations

import json
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict, Optional

from loguru import logger


@dataclass
class AppState:
    last_checkpoint: Optional[str] = None
    last_export: Optional[str] = None
    last_config: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict) -> "AppState":
        return cls(
            last_checkpoint=data.get("last_checkpoint"),
            last_export=data.get("last_export"),
            last_config=data.get("last_config"),
        )

    def to_dict(self) -> Dict:
        return asdict(self)


class StateManager:
    """
    Remembers the files used by the last run so ``--resume`` can find them.
    """

    def __init__(self, state_path: Optional[Path] = None) -> None:
        if state_path is None:
            state_path = Path.cwd() / ".neuroarena_state.json"
        self.state_path = Path(state_path)
        self.state = AppState()
        self._load()

    def _load(self) -> None:
        if not self.state_path.exists():
            return
        try:
            data = json.loads(self.state_path.read_text())
        except (OSError, ValueError) as exc:
            logger.warning(f"[StateManager] Ignoring unreadable state file {self.state_path}: {exc}")
            return
        if isinstance(data, dict):
            self.state = AppState.from_dict(data)

    def save(self) -> None:
        try:
            self.state_path.write_text(json.dumps(self.state.to_dict(), indent=2))
        except OSError as exc:
            logger.warning(f"[StateManager] Could not write {self.state_path}: {exc}")

    def set_checkpoint(self, path: Path) -> None:
        self.state.last_checkpoint = str(path)
        self.save()

    def get_checkpoint(self) -> Optional[Path]:
        if not self.state.last_checkpoint:
            return None
        return Path(self.state.last_checkpoint)

    def set_export(self, path: Path) -> None:
        self.state.last_export = str(path)
        self.save()

    def get_export(self) -> Optional[Path]:
        if not self.state.last_export:
            return None
        return Path(self.state.last_export)

    def set_config(self, path: Path) -> None:
        self.state.last_config = str(path)
        self.save()

    def get_config(self) -> Optional[Path]:
        if not self.state.last_config:
            return None
        return Path(self.state.last_config)
