from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable, List, Optional

from loguru import logger

from neuroarena.neat.genome import Genome

from .checkpoint import TrainingProgress
from .config import DEFAULT_CONFIG, TrainingConfig
from .trainer import HeadlessTrainer, TrainerState


class TrainingWorker(threading.Thread):
    def __init__(self, action: Callable[[], object], finished: Callable[[], None]) -> None:
        super().__init__(name="neuroarena-trainer", daemon=True)
        self._action = action
        self._finished = finished
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        try:
            self._action()
        except Exception as exc:
            self.error = exc
            logger.exception(f"[TrainingController] Worker failed: {exc}")
        finally:
            self._finished()


class TrainingController:
    """Runs a headless trainer on a background thread."""

    def __init__(self, config: Optional[TrainingConfig] = None) -> None:
        self._config = config or DEFAULT_CONFIG.copy()
        self._lock = threading.Lock()
        self._idle = threading.Event()
        self._idle.set()
        self._worker: Optional[TrainingWorker] = None
        self._listeners: List[Callable[[TrainingProgress], None]] = []
        self._last_progress: Optional[TrainingProgress] = None
        self.trainer = HeadlessTrainer(self._config, on_progress=self._on_progress)

    @property
    def config(self) -> TrainingConfig:
        return self._config

    @property
    def state(self) -> TrainerState:
        return self.trainer.state

    @property
    def running(self) -> bool:
        return not self._idle.is_set()

    @property
    def last_progress(self) -> Optional[TrainingProgress]:
        return self._last_progress

    @property
    def error(self) -> Optional[BaseException]:
        return self._worker.error if self._worker is not None else None

    def add_listener(self, callback: Callable[[TrainingProgress], None]) -> None:
        self._listeners.append(callback)

    def apply_config(self, config: TrainingConfig) -> None:
        with self._lock:
            self._config = config

    def start(self) -> bool:
        with self._lock:
            if self.running or self.trainer.state is TrainerState.PAUSED:
                return False
            config = self._config
            self._launch(lambda: self.trainer.start(config))
            return True

    def pause(self) -> bool:
        return self.trainer.pause()

    def resume(self) -> bool:
        with self._lock:
            if self.trainer.state is not TrainerState.PAUSED:
                return False
            # the paused loop exits on its own; wait for it before re-entering
            self._idle.wait()
            self._launch(self.trainer.resume)
            return True

    def stop(self, timeout: Optional[float] = None) -> List[Genome]:
        elites = self.trainer.stop()
        self.wait(timeout)
        return elites

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._idle.wait(timeout)

    def load_checkpoint(self, path: Path) -> None:
        with self._lock:
            self.trainer.load_checkpoint(Path(path))
            self._config = self.trainer.config

    def save_checkpoint(self, path: Path) -> Path:
        self.trainer.save_checkpoint(Path(path))
        return Path(path)

    def export_elites(self, path: Path) -> Path:
        return self.trainer.export_elites(Path(path))

    def _launch(self, action: Callable[[], object]) -> None:
        self._idle.clear()
        self._worker = TrainingWorker(action, self._idle.set)
        self._worker.start()

    def _on_progress(self, progress: TrainingProgress) -> None:
        self._last_progress = progress
        for callback in list(self._listeners):
            callback(progress)
