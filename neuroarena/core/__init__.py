# SPDX-License-Identifier: MIT
"""
Configuration, errors, checkpoints and the headless training services.
"""

from .config import (
    AgentConfig,
    FitnessConfig,
    MetabolismConfig,
    NeatConfig,
    ReproductionConfig,
    TrainingConfig,
    WorldConfig,
    TRAINING_PRESETS,
)  # noqa: F401
from .errors import (
    ConfigurationError,
    DimensionMismatch,
    ExhaustedRetries,
    NeuroArenaError,
    SerializationError,
    TrainerStateError,
)  # noqa: F401
