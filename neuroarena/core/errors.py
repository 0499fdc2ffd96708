# SPDX-License-Identifier: MIT
"""
Exception hierarchy shared by the engine, simulation and trainer.
"""


class NeuroArenaError(Exception):
    """Base for all neuroarena exceptions."""

    pass


class ConfigurationError(NeuroArenaError):
    """Invalid sizes or hyperparameters."""

    pass


class DimensionMismatch(NeuroArenaError):
    """Input vector length does not match a genome's input size."""

    def __init__(self, expected: int, received: int) -> None:
        super().__init__(f"expected {expected} inputs, received {received}")
        self.expected = expected
        self.received = received


class SerializationError(NeuroArenaError):
    """Malformed or incompatible genome/checkpoint data."""

    pass


class ExhaustedRetries(NeuroArenaError):
    """A bounded structural mutation found no valid candidate."""

    def __init__(self, operation: str, attempts: int) -> None:
        super().__init__(f"{operation} gave up after {attempts} attempts")
        self.operation = operation
        self.attempts = attempts


class TrainerStateError(NeuroArenaError):
    """A trainer command was issued in a state that does not allow it."""

    pass
