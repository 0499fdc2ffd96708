# SPDX-License-Identifier: MIT
"""
Neuro-evolution arena.

`neuroarena.neat` holds the genome and evolution engine, `neuroarena.sim` the
arena the genomes are evaluated in, and `neuroarena.core` configuration,
checkpoints and the headless trainer. `neuroarena.main` is the command-line
entry point.
"""

__all__ = ["main"]
__version__ = "0.1.0"
