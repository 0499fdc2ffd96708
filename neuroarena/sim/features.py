# SPDX-License-Identifier: MIT
"""
Engineered features: turns the eight raw gradient values into eight values
with clearer meaning while keeping the input width unchanged.
"""

from __future__ import annotations

import math
from typing import List, Sequence

from neuroarena.core.errors import DimensionMismatch

EPSILON = 1e-3
LABELS = (
    "net_motivation_x",
    "net_motivation_y",
    "threat_opportunity",
    "urgency",
    "openness",
    "metabolic_balance",
    "reproductive_potential",
    "confidence",
)


class FeaturePreprocessor:
    def preprocess(self, agent, raw: Sequence[float]) -> List[float]:
        if len(raw) != len(LABELS):
            raise DimensionMismatch(len(LABELS), len(raw))
        attr_dx, attr_dy, attr_str, dang_dx, dang_dy, dang_str, mass_norm, repro_ready = raw

        mot_x, mot_y = self.net_motivation(attr_dx, attr_dy, attr_str, dang_dx, dang_dy, dang_str)
        return [
            mot_x,
            mot_y,
            dang_str / (attr_str + dang_str + EPSILON),
            self.urgency(agent, attr_str, dang_str, mass_norm),
            1.0 - max(dang_str, min(agent.mass / 100.0, 1.0)),
            self.metabolic_balance(agent, mass_norm),
            self.reproductive_potential(agent, mass_norm, repro_ready),
            self.confidence(mot_x, mot_y, agent.vx, agent.vy, attr_str, dang_str),
        ]

    @staticmethod
    def net_motivation(attr_dx, attr_dy, attr_str, dang_dx, dang_dy, dang_str):
        # danger repels
        net_x = attr_dx * attr_str - dang_dx * dang_str
        net_y = attr_dy * attr_str - dang_dy * dang_str
        mag = math.hypot(net_x, net_y)
        if mag < EPSILON:
            return 0.0, 0.0
        soft = math.tanh(mag)
        return net_x / mag * soft, net_y / mag * soft

    @staticmethod
    def urgency(agent, attr_str: float, dang_str: float, mass_norm: float) -> float:
        return min(
            1.0,
            max(attr_str, dang_str) * 0.4
            + (1.0 - mass_norm) * 0.3
            + min(agent.age / 2000.0, 1.0) * 0.2
            + min(agent.idle_ticks / 100.0, 1.0) * 0.1,
        )

    @staticmethod
    def metabolic_balance(agent, mass_norm: float) -> float:
        costs = (min(agent.age / 3000.0, 1.0) + min(agent.idle_ticks / 150.0, 1.0)) / 2.0
        return (mass_norm - costs * 0.5 + 1.0) / 2.0

    @staticmethod
    def reproductive_potential(agent, mass_norm: float, repro_ready: float) -> float:
        mass_fit = math.exp(-(((mass_norm - 0.6) * 3.0) ** 2))
        age_fit = math.exp(-(((min(agent.age / 1000.0, 1.0) - 0.3) * 3.0) ** 2))
        experience = min(agent.kills / 10.0, 1.0)
        return min(1.0, repro_ready * 0.4 + mass_fit * 0.3 + age_fit * 0.2 + experience * 0.1)

    @staticmethod
    def confidence(mot_x, mot_y, vx, vy, attr_str, dang_str) -> float:
        total = attr_str + dang_str
        clarity = abs(attr_str - dang_str) / total if total > 0.1 else 0.0
        speed = math.hypot(vx, vy)
        alignment = 0.0
        if speed > 0.1 and (mot_x or mot_y):
            alignment = ((vx / speed) * mot_x + (vy / speed) * mot_y + 1.0) / 2.0
        return min(1.0, clarity * 0.6 + alignment * 0.4)
