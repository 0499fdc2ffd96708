# SPDX-License-Identifier: MIT
"""
Graph genome: node/connection genes, network evaluation and genetic operators.

Evaluation tolerates recurrent topologies produced by mutation. Nodes are
resolved by bounded relaxation; anything still unresolved when a pass makes
no progress is forced using the values available at that point, with
unresolved predecessors contributing zero.
"""

from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from neuroarena.core.errors import ConfigurationError, DimensionMismatch, SerializationError
from neuroarena.neat.genes import (
    ACTIVATION_NAMES,
    DEFAULT_ACTIVATION,
    HIDDEN,
    INPUT,
    NODE_TYPES,
    OUTPUT,
    OUTPUT_ACTIVATION,
    ConnectionGene,
    NodeGene,
    apply_activation,
)

WEIGHT_LIMIT = 4.0
WEIGHT_RESET_RANGE = 2.0
WEIGHT_RESET_P = 0.1
COMPATIBILITY_WEIGHT_COEFF = 0.4


class Genome:
    def __init__(self, input_size: int, output_size: int) -> None:
        if input_size <= 0 or output_size <= 0:
            raise ConfigurationError(
                f"genome sizes must be positive (inputs={input_size}, outputs={output_size})"
            )
        self.input_size = int(input_size)
        self.output_size = int(output_size)
        self.nodes: Dict[int, NodeGene] = {}
        self.connections: Dict[int, ConnectionGene] = {}
        self.fitness = 0.0
        for nid in self.input_ids:
            self.nodes[nid] = NodeGene(nid, INPUT, DEFAULT_ACTIVATION)
        for nid in self.output_ids:
            self.nodes[nid] = NodeGene(nid, OUTPUT, OUTPUT_ACTIVATION)

    # ---------- 構造 ----------
    @property
    def input_ids(self) -> range:
        return range(0, self.input_size)

    @property
    def output_ids(self) -> range:
        return range(self.input_size, self.input_size + self.output_size)

    @property
    def hidden_count(self) -> int:
        return sum(1 for n in self.nodes.values() if n.type == HIDDEN)

    @property
    def enabled_connection_count(self) -> int:
        return sum(1 for c in self.connections.values() if c.enabled)

    def next_node_id(self) -> int:
        return max(self.nodes) + 1

    def find_connection(self, src: int, dst: int) -> Optional[ConnectionGene]:
        for c in self.connections.values():
            if c.src == src and c.dst == dst:
                return c
        return None

    def clone(self) -> "Genome":
        g = Genome(self.input_size, self.output_size)
        g.nodes = {nid: n.copy() for nid, n in self.nodes.items()}
        g.connections = {innov: c.copy() for innov, c in self.connections.items()}
        g.fitness = self.fitness
        return g

    # ---------- 推論 ----------
    def activate(self, inputs: Sequence[float]) -> List[float]:
        if len(inputs) != self.input_size:
            raise DimensionMismatch(self.input_size, len(inputs))

        incoming: Dict[int, List[ConnectionGene]] = {
            nid: [] for nid, n in self.nodes.items() if n.type != INPUT
        }
        for c in self.connections.values():
            if c.enabled and c.dst in incoming:
                incoming[c.dst].append(c)

        values: Dict[int, float] = {i: float(inputs[i]) for i in self.input_ids}
        pending = list(incoming)

        for _ in range(self.hidden_count + 5):
            if not pending:
                break
            unresolved = []
            for nid in pending:
                edges = incoming[nid]
                if all(c.src in values for c in edges):
                    values[nid] = self._fire(nid, edges, values)
                else:
                    unresolved.append(nid)
            progressed = len(unresolved) < len(pending)
            pending = unresolved
            if not progressed:
                break

        if pending:
            available = dict(values)
            for nid in pending:
                values[nid] = self._fire(nid, incoming[nid], available)

        return [values.get(nid, 0.0) for nid in self.output_ids]

    def _fire(self, nid: int, edges: List[ConnectionGene], values: Dict[int, float]) -> float:
        total = 0.0
        for c in edges:
            total += values.get(c.src, 0.0) * c.weight
        node = self.nodes[nid]
        if node.type == OUTPUT:
            return apply_activation(OUTPUT_ACTIVATION, total)
        return apply_activation(node.activation, total)

    # ---------- 構造変異 ----------
    def add_node(
        self,
        innovation: int,
        connection: ConnectionGene,
        second_innovation: Optional[int] = None,
    ) -> NodeGene:
        """Split ``connection`` with a new hidden node.

        The incoming edge carries weight 1.0 under ``innovation``; the outgoing
        edge keeps the original weight under ``second_innovation`` (defaults to
        ``innovation + 1``).
        """
        target = self.connections.get(connection.innovation, connection)
        target.enabled = False

        node = NodeGene(self.next_node_id(), HIDDEN, DEFAULT_ACTIVATION)
        self.nodes[node.id] = node

        out_innovation = innovation + 1 if second_innovation is None else second_innovation
        self.connections[innovation] = ConnectionGene(innovation, target.src, node.id, 1.0, True)
        self.connections[out_innovation] = ConnectionGene(
            out_innovation, node.id, target.dst, target.weight, True
        )
        return node

    def add_connection(self, innovation: int, src: int, dst: int, weight: float) -> bool:
        """Insert ``src -> dst`` or re-enable it; ``False`` when nothing changed."""
        existing = self.find_connection(src, dst)
        if existing is not None:
            if existing.enabled:
                return False
            existing.enabled = True
            return True
        if innovation in self.connections:
            return False
        self.connections[innovation] = ConnectionGene(innovation, src, dst, float(weight), True)
        return True

    # ---------- 重み・活性化変異 ----------
    def mutate_weights(
        self, rate: float, size: float, rng: Optional[np.random.Generator] = None
    ) -> None:
        rng = rng if rng is not None else np.random.default_rng()
        for c in self.connections.values():
            if rng.random() >= rate:
                continue
            if rng.random() < WEIGHT_RESET_P:
                c.weight = float(rng.uniform(-WEIGHT_RESET_RANGE, WEIGHT_RESET_RANGE))
            else:
                c.weight = float(
                    np.clip(c.weight + rng.uniform(-size, size), -WEIGHT_LIMIT, WEIGHT_LIMIT)
                )

    def mutate_activation(self, rate: float, rng: Optional[np.random.Generator] = None) -> None:
        rng = rng if rng is not None else np.random.default_rng()
        for node in self.nodes.values():
            if node.type == HIDDEN and rng.random() < rate:
                node.activation = ACTIVATION_NAMES[int(rng.integers(len(ACTIVATION_NAMES)))]

    # ---------- 距離・交叉 ----------
    def compatibility_distance(self, other: "Genome") -> float:
        mine = self.connections
        theirs = other.connections
        matching = mine.keys() & theirs.keys()
        non_matching = len(mine.keys() ^ theirs.keys())
        n = max(len(mine), len(theirs), 1)
        if matching:
            weight_diff = sum(abs(mine[k].weight - theirs[k].weight) for k in matching) / len(matching)
        else:
            weight_diff = 0.0
        return non_matching / n + COMPATIBILITY_WEIGHT_COEFF * weight_diff

    def crossover(
        self,
        other: "Genome",
        fitter_is_this: bool,
        rng: Optional[np.random.Generator] = None,
    ) -> "Genome":
        rng = rng if rng is not None else np.random.default_rng()
        fitter, weaker = (self, other) if fitter_is_this else (other, self)

        child = Genome(self.input_size, self.output_size)
        for parent in (fitter, weaker):
            for nid, node in parent.nodes.items():
                if nid not in child.nodes:
                    child.nodes[nid] = node.copy()

        for innov in sorted(self.connections.keys() | other.connections.keys()):
            mine = self.connections.get(innov)
            theirs = other.connections.get(innov)
            if mine is not None and theirs is not None:
                gene = (mine if rng.random() < 0.5 else theirs).copy()
                gene.enabled = mine.enabled and theirs.enabled
            elif innov in fitter.connections:
                gene = fitter.connections[innov].copy()
            else:
                continue
            child.connections[innov] = gene
        return child

    # ---------- 指標 ----------
    def complexity(self) -> Dict[str, int]:
        return {
            "nodes": len(self.nodes),
            "hidden": self.hidden_count,
            "connections": len(self.connections),
            "enabled": self.enabled_connection_count,
        }

    # ---------- シリアライズ ----------
    def to_dict(self) -> Dict[str, Any]:
        return {
            "inputSize": self.input_size,
            "outputSize": self.output_size,
            "nodes": [
                {"id": n.id, "type": n.type, "activation": n.activation}
                for n in self.nodes.values()
            ],
            "connections": [
                {
                    "innovation": c.innovation,
                    "from": c.src,
                    "to": c.dst,
                    "weight": c.weight,
                    "enabled": c.enabled,
                }
                for c in self.connections.values()
            ],
            "fitness": self.fitness,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Genome":
        if not isinstance(d, dict):
            raise SerializationError(f"genome must be an object, got {type(d).__name__}")
        try:
            g = Genome(int(d["inputSize"]), int(d["outputSize"]))
            for raw in d["nodes"]:
                node = NodeGene(
                    int(raw["id"]), str(raw["type"]), str(raw.get("activation", DEFAULT_ACTIVATION))
                )
                if node.type not in NODE_TYPES:
                    raise SerializationError(f"unknown node type {node.type!r}")
                if node.activation not in ACTIVATION_NAMES:
                    raise SerializationError(f"unknown activation {node.activation!r}")
                g.nodes[node.id] = node
            for raw in d["connections"]:
                conn = ConnectionGene(
                    int(raw["innovation"]),
                    int(raw["from"]),
                    int(raw["to"]),
                    float(raw["weight"]),
                    bool(raw.get("enabled", True)),
                )
                if not math.isfinite(conn.weight):
                    raise SerializationError(
                        f"connection {conn.innovation} has non-finite weight {conn.weight}"
                    )
                g.connections[conn.innovation] = conn
            g.fitness = float(d.get("fitness", 0.0))
            if not math.isfinite(g.fitness):
                raise SerializationError(f"genome fitness must be finite, got {g.fitness}")
        except SerializationError:
            raise
        except ConfigurationError as exc:
            raise SerializationError(f"invalid genome sizes: {exc}") from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise SerializationError(f"malformed genome: {exc!r}") from exc

        for nid in g.input_ids:
            if g.nodes[nid].type != INPUT:
                raise SerializationError(f"node {nid} is reserved for inputs")
        for nid in g.output_ids:
            if g.nodes[nid].type != OUTPUT:
                raise SerializationError(f"node {nid} is reserved for outputs")
        for c in g.connections.values():
            if c.src not in g.nodes or c.dst not in g.nodes:
                raise SerializationError(
                    f"connection {c.innovation} references unknown node ({c.src}->{c.dst})"
                )
        return g
