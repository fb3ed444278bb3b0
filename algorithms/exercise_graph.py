from __future__ import annotations

import logging
from collections import deque
from typing import Iterable, Iterator, Mapping

import numpy as np

from errors import DataIntegrityError, NotFoundError
from models import ATTRIBUTE_AXES, ExerciseNode

logger = logging.getLogger(__name__)


class ExerciseGraph:
    """Immutable prerequisite/unlock graph over exercise nodes.

    ``prerequisites`` and ``unlocks`` are kept as two separate id -> id-set
    mappings that are built together and validated once. The nodes carry
    the same sets so callers can read them without the graph.
    """

    def __init__(
        self,
        nodes: Mapping[str, ExerciseNode],
        prerequisites: Mapping[str, frozenset[str]],
        unlocks: Mapping[str, frozenset[str]],
        order: list[str],
    ) -> None:
        self._nodes = dict(nodes)
        self._prerequisites = dict(prerequisites)
        self._unlocks = dict(unlocks)
        self._order = list(order)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[ExerciseNode]:
        for node_id in self._order:
            yield self._nodes[node_id]

    @property
    def ids(self) -> list[str]:
        return list(self._order)

    def node(self, node_id: str) -> ExerciseNode:
        try:
            return self._nodes[node_id]
        except KeyError:
            raise NotFoundError(f"exercise {node_id} not found") from None

    def prerequisites(self, node_id: str) -> frozenset[str]:
        self.node(node_id)
        return self._prerequisites[node_id]

    def unlocks(self, node_id: str) -> frozenset[str]:
        self.node(node_id)
        return self._unlocks[node_id]

    def topological_order(self) -> list[str]:
        """Return ids so that every prerequisite precedes its dependants."""
        return list(self._order)

    def edges(self) -> list[tuple[str, str]]:
        """Return ``(prerequisite, dependant)`` pairs in a stable order."""
        return [
            (src, dst)
            for src in self._order
            for dst in sorted(self._unlocks[src])
        ]

    def unlocked_for(self, user_level: int, completed: Iterable[str]) -> set[str]:
        """Return ids whose level gate and prerequisites are satisfied."""
        done = set(completed)
        return {
            node_id
            for node_id, node in self._nodes.items()
            if node.level_required <= user_level
            and self._prerequisites[node_id] <= done
        }

    def locked_for(self, user_level: int, completed: Iterable[str]) -> dict[str, dict]:
        """Explain, for every locked node, what keeps it locked."""
        done = set(completed)
        locked: dict[str, dict] = {}
        for node_id in self._order:
            node = self._nodes[node_id]
            if node.level_required > user_level:
                locked[node_id] = {
                    "reason": "level",
                    "level_required": node.level_required,
                }
                continue
            missing = sorted(self._prerequisites[node_id] - done)
            if missing:
                locked[node_id] = {
                    "reason": "prerequisites",
                    "missing_prerequisites": missing,
                }
        return locked

    def reachable_from(self, node_id: str) -> set[str]:
        """Return every id reachable by following unlock edges from ``node_id``."""
        self.node(node_id)
        seen: set[str] = set()
        queue = deque(self._unlocks[node_id])
        while queue:
            current = queue.popleft()
            if current in seen:
                continue
            seen.add(current)
            queue.extend(self._unlocks[current] - seen)
        seen.discard(node_id)
        return seen

    def summary(self) -> dict:
        """Return size, level distribution and value-density statistics."""
        levels: dict[int, int] = {}
        for node in self._nodes.values():
            levels[node.level_required] = levels.get(node.level_required, 0) + 1
        ratios = np.array(
            [
                n.base_xp / (n.execution_time + n.fatigue_cost)
                for n in self._nodes.values()
                if n.execution_time + n.fatigue_cost > 0
            ],
            dtype=float,
        )
        if ratios.size:
            efficiency = {
                "max": float(np.max(ratios)),
                "min": float(np.min(ratios)),
                "mean": float(np.mean(ratios)),
            }
        else:
            efficiency = {"max": 0.0, "min": 0.0, "mean": 0.0}
        stimulus = np.zeros(len(ATTRIBUTE_AXES))
        for node in self._nodes.values():
            stimulus += np.array(node.muscle_targets, dtype=float)
        return {
            "nodes": len(self._nodes),
            "edges": sum(len(v) for v in self._unlocks.values()),
            "levels": dict(sorted(levels.items())),
            "efficiency": efficiency,
            "stimulus": dict(zip(ATTRIBUTE_AXES, (float(v) for v in stimulus))),
        }


def _muscle_vector(raw) -> tuple[float, ...]:
    if raw is None:
        return (0.0,) * len(ATTRIBUTE_AXES)
    if isinstance(raw, Mapping):
        return tuple(float(raw.get(axis, 0.0) or 0.0) for axis in ATTRIBUTE_AXES)
    values = [float(v) for v in raw]
    if len(values) != len(ATTRIBUTE_AXES):
        raise DataIntegrityError(
            f"muscle_targets needs {len(ATTRIBUTE_AXES)} values, got {len(values)}"
        )
    return tuple(values)


def _topological_order(
    ids: list[str], prerequisites: Mapping[str, frozenset[str]], unlocks: Mapping[str, frozenset[str]]
) -> list[str]:
    remaining = {node_id: len(prerequisites[node_id]) for node_id in ids}
    ready = sorted(node_id for node_id, count in remaining.items() if count == 0)
    order: list[str] = []
    while ready:
        current = ready.pop(0)
        order.append(current)
        released = []
        for nxt in unlocks[current]:
            remaining[nxt] -= 1
            if remaining[nxt] == 0:
                released.append(nxt)
        ready = sorted(ready + released)
    if len(order) != len(ids):
        cyclic = sorted(node_id for node_id, count in remaining.items() if count > 0)
        raise DataIntegrityError(f"prerequisite cycle among exercises: {', '.join(cyclic)}")
    return order


def build_graph(
    rules: Iterable[Mapping],
    metadata: Mapping[str, Mapping] | Iterable[Mapping] | None = None,
) -> ExerciseGraph:
    """Merge rule records with catalog metadata into an ``ExerciseGraph``.

    ``rules`` are mappings with ``external_id``, ``level_required``,
    ``base_xp``, ``fatigue_cost``, ``execution_time``, ``muscle_targets``,
    ``prerequisites`` and optionally a declared ``unlocks`` list.
    ``metadata`` is keyed by external id (or a list of mappings carrying
    ``external_id``) and supplies name and media fields.
    """
    if metadata is None:
        meta_by_id: dict[str, Mapping] = {}
    elif isinstance(metadata, Mapping):
        meta_by_id = dict(metadata)
    else:
        meta_by_id = {str(m["external_id"]): m for m in metadata}

    records: dict[str, Mapping] = {}
    for rule in rules:
        node_id = str(rule["external_id"])
        if node_id in records:
            raise DataIntegrityError(f"duplicate exercise id {node_id}")
        records[node_id] = rule

    prerequisites: dict[str, frozenset[str]] = {}
    for node_id, rule in records.items():
        prereqs = frozenset(str(p) for p in rule.get("prerequisites") or ())
        dangling = sorted(prereqs - records.keys())
        if dangling:
            raise DataIntegrityError(
                f"exercise {node_id} requires unknown exercises: {', '.join(dangling)}"
            )
        if node_id in prereqs:
            raise DataIntegrityError(f"exercise {node_id} lists itself as a prerequisite")
        prerequisites[node_id] = prereqs

    reverse: dict[str, set[str]] = {node_id: set() for node_id in records}
    for node_id, prereqs in prerequisites.items():
        for prereq in prereqs:
            reverse[prereq].add(node_id)
    unlocks = {node_id: frozenset(targets) for node_id, targets in reverse.items()}

    for node_id, rule in records.items():
        declared = {str(u) for u in rule.get("unlocks") or ()}
        unknown = sorted(declared - records.keys())
        if unknown:
            raise DataIntegrityError(
                f"exercise {node_id} unlocks unknown exercises: {', '.join(unknown)}"
            )
        unbacked = sorted(declared - unlocks[node_id])
        if unbacked:
            logger.warning(
                "Exercise %s declares unlocks %s without a matching prerequisite; ignored",
                node_id,
                unbacked,
            )

    order = _topological_order(list(records), prerequisites, unlocks)

    nodes: dict[str, ExerciseNode] = {}
    for node_id, rule in records.items():
        meta = meta_by_id.get(node_id, {})
        instructions = meta.get("instructions") or ()
        if isinstance(instructions, str):
            instructions = [line for line in instructions.split("\n") if line]
        nodes[node_id] = ExerciseNode(
            id=node_id,
            level_required=int(rule.get("level_required", 1)),
            base_xp=float(rule.get("base_xp", 0.0)),
            fatigue_cost=float(rule.get("fatigue_cost", 0.0)),
            execution_time=float(rule.get("execution_time", 0.0)),
            muscle_targets=_muscle_vector(rule.get("muscle_targets")),
            prerequisites=prerequisites[node_id],
            unlocks=unlocks[node_id],
            name=meta.get("name") or f"Exercise {node_id}",
            gif_url=meta.get("gif_url") or "",
            target_muscle=meta.get("target_muscle") or "unknown",
            equipment=meta.get("equipment") or "unknown",
            body_part=meta.get("body_part") or "unknown",
            secondary_muscles=tuple(meta.get("secondary_muscles") or ()),
            instructions=tuple(instructions),
        )

    logger.info("Exercise graph built with %d nodes", len(nodes))
    return ExerciseGraph(nodes, prerequisites, unlocks, order)
