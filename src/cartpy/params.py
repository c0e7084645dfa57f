"""
Hyperparameter container for tree induction and pruning.

``HyperparameterSet`` is the unit the grid search enumerates.  It can also be
used directly::

    params = HyperparameterSet(max_depth=4, min_samples_leaf=5)
    tree = build_tree(dataset, params, "gini")
    pruned = prune_at(tree, params.cost_complexity_alpha)

``min_samples_split`` and ``min_samples_leaf`` are independent constraints,
both enforced at every node.  A ``min_samples_split`` below
``2 * min_samples_leaf`` is accepted: some nodes will then be allowed to
split but find no split leaving ``min_samples_leaf`` rows on both sides.
"""

from __future__ import annotations

import math
import numbers
from dataclasses import asdict, dataclass, fields
from typing import Any, Mapping, Optional

from .exceptions import InvalidInputError


@dataclass(frozen=True)
class HyperparameterSet:
    """
    Parameters for one tree fit.

    Parameters
    ----------
    max_depth : int, optional
        Maximum depth of any leaf (the root has depth 0).  ``None`` leaves
        the depth unconstrained.
    min_samples_split : int, default 2
        Nodes with fewer rows become leaves.
    min_samples_leaf : int, default 1
        Minimum rows on each side of an accepted split.
    min_impurity_decrease : float, default 0.0
        Splits whose weighted gain is below this value are rejected.
    cost_complexity_alpha : float, default 0.0
        Complexity penalty applied by ``prune_at`` after building.
    """

    max_depth: Optional[int] = None
    min_samples_split: int = 2
    min_samples_leaf: int = 1
    min_impurity_decrease: float = 0.0
    cost_complexity_alpha: float = 0.0

    def __post_init__(self):
        if self.max_depth is not None:
            _check_int("max_depth", self.max_depth, 1)
        _check_int("min_samples_split", self.min_samples_split, 2)
        _check_int("min_samples_leaf", self.min_samples_leaf, 1)
        _check_real("min_impurity_decrease", self.min_impurity_decrease)
        _check_real("cost_complexity_alpha", self.cost_complexity_alpha)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> HyperparameterSet:
        """Build from a mapping, rejecting unknown names."""
        unknown = set(values) - set(cls.names())
        if unknown:
            raise InvalidInputError(
                f"unknown hyperparameters {sorted(unknown)}; expected a subset of {cls.names()}")
        return cls(**dict(values))

    @classmethod
    def names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def _check_int(name: str, value, minimum: int) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise InvalidInputError(f"{name} must be an integer, got {value!r}")
    if value < minimum:
        raise InvalidInputError(f"{name} must be >= {minimum}, got {value}")


def _check_real(name: str, value) -> None:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidInputError(f"{name} must be a real number, got {value!r}")
    if math.isnan(value) or value < 0:
        raise InvalidInputError(f"{name} must be non-negative, got {value}")
