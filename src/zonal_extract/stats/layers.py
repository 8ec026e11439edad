"""Pair value and weight layers for aggregation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator

import numpy as np

from zonal_extract.errors import ConfigurationError

LayerReader = Callable[[int], np.ndarray]


class LayerPairing(Enum):
    """How value layers meet weight layers."""

    UNWEIGHTED = "unweighted"
    BROADCAST_VALUES = "broadcast_values"
    BROADCAST_WEIGHTS = "broadcast_weights"
    PAIRED = "paired"


@dataclass(frozen=True)
class LayerPlan:
    """Layer pairing chosen once per run."""

    pairing: LayerPairing
    value_layers: int
    weight_layers: int

    @property
    def weighted(self) -> bool:
        return self.pairing is not LayerPairing.UNWEIGHTED

    @property
    def result_count(self) -> int:
        """Number of output rows."""
        if self.pairing is LayerPairing.BROADCAST_VALUES:
            return self.weight_layers
        return self.value_layers

    def layer_pairs(self) -> list[tuple[int, int | None]]:
        """Return the (value layer, weight layer) feeding each output row."""
        if self.pairing is LayerPairing.UNWEIGHTED:
            return [(index, None) for index in range(self.value_layers)]
        if self.pairing is LayerPairing.BROADCAST_VALUES:
            return [(0, index) for index in range(self.weight_layers)]
        if self.pairing is LayerPairing.BROADCAST_WEIGHTS:
            return [(index, 0) for index in range(self.value_layers)]
        return [(index, index) for index in range(self.value_layers)]

    def iter_tile(
        self,
        read_values: LayerReader,
        read_weights: LayerReader | None = None,
    ) -> Iterator[tuple[int, np.ndarray, np.ndarray | None]]:
        """Yield (row, values, weights) for one tile.

        A broadcast layer is read once per tile and shared by every row.
        """
        if self.pairing is LayerPairing.UNWEIGHTED:
            for index in range(self.value_layers):
                yield index, read_values(index), None
            return
        if read_weights is None:
            raise ValueError("A weight reader is required for weighted layer plans.")
        if self.pairing is LayerPairing.BROADCAST_VALUES:
            values = read_values(0)
            for index in range(self.weight_layers):
                yield index, values, read_weights(index)
        elif self.pairing is LayerPairing.BROADCAST_WEIGHTS:
            weights = read_weights(0)
            for index in range(self.value_layers):
                yield index, read_values(index), weights
        else:
            for index in range(self.value_layers):
                yield index, read_values(index), read_weights(index)


def resolve_layers(value_layers: int, weight_layers: int = 0) -> LayerPlan:
    """Choose how ``value_layers`` and ``weight_layers`` are combined."""
    if value_layers < 0 or weight_layers < 0:
        raise ConfigurationError("Layer counts must be non-negative.")
    if weight_layers == 0:
        pairing = LayerPairing.UNWEIGHTED
    elif value_layers > 1 and weight_layers > 1 and value_layers != weight_layers:
        raise ConfigurationError(
            "Incompatible number of layers in value and weighting rasters "
            f"({value_layers} vs {weight_layers})."
        )
    elif value_layers == 1 and weight_layers > 1:
        pairing = LayerPairing.BROADCAST_VALUES
    elif value_layers > 1 and weight_layers == 1:
        pairing = LayerPairing.BROADCAST_WEIGHTS
    else:
        pairing = LayerPairing.PAIRED
    return LayerPlan(pairing, value_layers, weight_layers)
