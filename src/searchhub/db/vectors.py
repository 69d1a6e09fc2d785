"""Vector encoding and the dimension invariant.

Vectors are stored as JSON float arrays; sqlite-vec's scalar distance
functions accept that encoding directly, so no vec0 virtual table is needed.
"""

from __future__ import annotations

import json
import math
from collections.abc import Sequence

from searchhub.errors import DimensionMismatch, ProviderContractError


def validate_dimensions(vector: Sequence[float], expected: int) -> list[float]:
    """Return *vector* as a list of floats, raising if its length is wrong.

    Raises:
        DimensionMismatch: If ``len(vector) != expected``.
        ProviderContractError: If a component is not a finite number.
    """
    if len(vector) != expected:
        raise DimensionMismatch(expected, len(vector))
    try:
        values = [float(v) for v in vector]
    except (TypeError, ValueError) as exc:
        raise ProviderContractError(f"Embedding vector contains non-numeric values: {exc}") from exc
    if not all(math.isfinite(v) for v in values):
        raise ProviderContractError("Embedding vector contains non-finite values")
    return values


def encode(vector: Sequence[float]) -> str:
    """Encode a vector as a JSON array string."""
    return json.dumps(list(vector))


def decode(raw: str) -> list[float]:
    """Decode a JSON array string back to a list of floats."""
    return [float(v) for v in json.loads(raw)]
