"""Kubernetes resource quantity parsing.

Every function here is total: empty, ``None`` or unparseable input yields
``0.0`` rather than an exception. Output units are fixed per quantity kind:

- CPU: cores
- Memory and ephemeral storage: GiB (``parse_memory_bytes`` for bytes)
- Percentages: plain percent values (``"85%"`` -> ``85.0``)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

log = logging.getLogger(__name__)

# Binary suffixes expressed as powers of 1024.
_BINARY_EXPONENTS: tuple[tuple[str, int], ...] = (
    ("Ki", 1),
    ("Mi", 2),
    ("Gi", 3),
    ("Ti", 4),
)

# Sub-unit suffixes. Checked after the binary suffixes since "Mi" ends in "i".
_FRACTIONAL_DIVISORS: tuple[tuple[str, float], ...] = (
    ("n", 1_000_000_000),
    ("u", 1_000_000),
    ("m", 1000),
)

_BYTES_PER_GIB = 1024**3


def _normalize(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _to_float(number: str) -> float:
    try:
        return float(number)
    except ValueError:
        log.debug("Unparseable quantity prefix: %r", number)
        return 0.0


def _parse_scaled(quantity: str, base_exponent: int) -> float:
    """
    Parses ``quantity`` into the unit sitting at ``1024**base_exponent`` of
    the binary chain (0 for bytes or plain counts, 3 for GiB).
    """
    if not quantity or quantity == "0":
        return 0.0

    for suffix, exponent in _BINARY_EXPONENTS:
        if quantity.endswith(suffix):
            return _to_float(quantity[: -len(suffix)]) * 1024.0 ** (
                exponent - base_exponent
            )

    for suffix, divisor in _FRACTIONAL_DIVISORS:
        if quantity.endswith(suffix):
            return _to_float(quantity[: -len(suffix)]) / divisor

    # No suffix: already in the target unit.
    return _to_float(quantity)


def parse_cpu(cpu_str: Any) -> float:
    """Parse a CPU quantity into cores.

    Handles:
    - Nanocores: "500000000n" -> 0.5
    - Microcores: "500000u" -> 0.5
    - Millicores: "250m" -> 0.25
    - Plain cores: "2" -> 2.0

    Returns 0.0 for empty or unparseable input.
    """
    return _parse_scaled(_normalize(cpu_str), 0)


def parse_memory(memory_str: Any) -> float:
    """Parse a memory quantity into GiB.

    "1Gi", "1024Mi" and "1048576Ki" all yield 1.0. A bare number is taken to
    be GiB already. Returns 0.0 for empty or unparseable input.
    """
    return _parse_scaled(_normalize(memory_str), 3)


def parse_storage(storage_str: Any) -> float:
    """Parse an ephemeral-storage quantity into GiB. Same rules as memory."""
    return parse_memory(storage_str)


def parse_memory_bytes(memory_str: Any) -> float:
    """Parse a memory quantity into bytes. A bare number is taken as bytes."""
    return _parse_scaled(_normalize(memory_str), 0)


def parse_percentage(percent_str: Any) -> float:
    """Parse "85%" or "85" into 85.0. Returns 0.0 for unparseable input."""
    value = _normalize(percent_str)
    if value.endswith("%"):
        value = value[:-1].strip()
    if not value:
        return 0.0
    return _to_float(value)


def usage_percent(used: float, total: float) -> float:
    """Share of ``total`` taken by ``used`` in percent; 0.0 when total is not positive."""
    if total <= 0:
        return 0.0
    return (used / total) * 100.0


@dataclass(frozen=True)
class Quantity:
    """A raw quantity string paired with its value in the kind's fixed unit."""

    raw: str
    value: float

    @classmethod
    def cpu(cls, raw: Any) -> Quantity:
        return cls(raw=_normalize(raw), value=parse_cpu(raw))

    @classmethod
    def memory(cls, raw: Any) -> Quantity:
        return cls(raw=_normalize(raw), value=parse_memory(raw))

    @classmethod
    def storage(cls, raw: Any) -> Quantity:
        return cls(raw=_normalize(raw), value=parse_storage(raw))

    def __float__(self) -> float:
        return self.value
