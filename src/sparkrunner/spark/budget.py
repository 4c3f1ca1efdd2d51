"""Executor memory budgeting for gang-scheduled Spark jobs.

YuniKorn admits a task group only when the cluster can reserve the group's
``minResource`` up front. The memory reserved per executor pod is the JVM heap,
the Spark memory overhead and the sidecar container, rounded up to whole GiB.
"""

from __future__ import annotations

import math
from collections.abc import Mapping

from sparkrunner._constants import MEMORY_OVERHEAD_KEY
from sparkrunner.config.loader import ConfigValidationError
from sparkrunner.config.schema import EngineSettings, ExecutorSettings

MIB_PER_GIB = 1024

_UNITS_MIB = {
    "k": 1 / 1024,
    "m": 1,
    "g": 1024,
    "t": 1024**2,
}


def compute_budget_gib(executor_memory_mib: int, overhead_mib: int, sidecar_mib: int) -> int:
    """Total memory to reserve for one executor, in whole GiB rounded up.

    Inputs are expected to be non-negative; callers validate them.

    Examples:
        >>> compute_budget_gib(4096, 0, 512)
        5
        >>> compute_budget_gib(8192, 1024, 512)
        10
    """
    total_mib = executor_memory_mib + overhead_mib + sidecar_mib
    return -(-total_mib // MIB_PER_GIB)


def parse_memory_mib(memory_str: str) -> int:
    """Parse a Spark memory string to MiB, rounding up.

    A bare number is MiB, as Spark reads ``spark.executor.memoryOverhead``.
    Supports k, m, g, t suffixes with an optional trailing ``b``.

    Examples:
        >>> parse_memory_mib("1024")
        1024
        >>> parse_memory_mib("2g")
        2048
    """
    value = memory_str.lower().strip()
    if value.endswith("b") and len(value) > 1 and value[-2] in _UNITS_MIB:
        value = value[:-1]

    multiplier: float = 1
    if value and value[-1] in _UNITS_MIB:
        multiplier = _UNITS_MIB[value[-1]]
        value = value[:-1]

    try:
        number = float(value)
    except ValueError as e:
        raise ValueError(f"Invalid memory format: {memory_str}") from e
    if not math.isfinite(number) or number < 0:
        raise ValueError(f"Invalid memory format: {memory_str}")

    return math.ceil(number * multiplier)


def memory_overhead_mib(spark_conf: Mapping[str, str]) -> int:
    """Read the executor memory overhead from Spark conf, in MiB.

    An absent key means no overhead.

    Raises:
        ConfigValidationError: If the configured value cannot be parsed
    """
    raw = spark_conf.get(MEMORY_OVERHEAD_KEY)
    if raw is None:
        return 0
    try:
        return parse_memory_mib(str(raw))
    except ValueError as e:
        raise ConfigValidationError(f"Invalid {MEMORY_OVERHEAD_KEY}: {raw!r}") from e


def executor_budget_gib(
    executor: ExecutorSettings,
    engine: EngineSettings,
    spark_conf: Mapping[str, str],
) -> int:
    """Memory budget in GiB for one executor of the given settings."""
    return compute_budget_gib(
        executor.executor_memory_gib * MIB_PER_GIB,
        memory_overhead_mib(spark_conf),
        engine.sidecar_memory_mib,
    )
