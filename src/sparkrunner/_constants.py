"""Shared constants for sparkrunner."""

# Stackable Spark operator custom resource coordinates
SPARK_APP_GROUP = "spark.stackable.tech"
SPARK_APP_VERSION = "v1alpha1"
SPARK_APP_PLURAL = "sparkapplications"

# YuniKorn gang-scheduling hint on executor pod overrides
TASK_GROUPS_ANNOTATION = "yunikorn.apache.org/task-groups"

# Spark configuration keys read or filled in by the spec builder
MEMORY_OVERHEAD_KEY = "spark.executor.memoryOverhead"
MAX_EXECUTORS_KEY = "spark.dynamicAllocation.maxExecutors"
INITIAL_EXECUTORS_KEY = "spark.dynamicAllocation.initialExecutors"
POD_NAME_PREFIX_KEY = "spark.kubernetes.executor.podNamePrefix"

# Phase polling interval when the config does not override it
DEFAULT_POLL_INTERVAL_MS = 1_000

# Default config file name for auto-discovery
DEFAULT_CONFIG = "sparkrunner.yaml"
