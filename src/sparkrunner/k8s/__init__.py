"""Kubernetes client module for sparkrunner."""

from .client import (
    JobHandle,
    K8sApiError,
    K8sConnectionError,
    K8sError,
    K8sResourceError,
    SparkApplicationClient,
    get_spark_client,
)

__all__ = [
    # Client
    "SparkApplicationClient",
    "JobHandle",
    "get_spark_client",
    # Errors
    "K8sError",
    "K8sConnectionError",
    "K8sResourceError",
    "K8sApiError",
]
