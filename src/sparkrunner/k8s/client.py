"""Kubernetes client for Stackable SparkApplication resources."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from typing import Any

from kubernetes import client, config
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from sparkrunner._constants import SPARK_APP_GROUP, SPARK_APP_PLURAL, SPARK_APP_VERSION
from sparkrunner.config.schema import JobPhase

logger = logging.getLogger(__name__)


class K8sError(Exception):
    """Base exception for Kubernetes errors."""

    pass


class K8sConnectionError(K8sError):
    """Raised when Kubernetes cluster is unreachable."""

    pass


class K8sResourceError(K8sError):
    """Raised when resource operations fail."""

    pass


class K8sApiError(K8sResourceError):
    """Raised when the API server rejects a request.

    Carries the HTTP status, reason and raw response body so callers can
    report what the server said.
    """

    def __init__(
        self,
        message: str,
        status: int | None = None,
        reason: str | None = None,
        body: str | None = None,
    ):
        super().__init__(message)
        self.status = status
        self.reason = reason
        self.body = body

    @classmethod
    def from_api_exception(cls, action: str, e: ApiException) -> K8sApiError:
        return cls(
            f"{action} failed: {e.status} {e.reason}",
            status=e.status,
            reason=e.reason,
            body=e.body,
        )


@dataclass(frozen=True)
class JobHandle:
    """Correlates a submitted application with its name and namespace."""

    name: str
    namespace: str


class SparkApplicationClient:
    """Submits, reads and deletes SparkApplication custom resources.

    Wraps the kubernetes ``CustomObjectsApi``. The cluster owns all job state;
    this client keeps nothing between calls beyond the target namespace.
    """

    def __init__(self, kubeconfig: str = "", context: str = "", namespace: str = ""):
        """Initialize client and load cluster configuration.

        Args:
            kubeconfig: Path to a kubeconfig file (empty = in-cluster, then default)
            context: Kubernetes context (empty = current)
            namespace: Target namespace (empty = from context, then "default")
        """
        self.context_name = context

        try:
            if kubeconfig or context:
                config.load_kube_config(config_file=kubeconfig or None, context=context or None)
            else:
                # Try in-cluster config first, fall back to kubeconfig
                try:
                    config.load_incluster_config()
                except config.ConfigException:
                    config.load_kube_config()
        except Exception as e:
            raise K8sConnectionError(f"Failed to load Kubernetes config: {e}") from e

        self._kubeconfig = kubeconfig
        self._custom = client.CustomObjectsApi()
        # Resolved once; every call targets the namespace used at submit
        self._namespace = namespace or self._context_namespace()

    @property
    def namespace(self) -> str:
        """Get the target namespace."""
        return self._namespace

    def _context_namespace(self) -> str:
        """Namespace of the active kubeconfig context, "default" if it has none."""
        try:
            _, active = config.list_kube_config_contexts(config_file=self._kubeconfig or None)
            if active and "namespace" in active.get("context", {}):
                return active["context"]["namespace"]
        except Exception:
            logger.debug("No namespace in kubeconfig context, using 'default'")

        return "default"

    def submit(self, manifest: dict[str, Any]) -> JobHandle:
        """Create a SparkApplication in the target namespace.

        Args:
            manifest: SparkApplication manifest; not modified

        Returns:
            JobHandle for the created application

        Raises:
            K8sApiError: If the API server rejects the request
        """
        body = copy.deepcopy(manifest)
        body.setdefault("metadata", {})["namespace"] = self.namespace
        name = body["metadata"].get("name", "")

        try:
            self._custom.create_namespaced_custom_object(
                group=SPARK_APP_GROUP,
                version=SPARK_APP_VERSION,
                namespace=self.namespace,
                plural=SPARK_APP_PLURAL,
                body=body,
            )
        except ApiException as e:
            raise K8sApiError.from_api_exception(f"Create SparkApplication {name}", e) from e
        except HTTPError as e:
            raise K8sConnectionError(f"Create SparkApplication {name} failed: {e}") from e

        return JobHandle(name=name, namespace=self.namespace)

    def get_phase(self, name: str) -> JobPhase:
        """Read the current phase of a SparkApplication.

        Args:
            name: Application name

        Returns:
            Reported JobPhase, UNKNOWN if the operator has not set one yet

        Raises:
            K8sApiError: If the application cannot be read (including 404)
        """
        try:
            obj = self._custom.get_namespaced_custom_object(
                group=SPARK_APP_GROUP,
                version=SPARK_APP_VERSION,
                namespace=self.namespace,
                plural=SPARK_APP_PLURAL,
                name=name,
            )
        except ApiException as e:
            raise K8sApiError.from_api_exception(f"Read SparkApplication {name}", e) from e
        except HTTPError as e:
            raise K8sConnectionError(f"Read SparkApplication {name} failed: {e}") from e

        status = obj.get("status") or {}
        return JobPhase.parse(status.get("phase"))

    def delete(self, name: str) -> bool:
        """Delete a SparkApplication.

        Args:
            name: Application name

        Returns:
            True if deleted, False if not found

        Raises:
            K8sApiError: On any other API failure
        """
        try:
            self._custom.delete_namespaced_custom_object(
                group=SPARK_APP_GROUP,
                version=SPARK_APP_VERSION,
                namespace=self.namespace,
                plural=SPARK_APP_PLURAL,
                name=name,
            )
            return True
        except ApiException as e:
            if e.status == 404:
                return False
            raise K8sApiError.from_api_exception(f"Delete SparkApplication {name}", e) from e
        except HTTPError as e:
            raise K8sConnectionError(f"Delete SparkApplication {name} failed: {e}") from e


def get_spark_client(
    kubeconfig: str = "", context: str = "", namespace: str = ""
) -> SparkApplicationClient:
    """Create a SparkApplication client.

    Args:
        kubeconfig: Path to kubeconfig file (empty = default resolution)
        context: Kubernetes context (empty = current)
        namespace: Target namespace (empty = from context)

    Returns:
        SparkApplicationClient instance
    """
    return SparkApplicationClient(kubeconfig=kubeconfig, context=context, namespace=namespace)
