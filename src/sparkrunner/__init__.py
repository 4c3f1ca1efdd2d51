"""Submit and supervise Stackable Spark applications on Kubernetes."""

__version__ = "0.3.0"
