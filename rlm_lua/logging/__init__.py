"""Observability for RLM execution.

Provides a JSONL trajectory callback plus optional MLflow integration.
"""

from .trajectory_callback import TrajectoryCallback
from . import mlflow_integration

__all__ = [
    "TrajectoryCallback",
    "mlflow_integration",
]
