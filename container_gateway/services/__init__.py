"""
Container Gateway Services

Service layer: state inspection, transition validation, operation dispatch,
response normalization and the container service that orchestrates them.
"""

from .container import ContainerService  # noqa: F401
from .dispatcher import OperationDispatcher  # noqa: F401
from .inspector import InspectionResult, StateInspector  # noqa: F401
from .validation import TransitionValidator  # noqa: F401

__all__ = [
    "ContainerService",
    "InspectionResult",
    "OperationDispatcher",
    "StateInspector",
    "TransitionValidator",
]
