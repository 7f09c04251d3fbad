"""
Templates Package

Reference workflow graphs for the shipped mission templates.
"""
from .reference_workflows import (
    REFERENCE_WORKFLOWS,
    get_reference_workflow,
    list_reference_keys,
)

__all__ = [
    "REFERENCE_WORKFLOWS",
    "get_reference_workflow",
    "list_reference_keys",
]
