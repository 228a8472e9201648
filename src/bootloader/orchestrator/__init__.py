"""Reconciliation workflow shared by the load balancer commands."""

from .workflow import LBWorkflow, Mutation, WorkflowResult, WorkflowStatus, WorkflowStep

__all__ = [
    "LBWorkflow",
    "Mutation",
    "WorkflowResult",
    "WorkflowStatus",
    "WorkflowStep",
]
