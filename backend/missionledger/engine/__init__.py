"""Workflow Engine - State machine, authorization and audit"""
from .engine import WorkflowInstanceMachine
from .transition_authorizer import AuthorizationDecision, TransitionAuthorizer
from .audit_writer import AuditTrail, AuditWriter
from .outbox_relay import OutboxRelay

__all__ = [
    "WorkflowInstanceMachine",
    "AuthorizationDecision",
    "TransitionAuthorizer",
    "AuditTrail",
    "AuditWriter",
    "OutboxRelay",
]
