"""Capability risk policy and the approval gate in front of SaaS connectors."""

from .gate import CapabilityGate, CapabilityInvoker, GateResult, GateStatus
from .models import ApprovalPolicy, PolicyDecision

__all__ = [
    "ApprovalPolicy",
    "CapabilityGate",
    "CapabilityInvoker",
    "GateResult",
    "GateStatus",
    "PolicyDecision",
]
