"""Capability risk gate.

Assembled agents invoke SaaS capabilities through ``CapabilityGate``. The gate
resolves the capability's risk from the catalog, consults the
``ApprovalPolicy`` table and either invokes the capability, records a pending
``ApprovalRequest``, or refuses the call:

- capabilities the agent was not assembled with, or that the policy blocks,
  are refused;
- rejected approvals block the invocation;
- a required approval that is missing or still pending produces (or reuses) a
  pending request and nothing is invoked.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from ..context import ExecutionContext
from ..repos.interfaces import ApprovalRepository
from ..schemas.domain import Agent, ApprovalRequest, ApprovalStatus, CapabilityRef, RiskLevel
from .models import ApprovalPolicy, PolicyDecision

logger = logging.getLogger(__name__)


class CapabilityInvoker(Protocol):
    """Generic connector boundary: invoke one capability with parameters."""

    async def invoke(self, ref: CapabilityRef, params: Dict[str, Any]) -> Any: ...


class GateStatus(str, Enum):
    invoked = "invoked"
    pending_approval = "pending_approval"
    blocked = "blocked"


@dataclass(frozen=True)
class GateResult:
    status: GateStatus
    decision: Optional[PolicyDecision] = None
    result: Any = None
    approval: Optional[ApprovalRequest] = None
    reason: Optional[str] = None


class CapabilityGate:
    def __init__(
        self,
        *,
        invoker: CapabilityInvoker,
        approvals: ApprovalRepository,
        policy: Optional[ApprovalPolicy] = None,
    ) -> None:
        self._invoker = invoker
        self._approvals = approvals
        self._policy = policy or ApprovalPolicy()

    async def _risk_of(self, ref: CapabilityRef, ctx: ExecutionContext) -> Optional[RiskLevel]:
        for provider in await ctx.catalog.capabilities(org_id=ctx.org_id):
            if provider.provider_id != ref.provider_id:
                continue
            for cap in provider.capabilities:
                if cap.id == ref.id:
                    return cap.risk
        return None

    async def invoke(
        self,
        agent: Agent,
        ref: CapabilityRef,
        params: Dict[str, Any],
        *,
        ctx: ExecutionContext,
        approval_id: Optional[str] = None,
    ) -> GateResult:
        """Invoke ``ref`` on behalf of ``agent`` if the policy allows it now."""
        if ref.key() not in {c.key() for c in agent.capabilities}:
            reason = f"capability {ApprovalPolicy.key(ref)} is not assigned to agent '{agent.name}'"
            logger.warning("Blocked invocation: %s", reason)
            return GateResult(status=GateStatus.blocked, reason=reason)

        decision = self._policy.decide(ref, await self._risk_of(ref, ctx))
        if decision.block:
            logger.warning("Blocked invocation: %s", decision.block_reason)
            return GateResult(status=GateStatus.blocked, decision=decision, reason=decision.block_reason)
        if decision.require_approval:
            approval = await self._approvals.get(approval_id) if approval_id else None
            if approval is not None and approval.capability.key() != ref.key():
                approval = None
            if approval is not None and approval.status == ApprovalStatus.rejected:
                return GateResult(
                    status=GateStatus.blocked,
                    decision=decision,
                    approval=approval,
                    reason=f"approval {approval.id} was rejected",
                )
            if approval is None or approval.status == ApprovalStatus.pending:
                if approval is None:
                    approval = ApprovalRequest(
                        agent_name=agent.name,
                        capability=ref,
                        risk=decision.risk,
                        params=params,
                        reason=f"{decision.risk.value} risk capability {ApprovalPolicy.key(ref)} requires approval",
                    )
                    await self._approvals.create(approval)
                    logger.info("Approval %s requested for %s", approval.id, ApprovalPolicy.key(ref))
                return GateResult(status=GateStatus.pending_approval, decision=decision, approval=approval)

        result = await self._invoker.invoke(ref, params)
        return GateResult(status=GateStatus.invoked, decision=decision, result=result)
