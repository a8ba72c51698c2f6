from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from pydantic import Field

from ..schemas.base import BaseSchema
from ..schemas.domain import CapabilityRef, RiskLevel


def _default_table() -> Dict[RiskLevel, bool]:
    return {RiskLevel.low: False, RiskLevel.medium: False, RiskLevel.high: True}


class ApprovalPolicy(BaseSchema):
    """
    Risk table deciding which capability invocations need human approval.

    ``capability_overrides`` keys are ``"<provider_id>/<capability_id>"`` and
    take precedence over the risk table. Capabilities listed in
    ``blocked_capabilities`` are refused whatever their risk.
    """

    requires_approval: Dict[RiskLevel, bool] = Field(default_factory=_default_table)
    capability_overrides: Dict[str, bool] = Field(default_factory=dict)
    blocked_capabilities: List[str] = Field(default_factory=list)
    unknown_risk: RiskLevel = Field(
        default=RiskLevel.medium,
        description="Risk assumed for capabilities the catalog lists without a risk level.",
    )

    @staticmethod
    def key(ref: CapabilityRef) -> str:
        return f"{ref.provider_id}/{ref.id}"

    def decide(self, ref: CapabilityRef, risk: Optional[RiskLevel]) -> "PolicyDecision":
        effective = risk or self.unknown_risk
        if self.key(ref) in self.blocked_capabilities:
            return PolicyDecision(
                risk=effective,
                require_approval=False,
                block=True,
                block_reason=f"capability {self.key(ref)} is blocked by policy",
            )
        override = self.capability_overrides.get(self.key(ref))
        if override is not None:
            return PolicyDecision(risk=effective, require_approval=override, block=False, block_reason=None)
        return PolicyDecision(
            risk=effective,
            require_approval=self.requires_approval.get(effective, True),
            block=False,
            block_reason=None,
        )


@dataclass(frozen=True)
class PolicyDecision:
    """
    Result of a policy evaluation for one capability invocation.

    Attributes:
        risk: The risk level the decision was based on.
        require_approval: Whether human approval is needed before invoking.
        block: Whether the invocation is refused outright.
        block_reason: Human-readable reason if blocked.
    """

    risk: RiskLevel
    require_approval: bool
    block: bool
    block_reason: Optional[str]
