# Overview: Service-layer rules for ordered status flows shared by orders and productions.

"""
Status Flows

ORDER:
    Pending Purchase -> Purchase Completed -> Pending Production ->
    Factory Received -> In Production -> Production Completed ->
    Ready for Delivery -> Delivered -> Completed

PRODUCTION:
    Pending Production -> Cutting -> Stitching -> Trimming -> QC ->
    Ironing -> Packing -> Completed

Two ways to move a document:
- set: any member of the flow. With STRICT_STATUS_PROGRESSION on,
  backwards moves are refused (corrections stay possible with it off).
- advance: exactly one stage forward; the last stage is terminal.

Workflow side effects (purchase completed, production started) only ever
promote a status forward, never pull it back.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..validation import StateError, ValidationError


@dataclass(frozen=True)
class StatusFlow:
    name: str
    stages: tuple[str, ...]

    def validate(self, status, field: str = "status") -> str:
        if status not in self.stages:
            raise ValidationError(
                f"Invalid {self.name} status '{status}'. Must be one of: {', '.join(self.stages)}",
                field=field,
            )
        return status

    def index(self, status: str) -> int:
        return self.stages.index(self.validate(status))

    def is_terminal(self, status: str) -> bool:
        return self.index(status) == len(self.stages) - 1

    def next_status(self, current: str) -> str:
        position = self.index(current)
        if position >= len(self.stages) - 1:
            raise StateError(f"{self.name.capitalize()} is already at the final status '{current}'")
        return self.stages[position + 1]

    def can_transition(self, from_status: str, to_status: str, *, strict: bool) -> bool:
        """Membership is always required; ordering only when ``strict``."""
        self.validate(from_status)
        self.validate(to_status)
        if not strict or from_status == to_status:
            return True
        return self.index(to_status) > self.index(from_status)

    def check_transition(self, from_status: str, to_status: str, *, strict: bool) -> None:
        if not self.can_transition(from_status, to_status, strict=strict):
            raise StateError(
                f"Cannot move {self.name} backwards from '{from_status}' to '{to_status}'"
            )

    def promote(self, current: str, target: str) -> str:
        """``target`` if it lies ahead of ``current``, else ``current`` unchanged."""
        if current not in self.stages:
            return target
        return target if self.index(target) > self.index(current) else current


ORDER_FLOW = StatusFlow(
    "order",
    (
        "Pending Purchase",
        "Purchase Completed",
        "Pending Production",
        "Factory Received",
        "In Production",
        "Production Completed",
        "Ready for Delivery",
        "Delivered",
        "Completed",
    ),
)

PRODUCTION_FLOW = StatusFlow(
    "production",
    (
        "Pending Production",
        "Cutting",
        "Stitching",
        "Trimming",
        "QC",
        "Ironing",
        "Packing",
        "Completed",
    ),
)

ORDER_STATUSES = ORDER_FLOW.stages
PRODUCTION_STATUSES = PRODUCTION_FLOW.stages
