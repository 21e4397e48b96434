# Overview: Payment status and balance derived from a total and the net amount settled.

from __future__ import annotations

from dataclasses import dataclass

from ..models.enums import DocumentStatus


@dataclass(frozen=True)
class SettlementState:
    status: DocumentStatus
    balance_cents: int
    net_settled_cents: int


def resolve_status(total_cents: int, net_settled_cents: int) -> SettlementState:
    """
    Derive status and balance. Never take either from the caller.

    - PAID:    net settled >= total (a zero-total document is PAID)
    - PARTIAL: 0 < net settled < total
    - UNPAID:  net settled <= 0
    """
    if net_settled_cents >= total_cents:
        status = DocumentStatus.PAID
    elif net_settled_cents > 0:
        status = DocumentStatus.PARTIAL
    else:
        status = DocumentStatus.UNPAID

    return SettlementState(
        status=status,
        balance_cents=max(0, total_cents - net_settled_cents),
        net_settled_cents=net_settled_cents,
    )
