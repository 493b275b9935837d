"""Payment gateway adapters.

``settings.PAYMENT_GATEWAY`` names the class used by the payment services.
Real provider adapters implement :class:`PaymentGateway`; the simulated one
approves every charge except tokens starting with ``tok_decline``.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from dataclasses import field
from decimal import Decimal

from django.conf import settings
from django.utils.module_loading import import_string

DECLINE_PREFIX = "tok_decline"


class PaymentGatewayError(Exception):
    def __init__(self, message: str, response: dict | None = None):
        super().__init__(message)
        self.response = response or {}


@dataclass(frozen=True)
class GatewayResult:
    transaction_id: str
    status: str
    raw: dict = field(default_factory=dict)


class PaymentGateway:
    name = "base"

    def charge(
        self,
        amount: Decimal,
        currency: str,
        method: str,
        *,
        token: str = "",
        customer: dict | None = None,
        metadata: dict | None = None,
        description: str = "",
    ) -> GatewayResult:
        raise NotImplementedError

    def refund(
        self,
        transaction_id: str,
        amount: Decimal,
        *,
        reason: str = "",
        metadata: dict | None = None,
    ) -> GatewayResult:
        raise NotImplementedError


class SimulatedGateway(PaymentGateway):
    name = "simulated"

    def _transaction_id(self) -> str:
        return f"sim_{uuid.uuid4().hex}"

    def charge(
        self,
        amount,
        currency,
        method,
        *,
        token="",
        customer=None,
        metadata=None,
        description="",
    ):
        if token.startswith(DECLINE_PREFIX):
            msg = "Card declined"
            raise PaymentGatewayError(msg, {"code": "card_declined", "token": token})
        transaction_id = self._transaction_id()
        return GatewayResult(
            transaction_id=transaction_id,
            status="completed",
            raw={
                "id": transaction_id,
                "amount": str(amount),
                "currency": currency,
                "method": method,
                "metadata": metadata or {},
            },
        )

    def refund(self, transaction_id, amount, *, reason="", metadata=None):
        if not transaction_id:
            msg = "Unknown transaction"
            raise PaymentGatewayError(msg)
        refund_id = self._transaction_id()
        return GatewayResult(
            transaction_id=refund_id,
            status="completed",
            raw={
                "id": refund_id,
                "original": transaction_id,
                "amount": str(amount),
                "reason": reason,
            },
        )


def get_gateway() -> PaymentGateway:
    return import_string(settings.PAYMENT_GATEWAY)()
