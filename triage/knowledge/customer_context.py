from __future__ import annotations

import copy
from typing import Any


# Simulated "Customer 360" records, one per domain. Passed verbatim into the
# generation and validation prompts; the pipeline never interprets them.
CUSTOMER_CONTEXT: dict[str, dict[str, Any]] = {
    "bny": {
        "accountHolder": "Alex Mercer",
        "accountType": "Institutional Premium",
        "recentTransactions": [
            {
                "id": "TXN-88291",
                "date": "2024-05-20",
                "amount": "$50,000.00",
                "recipient": "Vendor Corp Inc.",
                "status": "Pending",
                "type": "Wire Transfer",
            },
            {
                "id": "TXN-88285",
                "date": "2024-05-19",
                "amount": "$1,250.00",
                "recipient": "Service Fee",
                "status": "Completed",
                "type": "Debit",
            },
            {
                "id": "TXN-88100",
                "date": "2024-05-15",
                "amount": "$150,000.00",
                "recipient": "Global Equity Fund",
                "status": "Completed",
                "type": "Investment",
            },
        ],
        "alerts": [
            {"id": "ALT-001", "type": "Security", "message": "Login attempt from new device (Singapore)"},
            {"id": "ALT-002", "type": "Portfolio", "message": "Rebalancing recommended for Q3"},
        ],
    },
    "zepto": {
        "accountHolder": "Alex Mercer",
        "membership": "Zepto Pass",
        "recentOrders": [
            {
                "id": "ZEP-9921",
                "date": "Today, 10:30 AM",
                "items": ["Milk (1L)", "Whole Wheat Bread", "Eggs (6)"],
                "status": "Delayed",
                "driver": "Rajesh K.",
                "eta": "10:55 AM (Original: 10:40 AM)",
            },
            {
                "id": "ZEP-9900",
                "date": "Yesterday, 06:15 PM",
                "items": ["Diet Coke (Can) x6", "Lays Classic"],
                "status": "Delivered",
                "issue": "None",
            },
            {
                "id": "ZEP-9850",
                "date": "Last Week",
                "items": ["Avocados x2", "Tomatoes"],
                "status": "Refunded",
                "issue": "Item Quality",
            },
        ],
        "activePromos": [
            {"code": "FREEDEL", "description": "Free Delivery on orders > $10"},
        ],
    },
}


class CustomerContextProvider:
    """Returns the opaque customer record for a domain (empty when none exists)."""

    def __init__(self, records: dict[str, dict[str, Any]] | None = None) -> None:
        self._records = records if records is not None else CUSTOMER_CONTEXT

    def lookup(self, domain_id: str) -> dict[str, Any]:
        # Deep copy: the shared record stays read-only.
        return copy.deepcopy(self._records.get(domain_id, {}))


_provider = CustomerContextProvider()


def get_customer_context(domain_id: str) -> dict[str, Any]:
    return _provider.lookup(domain_id)


def get_customer_context_provider() -> CustomerContextProvider:
    return _provider
