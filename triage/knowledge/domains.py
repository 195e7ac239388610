from __future__ import annotations

from ..config import DomainConfig, RiskKeywords, SLAThresholds


class UnknownDomainError(KeyError):
    """Raised when a domain id is not present in the registry."""

    def __init__(self, domain_id: str) -> None:
        super().__init__(domain_id)
        self.domain_id = domain_id

    def __str__(self) -> str:
        return f"Unknown domain: {self.domain_id!r}"


BUILTIN_DOMAINS: list[DomainConfig] = [
    # ── Financial services ───────────────────────────────────────────────────
    DomainConfig(
        id="bny",
        name="BNY",
        logo="🏦",
        description="Financial services, asset management, and complex portfolio queries.",
        # 4h for trade failures and similar, 24h for general queries
        sla_thresholds=SLAThresholds(urgent=4, standard=24),
        risk_keywords=RiskKeywords(
            critical=(
                "fraud", "unauthorized", "compliance breach", "lawsuit", "breach",
                "lost money", "emergency", "sec investigation", "money laundering",
                "sanctions", "insider trading", "identity theft", "hacked",
                "fiduciary failure", "regulatory inquiry",
            ),
            high=(
                "fail", "error", "urgent", "stuck", "immediately", "penalty", "escalate",
                "margin call", "trade failure", "wire missing", "incorrect balance",
                "double charge", "cannot withdraw", "account frozen", "system outage",
            ),
            medium=(
                "delay", "slow", "confused", "access", "login", "reset", "password",
                "fees", "statement", "clarification", "not working", "app crash",
            ),
        ),
    ),
    # ── Quick commerce ───────────────────────────────────────────────────────
    DomainConfig(
        id="zepto",
        name="Zepto",
        logo="⚡",
        description="10-minute grocery delivery, order fulfillment, and logistics.",
        # 15 minutes when an order is late, 1h for refunds and general issues
        sla_thresholds=SLAThresholds(urgent=0.25, standard=1),
        risk_keywords=RiskKeywords(
            critical=(
                "spoiled", "allergy", "sick", "unsafe", "accident", "food poisoning",
                "scam", "sexual harassment", "threatened", "stalking", "severe injury",
                "hospital", "expired product", "foreign object", "contamination",
            ),
            high=(
                "late", "missing", "cold", "wrong item", "refund", "cancel", "driver",
                "never arrived", "spilled", "damaged", "rude", "unprofessional",
                "vehicle breakdown", "payment failed", "charged twice",
            ),
            medium=(
                "status", "where", "promo", "coupon", "bag", "item missing",
                "change address", "add item", "phone number", "contact support", "eta",
            ),
        ),
    ),
]


class DomainRegistry:
    """Static lookup of domain configurations keyed by domain id."""

    def __init__(self, domains: list[DomainConfig] | None = None) -> None:
        self._domains: dict[str, DomainConfig] = {}
        for domain in domains if domains is not None else BUILTIN_DOMAINS:
            self.register(domain)

    def register(self, domain: DomainConfig) -> None:
        self._domains[domain.id] = domain

    def lookup(self, domain_id: str) -> DomainConfig:
        try:
            return self._domains[domain_id]
        except KeyError:
            raise UnknownDomainError(domain_id) from None

    def __contains__(self, domain_id: object) -> bool:
        return domain_id in self._domains

    def list(self) -> list[DomainConfig]:
        return list(self._domains.values())


_registry = DomainRegistry()


def get_domain(domain_id: str) -> DomainConfig:
    return _registry.lookup(domain_id)


def list_domains() -> list[DomainConfig]:
    return _registry.list()


def register_domain(domain: DomainConfig) -> None:
    """Add or replace a domain in the process-wide registry."""
    _registry.register(domain)


def get_domain_registry() -> DomainRegistry:
    return _registry
