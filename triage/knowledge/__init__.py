from .customer_context import (
    CUSTOMER_CONTEXT,
    CustomerContextProvider,
    get_customer_context,
    get_customer_context_provider,
)
from .domains import (
    BUILTIN_DOMAINS,
    DomainRegistry,
    UnknownDomainError,
    get_domain,
    get_domain_registry,
    list_domains,
    register_domain,
)

__all__ = [
    "CUSTOMER_CONTEXT",
    "CustomerContextProvider",
    "get_customer_context",
    "get_customer_context_provider",
    "BUILTIN_DOMAINS",
    "DomainRegistry",
    "UnknownDomainError",
    "get_domain",
    "get_domain_registry",
    "list_domains",
    "register_domain",
]
