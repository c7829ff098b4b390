"""
Domain Exceptions

Architectural Intent:
- One hierarchy for every failure the policy engine can report
- Validation errors reject a request before any provider call
- Lookup and calculation errors are reported per item and aggregated
- Provider errors are raised by adapters and trigger compensating rollback

Design Decisions:
- ValidationError also subclasses ValueError, NotFoundError also subclasses
  LookupError, so callers can catch either the domain or the builtin type
"""


class PalisadeError(Exception):
    """Base class for all policy engine errors."""


class ValidationError(PalisadeError, ValueError):
    """Malformed protocol, action, IP, port or direction."""


class NotFoundError(PalisadeError, LookupError):
    """A resource kind, instance or provider record does not exist."""


class ResourceTypeNotFoundError(NotFoundError):
    def __init__(self, kind: str):
        super().__init__(f"resource type({kind}) not found")
        self.kind = kind


class InstanceNotFoundError(NotFoundError):
    def __init__(self, ip: str):
        super().__init__(f"ip({ip}) can't be found")
        self.ip = ip


class PolicyCalculationError(PalisadeError):
    """A policy could not be derived for an endpoint."""


class LoadBalancerPeerError(PolicyCalculationError):
    def __init__(self, peer_ip: str):
        super().__init__(
            f"peer ip({peer_ip}) is a load balancer, "
            "ingress policies do not support a load balancer as peer"
        )
        self.peer_ip = peer_ip


class LoadBalancerPortError(PolicyCalculationError):
    def __init__(self, ports: str):
        super().__init__(f"load balancer does not support port format like {ports}")
        self.ports = ports


class NoBackendsError(PolicyCalculationError):
    def __init__(self, lb_ip: str, port: str):
        super().__init__(f"load balancer({lb_ip}) port({port}) has no backends")
        self.lb_ip = lb_ip
        self.port = port


class ProviderError(PalisadeError):
    """A remote provider call failed or was rejected."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation} failed: {message}")
        self.operation = operation
