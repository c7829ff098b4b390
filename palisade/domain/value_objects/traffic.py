"""
Traffic Value Validation

Architectural Intent:
- Allow-lists for protocol and policy action
- Syntactic IP validation for rule endpoints
- Every check raises ValidationError so requests fail before provider calls
"""

import ipaddress

from palisade.domain.exceptions import ValidationError

VALID_PROTOCOLS = ("TCP", "UDP", "ICMP", "ICMPV6", "GRE", "ALL")
VALID_ACTIONS = ("accept", "drop")


def validate_protocol(protocol: str) -> str:
    if not isinstance(protocol, str) or protocol.upper() not in VALID_PROTOCOLS:
        raise ValidationError(
            f"invalid protocol({protocol}), must be one of {', '.join(VALID_PROTOCOLS)}"
        )
    return protocol


def validate_action(action: str) -> str:
    if not isinstance(action, str) or action.lower() not in VALID_ACTIONS:
        raise ValidationError(
            f"invalid policy action({action}), must be one of {', '.join(VALID_ACTIONS)}"
        )
    return action


def validate_ip(ip: str) -> str:
    """Accept a single IPv4/IPv6 address, or a CIDR block for external peers."""
    if not isinstance(ip, str) or not ip.strip():
        raise ValidationError("ip can't be empty")
    try:
        if "/" in ip:
            ipaddress.ip_network(ip, strict=False)
        else:
            ipaddress.ip_address(ip)
    except ValueError:
        raise ValidationError(f"invalid ip({ip})") from None
    return ip
