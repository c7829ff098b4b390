from enum import Enum

from palisade.domain.exceptions import ValidationError


class Direction(str, Enum):
    """
    Value Object for the traffic direction of a security policy.
    """
    INGRESS = "ingress"
    EGRESS = "egress"

    @staticmethod
    def parse(value: str) -> "Direction":
        try:
            return Direction(value.strip().lower())
        except (ValueError, AttributeError):
            raise ValidationError(f"invalid policy direction({value})") from None

    def __str__(self) -> str:
        return self.value
