from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PromoStatus(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    APPLIED = "applied"
    REJECTED = "rejected"
    ERROR = "error"


class PromoReason(str, Enum):
    LOGIN_REQUIRED = "login_required"
    PER_USER_LIMIT_REACHED = "per_user_limit_reached"
    MAX_USES_REACHED = "max_uses_reached"
    INVALID = "invalid"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PromoReason":
        try:
            return cls(value)
        except ValueError:
            return cls.INVALID


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


@dataclass
class PromoApplication:
    code: str
    valid: bool
    discount_value: float = 0.0
    reason: Optional[str] = None
    signature: str = ""
    stale: bool = False

    @property
    def reason_kind(self) -> Optional[PromoReason]:
        if self.valid:
            return None
        return PromoReason.parse(self.reason)

    @classmethod
    def from_response(cls, code: str, data: dict, signature: str = "") -> "PromoApplication":
        """Construye el resultado a partir de la respuesta de POST /promocodes/apply."""
        data = data or {}
        valid = bool(data.get("valid"))
        try:
            discount = float(data.get("discount_value") or 0)
        except (TypeError, ValueError):
            discount = 0.0
        return cls(
            code=normalize_code(data.get("code")) or code,
            valid=valid,
            discount_value=max(0.0, discount) if valid else 0.0,
            reason=None if valid else (data.get("reason") or PromoReason.INVALID.value),
            signature=signature,
        )

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "valid": self.valid,
            "discount_value": self.discount_value,
            "reason": self.reason,
        }
