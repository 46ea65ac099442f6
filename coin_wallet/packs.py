from decimal import Decimal
from typing import Dict, List, NamedTuple

from .errors import ValidationError


class TokenPack(NamedTuple):
    name: str
    amount: Decimal        # paid by the user, credited on approval
    fixed_reward: Decimal
    commission: Decimal
    total: Decimal         # promised return

    @property
    def income_percent(self) -> Decimal:
        return ((self.fixed_reward + self.commission) / self.amount * 100).quantize(Decimal("0.1"))


def _pack(name: str, amount: int, reward: int, commission: int, total: int) -> TokenPack:
    return TokenPack(name, Decimal(amount), Decimal(reward), Decimal(commission), Decimal(total))


TOKEN_PACKS: List[TokenPack] = [
    _pack("Pack A", 200, 14, 14, 228),
    _pack("Pack B", 300, 20, 21, 341),
    _pack("Pack C", 400, 30, 28, 458),
    _pack("Pack D", 500, 50, 35, 585),
    _pack("Pack E", 945, 27, 27, 999),
    _pack("Pack F", 970, 29, 29, 1028),
]

_BY_NAME: Dict[str, TokenPack] = {p.name: p for p in TOKEN_PACKS}


def get_pack(name: str) -> TokenPack:
    pack = _BY_NAME.get((name or "").strip())
    if pack is None:
        raise ValidationError(f"Unknown pack '{name}'")
    return pack
