"""
Priority tier resolver — combines the classification label with the lead's
sales potential into one of four actionable tiers.
"""
import unicodedata
from typing import Optional


TIER_DIAMOND = 'DIAMANTE 💎 (Ligar Agora)'
TIER_GOLD = 'OURO 🏆 (Prioridade Alta)'
TIER_SILVER = 'PRATA 🥈 (Monitorar)'
TIER_BRONZE = 'BRONZE 🥉 (Baixa Prioridade)'

PRIORITY_TIERS = [TIER_DIAMOND, TIER_GOLD, TIER_SILVER, TIER_BRONZE]

_CRITICAL_MARKERS = ('DIAMANTE', 'ALTA', 'VAZAMENTO')


def normalize_potential(sales_potential: Optional[str]) -> str:
    """Uppercase, trim and strip accents: 'Altíssimo ' -> 'ALTISSIMO'."""
    if not sales_potential:
        return ''
    decomposed = unicodedata.normalize('NFKD', str(sales_potential))
    stripped = ''.join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.strip().upper()


def is_high_potential(sales_potential: Optional[str]) -> bool:
    potential = normalize_potential(sales_potential)
    return 'ALTISSIMO' in potential or potential == 'ALTO'


def is_critical(classification: str) -> bool:
    label = (classification or '').upper()
    return any(marker in label for marker in _CRITICAL_MARKERS)


def resolve_priority_tier(classification: str, sales_potential: Optional[str]) -> str:
    """Map (classification label, sales potential) to a priority tier."""
    critical = is_critical(classification)
    high = is_high_potential(sales_potential)

    if critical and high:
        return TIER_DIAMOND
    if critical:
        return TIER_GOLD
    if high:
        return TIER_SILVER
    return TIER_BRONZE


def tier_key(tier: Optional[str]) -> str:
    """First word of a tier string: 'DIAMANTE', 'OURO', 'PRATA' or 'BRONZE'."""
    return (tier or '').split(' ', 1)[0].upper()
