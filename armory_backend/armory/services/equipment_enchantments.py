"""
Equipment enchantment slots.

TrinityCore stores every enchantment on an item instance in one
space-separated string (item_instance.enchantments), three numbers per
slot: id, duration, charges.

    index 0   permanent enchant
    index 3   temporary enchant
    6, 9, 12  socket gems
    index 15  prismatic socket
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

PERMANENT_INDEX = 0
TEMPORARY_INDEX = 3
GEM_INDEXES = (6, 9, 12)
PRISMATIC_INDEX = 15


@dataclass
class ParsedEnchantments:
    permanent: Optional[int] = None
    temporary: Optional[int] = None
    gems: List[int] = field(default_factory=list)
    prismatic: Optional[int] = None

    def enchantment_ids(self) -> List[int]:
        """Every non-empty slot id, de-duplicated, in slot order."""
        ids = [self.permanent, self.temporary, *self.gems, self.prismatic]
        return list(dict.fromkeys(i for i in ids if i))


def _to_int(token: str) -> int:
    try:
        return int(token)
    except ValueError:
        return 0


def parse_enchantments(raw: Optional[str]) -> ParsedEnchantments:
    if not raw:
        return ParsedEnchantments()

    parts = [_to_int(token) for token in raw.split()]

    def slot(index: int) -> Optional[int]:
        if index < len(parts) and parts[index] > 0:
            return parts[index]
        return None

    return ParsedEnchantments(
        permanent=slot(PERMANENT_INDEX),
        temporary=slot(TEMPORARY_INDEX),
        gems=[gem for gem in (slot(i) for i in GEM_INDEXES) if gem is not None],
        prismatic=slot(PRISMATIC_INDEX),
    )


async def resolve_equipment(resolver, raw: Optional[str]) -> Dict[str, Any]:
    """
    Parse an item's enchantment string and resolve every slot in one batch.

    Returns the wire-format resolutions keyed by slot; empty slots are None.
    """
    parsed = parse_enchantments(raw)
    resolutions = await resolver.resolve_multiple(parsed.enchantment_ids())
    by_id = {r.key: r.to_dict() for r in resolutions}

    return {
        "permanent": by_id.get(parsed.permanent) if parsed.permanent else None,
        "temporary": by_id.get(parsed.temporary) if parsed.temporary else None,
        "gems": [by_id[gem] for gem in parsed.gems if gem in by_id],
        "prismatic": by_id.get(parsed.prismatic) if parsed.prismatic else None,
    }
