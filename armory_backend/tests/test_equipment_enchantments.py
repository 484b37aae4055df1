"""
Tests for item_instance.enchantments slot parsing.
"""
import pytest

from armory.services.equipment_enchantments import parse_enchantments, resolve_equipment

# permanent 3539, two gems (7186 twice), prismatic 3621
FULL_ITEM = "3539 0 0 0 0 0 7186 0 0 7186 0 0 0 0 0 3621 0 0 0 0 0 0 0 0"


class TestParseEnchantments:

    def test_full_item(self):
        parsed = parse_enchantments(FULL_ITEM)

        assert parsed.permanent == 3539
        assert parsed.temporary is None
        assert parsed.gems == [7186, 7186]
        assert parsed.prismatic == 3621
        assert parsed.enchantment_ids() == [3539, 7186, 3621]

    def test_temporary_enchant(self):
        parsed = parse_enchantments("0 0 0 2684 3600000 0")

        assert parsed.permanent is None
        assert parsed.temporary == 2684

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_input(self, raw):
        parsed = parse_enchantments(raw)

        assert parsed.enchantment_ids() == []
        assert parsed.gems == []

    def test_short_string(self):
        parsed = parse_enchantments("3539 0")

        assert parsed.permanent == 3539
        assert parsed.gems == []
        assert parsed.prismatic is None

    def test_garbage_tokens_count_as_empty(self):
        parsed = parse_enchantments("abc 0 0 x 0 0 7186")

        assert parsed.permanent is None
        assert parsed.temporary is None
        assert parsed.gems == [7186]


class TestResolveEquipment:

    @pytest.mark.asyncio
    async def test_resolves_every_slot_in_one_batch(self, make_resolver, wotlkdb):
        resolver = make_resolver()

        result = await resolve_equipment(resolver, FULL_ITEM)

        assert result["permanent"] == {
            "enchantmentId": 3539, "itemId": 44492, "name": "Berserking", "type": "enchant",
        }
        assert result["temporary"] is None
        assert [g["itemId"] for g in result["gems"]] == [40118, 40118]
        assert result["prismatic"]["type"] == "unknown"
        assert wotlkdb.calls_for(7186) == 1
        await resolver.close()

    @pytest.mark.asyncio
    async def test_empty_item_makes_no_requests(self, make_resolver, wotlkdb):
        resolver = make_resolver()

        result = await resolve_equipment(resolver, "0 0 0 0 0 0")

        assert result == {"permanent": None, "temporary": None, "gems": [], "prismatic": None}
        assert wotlkdb.requests == []
        await resolver.close()
