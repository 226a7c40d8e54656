"""Tests for canned replies and unique test data."""

import random

import pytest

from whatsapp_bot_tests.auto_responder import AutoResponseContext, decide_reply, matching_rule
from whatsapp_bot_tests.unique import (
    generate_crop_data,
    to_base36,
    unique_name,
    unique_suffix,
)


def fixed_clock():
    return 1.0


@pytest.mark.auto_responder
class TestDecideReply:

    @pytest.mark.parametrize("prompt,expected", [
        ("Indique el nombre del cultivo", "maíz"),
        ("Escriba el nombre del producto o cultivo", "maíz"),
        ("¿Cuál es el nombre de la variedad?", "p 8660"),
        ("Indique el destino del cultivo", "pienso"),
        ("NOMBRE DE LA GRANJA:", "granja-test"),
        ("Escriba el nombre del campo", "campo-test"),
        ("¿Qué dosis aplicó?", "100"),
    ])
    def test_fixed_answers(self, prompt, expected):
        assert decide_reply(prompt, "fallback") == expected

    def test_brand_uses_created_name(self):
        context = AutoResponseContext(created_name="Cultivo 1700000000")
        assert decide_reply("Indique la marca del cultivo", "x", context) == "Cultivo 1700000000"

    def test_brand_generated(self):
        context = AutoResponseContext(clock=fixed_clock)
        # 1000 ms in base36
        assert decide_reply("Indique la marca del cultivo", "x", context) == "marca-auto-rs"

    def test_campaign(self):
        context = AutoResponseContext(clock=fixed_clock)
        assert decide_reply("Nombre de la campaña", "x", context) == "campaña-test-rs"

    def test_price_with_skip(self):
        assert decide_reply("Indique el precio o escriba omitir", "10") == "omitir"
        context = AutoResponseContext(skip_keyword="saltar")
        assert decide_reply("Precio (escriba saltar para continuar)", "10", context) == "saltar"
        assert decide_reply("Indique el precio", "10") == "10"

    @pytest.mark.parametrize("prompt", ["Operación cancelada", "El cultivo ya existe", "Hola"])
    def test_fallback(self, prompt):
        assert decide_reply(prompt, "menu") == "menu"

    def test_empty_prompt(self):
        assert decide_reply("", "menu") == "menu"
        assert decide_reply(None, "menu") == "menu"

    def test_first_rule_wins(self):
        assert decide_reply("Nombre del cultivo y dosis", "x") == "maíz"


@pytest.mark.auto_responder
class TestMatchingRule:

    def test_matched(self):
        assert matching_rule("Indique el nombre del cultivo") == 0
        assert matching_rule("El cultivo ya existe") is not None

    def test_unmatched(self):
        assert matching_rule("Hola") is None
        assert matching_rule("") is None


@pytest.mark.auto_responder
class TestUniqueData:

    @pytest.mark.parametrize("number,encoded", [(0, "0"), (35, "z"), (36, "10"), (1000, "rs")])
    def test_to_base36(self, number, encoded):
        assert to_base36(number) == encoded

    def test_to_base36_negative(self):
        with pytest.raises(ValueError):
            to_base36(-1)

    def test_unique_name(self):
        assert unique_name("Cultivo", clock=lambda: 1700000000.9) == "Cultivo 1700000000"

    def test_unique_suffix_varies(self):
        rng = random.Random(7)
        first = unique_suffix(clock=lambda: 1700000000.0, rng=rng)
        second = unique_suffix(clock=lambda: 1700000000.0, rng=rng)
        assert len(first) == 9
        assert first[:5] == second[:5]
        assert first != second

    def test_generate_crop_data(self):
        data = generate_crop_data(clock=lambda: 1700000000.0, rng=random.Random(3))
        assert data["name"] == "maíz"
        assert data["variety"].startswith("p 8660-")
        assert data["destination"].startswith("pienso-")
        assert data["brand"].startswith("marcax-")
