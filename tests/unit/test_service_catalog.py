"""
Unit tests for the service catalog and price quoting.
"""

import pytest

from licitadesk.services.service_catalog import (
    ADMINISTRATIVE_APPEAL,
    base_category,
    category_matches,
    get_category,
    grouped_categories,
    has_upgrade,
    quote_price,
)


class TestCategoryTags:
    def test_base_category_strips_upgrade(self):
        assert base_category("recurso-administrativo+upgrade") == ADMINISTRATIVE_APPEAL
        assert base_category("consulta") == "consulta"
        assert base_category(None) is None

    def test_has_upgrade(self):
        assert has_upgrade("contrarrazoes+upgrade")
        assert not has_upgrade("contrarrazoes")
        assert not has_upgrade(None)

    def test_category_matches_ignores_upgrade(self):
        assert category_matches("recurso-administrativo+upgrade", ADMINISTRATIVE_APPEAL)
        assert not category_matches("impugnacao-edital", ADMINISTRATIVE_APPEAL)

    def test_unknown_category(self):
        assert get_category("nope") is None


class TestGroups:
    def test_groups_keep_catalog_order(self):
        groups = grouped_categories()
        assert list(groups)[0] == "Inteligência"
        assert [c.id for c in groups["Técnico"]] == [
            "impugnacao-edital",
            "recurso-administrativo",
            "contrarrazoes",
        ]

    def test_only_tecnico_is_upgradeable(self):
        for group, categories in grouped_categories().items():
            for category in categories:
                assert category.upgradeable == (group == "Técnico")


class TestQuotePrice:
    def test_regular_and_subscriber_prices(self):
        assert quote_price(ADMINISTRATIVE_APPEAL, paid_subscriber=False) == "R$ 2.500,00"
        assert quote_price(ADMINISTRATIVE_APPEAL, paid_subscriber=True) == "R$ 1.800,00"
        assert quote_price("consulta", paid_subscriber=True) == "Incluso (até 4/mês)"

    def test_upgrade_is_appended(self):
        assert (
            quote_price("recurso-administrativo+upgrade", paid_subscriber=True)
            == "R$ 1.800,00 + R$ 1.000,00 (Upgrade)"
        )
        assert (
            quote_price("recurso-administrativo+upgrade", paid_subscriber=False)
            == "R$ 2.500,00 + R$ 2.500,00 (Upgrade)"
        )

    def test_upgrade_outside_tecnico(self):
        with pytest.raises(ValueError, match="upgrade"):
            quote_price("consulta+upgrade", paid_subscriber=False)

    def test_unknown_category(self):
        with pytest.raises(ValueError, match="Unknown"):
            quote_price("nope", paid_subscriber=False)
