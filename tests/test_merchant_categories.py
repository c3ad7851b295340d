"""
Merchant Category Tests
=======================
MCC catalogue lookups and the per-category rules applied to merchant QR codes.
"""

from decimal import Decimal

import pytest

from merchant_categories import (MERCHANT_CATEGORIES, CategoryType, category_for, category_type,
                                 display_name, is_valid_mcc, mccs_for, suggest_mccs, validation_rules)


class TestCatalogue:

    @pytest.mark.parametrize("mcc,valid", [
        ("5411", True),
        ("0000", True),
        ("541", False),
        ("54111", False),
        ("54A1", False),
        ("", False),
        (None, False),
    ])
    def test_is_valid_mcc(self, mcc, valid):
        assert is_valid_mcc(mcc) is valid

    def test_category_for(self):
        assert category_for("5812") == ("Eating Places, Restaurants", CategoryType.RESTAURANT)
        assert category_for("1234") is None

    @pytest.mark.parametrize("mcc,kind", [
        ("6011", CategoryType.FINANCIAL),
        ("6012", CategoryType.FINANCIAL),
        ("5411", CategoryType.RETAIL),
        ("4121", CategoryType.TRANSPORTATION),
        ("5912", CategoryType.HEALTHCARE),
        ("7999", CategoryType.SERVICES),
        ("1234", CategoryType.OTHER),
    ])
    def test_category_type(self, mcc, kind):
        assert category_type(mcc) is kind

    def test_display_name(self):
        assert display_name("6011") == "Financial Services"
        assert display_name("5411") == "Grocery Stores, Supermarkets"
        assert display_name("1234") == "Unknown Merchant (1234)"

    def test_suggest_mccs(self):
        assert suggest_mccs("restaurant") == ["5812", "5814"]
        assert suggest_mccs("STORES")[:2] == ["5311", "5411"]
        assert suggest_mccs("spaceport") == []

    def test_mccs_for(self):
        assert mccs_for(CategoryType.FINANCIAL) == ["6011", "6012"]
        assert mccs_for(CategoryType.GOVERNMENT) == ["9211", "9222", "9311", "9399"]
        assert mccs_for(CategoryType.OTHER) == []

    def test_every_entry_is_a_valid_merchant_code(self):
        for mcc, (description, kind) in MERCHANT_CATEGORIES.items():
            assert is_valid_mcc(mcc)
            assert description
            assert kind not in (CategoryType.FINANCIAL, CategoryType.OTHER)


class TestValidationRules:

    def test_retail(self):
        rules = validation_rules("5411")

        assert rules.requires_amount
        assert rules.requires_city
        assert rules.requires_merchant_name
        assert rules.allows_static_qr
        assert rules.max_amount == Decimal("500000")

    def test_transport_needs_dynamic_qr(self):
        rules = validation_rules("4121")

        assert not rules.allows_static_qr
        assert rules.max_amount == Decimal("50000")

    def test_limits_by_category(self):
        assert validation_rules("4900").max_amount == Decimal("100000")
        assert validation_rules("9311").max_amount is None
        assert validation_rules("1234").max_amount == Decimal("500000")

    def test_person_to_person_amount_is_optional(self):
        assert not validation_rules("6011").requires_amount
