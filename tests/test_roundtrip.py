"""
Round-trip Tests
================
Whatever the encoder produces, the decoder must read back to the same routing.
"""

import dataclasses
from decimal import Decimal

import pytest

from psp_directory import KENYA_DOMESTIC_GUID, TANZANIA_TIPS_GUID
from qr_models import AccountTemplate, AdditionalData, Classification, Country, InitiationMethod, PSPKind


class TestRoundTrip:

    def test_kenya_p2p(self, encoder, decoder, kenya_p2p_request):
        result = decoder.decode(encoder.encode(kenya_p2p_request))

        assert result.classification is Classification.P2P
        assert result.recipient_name == "JOHN DOE"
        assert result.recipient_identifier == "254712345678"
        template = result.account_templates[0]
        assert (template.tag, template.participant_id, template.account_id) == ("28", "01", "254712345678")
        assert template.psp.display_name == "Safaricom M-PESA"

    def test_kenya_p2m(self, encoder, decoder, kenya_p2m_request):
        result = decoder.decode(encoder.encode(kenya_p2m_request))

        assert result.amount == Decimal("1500.00")
        assert result.postal_code == "00100"
        assert result.format_version == "P2M-KE-01"
        assert result.additional_data == kenya_p2m_request.additional_data
        assert result.primary_psp.identifier == "68"
        assert result.account_templates[0].account_id == "1234567890"

    def test_tanzania(self, encoder, decoder, tanzania_p2m_request):
        result = decoder.decode(encoder.encode(tanzania_p2m_request))

        assert result.country is Country.TANZANIA
        assert result.account_templates[0] == AccountTemplate(
            "26", TANZANIA_TIPS_GUID, "01007", "MER12345",
            decoder.directory.lookup_any(Country.TANZANIA, "01007"),
        )

    def test_legacy_guid_template(self, encoder, decoder, kenya_p2p_request):
        request = dataclasses.replace(kenya_p2p_request, account_templates=(
            AccountTemplate("29", "EQLT", None, "2040881022296"),
        ))

        template = decoder.decode(encoder.encode(request)).account_templates[0]

        assert template.guid == "EQLT"
        assert template.account_id == "2040881022296"

    @pytest.mark.parametrize("participant,account", [
        ("01", "254712345678"),
        ("02", "254733123456"),
        ("03", "0771234567"),
        ("12", "PP00042"),
    ])
    def test_every_telecom_routes_back(self, encoder, decoder, kenya_p2p_request, participant, account):
        request = dataclasses.replace(kenya_p2p_request, account_templates=(
            AccountTemplate("28", KENYA_DOMESTIC_GUID, participant, account),
        ))

        template = decoder.decode(encoder.encode(request)).account_templates[0]

        assert template.participant_id == participant
        assert template.account_id == account

    def test_all_optional_fields(self, encoder, decoder, kenya_p2m_request):
        request = dataclasses.replace(
            kenya_p2m_request,
            additional_data=AdditionalData(
                bill_number="B1", mobile_number="+254712345678", store_label="S1",
                loyalty_number="L1", reference_label="R1", customer_label="C1",
                terminal_label="T1", purpose_of_transaction="P1",
                additional_consumer_data_request="AME",
            ),
            extensions=(("83", "www.m-pesa.com"), ("99", "X")),
        )

        result = decoder.decode(encoder.encode(request))

        assert result.additional_data == request.additional_data
        assert result.extensions == (("83", "www.m-pesa.com"), ("99", "X"))

    def test_static_merchant(self, encoder, decoder, kenya_p2m_request):
        request = dataclasses.replace(kenya_p2m_request, initiation_method=InitiationMethod.STATIC, amount=None)

        result = decoder.decode(encoder.encode(request))

        assert result.initiation_method is InitiationMethod.STATIC
        assert result.amount is None

    def test_chosen_mobile_money_psp_on_shared_tag(self, encoder, decoder, directory, kenya_p2p_request):
        mpesa = directory.lookup(Country.KENYA, PSPKind.MOBILE_MONEY, "01")
        request = dataclasses.replace(kenya_p2p_request, account_templates=(
            AccountTemplate("30", KENYA_DOMESTIC_GUID, "01", "254712345678", mpesa),
        ))

        payload = encoder.encode(request)

        # KCB Bank also has code 01, so the phone number carries the routing
        assert "30280008ke.go.qr0112254712345678" in payload
        template = decoder.decode(payload).account_templates[0]
        assert template.psp == mpesa
        assert (template.participant_id, template.account_id) == ("01", "254712345678")

    def test_shared_tag_without_chosen_psp_is_a_bank(self, encoder, decoder, kenya_p2p_request):
        request = dataclasses.replace(kenya_p2p_request, account_templates=(
            AccountTemplate("30", KENYA_DOMESTIC_GUID, "01", "1234567890"),
        ))

        template = decoder.decode(encoder.encode(request)).account_templates[0]

        assert template.psp.display_name == "KCB Bank Kenya Limited"
        assert template.account_id == "1234567890"

    def test_custom_additional_data(self, encoder, decoder, kenya_p2m_request):
        request = dataclasses.replace(kenya_p2m_request, additional_data=AdditionalData(
            bill_number="B1", custom_fields=(("50", "X"), ("99", "Y")),
        ))

        result = decoder.decode(encoder.encode(request))

        assert result.additional_data.custom_fields == (("50", "X"), ("99", "Y"))
