"""
Pytest configuration
====================
Shared fixtures: a fresh PSP directory per test, decoder / encoder bound to it,
and request builders for the common Kenya and Tanzania cases.
"""

from decimal import Decimal

import pytest

from psp_directory import KENYA_DOMESTIC_GUID, TANZANIA_TIPS_GUID, PSPDirectory
from qr_generator import Encoder
from qr_models import (AccountTemplate, AdditionalData, Country, GenerationRequest,
                       InitiationMethod)
from qr_parser import Decoder


# ============================================================================
# DIRECTORY FIXTURES
# ============================================================================

@pytest.fixture
def directory():
    """Seeded directory, isolated per test so administrative updates do not leak"""
    return PSPDirectory.with_defaults()


@pytest.fixture
def empty_directory():
    return PSPDirectory()


# ============================================================================
# CODEC FIXTURES
# ============================================================================

@pytest.fixture
def decoder(directory):
    return Decoder(directory)


@pytest.fixture
def encoder(directory):
    return Encoder(directory)


# ============================================================================
# REQUEST FIXTURES
# ============================================================================

@pytest.fixture
def kenya_p2p_request():
    """Static M-PESA person-to-person request"""
    return GenerationRequest(
        country=Country.KENYA,
        initiation_method=InitiationMethod.STATIC,
        account_templates=(AccountTemplate("28", KENYA_DOMESTIC_GUID, "01", "254712345678"),),
        merchant_category_code="6011",
        recipient_name="JOHN DOE",
        recipient_identifier="254712345678",
    )


@pytest.fixture
def kenya_p2m_request():
    """Dynamic Equity merchant request with additional data and a format version"""
    return GenerationRequest(
        country=Country.KENYA,
        initiation_method=InitiationMethod.DYNAMIC,
        account_templates=(AccountTemplate("29", KENYA_DOMESTIC_GUID, "68", "1234567890"),),
        merchant_category_code="5411",
        recipient_name="MAMA MBOGA",
        merchant_city="NAIROBI",
        amount=Decimal("1500"),
        postal_code="00100",
        additional_data=AdditionalData(
            bill_number="INV001",
            purpose_of_transaction="FOOD",
            custom_fields=(("50", "ABC12"),),
        ),
        format_version="P2M-KE-01",
    )


@pytest.fixture
def tanzania_p2m_request():
    """Dynamic TIPS merchant request routed to CRDB"""
    return GenerationRequest(
        country=Country.TANZANIA,
        initiation_method=InitiationMethod.DYNAMIC,
        account_templates=(AccountTemplate("26", TANZANIA_TIPS_GUID, "01007", "MER12345"),),
        merchant_category_code="5411",
        recipient_name="DUKA LA JUMA",
        merchant_city="DAR ES SALAAM",
        amount=Decimal("10.50"),
    )
