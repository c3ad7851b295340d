# Purpose: Value types shared by the QR decoder, encoder and PSP directory.

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from qr_tlv import Field


class Country(Enum):
    KENYA = "KE"
    TANZANIA = "TZ"

    @property
    def currency(self):
        return COUNTRY_CURRENCY[self]

    @classmethod
    def from_code(cls, code):
        for country in cls:
            if country.value == code:
                return country
        return None


# ISO 4217 numeric currency per supported country
COUNTRY_CURRENCY = {
    Country.KENYA: "404",
    Country.TANZANIA: "834",
}


class PSPKind(Enum):
    # Declaration order is the search order for kind-less lookups.
    BANK = "bank"
    MOBILE_MONEY = "mobile_money"
    PAYMENT_GATEWAY = "payment_gateway"
    UNIFIED = "unified"


class InitiationMethod(Enum):
    STATIC = "11"
    DYNAMIC = "12"


class Classification(Enum):
    P2P = "person_to_person"
    P2M = "person_to_merchant"


P2P_MERCHANT_CATEGORY_CODES = frozenset({"6011", "6012"})


def classify(merchant_category_code):
    if merchant_category_code in P2P_MERCHANT_CATEGORY_CODES:
        return Classification.P2P
    return Classification.P2M


@dataclass(frozen=True)
class PSPRecord:
    kind: PSPKind
    identifier: str
    display_name: str
    country: Country
    legacy_codes: Tuple[str, ...] = ()
    aliases: Tuple[str, ...] = ()

    def to_dict(self):
        return {
            "kind": self.kind.value,
            "identifier": self.identifier,
            "display_name": self.display_name,
            "country": self.country.value,
        }


@dataclass(frozen=True)
class AccountTemplate:
    tag: str
    guid: str
    participant_id: Optional[str] = None
    account_id: Optional[str] = None
    psp: Optional[PSPRecord] = None

    def to_dict(self):
        return {
            "tag": self.tag,
            "guid": self.guid,
            "participant_id": self.participant_id,
            "account_id": self.account_id,
            "psp": self.psp.to_dict() if self.psp else None,
        }


# Sub-tags of tag 62 with a name; everything in CUSTOM_SUBTAG_RANGE is kept verbatim.
ADDITIONAL_DATA_SUBTAGS = {
    "01": "bill_number",
    "02": "mobile_number",
    "03": "store_label",
    "04": "loyalty_number",
    "05": "reference_label",
    "06": "customer_label",
    "07": "terminal_label",
    "08": "purpose_of_transaction",
    "09": "additional_consumer_data_request",
    "20": "merchant_category",
    "21": "merchant_sub_category",
}
CUSTOM_SUBTAG_RANGE = range(50, 100)
CUSTOM_SUBTAGS = tuple(f"{t:02d}" for t in CUSTOM_SUBTAG_RANGE)


@dataclass(frozen=True)
class AdditionalData:
    bill_number: Optional[str] = None
    mobile_number: Optional[str] = None
    store_label: Optional[str] = None
    loyalty_number: Optional[str] = None
    reference_label: Optional[str] = None
    customer_label: Optional[str] = None
    terminal_label: Optional[str] = None
    purpose_of_transaction: Optional[str] = None
    additional_consumer_data_request: Optional[str] = None
    merchant_category: Optional[str] = None
    merchant_sub_category: Optional[str] = None
    custom_fields: Tuple[Tuple[str, str], ...] = ()

    @classmethod
    def from_dict(cls, data):
        named = {name: data[name] for name in ADDITIONAL_DATA_SUBTAGS.values() if data.get(name)}
        custom = data.get("custom_fields") or {}
        return cls(custom_fields=tuple(sorted(custom.items())), **named)

    def subfields(self):
        """(tag, value) pairs in ascending tag order, empty values skipped."""
        pairs = []
        for tag, name in ADDITIONAL_DATA_SUBTAGS.items():
            value = getattr(self, name)
            if value:
                pairs.append((tag, value))
        pairs.extend(self.custom_fields)
        return sorted(pairs)

    def is_empty(self):
        return not self.subfields()

    def to_dict(self):
        data = {name: getattr(self, name) for name in ADDITIONAL_DATA_SUBTAGS.values()
                if getattr(self, name) is not None}
        data["custom_fields"] = dict(self.custom_fields)
        return data


@dataclass(frozen=True)
class DecodedPayload:
    fields: Tuple[Field, ...]
    payload_format_indicator: str
    initiation_method: InitiationMethod
    account_templates: Tuple[AccountTemplate, ...]
    merchant_category_code: str
    currency_code: str
    country_code: str
    country: Country
    classification: Classification
    checksum: str
    amount: Optional[Decimal] = None
    recipient_name: Optional[str] = None
    recipient_identifier: Optional[str] = None
    postal_code: Optional[str] = None
    additional_data: Optional[AdditionalData] = None
    format_version: Optional[str] = None
    extensions: Tuple[Tuple[str, str], ...] = ()

    @property
    def is_dynamic(self):
        return self.initiation_method is InitiationMethod.DYNAMIC

    @property
    def primary_psp(self):
        return self.account_templates[0].psp if self.account_templates else None

    def to_dict(self):
        return {
            "payload_format_indicator": self.payload_format_indicator,
            "initiation_method": self.initiation_method.name.lower(),
            "classification": self.classification.value,
            "account_templates": [t.to_dict() for t in self.account_templates],
            "merchant_category_code": self.merchant_category_code,
            "amount": str(self.amount) if self.amount is not None else None,
            "currency_code": self.currency_code,
            "country_code": self.country_code,
            "recipient_name": self.recipient_name,
            "recipient_identifier": self.recipient_identifier,
            "postal_code": self.postal_code,
            "additional_data": self.additional_data.to_dict() if self.additional_data else None,
            "format_version": self.format_version,
            "extensions": dict(self.extensions),
            "checksum": self.checksum,
        }


@dataclass(frozen=True)
class GenerationRequest:
    country: Country
    initiation_method: InitiationMethod
    account_templates: Tuple[AccountTemplate, ...]
    merchant_category_code: str
    recipient_name: Optional[str] = None
    recipient_identifier: Optional[str] = None
    merchant_city: Optional[str] = None
    amount: Optional[Decimal] = None
    currency_code: Optional[str] = None
    postal_code: Optional[str] = None
    additional_data: Optional[AdditionalData] = None
    format_version: Optional[str] = None
    extensions: Tuple[Tuple[str, str], ...] = ()

    @property
    def classification(self):
        return classify(self.merchant_category_code)


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a non-raising decode: the errors that stopped it, or warnings about a usable payload."""
    is_valid: bool
    errors: Tuple[Exception, ...] = ()
    warnings: Tuple[str, ...] = ()
    country: Optional[Country] = None
    classification: Optional[Classification] = None

    def to_dict(self):
        return {
            "is_valid": self.is_valid,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": list(self.warnings),
            "country": self.country.value if self.country else None,
            "classification": self.classification.value if self.classification else None,
        }
