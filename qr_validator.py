# Purpose: Per-tag rules for EMV QR fields, shared by the decoder and the encoder.

import re
from decimal import Decimal, InvalidOperation

from qr_errors import InvalidValue, UnsupportedCountryOrProfile
from qr_models import Country

TEMPLATE_TAGS = tuple(f"{t:02d}" for t in range(26, 52))
EXTENSION_TAGS = tuple(f"{t:02d}" for t in range(80, 100))
CRC_TAG = "63"
FORMAT_VERSION_TAG = "64"

# Tag 59 is read up to 99 characters but written at no more than this.
MAX_ENCODED_NAME_LENGTH = 25

TAG_INFO = {
    "00": {"desc": "Payload Format Indicator", "min_len": 2, "max_len": 2, "pattern": r"^01$"},
    "01": {"desc": "Point of Initiation Method", "min_len": 2, "max_len": 2, "pattern": r"^(11|12)$"},
    "52": {"desc": "Merchant Category Code", "min_len": 4, "max_len": 4, "pattern": r"^\d{4}$"},
    "53": {"desc": "Transaction Currency", "min_len": 3, "max_len": 3, "pattern": r"^\d{3}$"},
    "54": {"desc": "Transaction Amount", "min_len": 1, "max_len": 13, "pattern": r"^(\d+(\.\d*)?|\.\d+)$"},
    "58": {"desc": "Country Code", "min_len": 2, "max_len": 2, "pattern": r"^[A-Z]{2}$"},
    "59": {"desc": "Recipient / Merchant Name", "min_len": 1, "max_len": 99},
    "60": {"desc": "Recipient Identifier / Merchant City", "min_len": 1, "max_len": 99},
    "61": {"desc": "Postal Code", "min_len": 1, "max_len": 10},
    "62": {"desc": "Additional Data Field Template", "min_len": 1, "max_len": 99},
    "63": {"desc": "CRC", "min_len": 4, "max_len": 4, "pattern": r"^[0-9A-Fa-f]{4}$"},
    "64": {"desc": "Format Version", "min_len": 1, "max_len": 99},
}

# Empty templates are well formed; the profile decides whether they route anywhere.
TEMPLATE_RULE = {"desc": "Merchant Account Information", "min_len": 0, "max_len": 99}
EXTENSION_RULE = {"desc": "Extension Field", "min_len": 1, "max_len": 99}

SUBTAG_INFO = {
    "62": {
        "01": {"desc": "Bill Number", "min_len": 1, "max_len": 25},
        "02": {"desc": "Mobile Number", "min_len": 1, "max_len": 25, "pattern": r"^\+?\d+$"},
        "03": {"desc": "Store Label", "min_len": 1, "max_len": 25},
        "04": {"desc": "Loyalty Number", "min_len": 1, "max_len": 25},
        "05": {"desc": "Reference Label", "min_len": 1, "max_len": 25},
        "06": {"desc": "Customer Label", "min_len": 1, "max_len": 25},
        "07": {"desc": "Terminal Label", "min_len": 1, "max_len": 25},
        "08": {"desc": "Purpose of Transaction", "min_len": 1, "max_len": 25},
        "09": {"desc": "Additional Consumer Data Request", "min_len": 1, "max_len": 3,
               "pattern": r"^[AEM]{1,3}$"},
    },
}
SUBTAG_DEFAULT_RULE = {"desc": "Additional Data Sub-field", "min_len": 1, "max_len": 99}

SUPPORTED_COUNTRY_CODES = frozenset(c.value for c in Country)


def rule_for(tag, parent_tag=None):
    if parent_tag is not None:
        return SUBTAG_INFO.get(parent_tag, {}).get(tag, SUBTAG_DEFAULT_RULE)
    if tag in TAG_INFO:
        return TAG_INFO[tag]
    if tag in TEMPLATE_TAGS:
        return TEMPLATE_RULE
    if tag in EXTENSION_TAGS:
        return EXTENSION_RULE
    return None


def validate_field(tag, value, parent_tag=None):
    """Raises InvalidValue (or UnsupportedCountryOrProfile for tag 58) if value breaks its rule."""
    rule = rule_for(tag, parent_tag)
    if rule is None:
        return

    name = f"{parent_tag}.{tag}" if parent_tag else tag
    if not (rule["min_len"] <= len(value) <= rule["max_len"]):
        raise InvalidValue(
            name,
            f"{rule['desc']} must be {rule['min_len']}-{rule['max_len']} characters, got {len(value)}",
            details={"value": value},
        )
    pattern = rule.get("pattern")
    if pattern and not re.match(pattern, value):
        raise InvalidValue(name, f"{rule['desc']} {value!r} does not match {pattern}",
                           details={"value": value})

    if parent_tag is None and tag == "54":
        validate_amount(value)
    if parent_tag is None and tag == "58" and value not in SUPPORTED_COUNTRY_CODES:
        raise UnsupportedCountryOrProfile(f"country {value!r} has no QR profile", tag="58")


def validate_amount(value):
    try:
        amount = Decimal(value)
    except InvalidOperation:
        raise InvalidValue("54", f"amount {value!r} is not a decimal number")
    if not amount.is_finite() or amount <= 0:
        raise InvalidValue("54", f"amount {value!r} must be positive")
    return amount


def validate_order(fields):
    """Tag 63 may only appear once, as the last field, so tag 64 always precedes it."""
    tags = [f.tag for f in fields]
    if tags.count(CRC_TAG) > 1:
        raise InvalidValue(CRC_TAG, "checksum appears more than once")
    if CRC_TAG in tags:
        crc_index = tags.index(CRC_TAG)
        if crc_index != len(tags) - 1:
            if FORMAT_VERSION_TAG in tags[crc_index:]:
                raise InvalidValue(FORMAT_VERSION_TAG, "format version must precede the checksum")
            raise InvalidValue(CRC_TAG, "checksum must be the last field",
                               details={"position": crc_index, "count": len(tags)})


def validate_fields(fields):
    for field in fields:
        validate_field(field.tag, field.value)
    validate_order(fields)


def validate_currency(country, currency_code):
    if currency_code != country.currency:
        raise InvalidValue(
            "53",
            f"currency {currency_code} does not match {country.value} ({country.currency})",
            details={"expected": country.currency, "actual": currency_code},
        )
