# Purpose: Decode Kenya / Tanzania EMV QR payloads into structured, PSP-resolved results.
# Run directly to inspect a payload: python qr_parser.py [--file qrcode.txt | --payload ...]

import argparse
import json
import logging
import os
import sys
from decimal import Decimal

from merchant_categories import check_merchant_payload, display_name
from psp_directory import PSPDirectory
from qr_crc import compute_checksum
from qr_errors import CodecError, CorruptedData, InvalidChecksum, MissingRequiredField
from qr_logging import setup_logging
from qr_models import (ADDITIONAL_DATA_SUBTAGS, CUSTOM_SUBTAGS, AdditionalData, Country,
                       DecodedPayload, InitiationMethod, ValidationResult, classify)
from qr_profiles import profile_for
from qr_tlv import decode_fields, decode_nested, field_value, find_field
from qr_validator import (CRC_TAG, EXTENSION_TAGS, MAX_ENCODED_NAME_LENGTH, TEMPLATE_TAGS, rule_for,
                          validate_currency, validate_field, validate_fields)

logger = logging.getLogger(__name__)

# --- CONFIGURATION ---
QR_TEXT_FILE = "qrcode.txt"
DEFAULT_COUNTRY = Country.KENYA

WARN_MULTIPLE_TEMPLATES = "multiple account templates"
WARN_MISSING_OPTIONAL = "missing optional field {tag}"
WARN_LONG_NAME = "recipient name longer than {limit} characters"

TEMPLATE_SUBTAG_DESC = {
    "00": "Globally Unique Identifier",
    "01": "Participant / Account Identifier",
    "02": "Merchant Identifier",
    "07": "Merchant Identifier",
    "68": "Participant + Account Identifier",
}


class Decoder:
    """
    Turns a payload string into a DecodedPayload.

    Stages run in a fixed order: TLV split, per-field validation, required tags,
    checksum, country, account templates, field extraction. Anything failing before
    the account templates aborts with a CodecError; a template no strategy can route
    is logged and left out.
    """

    def __init__(self, directory):
        self.directory = directory

    def decode(self, payload):
        if not payload:
            raise CorruptedData("payload is empty")

        fields = decode_fields(payload)
        validate_fields(fields)

        country_code = field_value(fields, "58")
        country = Country.from_code(country_code) if country_code else DEFAULT_COUNTRY
        profile = profile_for(country, self.directory)
        currency_code = field_value(fields, "53")
        if currency_code is not None:
            validate_currency(country, currency_code)

        merchant_category_code = field_value(fields, "52")
        classification = classify(merchant_category_code)
        for tag in profile.required_tags(classification):
            if find_field(fields, tag) is None:
                raise MissingRequiredField(tag)
        template_fields = [f for f in fields if f.tag in TEMPLATE_TAGS]
        if not template_fields:
            raise MissingRequiredField("26-51", "no account template (tags 26-51) present")

        checksum = self.verify_checksum(payload, fields)

        if country_code is None:
            logger.warning("Payload has no country code (tag 58), assuming %s", country.value)
            country_code = country.value

        templates = []
        for field in template_fields:
            template = profile.decode_account_template(field, fields)
            if template is None:
                logger.warning("Skipping account template %s: no PSP matches %r", field.tag, field.value)
                continue
            templates.append(template)
        if not templates:
            logger.warning("None of %d account template(s) could be routed", len(template_fields))

        recipient_name = field_value(fields, "59")
        if recipient_name and len(recipient_name) > MAX_ENCODED_NAME_LENGTH:
            logger.warning("Recipient name is %d characters, longer than the recommended %d",
                           len(recipient_name), MAX_ENCODED_NAME_LENGTH)

        amount = field_value(fields, "54")
        additional = find_field(fields, "62")

        return DecodedPayload(
            fields=fields,
            payload_format_indicator=field_value(fields, "00"),
            initiation_method=InitiationMethod(field_value(fields, "01")),
            account_templates=tuple(templates),
            merchant_category_code=merchant_category_code,
            currency_code=currency_code,
            country_code=country_code,
            country=country,
            classification=classification,
            checksum=checksum,
            amount=Decimal(amount) if amount is not None else None,
            recipient_name=recipient_name,
            recipient_identifier=field_value(fields, "60"),
            postal_code=field_value(fields, "61"),
            additional_data=decode_additional_data(additional.value) if additional else None,
            format_version=field_value(fields, "64"),
            extensions=tuple((f.tag, f.value) for f in fields if f.tag in EXTENSION_TAGS),
        )

    def verify_checksum(self, payload, fields):
        crc_field = fields[-1]
        if crc_field.tag != CRC_TAG:
            raise MissingRequiredField(CRC_TAG)
        domain = payload[:len(payload) - crc_field.length]
        expected = compute_checksum(domain)
        if expected != crc_field.value.upper():
            raise InvalidChecksum(expected, crc_field.value)
        return expected

    def validate(self, payload):
        """Runs decode() and reports the outcome instead of raising."""
        try:
            result = self.decode(payload)
        except CodecError as e:
            return ValidationResult(False, errors=(e,))
        return ValidationResult(True, warnings=tuple(payload_warnings(result)),
                                country=result.country, classification=result.classification)

    def decode_merchant(self, payload):
        """decode() plus the merchant-category rules (amount limit, static QR allowance)."""
        result = self.decode(payload)
        check_merchant_payload(result)
        return result


def payload_warnings(result):
    """Things a valid payload is missing or overdoes."""
    warnings = []
    if len(result.account_templates) > 1:
        warnings.append(WARN_MULTIPLE_TEMPLATES)
    if result.format_version is None:
        warnings.append(WARN_MISSING_OPTIONAL.format(tag="64"))
    if result.recipient_name is None:
        warnings.append(WARN_MISSING_OPTIONAL.format(tag="59"))
    elif len(result.recipient_name) > MAX_ENCODED_NAME_LENGTH:
        warnings.append(WARN_LONG_NAME.format(limit=MAX_ENCODED_NAME_LENGTH))
    return warnings


def decode_additional_data(value):
    """Tag 62 sub-fields; a malformed template here fails the whole decode."""
    named = {}
    custom = []
    for sub in decode_fields(value, parent_tag="62"):
        validate_field(sub.tag, sub.value, parent_tag="62")
        if sub.tag in ADDITIONAL_DATA_SUBTAGS:
            named[ADDITIONAL_DATA_SUBTAGS[sub.tag]] = sub.value
        elif sub.tag in CUSTOM_SUBTAGS:
            custom.append((sub.tag, sub.value))
        else:
            logger.debug("Ignoring additional data sub-tag %s", sub.tag)
    return AdditionalData(custom_fields=tuple(custom), **named)


def describe(tag, parent_tag=None):
    if parent_tag in TEMPLATE_TAGS:
        return TEMPLATE_SUBTAG_DESC.get(tag, "Template Sub-field")
    if parent_tag in EXTENSION_TAGS:
        return "Extension Sub-field"
    rule = rule_for(tag, parent_tag)
    return rule["desc"] if rule else "Unknown / RFU"


def field_status(tag, value, parent_tag=None):
    try:
        validate_field(tag, value, parent_tag=parent_tag)
    except CodecError as e:
        return f"[{e.code}]"
    return "[OK]"


def print_field_table(payload):
    print(f"\n{'TAG':5} | {'LEN':3} | {'VALID':20} | {'DESCRIPTION':36} | {'VALUE'}")
    print("-" * 110)
    try:
        tree = decode_nested(payload)
    except CodecError as e:
        print(f"QR_PARSER: [!] Cannot split payload into fields: {e}")
        return

    for field, children in tree:
        print(f"{field.tag:5} | {field.length:02}  | {field_status(field.tag, field.value):20} | "
              f"{describe(field.tag):36} | {field.value}")
        if field.tag in TEMPLATE_TAGS or field.tag == "62" or field.tag in EXTENSION_TAGS:
            for sub, _ in children:
                status = field_status(sub.tag, sub.value, "62") if field.tag == "62" else "[OK]"
                print(f"{field.tag}.{sub.tag} | {sub.length:02}  | {status:20} | "
                      f"{describe(sub.tag, field.tag):36} | {sub.value}")


def print_summary(result):
    print(f"\nQR_PARSER: [OK] CRC-16/CCITT-FALSE Valid: {result.checksum}")
    print(f"QR_PARSER: [*] Country: {result.country_code}  Currency: {result.currency_code}  "
          f"MCC: {result.merchant_category_code} ({result.classification.value})")
    print(f"QR_PARSER: [*] Category: {display_name(result.merchant_category_code)}")
    print(f"QR_PARSER: [*] Initiation: {result.initiation_method.name.lower()}  "
          f"Amount: {result.amount if result.amount is not None else '-'}")
    print(f"QR_PARSER: [*] Recipient: {result.recipient_name or '-'} / {result.recipient_identifier or '-'}")
    for template in result.account_templates:
        print(f"QR_PARSER: [*] Template {template.tag}: {template.psp.display_name} "
              f"({template.psp.kind.value} {template.participant_id}) account {template.account_id or '-'}")
    for warning in payload_warnings(result):
        print(f"QR_PARSER: [*] Warning: {warning}")


def main(argv=None):
    parser = argparse.ArgumentParser(description="Decode a Kenya / Tanzania EMV QR payload.")
    parser.add_argument("--file", default=QR_TEXT_FILE, help=f"File holding the payload (default: {QR_TEXT_FILE})")
    parser.add_argument("--payload", help="Payload string, overrides --file")
    parser.add_argument("--json", action="store_true", help="Print the decoded result as JSON")
    parser.add_argument("--merchant", action="store_true",
                        help="Also apply the merchant-category rules (amount limit, static QR allowance)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    setup_logging("DEBUG" if args.verbose else "WARNING")

    if args.payload:
        qr_content = args.payload.strip()
    else:
        if not os.path.exists(args.file):
            print(f"QR_PARSER: [!] Error: {args.file} not found. Run qr_generator.py first.")
            return 1
        with open(args.file, "r") as f:
            qr_content = f.read().strip()

    decoder = Decoder(PSPDirectory.with_defaults())
    try:
        result = decoder.decode_merchant(qr_content) if args.merchant else decoder.decode(qr_content)
    except CodecError as e:
        if args.json:
            print(json.dumps(e.to_dict(), indent=2))
        else:
            print(f"QR_PARSER: [!] Decode failed: {e}")
            print_field_table(qr_content)
        return 1

    if args.json:
        print(json.dumps(result.to_dict(), indent=2))
        return 0

    print("=" * 110)
    print("EMV QR PARSER - KENYA / TANZANIA")
    print("=" * 110)
    print(f"Raw Content: {qr_content}")
    print_field_table(qr_content)
    print_summary(result)
    print("=" * 110)
    return 0


if __name__ == "__main__":
    sys.exit(main())
