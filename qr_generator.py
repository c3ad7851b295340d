# Purpose: Build Kenya / Tanzania EMV QR payload strings from payment requests.
# Run directly with a JSON or YAML request template: python qr_generator.py templates/ke_p2p_mpesa.json

import argparse
import logging
import os
import sys
from decimal import Decimal

import yaml

from psp_directory import PSPDirectory
from qr_crc import append_checksum
from qr_errors import CodecError, InvalidConfiguration, InvalidValue, MissingRequiredField
from qr_logging import setup_logging
from qr_models import CUSTOM_SUBTAGS, Classification, InitiationMethod
from qr_parser import Decoder
from qr_profiles import profile_for
from qr_schema import load_psp_updates, load_request
from qr_tlv import encode_field, encode_fields
from qr_validator import EXTENSION_TAGS, MAX_ENCODED_NAME_LENGTH, validate_currency, validate_field

logger = logging.getLogger(__name__)

# --- CONFIGURATION ---
QR_TEXT_FILE = "qrcode.txt"
PAYLOAD_FORMAT_INDICATOR = "01"
CENT = Decimal("0.01")


def format_amount(amount):
    """Two-decimal tag 54 text. Amounts finer than a cent are refused rather than rounded."""
    amount = Decimal(amount)
    if amount.is_finite() and amount.quantize(CENT) != amount:
        raise InvalidValue("54", f"amount {amount} has more than two decimal places")
    return f"{amount:.2f}"


def check_custom_subfields(additional_data):
    for tag, value in additional_data.custom_fields:
        if tag not in CUSTOM_SUBTAGS:
            raise InvalidValue(f"62.{tag}", f"custom additional data tag {tag!r} must be 50-99",
                               details={"value": value})


class Encoder:
    """
    Builds the payload for a GenerationRequest.

    Field order: 00, 01, account templates by ascending tag, 52, 53, 54, 58, 59, 60,
    61, 62, extension fields 80-99, 64, then 63 computed over everything before its value.
    """

    def __init__(self, directory):
        self.directory = directory

    def encode(self, request):
        profile = profile_for(request.country, self.directory)
        templates = profile.check_templates(list(request.account_templates))
        parts = []

        def emit(tag, value):
            validate_field(tag, value)
            parts.append(encode_field(tag, value))

        def emit_name(name):
            if len(name) > MAX_ENCODED_NAME_LENGTH:
                raise InvalidValue("59", f"name must be at most {MAX_ENCODED_NAME_LENGTH} characters, "
                                         f"got {len(name)}", details={"value": name})
            emit("59", name)

        emit("00", PAYLOAD_FORMAT_INDICATOR)
        emit("01", request.initiation_method.value)
        for template in templates:
            parts.append(profile.encode_account_template(template))

        emit("52", request.merchant_category_code)

        currency_code = request.currency_code or profile.currency
        validate_currency(request.country, currency_code)
        emit("53", currency_code)

        if request.amount is not None:
            if request.initiation_method is InitiationMethod.DYNAMIC:
                emit("54", format_amount(request.amount))
            else:
                logger.warning("Dropping amount %s from a static QR", request.amount)

        emit("58", request.country.value)

        if request.classification is Classification.P2P:
            if not request.recipient_identifier:
                raise MissingRequiredField("60", "person-to-person QR needs a recipient identifier")
            if request.recipient_name:
                emit_name(request.recipient_name)
            emit("60", request.recipient_identifier)
        else:
            if not request.recipient_name:
                raise MissingRequiredField("59", "merchant QR needs a merchant name")
            emit_name(request.recipient_name)
            city_or_id = request.merchant_city or request.recipient_identifier
            if city_or_id:
                emit("60", city_or_id)

        if request.postal_code:
            emit("61", request.postal_code)

        if request.additional_data is not None and not request.additional_data.is_empty():
            check_custom_subfields(request.additional_data)
            subfields = request.additional_data.subfields()
            for tag, value in subfields:
                validate_field(tag, value, parent_tag="62")
            emit("62", encode_fields(subfields))

        for tag, value in sorted(request.extensions):
            if tag not in EXTENSION_TAGS:
                raise InvalidConfiguration(f"tag {tag} is not an extension field (80-99)", tag=tag)
            emit(tag, value)

        if request.format_version:
            emit("64", request.format_version)

        payload = append_checksum("".join(parts))
        logger.debug("Encoded %s %s QR with %d template(s)", request.country.value,
                     request.classification.value, len(templates))
        return payload


def main(argv=None):
    parser = argparse.ArgumentParser(description="Kenya / Tanzania EMV QR Code Generator")
    parser.add_argument("template", help="Path to the JSON or YAML request template")
    parser.add_argument("--output", default=QR_TEXT_FILE, help=f"Payload output file (default: {QR_TEXT_FILE})")
    parser.add_argument("--psp-updates", help="YAML/JSON list of PSP records to add before encoding")
    parser.add_argument("--no-validate", action="store_true", help="Skip JSON schema validation of the template")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    setup_logging("DEBUG" if args.verbose else "WARNING")

    if not os.path.exists(args.template):
        print(f"QR_GENERATOR: [!] Error: Template file '{args.template}' not found.")
        return 1

    directory = PSPDirectory.with_defaults()
    try:
        if args.psp_updates:
            count = directory.load_records(load_psp_updates(args.psp_updates, validate=not args.no_validate))
            print(f"QR_GENERATOR: [*] Loaded {count} PSP record(s) from '{args.psp_updates}'.")

        print(f"QR_GENERATOR: [*] Processing template: {args.template}")
        request = load_request(args.template, validate=not args.no_validate)
        if not args.no_validate:
            print("QR_GENERATOR: [OK] Template validated against GenerationRequest")

        qr_string = Encoder(directory).encode(request)
        result = Decoder(directory).decode(qr_string)
    except CodecError as e:
        print(f"QR_GENERATOR: [!] {e}")
        return 1
    except (OSError, ValueError, yaml.YAMLError) as e:
        print(f"QR_GENERATOR: [!] Error reading input: {e}")
        return 1

    print(f"QR_GENERATOR: [OK] Round-trip decode: {len(result.account_templates)} template(s), "
          f"{result.classification.value}")

    with open(args.output, "w") as f:
        f.write(qr_string)
    print(f"QR_GENERATOR: [*] Raw QR string saved to '{args.output}'.")
    print(qr_string)
    return 0


if __name__ == "__main__":
    sys.exit(main())
