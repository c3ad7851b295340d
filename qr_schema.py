# Purpose: Validate JSON / YAML request templates and turn them into GenerationRequest objects.

import functools
import os
from decimal import Decimal, InvalidOperation

import referencing
import yaml
from jsonschema import Draft7Validator
from jsonschema.exceptions import ValidationError
from referencing.jsonschema import DRAFT7

from qr_errors import InvalidConfiguration, InvalidValue
from qr_models import AccountTemplate, AdditionalData, Country, GenerationRequest, InitiationMethod, classify
from qr_profiles import PROFILES

# --- CONFIGURATION ---
SCHEMA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "schemas", "generation_request.yaml")
SCHEMA_URI = "http://qr-codec.local/generation_request.yaml"
AUTO_FORMAT_VERSION = "auto"


@functools.lru_cache(maxsize=None)
def load_schema_registry(path=SCHEMA_PATH):
    with open(path, "r") as f:
        schema = yaml.safe_load(f)
    resource = referencing.Resource.from_contents(schema, default_specification=DRAFT7)
    return referencing.Registry().with_resource(uri=SCHEMA_URI, resource=resource)


def validate_template(data, schema_name="GenerationRequest"):
    """Raises InvalidConfiguration if data does not match the named schema definition."""
    target_schema = {"$ref": f"{SCHEMA_URI}#/definitions/{schema_name}"}
    validator = Draft7Validator(target_schema, registry=load_schema_registry())
    try:
        validator.validate(data)
    except ValidationError as e:
        location = "/".join(str(p) for p in e.absolute_path) or "<root>"
        raise InvalidConfiguration(
            f"{schema_name} template invalid at {location}: {e.message}",
            details={"path": location, "schema": schema_name},
        )


def load_document(path):
    """Reads a JSON or YAML file (JSON is valid YAML)."""
    with open(path, "r") as f:
        return yaml.safe_load(f)


def parse_amount(value):
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        raise InvalidValue("54", f"amount {value!r} is not a decimal number")


def request_from_dict(data, validate=True):
    if validate:
        validate_template(data)

    country = Country(data["country"])
    profile_cls = PROFILES[country]
    merchant_category_code = data["merchant_category_code"]

    templates = tuple(
        AccountTemplate(
            tag=t["tag"],
            guid=t.get("guid") or profile_cls.guid,
            participant_id=t.get("participant_id"),
            account_id=t.get("account_id"),
        )
        for t in data.get("account_templates") or ()
    )

    format_version = data.get("format_version")
    if format_version == AUTO_FORMAT_VERSION:
        format_version = profile_cls.format_versions.get(classify(merchant_category_code))

    additional = data.get("additional_data")
    extensions = data.get("extensions") or {}

    return GenerationRequest(
        country=country,
        initiation_method=InitiationMethod[data["initiation_method"].upper()],
        account_templates=templates,
        merchant_category_code=merchant_category_code,
        recipient_name=data.get("recipient_name"),
        recipient_identifier=data.get("recipient_identifier"),
        merchant_city=data.get("merchant_city"),
        amount=parse_amount(data.get("amount")),
        currency_code=data.get("currency_code"),
        postal_code=data.get("postal_code"),
        additional_data=AdditionalData.from_dict(additional) if additional else None,
        format_version=format_version,
        extensions=tuple(sorted((str(k), v) for k, v in extensions.items())),
    )


def load_request(path, validate=True):
    return request_from_dict(load_document(path), validate=validate)


def load_psp_updates(path, validate=True):
    records = load_document(path) or []
    if validate:
        validate_template(records, "PSPUpdates")
    return records
