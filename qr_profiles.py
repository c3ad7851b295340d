# Purpose: Country profiles (Kenya CBK, Tanzania TIPS) for account templates and required tags.

import logging
import re
from abc import ABC, abstractmethod

from psp_directory import KENYA_DOMESTIC_GUID, TANZANIA_TIPS_GUID
from qr_errors import (CorruptedData, InvalidConfiguration, InvalidLength, InvalidTag,
                       UnsupportedCountryOrProfile)
from qr_models import AccountTemplate, Classification, Country, PSPKind
from qr_tlv import decode_fields, encode_field, encode_fields, field_value
from qr_validator import TEMPLATE_TAGS

logger = logging.getLogger(__name__)

PROFILES = {}


def register_profile(country):
    """Class decorator that makes a CountryProfile subclass available via profile_for()."""
    def decorator(cls):
        cls.country = country
        PROFILES[country] = cls
        return cls
    return decorator


def profile_for(country, directory):
    cls = PROFILES.get(country)
    if cls is None:
        raise UnsupportedCountryOrProfile(f"no QR profile registered for {country}", tag="58")
    return cls(directory)


class TemplateContext:
    """What a resolver strategy may look at: the template field, its sub-fields and the whole payload."""

    def __init__(self, tag, value, payload_fields=()):
        self.tag = tag
        self.value = value
        self.payload_fields = tuple(payload_fields)
        try:
            self.subfields = decode_fields(value, parent_tag=tag)
        except (CorruptedData, InvalidTag, InvalidLength) as e:
            logger.debug("Template %s is not nested TLV: %s", tag, e)
            self.subfields = None

    @classmethod
    def from_field(cls, field, payload_fields=()):
        return cls(field.tag, field.value, payload_fields)

    def sub(self, tag):
        if self.subfields is None:
            return None
        return field_value(self.subfields, tag)

    def payload_value(self, tag):
        return field_value(self.payload_fields, tag)


class CountryProfile(ABC):
    country = None
    guid = None
    currency = None
    max_templates = None
    # Template tag -> PSP kinds it may route to. Tags not listed accept any kind.
    template_kinds = {}
    format_versions = {}
    # Legacy heuristics: (regex, kinds) pairs. Regexes carry a `code` group and optionally
    # `account` and a hex `length`; kinds None means any kind the template tag allows.
    fixed_prefix_patterns = ()
    anchor_patterns = ()
    strategies = ()

    def __init__(self, directory):
        self.directory = directory

    @abstractmethod
    def required_tags(self, classification):
        """Tags that must be present for a payload of this classification."""

    @abstractmethod
    def encode_account_template(self, template):
        """Returns the encoded template field (tag + length + nested value)."""

    def default_format_version(self, classification):
        return self.format_versions.get(classification)

    def allowed_kinds(self, tag):
        return self.template_kinds.get(tag)

    def kind_allowed(self, tag, kind):
        kinds = self.allowed_kinds(tag)
        return kinds is None or kind in kinds

    # --- decoding ---

    def decode_account_template(self, field, payload_fields=()):
        """Runs the resolver strategies in order; None when none of them can route the template."""
        ctx = TemplateContext.from_field(field, payload_fields)
        for strategy in self.strategies:
            template = strategy(self, ctx)
            if template is not None:
                logger.debug("Template %s resolved by %s to %s", field.tag,
                             strategy.__name__, template.psp.display_name)
                return template
        return None

    def _match(self, raw, kinds):
        if kinds is None:
            return self.directory.match_prefix(self.country, raw)
        best = None
        for kind in kinds:
            match = self.directory.match_prefix(self.country, raw, kind)
            if match and (best is None or len(match[1]) > len(best[1])):
                best = match
        return best

    def _resolve_code(self, code, tag, kinds=None):
        record = self.directory.lookup_legacy_code(self.country, code)
        if record is None:
            kinds = kinds or self.allowed_kinds(tag) or tuple(PSPKind)
            for kind in kinds:
                record = self.directory.lookup(self.country, kind, code)
                if record is not None:
                    break
        if record is None or not self.kind_allowed(tag, record.kind):
            return None
        if kinds is not None and record.kind not in kinds:
            return None
        return record

    def _from_match(self, ctx, m, kinds=None):
        groups = m.groupdict()
        record = self._resolve_code(groups["code"], ctx.tag, kinds)
        if record is None:
            return None
        account = groups.get("account") or None
        if account and groups.get("length"):
            account = account[:int(groups["length"], 16)]
        return AccountTemplate(ctx.tag, groups["code"],
                               record.identifier, account, record)

    def _resolve_fixed_prefix(self, ctx):
        for pattern, kinds in self.fixed_prefix_patterns:
            m = pattern.match(ctx.value)
            if m:
                template = self._from_match(ctx, m, kinds)
                if template is not None:
                    return template
        return None

    def _resolve_anchored_substring(self, ctx):
        for pattern, kinds in self.anchor_patterns:
            for m in pattern.finditer(ctx.value):
                template = self._from_match(ctx, m, kinds)
                if template is not None:
                    return template
        return None

    # --- encoding ---

    def known_record(self, template):
        """The directory's copy of a PSP the caller chose explicitly."""
        psp = template.psp
        record = self.directory.lookup(self.country, psp.kind, psp.identifier)
        if record is None or psp.country is not self.country:
            raise InvalidConfiguration(
                f"{psp.display_name} ({psp.kind.value} {psp.identifier}) is not in the "
                f"{self.country.value} PSP directory",
                tag=template.tag,
            )
        if template.participant_id and template.participant_id != record.identifier:
            raise InvalidConfiguration(
                f"participant {template.participant_id!r} does not match {record.display_name} "
                f"({record.identifier})",
                tag=template.tag,
            )
        return record

    def resolve_request_psp(self, template):
        """Directory record a request template routes to, or InvalidConfiguration."""
        if template.psp is not None:
            return self.known_record(template)
        kinds = self.allowed_kinds(template.tag) or tuple(PSPKind)
        for kind in kinds:
            record = self.directory.lookup(self.country, kind, template.participant_id or "")
            if record is not None:
                return record
        raise InvalidConfiguration(
            f"participant {template.participant_id!r} is not a known {self.country.value} PSP "
            f"for template {template.tag}",
            tag=template.tag,
        )

    def check_templates(self, templates):
        """Validates request templates against this profile and returns them sorted, PSPs filled in."""
        if not templates:
            raise InvalidConfiguration("at least one account template is required", tag="26-51")
        if self.max_templates is not None and len(templates) > self.max_templates:
            raise InvalidConfiguration(
                f"{self.country.value} profile allows {self.max_templates} account template(s), "
                f"got {len(templates)}",
                details={"count": len(templates)},
            )
        tags = [t.tag for t in templates]
        duplicates = sorted({t for t in tags if tags.count(t) > 1})
        if duplicates:
            raise InvalidConfiguration(f"duplicate account template tags {duplicates}", tag=duplicates[0])

        checked = []
        for template in templates:
            if template.tag not in TEMPLATE_TAGS:
                raise InvalidConfiguration(f"tag {template.tag} is outside the 26-51 template range",
                                           tag=template.tag)
            record = self.resolve_request_psp(template)
            if not self.kind_allowed(template.tag, record.kind):
                raise InvalidConfiguration(
                    f"{record.display_name} ({record.kind.value}) cannot be routed through tag {template.tag}",
                    tag=template.tag,
                )
            checked.append(AccountTemplate(template.tag, template.guid,
                                           template.participant_id or record.identifier,
                                           template.account_id, record))
        return sorted(checked, key=lambda t: t.tag)


BASE_REQUIRED_TAGS = ("00", "01", "52", "53", "63")

KENYA_MSISDN_OPERATORS = (
    ("73", "02"),
    ("75", "02"),
    ("78", "02"),
    ("10", "02"),
    ("77", "03"),
)
MPESA_OPERATOR = "01"
# Payload extension fields that point a bare domestic template at M-PESA: (tag, marker)
MPESA_EXTENSION_HINTS = (
    ("83", "m-pesa.com"),
    ("82", KENYA_DOMESTIC_GUID),
)


@register_profile(Country.KENYA)
class KenyaProfile(CountryProfile):
    guid = KENYA_DOMESTIC_GUID
    currency = "404"
    template_kinds = {
        "28": (PSPKind.MOBILE_MONEY, PSPKind.PAYMENT_GATEWAY),
        "29": (PSPKind.BANK,),
    }
    format_versions = {
        Classification.P2P: "P2P-KE-01",
        Classification.P2M: "P2M-KE-01",
    }
    fixed_prefix_patterns = (
        (re.compile(r"^0002(?P<code>[A-Z]{4})01(?P<length>[0-9A-Fa-f]{2})(?P<account>\w+)"),
         (PSPKind.BANK,)),
        (re.compile(r"^0001(?P<code>\d{2})01(?P<length>[0-9A-Fa-f]{2})(?P<account>\w+)"),
         (PSPKind.MOBILE_MONEY, PSPKind.PAYMENT_GATEWAY)),
    )
    anchor_patterns = (
        (re.compile(r"(?P<code>[A-Z]{4})[^0-9A-Za-z]*(?P<account>\d*)"), None),
    )

    def required_tags(self, classification):
        name_tag = "60" if classification is Classification.P2P else "59"
        return BASE_REQUIRED_TAGS + (name_tag,)

    def operator_for_msisdn(self, msisdn):
        """Mobile-money operator for a Kenyan phone number, local (07..., 7...) or 254 form."""
        digits = msisdn.lstrip("+")
        if digits.startswith("254"):
            local = digits[3:]
        elif digits.startswith("0"):
            local = digits[1:]
        else:
            local = digits
        if len(local) != 9 or not local.isdigit() or local[0] not in "71":
            return None
        code = MPESA_OPERATOR
        for prefix, operator in KENYA_MSISDN_OPERATORS:
            if local.startswith(prefix):
                code = operator
                break
        return self.directory.lookup(self.country, PSPKind.MOBILE_MONEY, code)

    @staticmethod
    def _account_after_prefix(record, prefix, raw):
        return raw if prefix in record.aliases else raw[len(prefix):] or None

    def _resolve_domestic(self, ctx):
        if ctx.sub("00") != KENYA_DOMESTIC_GUID:
            return None
        kinds = self.allowed_kinds(ctx.tag)
        for sub_tag in ("68", "07"):
            raw = ctx.sub(sub_tag)
            if not raw:
                continue
            match = self._match(raw, kinds)
            if match is None:
                continue
            record, prefix = match
            account = self._account_after_prefix(record, prefix, raw)
            return AccountTemplate(ctx.tag, KENYA_DOMESTIC_GUID, record.identifier, account, record)

        msisdn = ctx.sub("01")
        if msisdn and self.kind_allowed(ctx.tag, PSPKind.MOBILE_MONEY):
            record = self.operator_for_msisdn(msisdn)
            if record is not None:
                return AccountTemplate(ctx.tag, KENYA_DOMESTIC_GUID, record.identifier, msisdn, record)
        return None

    def _resolve_extension_hint(self, ctx):
        if ctx.sub("00") != KENYA_DOMESTIC_GUID or any(ctx.sub(t) for t in ("68", "07", "01")):
            return None
        if not self.kind_allowed(ctx.tag, PSPKind.MOBILE_MONEY):
            return None
        hinted = [tag for tag, marker in MPESA_EXTENSION_HINTS
                  if marker in (ctx.payload_value(tag) or "").lower()]
        if not hinted:
            return None
        logger.debug("Template %s routed to M-PESA by extension field %s", ctx.tag, hinted[0])
        record = self.directory.lookup(self.country, PSPKind.MOBILE_MONEY, MPESA_OPERATOR)
        if record is None:
            return None
        return AccountTemplate(ctx.tag, KENYA_DOMESTIC_GUID, record.identifier, None, record)

    def _resolve_legacy_guid(self, ctx):
        guid = ctx.sub("00")
        if not guid or guid == KENYA_DOMESTIC_GUID:
            return None
        record = self.directory.lookup_legacy_code(self.country, guid)
        if record is None or not self.kind_allowed(ctx.tag, record.kind):
            return None
        return AccountTemplate(ctx.tag, guid, record.identifier, ctx.sub("01"), record)

    strategies = (
        _resolve_domestic,
        _resolve_extension_hint,
        _resolve_legacy_guid,
        CountryProfile._resolve_fixed_prefix,
        CountryProfile._resolve_anchored_substring,
    )

    def resolve_request_psp(self, template):
        if template.guid == KENYA_DOMESTIC_GUID:
            if not template.participant_id and template.psp is None:
                raise InvalidConfiguration("domestic templates need a participant id", tag=template.tag)
            return super().resolve_request_psp(template)
        record = self.directory.lookup_legacy_code(self.country, template.guid)
        if record is None:
            raise InvalidConfiguration(f"unknown template GUID {template.guid!r}", tag=template.tag)
        if template.psp is not None and self.known_record(template) != record:
            raise InvalidConfiguration(
                f"GUID {template.guid!r} routes to {record.display_name}, not {template.psp.display_name}",
                tag=template.tag,
            )
        return record

    def _routes_back(self, tag, raw, record, account):
        match = self._match(raw, self.allowed_kinds(tag))
        if match is None or match[0] != record:
            return False
        return self._account_after_prefix(record, match[1], raw) == (account or None)

    def domestic_account_field(self, template):
        """
        Sub-field carrying a domestic template's participant and account.

        Normally 68 = participant + account. On tags that take any PSP kind a bank code
        wins over a mobile-money code with the same digits, so a mobile-money template
        whose account is one of the operator's phone numbers is written as 01 = MSISDN
        instead. Anything else that would read back as another PSP is refused.
        """
        value = (template.participant_id or "") + (template.account_id or "")
        record = template.psp
        if record is None or self._routes_back(template.tag, value, record, template.account_id):
            return "68", value
        msisdn = template.account_id
        if (msisdn and record.kind is PSPKind.MOBILE_MONEY
                and self.kind_allowed(template.tag, PSPKind.MOBILE_MONEY)
                and self.operator_for_msisdn(msisdn) == record):
            return "01", msisdn
        raise InvalidConfiguration(
            f"{record.display_name} ({record.kind.value}) would be read back as another PSP "
            f"from tag {template.tag}",
            tag=template.tag,
        )

    def encode_account_template(self, template):
        if template.guid == KENYA_DOMESTIC_GUID:
            value = encode_fields([("00", KENYA_DOMESTIC_GUID), self.domestic_account_field(template)])
        else:
            if not template.account_id:
                raise InvalidConfiguration("legacy GUID templates need an account id", tag=template.tag)
            value = encode_fields([("00", template.guid), ("01", template.account_id)])
        return encode_field(template.tag, value)


TANZANIA_TEMPLATE_TAG = "26"


@register_profile(Country.TANZANIA)
class TanzaniaProfile(CountryProfile):
    guid = TANZANIA_TIPS_GUID
    currency = "834"
    max_templates = 1
    fixed_prefix_patterns = (
        (re.compile(r"^0014tz\.go\.bot\.tips0105(?P<code>\d{5})(?:02\d{2}(?P<account>\w+))?"), None),
    )
    anchor_patterns = (
        (re.compile(r"tips(?:01\d{2})?[^0-9]*(?P<code>0[12]\d{3})(?:02\d{2}(?P<account>\w+))?",
                    re.IGNORECASE), None),
    )

    def required_tags(self, classification):
        name_tag = "60" if classification is Classification.P2P else "59"
        return BASE_REQUIRED_TAGS + ("58", name_tag)

    def _resolve_tips(self, ctx):
        if ctx.tag != TANZANIA_TEMPLATE_TAG or ctx.sub("00") != TANZANIA_TIPS_GUID:
            return None
        acquirer = ctx.sub("01")
        if not acquirer or len(acquirer) != 5 or not acquirer.isdigit():
            return None
        record = self.directory.lookup_any(self.country, acquirer)
        if record is None:
            return None
        return AccountTemplate(ctx.tag, TANZANIA_TIPS_GUID, acquirer, ctx.sub("02"), record)

    def _from_match(self, ctx, m, kinds=None):
        template = super()._from_match(ctx, m, kinds)
        if template is None:
            return None
        return AccountTemplate(template.tag, TANZANIA_TIPS_GUID, template.participant_id,
                               template.account_id, template.psp)

    strategies = (
        _resolve_tips,
        CountryProfile._resolve_fixed_prefix,
        CountryProfile._resolve_anchored_substring,
    )

    def check_templates(self, templates):
        for template in templates:
            if template.tag != TANZANIA_TEMPLATE_TAG or template.guid != TANZANIA_TIPS_GUID:
                raise InvalidConfiguration(
                    f"Tanzania QR codes carry one tag {TANZANIA_TEMPLATE_TAG} template "
                    f"with GUID {TANZANIA_TIPS_GUID}",
                    tag=template.tag,
                )
        return super().check_templates(templates)

    def encode_account_template(self, template):
        acquirer = template.participant_id or ""
        if len(acquirer) != 5 or not acquirer.isdigit():
            raise InvalidConfiguration(f"TIPS acquirer id {acquirer!r} must be 5 digits", tag=template.tag)
        if not template.account_id:
            raise InvalidConfiguration("TIPS templates need a merchant id", tag=template.tag)
        value = encode_fields([
            ("00", TANZANIA_TIPS_GUID),
            ("01", acquirer),
            ("02", template.account_id),
        ])
        return encode_field(template.tag, value)
