# Purpose: Reference table of payment service providers for the Kenya and Tanzania QR profiles.

import logging
import threading

from qr_errors import InvalidConfiguration
from qr_models import Country, PSPKind, PSPRecord

logger = logging.getLogger(__name__)

# --- SCHEME GUIDS ---
KENYA_DOMESTIC_GUID = "ke.go.qr"
TANZANIA_TIPS_GUID = "tz.go.bot.tips"

DOMESTIC_GUIDS = {
    Country.KENYA: KENYA_DOMESTIC_GUID,
    Country.TANZANIA: TANZANIA_TIPS_GUID,
}

MIN_PREFIX_LENGTH = 2

# --- SEED DATA ---
# CBK two digit bank codes: (code, name, legacy GUIDs, extra prefixes)
KENYA_BANKS = [
    ("01", "KCB Bank Kenya Limited", ("KCBL", "KCBK"), ()),
    ("02", "Standard Chartered Bank Kenya Ltd", ("SCBK",), ()),
    ("03", "ABSA Bank Kenya PLC", ("ABSA",), ()),
    ("05", "Bank of India", (), ()),
    ("06", "Bank of Baroda (Kenya) Ltd", (), ()),
    ("07", "NCBA Kenya PLC", (), ()),
    ("10", "Prime Bank Ltd", (), ()),
    ("11", "Co-operative Bank of Kenya Ltd", ("COOP",), ()),
    ("12", "National Bank of Kenya Ltd", (), ()),
    ("14", "M-Oriental Bank Limited", (), ()),
    ("16", "Citibank N.A. Kenya", (), ()),
    ("17", "Habib Bank AG Zurich", (), ()),
    ("18", "Middle East Bank Kenya Ltd", (), ()),
    ("19", "Bank of Africa Kenya Ltd", (), ()),
    ("23", "Consolidated Bank of Kenya Ltd", (), ()),
    ("25", "Credit Bank Ltd", ("CRED",), ()),
    ("26", "Access Bank (Kenya) Ltd", (), ()),
    ("30", "Chase Bank (K) Ltd", (), ()),
    ("31", "Stanbic Bank Kenya Ltd", ("STAN",), ()),
    ("35", "African Banking Corporation Ltd", (), ()),
    ("39", "Imperial Bank Ltd", (), ()),
    ("43", "Ecobank Kenya Ltd", (), ()),
    ("49", "Spire Bank Ltd", (), ()),
    ("50", "Paramount Bank Ltd", (), ()),
    ("51", "Kingdom Bank Ltd", (), ()),
    ("53", "Guaranty Trust Bank (Kenya) Ltd", (), ()),
    ("54", "Victoria Commercial Bank Ltd", (), ()),
    ("55", "Guardian Bank Ltd", (), ()),
    ("57", "I&M Bank Ltd", ("IMBA",), ()),
    ("59", "Development Bank of Kenya Ltd", (), ()),
    ("60", "SBM Bank (Kenya) Ltd", (), ()),
    ("63", "Diamond Trust Bank (K) Ltd", ("DIAM",), ()),
    ("64", "Charterhouse Bank Ltd", (), ()),
    ("65", "Mayfair CIB Bank Ltd", (), ()),
    ("66", "Sidian Bank Ltd", (), ()),
    # Equity merchant QRs in circulation carry 22266... instead of the CBK code.
    ("68", "Equity Bank Kenya Ltd", ("EQLT",), ("22266",)),
    ("70", "Family Bank Ltd", ("FAMI",), ()),
    ("72", "Gulf African Bank Ltd", (), ()),
    ("74", "First Community Bank Ltd", (), ()),
    ("75", "DIB Bank Kenya Ltd", (), ()),
    ("76", "UBA Kenya Bank Ltd", (), ()),
    ("83", "HFC Limited", (), ()),
]

KENYA_TELECOMS = [
    ("01", "Safaricom M-PESA", PSPKind.MOBILE_MONEY, ("MPSA",)),
    ("02", "Airtel Money", PSPKind.MOBILE_MONEY, ("AMNY",)),
    ("03", "Telkom T-Kash", PSPKind.MOBILE_MONEY, ("TKSH",)),
    ("04", "MobiTap", PSPKind.MOBILE_MONEY, ("MTAP",)),
    ("12", "PesaPal", PSPKind.PAYMENT_GATEWAY, ("PESP",)),
]

# TIPS acquirer IDs: 01xxx banks, 02xxx non-bank (mobile money) participants
TANZANIA_ACQUIRERS = [
    ("01032", "ABSA Bank Tanzania Limited"),
    ("01010", "Akiba Commercial Bank"),
    ("01036", "Amana Bank"),
    ("01028", "Azania Bank"),
    ("01041", "Bank of Baroda"),
    ("01030", "Bank of Africa"),
    ("01020", "Bank of Tanzania"),
    ("01040", "Canara Bank"),
    ("01034", "NCBA Bank"),
    ("01038", "Citi Bank"),
    ("01007", "CRDB Bank"),
    ("01022", "DCB Commercial Bank"),
    ("01026", "Diamond Trust Bank"),
    ("01024", "Ecobank"),
    ("01037", "Equity Bank"),
    ("01023", "Exim Bank"),
    ("01035", "Guaranty Trust Bank"),
    ("01033", "Habib Bank"),
    ("01039", "I&M Bank (Tanzania) Ltd"),
    ("01031", "KCB Bank"),
    ("01008", "National Bank of Commerce"),
    ("01006", "National Microfinance Bank (NMB)"),
    ("01019", "Peoples Bank of Zanzibar"),
    ("01027", "Standard Chartered Bank"),
    ("01025", "Stanbic Bank"),
    ("01021", "Tanzania Investment Bank"),
    ("01009", "Tanzania Postal Bank"),
    ("01029", "United Bank for Africa (Tanzania)"),
    ("02101", "Vodacom M-Pesa Tanzania"),
    ("02102", "Tigo Pesa"),
    ("02103", "Airtel Money Tanzania"),
    ("02104", "Azam Pay"),
    ("02105", "PesaPal Tanzania"),
]


def default_records():
    records = []
    for code, name, legacy, aliases in KENYA_BANKS:
        records.append(PSPRecord(PSPKind.BANK, code, name, Country.KENYA, legacy, aliases))
    for code, name, kind, legacy in KENYA_TELECOMS:
        records.append(PSPRecord(kind, code, name, Country.KENYA, legacy))
    for code, name in TANZANIA_ACQUIRERS:
        kind = PSPKind.BANK if code.startswith("01") else PSPKind.MOBILE_MONEY
        records.append(PSPRecord(kind, code, name, Country.TANZANIA))
    return records


def record_from_dict(data):
    """Builds a PSPRecord from a mapping such as one entry of a YAML update file."""
    try:
        country = Country(data["country"])
        kind = PSPKind(data["kind"])
        identifier = str(data["identifier"])
        display_name = str(data["display_name"])
    except KeyError as e:
        raise InvalidConfiguration(f"PSP record is missing {e.args[0]!r}", details={"record": data})
    except ValueError as e:
        raise InvalidConfiguration(f"PSP record is invalid: {e}", details={"record": data})

    if not identifier or not display_name:
        raise InvalidConfiguration("PSP record needs an identifier and a display name",
                                   details={"record": data})

    return PSPRecord(
        kind=kind,
        identifier=identifier,
        display_name=display_name,
        country=country,
        legacy_codes=tuple(data.get("legacy_codes") or ()),
        aliases=tuple(str(a) for a in data.get("aliases") or ()),
    )


class _Snapshot:
    """Immutable index over one generation of records; replaced wholesale on every write."""

    def __init__(self, records):
        self.records = dict(records)
        self.prefixes = {}
        self.legacy = {}
        self.max_prefix = MIN_PREFIX_LENGTH
        for (country, kind, identifier), record in self.records.items():
            for prefix in (identifier,) + record.aliases:
                self.prefixes.setdefault((country, kind, prefix), record)
                self.max_prefix = max(self.max_prefix, len(prefix))
            for code in record.legacy_codes:
                self.legacy.setdefault((country, code.upper()), record)


class PSPDirectory:
    """
    Read-mostly registry of PSP records keyed by (country, kind, identifier).

    Readers grab the current snapshot reference and never lock. Writers copy the
    record table under a lock, apply their change and publish a new snapshot.
    """

    def __init__(self, records=()):
        self._lock = threading.Lock()
        self._snapshot = _Snapshot({})
        if records:
            self.load_records(records)

    @classmethod
    def with_defaults(cls):
        return cls(default_records())

    # --- reads ---

    def lookup(self, country, kind, identifier):
        return self._snapshot.records.get((country, kind, identifier))

    def lookup_any(self, country, identifier):
        snapshot = self._snapshot
        for kind in PSPKind:
            record = snapshot.records.get((country, kind, identifier))
            if record is not None:
                return record
        return None

    def lookup_legacy_code(self, country, code):
        if not code:
            return None
        return self._snapshot.legacy.get((country, code.upper()))

    def match_prefix(self, country, raw_identifier, kind=None):
        """
        Longest registered prefix of raw_identifier, then shorter ones down to two characters.

        Returns (record, matched_prefix) or None. Without a kind, kinds are tried in
        declaration order at each length.
        """
        if not raw_identifier:
            return None
        snapshot = self._snapshot
        kinds = [kind] if kind is not None else list(PSPKind)
        longest = min(len(raw_identifier), snapshot.max_prefix)
        for length in range(longest, MIN_PREFIX_LENGTH - 1, -1):
            prefix = raw_identifier[:length]
            for k in kinds:
                record = snapshot.prefixes.get((country, k, prefix))
                if record is not None:
                    return record, prefix
        return None

    def lookup_by_progressive_prefix(self, country, raw_identifier, kind=None):
        match = self.match_prefix(country, raw_identifier, kind)
        return match[0] if match else None

    def records(self, country=None, kind=None):
        selected = [
            r for r in self._snapshot.records.values()
            if (country is None or r.country is country) and (kind is None or r.kind is kind)
        ]
        return sorted(selected, key=lambda r: (r.country.value, r.kind.value, r.identifier))

    def __len__(self):
        return len(self._snapshot.records)

    # --- administrative writes ---

    def register(self, record):
        """Inserts or replaces one record."""
        self.load_records([record])
        return record

    def load_records(self, records):
        """Inserts or replaces many records in one published update."""
        parsed = [r if isinstance(r, PSPRecord) else record_from_dict(r) for r in records]
        with self._lock:
            table = dict(self._snapshot.records)
            for record in parsed:
                key = (record.country, record.kind, record.identifier)
                if key in table:
                    logger.info("Updating PSP %s/%s/%s", record.country.value, record.kind.value, record.identifier)
                table[key] = record
            self._snapshot = _Snapshot(table)
        logger.debug("PSP directory now holds %d records", len(table))
        return len(parsed)

    def remove(self, country, kind, identifier):
        with self._lock:
            table = dict(self._snapshot.records)
            record = table.pop((country, kind, identifier), None)
            if record is not None:
                self._snapshot = _Snapshot(table)
        return record
