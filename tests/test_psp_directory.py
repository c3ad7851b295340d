"""
PSP Directory Tests
===================
Seed data, exact / prefix / legacy lookups and copy-on-write updates.
"""

import threading

import pytest

from psp_directory import PSPDirectory, default_records, record_from_dict
from qr_errors import InvalidConfiguration
from qr_models import Country, PSPKind, PSPRecord


class TestSeedData:

    def test_kenya_bank_codes(self, directory):
        equity = directory.lookup(Country.KENYA, PSPKind.BANK, "68")

        assert equity.display_name == "Equity Bank Kenya Ltd"
        assert equity.country is Country.KENYA
        assert directory.lookup(Country.KENYA, PSPKind.BANK, "01").display_name == "KCB Bank Kenya Limited"

    def test_kenya_telecoms(self, directory):
        mpesa = directory.lookup(Country.KENYA, PSPKind.MOBILE_MONEY, "01")
        pesapal = directory.lookup(Country.KENYA, PSPKind.PAYMENT_GATEWAY, "12")

        assert mpesa.display_name == "Safaricom M-PESA"
        assert pesapal.display_name == "PesaPal"
        assert directory.lookup(Country.KENYA, PSPKind.MOBILE_MONEY, "12") is None

    def test_tanzania_acquirers_split_by_kind(self, directory):
        crdb = directory.lookup(Country.TANZANIA, PSPKind.BANK, "01007")
        vodacom = directory.lookup(Country.TANZANIA, PSPKind.MOBILE_MONEY, "02101")

        assert crdb.display_name == "CRDB Bank"
        assert vodacom.display_name == "Vodacom M-Pesa Tanzania"

    def test_country_is_part_of_the_key(self, directory):
        assert directory.lookup(Country.TANZANIA, PSPKind.BANK, "68") is None

    def test_default_records_are_unique(self):
        keys = [(r.country, r.kind, r.identifier) for r in default_records()]
        assert len(keys) == len(set(keys))

    def test_records_listing(self, directory):
        telecoms = directory.records(Country.KENYA, PSPKind.MOBILE_MONEY)

        assert [r.identifier for r in telecoms] == ["01", "02", "03", "04"]
        assert len(directory) == len(default_records())


class TestProgressivePrefix:

    def test_longer_identifier_falls_back_to_registered_prefix(self, directory):
        record = directory.lookup_by_progressive_prefix(Country.KENYA, "6822", PSPKind.BANK)

        assert record.identifier == "68"

    def test_unregistered_prefix_is_absent(self, directory):
        assert directory.lookup_by_progressive_prefix(Country.KENYA, "99") is None
        assert directory.lookup_by_progressive_prefix(Country.KENYA, "9") is None
        assert directory.lookup_by_progressive_prefix(Country.KENYA, "") is None

    def test_longest_prefix_wins(self, empty_directory):
        short = PSPRecord(PSPKind.BANK, "12", "Short", Country.KENYA)
        long = PSPRecord(PSPKind.BANK, "1234", "Long", Country.KENYA)
        empty_directory.load_records([short, long])

        assert empty_directory.lookup_by_progressive_prefix(Country.KENYA, "123456").display_name == "Long"
        assert empty_directory.lookup_by_progressive_prefix(Country.KENYA, "1239").display_name == "Short"

    def test_alias_prefix(self, directory):
        record, prefix = directory.match_prefix(Country.KENYA, "2226665", PSPKind.BANK)

        assert record.identifier == "68"
        assert prefix == "22266"

    def test_kind_filter(self, directory):
        bank = directory.lookup_by_progressive_prefix(Country.KENYA, "01254712345678", PSPKind.BANK)
        telecom = directory.lookup_by_progressive_prefix(Country.KENYA, "01254712345678", PSPKind.MOBILE_MONEY)

        assert bank.display_name == "KCB Bank Kenya Limited"
        assert telecom.display_name == "Safaricom M-PESA"

    def test_without_kind_banks_are_tried_first(self, directory):
        record = directory.lookup_by_progressive_prefix(Country.KENYA, "01999")

        assert record.kind is PSPKind.BANK


class TestLegacyCodes:

    def test_four_letter_codes(self, directory):
        assert directory.lookup_legacy_code(Country.KENYA, "EQLT").identifier == "68"
        assert directory.lookup_legacy_code(Country.KENYA, "kcbl").identifier == "01"
        assert directory.lookup_legacy_code(Country.KENYA, "MPSA").kind is PSPKind.MOBILE_MONEY

    def test_unknown_code(self, directory):
        assert directory.lookup_legacy_code(Country.KENYA, "ZZZZ") is None
        assert directory.lookup_legacy_code(Country.KENYA, "") is None
        assert directory.lookup_legacy_code(Country.TANZANIA, "EQLT") is None

    def test_lookup_any(self, directory):
        assert directory.lookup_any(Country.TANZANIA, "02103").display_name == "Airtel Money Tanzania"
        assert directory.lookup_any(Country.TANZANIA, "09999") is None


class TestAdministrativeUpdates:

    def test_register_new_record(self, directory):
        record = PSPRecord(PSPKind.PAYMENT_GATEWAY, "20", "Example Pay", Country.KENYA)

        directory.register(record)

        assert directory.lookup(Country.KENYA, PSPKind.PAYMENT_GATEWAY, "20") is record

    def test_update_replaces_record(self, directory):
        renamed = PSPRecord(PSPKind.BANK, "68", "Equity Bank", Country.KENYA, ("EQLT",))

        directory.register(renamed)

        assert directory.lookup(Country.KENYA, PSPKind.BANK, "68").display_name == "Equity Bank"
        assert directory.lookup_legacy_code(Country.KENYA, "EQLT") is renamed
        # the dropped alias no longer matches
        assert directory.match_prefix(Country.KENYA, "2226665", PSPKind.BANK) is None

    def test_readers_keep_their_snapshot(self, directory):
        before = directory.lookup(Country.KENYA, PSPKind.BANK, "68")

        directory.register(PSPRecord(PSPKind.BANK, "68", "Equity Bank", Country.KENYA))

        assert before.display_name == "Equity Bank Kenya Ltd"

    def test_remove(self, directory):
        removed = directory.remove(Country.KENYA, PSPKind.MOBILE_MONEY, "04")

        assert removed.display_name == "MobiTap"
        assert directory.lookup(Country.KENYA, PSPKind.MOBILE_MONEY, "04") is None
        assert directory.remove(Country.KENYA, PSPKind.MOBILE_MONEY, "04") is None

    def test_load_records_from_dicts(self, empty_directory):
        count = empty_directory.load_records([
            {"country": "TZ", "kind": "bank", "identifier": "01099", "display_name": "New Bank"},
            {"country": "KE", "kind": "bank", "identifier": "99", "display_name": "Test Bank",
             "legacy_codes": ["TSTB"], "aliases": ["9901"]},
        ])

        assert count == 2
        assert empty_directory.lookup_legacy_code(Country.KENYA, "TSTB").identifier == "99"
        assert empty_directory.lookup_any(Country.TANZANIA, "01099").display_name == "New Bank"

    def test_record_from_dict_rejects_bad_input(self):
        with pytest.raises(InvalidConfiguration):
            record_from_dict({"country": "UG", "kind": "bank", "identifier": "1", "display_name": "x"})
        with pytest.raises(InvalidConfiguration):
            record_from_dict({"country": "KE", "kind": "bank", "identifier": "1"})
        with pytest.raises(InvalidConfiguration):
            record_from_dict({"country": "KE", "kind": "bank", "identifier": "", "display_name": "x"})

    def test_concurrent_readers_and_writer(self, directory):
        errors = []
        stop = threading.Event()

        def reader():
            while not stop.is_set():
                record = directory.lookup(Country.KENYA, PSPKind.BANK, "68")
                if record is None or record.identifier != "68":
                    errors.append(record)

        def writer():
            for i in range(200):
                directory.register(PSPRecord(PSPKind.BANK, "68", f"Equity {i}", Country.KENYA))
                directory.register(PSPRecord(PSPKind.BANK, f"9{i % 10}", f"Test {i}", Country.KENYA))

        readers = [threading.Thread(target=reader) for _ in range(4)]
        for t in readers:
            t.start()
        writer()
        stop.set()
        for t in readers:
            t.join()

        assert errors == []
        assert directory.lookup(Country.KENYA, PSPKind.BANK, "68").display_name == "Equity 199"
