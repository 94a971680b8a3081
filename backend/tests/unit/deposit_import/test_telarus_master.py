"""Unit tests for the reference layout master table and template matching.

Fixture reports under fixtures/ mimic real Telarus vendor exports, including
the trailing space some vendors leave in header cells.
"""

from pathlib import Path

import pytest

from domain.deposit_import.field_catalog import DepositImportTargetIds
from domain.deposit_import.mapping_v2 import seed_deposit_mapping_v2
from domain.deposit_import.multi_vendor import parse_amount
from infrastructure.parsers import parse_deposit_file
from infrastructure.reference_data import (
    TelarusTemplateMaster,
    find_telarus_template_match,
    get_telarus_template_master,
)
from infrastructure.reference_data.telarus_master import score_company_candidate

FIXTURES = Path(__file__).parent / "fixtures"

USAGE = DepositImportTargetIds.USAGE
COMMISSION = DepositImportTargetIds.COMMISSION


class TestScoreCompanyCandidate:
    """Test vendor/company scoring"""

    def test_exact(self):
        assert score_company_candidate("acc business", "acc business") == 1000

    def test_prefix(self):
        assert score_company_candidate("acc business", "acc business wholesale") == 890
        assert score_company_candidate("lumen technologies inc", "lumen technologies") == 876

    def test_substring(self):
        assert score_company_candidate("business", "acc business") == 796
        assert score_company_candidate("the acc business co", "acc business") == 773

    def test_token_overlap(self):
        assert score_company_candidate("comcast business services", "business comcast") == 702

    def test_weak_overlap_is_zero(self):
        assert score_company_candidate("acc business", "comcast business") == 0
        assert score_company_candidate("", "acc business") == 0


class TestBundledMaster:
    """Test matching against the bundled master table"""

    def test_acc_business(self):
        match = find_telarus_template_match("Telarus", "ACC Business")

        assert match.template_id == "2364"
        assert match.template_map_name == "Telarus-ACC Business"
        assert match.mapping.targets[USAGE] == "Total Bill"
        assert match.mapping.targets[COMMISSION] == "Total Commission"
        assert match.mapping.targets["depositLineItem.accountNameRaw"] == "Customer Name"
        assert match.mapping.targets["depositLineItem.vendorNameRaw"] == "Supplier Name"
        assert match.mapping.targets["depositLineItem.distributorNameRaw"] == "Acquired Master Agency Name"
        assert match.mapping.columns["Circuit ID"].mode == "additional"

        blocks = {field.telarus_field_name: field.block for field in match.template_fields}
        assert blocks["Customer Name"] == "common"
        assert blocks["Total Bill"] == "template"
        assert "Commission Period" in blocks

    def test_advantix(self):
        match = find_telarus_template_match("Telarus", "Advantix")

        assert match.template_id == "2492"
        assert match.mapping.targets["depositLineItem.locationId"] == "Location ID"
        assert match.mapping.targets["depositLineItem.paymentDate"] == "Invoice Date"
        assert match.mapping.columns["SKU"].mode == "additional"

    def test_prefix_match_prefers_closest_company(self):
        match = find_telarus_template_match("Telarus", "ACC Business Wholesale")
        assert match.template_id == "2365"

    def test_template_row_overrides_common_target(self):
        match = find_telarus_template_match("Telarus", "Lumen")
        assert match.template_id == "2610"
        assert match.mapping.targets["depositLineItem.accountNameRaw"] == "Company"
        assert "Customer Name" not in match.mapping.columns

    def test_origin_filter(self):
        avant = find_telarus_template_match("Avant", "ACC Business")
        assert avant.template_id == "9101"
        assert [field.block for field in avant.template_fields] == ["template"] * 3

        assert find_telarus_template_match("Telarus Partners", "ACC Business").template_id == "2364"
        assert find_telarus_template_match("Intelisys", "ACC Business") is None

    def test_unknown_vendor_or_blank_names(self):
        assert find_telarus_template_match("Telarus", "Verizon") is None
        assert find_telarus_template_match("", "ACC Business") is None
        assert find_telarus_template_match("Telarus", "  ") is None

    def test_to_template_fields(self):
        record = find_telarus_template_match("Telarus", "ACC Business").to_template_fields()
        assert record.version == 1
        assert record.template_id == "2364"
        assert record.company_name == "ACC Business"
        assert len(record.fields) == 10

    def test_master_is_cached(self):
        assert get_telarus_template_master() is get_telarus_template_master()


class TestCustomMaster:
    """Test master table edge cases"""

    def test_tied_companies_are_ambiguous(self, master_csv_path):
        path = master_csv_path([
            "Telarus-Foo One,Telarus,Foo One,1,Residual,1,Bill,Actual Usage",
            "Telarus-Foo Two,Telarus,Foo Two,2,Residual,2,Bill,Actual Usage",
        ])
        master = TelarusTemplateMaster.from_csv(path)

        assert find_telarus_template_match("Telarus", "Foo", master=master) is None
        assert find_telarus_template_match("Telarus", "Foo One", master=master).template_id == "1"

    def test_group_without_fields(self, master_csv_path):
        path = master_csv_path(["Other-X,Other,X Co,7,,,,"])
        master = TelarusTemplateMaster.from_csv(path)
        assert find_telarus_template_match("Other", "X Co", master=master) is None

    def test_short_and_blank_rows_ignored(self, master_csv_path):
        path = master_csv_path([
            "a,b",
            ",,,,,,,",
            "Telarus-Foo,Telarus,Foo,3,Residual,3,Net,Actual Usage",
        ])
        master = TelarusTemplateMaster.from_csv(path)
        assert len(master.groups) == 1
        assert master.groups[0].rows[0].telarus_field_name == "Net"

    def test_master_path_from_settings(self, master_csv_path, monkeypatch):
        path = master_csv_path(["Telarus-Foo,Telarus,Foo,3,Residual,3,Net,Actual Usage"])
        monkeypatch.setenv("TELARUS_MASTER_CSV_PATH", str(path))

        match = find_telarus_template_match("Telarus", "Foo")
        assert match.mapping.targets[USAGE] == "Net"

    def test_missing_master_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            TelarusTemplateMaster.from_csv(tmp_path / "missing.csv")


class TestSeedFromReportFixtures:
    """Test seeding a live upload from a reference layout"""

    @pytest.mark.asyncio
    async def test_acc_business_report(self):
        table = await parse_deposit_file((FIXTURES / "telarus_acc_business.csv").read_bytes(), "acc.csv")
        vendor = table.column_values("Supplier Name")[0]
        distributor = table.column_values("Acquired Master Agency Name")[0]

        match = find_telarus_template_match(distributor, vendor)
        mapping = seed_deposit_mapping_v2(table.headers, match.mapping)

        usage_index = table.headers.index(mapping.targets[USAGE])
        commission_index = table.headers.index(mapping.targets[COMMISSION])
        assert parse_amount(table.rows[0][usage_index]) == 1250.0
        assert parse_amount(table.rows[0][commission_index]) == 187.5
        assert mapping.targets[DepositImportTargetIds.COMMISSION_RATE] == "Commission Rate"
        assert mapping.columns["Circuit ID"].mode == "additional"

    @pytest.mark.asyncio
    async def test_advantix_report_with_padded_header(self):
        table = await parse_deposit_file((FIXTURES / "telarus_advantix.csv").read_bytes(), "advantix.csv")
        match = find_telarus_template_match("Telarus", table.column_values("Supplier Name")[0])
        mapping = seed_deposit_mapping_v2(table.headers, match.mapping)

        assert mapping.targets[USAGE] == "Total Bill "
        assert mapping.columns["Total Bill "].target_id == USAGE
        assert "Total Bill" not in mapping.columns

        usage_index = table.headers.index(mapping.targets[USAGE])
        commission_index = table.headers.index(mapping.targets[COMMISSION])
        assert parse_amount(table.rows[0][usage_index]) == 300.0
        assert parse_amount(table.rows[0][commission_index]) == 45.0
