"""Unit tests for the target catalog and the header suggestion scorer."""

import pytest

from domain.deposit_import.field_catalog import (
    LEGACY_FIELD_ID_TO_TARGET_ID,
    TARGET_ID_TO_LEGACY_FIELD_ID,
    DepositImportTargetIds,
    build_deposit_import_field_catalog,
    build_field_catalog_index,
    map_field_definition_to_target,
)
from domain.deposit_import.field_suggestions import (
    score_normalized,
    suggest_deposit_field_matches,
    suggest_target_matches,
)
from domain.deposit_import.fields import (
    AUTO_FIELD_SYNONYMS,
    DEPOSIT_FIELD_IDS,
    REQUIRED_DEPOSIT_FIELD_IDS,
    get_deposit_field,
)


class TestDepositFields:
    """Test the legacy field definitions"""

    def test_required_fields(self):
        assert REQUIRED_DEPOSIT_FIELD_IDS == ["usage", "commission"]

    def test_every_field_has_a_target(self):
        for field_id in DEPOSIT_FIELD_IDS:
            assert field_id in LEGACY_FIELD_ID_TO_TARGET_ID

    def test_synonyms_only_for_known_fields(self):
        assert set(AUTO_FIELD_SYNONYMS) <= set(DEPOSIT_FIELD_IDS)

    def test_get_deposit_field(self):
        assert get_deposit_field("usage").label == "Usage Amount"
        assert get_deposit_field("nope") is None


class TestFieldCatalog:
    """Test catalog construction"""

    def test_static_catalog_order_and_ids_unique(self):
        catalog = build_deposit_import_field_catalog()
        ids = [target.id for target in catalog]
        assert ids[0] == "depositLineItem.lineNumber"
        assert len(ids) == len(set(ids))
        assert DepositImportTargetIds.USAGE in ids
        assert DepositImportTargetIds.DEPOSIT_NAME in ids
        assert DepositImportTargetIds.EXTERNAL_SCHEDULE_ID in ids

    def test_static_labels(self):
        index = build_field_catalog_index(build_deposit_import_field_catalog())
        assert index[DepositImportTargetIds.USAGE].label == "Actual Usage"
        assert index[DepositImportTargetIds.COMMISSION_RATE].label == "Actual Commission Rate %"
        assert index["depositLineItem.accountIdVendor"].label == "Other - Account ID"

    def test_persistence_kinds(self):
        index = build_field_catalog_index(build_deposit_import_field_catalog())
        usage = index[DepositImportTargetIds.USAGE]
        assert usage.persistence == "column"
        assert usage.column_name == "usage"

        commission_type = index[DepositImportTargetIds.COMMISSION_TYPE]
        assert commission_type.persistence == "metadata"
        assert commission_type.metadata_path == ["depositLineItem", "commissionType"]

    def test_dynamic_opportunity_fields_appended(self):
        catalog = build_deposit_import_field_catalog([
            {"fieldCode": "circuitId", "label": "Circuit ID", "dataType": "Text"},
            {"fieldCode": "term", "label": "Term", "dataType": "Number"},
        ])
        assert catalog[-2].id == "opportunity.circuitId"
        assert catalog[-2].data_type == "string"
        assert catalog[-2].metadata_path == ["opportunity", "circuitId"]
        assert catalog[-1].id == "opportunity.term"
        assert catalog[-1].data_type == "number"

    def test_static_entry_wins_on_collision(self):
        static_count = len(build_deposit_import_field_catalog())
        catalog = build_deposit_import_field_catalog([
            {"fieldCode": "stage", "label": "Custom Stage", "dataType": "Text"},
        ])
        assert len(catalog) == static_count
        assert build_field_catalog_index(catalog)["opportunity.stage"].label == "Opportunity Stage"

    def test_duplicate_dynamic_codes_keep_first(self):
        catalog = build_deposit_import_field_catalog([
            {"fieldCode": "circuitId", "label": "Circuit ID", "dataType": "Text"},
            {"fieldCode": "circuitId", "label": "Circuit", "dataType": "Text"},
        ])
        circuit = [target for target in catalog if target.id == "opportunity.circuitId"]
        assert len(circuit) == 1
        assert circuit[0].label == "Circuit ID"

    def test_json_and_unknown_types_skipped(self):
        assert map_field_definition_to_target({"fieldCode": "x", "label": "X", "dataType": "Json"}) is None
        assert map_field_definition_to_target({"fieldCode": "x", "label": "X", "dataType": "Blob"}) is None

    def test_enum_maps_to_string(self):
        target = map_field_definition_to_target({"fieldCode": "tier", "label": "Tier", "dataType": "Enum"})
        assert target.data_type == "string"

    def test_blank_field_code_skipped(self):
        assert map_field_definition_to_target({"fieldCode": "  ", "label": "X", "dataType": "Text"}) is None

    def test_label_falls_back_to_code(self):
        target = map_field_definition_to_target({"fieldCode": "term", "dataType": "Number"})
        assert target.label == "term"

    def test_legacy_maps_are_inverse(self):
        for field_id, target_id in LEGACY_FIELD_ID_TO_TARGET_ID.items():
            assert TARGET_ID_TO_LEGACY_FIELD_ID[target_id] == field_id


class TestScoreNormalized:
    """Test the similarity score"""

    def test_equal(self):
        assert score_normalized("account id", "account id") == 1.0

    def test_token_subset(self):
        assert score_normalized("customer id", "customer") == 0.92

    def test_substring(self):
        assert score_normalized("billing", "bill") == 0.86

    def test_blend(self):
        # 1 shared token of 2 candidate tokens, union of 3
        assert score_normalized("customer id", "customer name") == pytest.approx(0.55 * 0.5 + 0.45 / 3)

    def test_no_overlap(self):
        assert score_normalized("usage", "commission") == 0.0
        assert score_normalized("", "usage") == 0.0


class TestSuggestDepositFieldMatches:
    """Test legacy field suggestions"""

    def test_customer_id_suggests_customer_id_vendor_first(self):
        suggestions = suggest_deposit_field_matches("Customer Id")
        assert suggestions[0].field_id == "customerIdVendor"
        assert suggestions[0].score == 1.0
        assert suggestions[0].target_id == "depositLineItem.customerIdVendor"

    def test_commission_rate_does_not_suggest_commission_amount(self):
        suggestions = suggest_deposit_field_matches("Commission Rate (%)")
        assert suggestions[0].field_id == "commissionRate"
        assert "commission" not in [suggestion.field_id for suggestion in suggestions]

    def test_usage_rate_does_not_suggest_usage_amount(self):
        suggestions = suggest_deposit_field_matches("Usage Rate")
        assert suggestions[0].field_id == "commissionRate"
        assert "usage" not in [suggestion.field_id for suggestion in suggestions]

    def test_sorted_by_score(self):
        suggestions = suggest_deposit_field_matches("Account ID")
        assert [suggestion.field_id for suggestion in suggestions[:2]] == ["accountIdVendor", "accountNameRaw"]
        scores = [suggestion.score for suggestion in suggestions]
        assert scores == sorted(scores, reverse=True)

    def test_limit_and_min_score(self):
        assert len(suggest_deposit_field_matches("Customer", limit=2, min_score=0.0)) <= 2
        assert suggest_deposit_field_matches("Customer Id", min_score=1.01) == []

    def test_blank_header(self):
        assert suggest_deposit_field_matches("  ") == []
        assert suggest_deposit_field_matches("$$") == []

    def test_defaults_come_from_settings(self, monkeypatch):
        from config import get_settings

        monkeypatch.setenv("SUGGESTION_LIMIT", "1")
        get_settings.cache_clear()
        assert len(suggest_deposit_field_matches("Account ID")) == 1


class TestSuggestTargetMatches:
    """Test catalog target suggestions"""

    @pytest.fixture
    def catalog(self):
        return build_deposit_import_field_catalog([
            {"fieldCode": "circuitId", "label": "Circuit ID", "dataType": "Text"},
        ])

    def test_synonym_of_legacy_field(self, catalog):
        suggestions = suggest_target_matches("Total Commission", catalog)
        assert suggestions[0].target_id == DepositImportTargetIds.COMMISSION
        assert suggestions[0].field_id == "commission"

    def test_rate_header_dampens_commission_target(self, catalog):
        suggestions = suggest_target_matches("Commission Rate %", catalog)
        target_ids = [suggestion.target_id for suggestion in suggestions]
        assert target_ids[0] == DepositImportTargetIds.COMMISSION_RATE
        assert DepositImportTargetIds.COMMISSION not in target_ids

    def test_dynamic_target_by_label(self, catalog):
        suggestions = suggest_target_matches("Circuit ID", catalog)
        assert suggestions[0].target_id == "opportunity.circuitId"
        assert suggestions[0].field_id is None
        assert suggestions[0].score == 1.0

    def test_equal_scores_ordered_by_label_ignoring_case(self):
        catalog = build_deposit_import_field_catalog([
            {"fieldCode": "siteRegion", "label": "Site Region", "dataType": "Text"},
            {"fieldCode": "siteCode", "label": "site code", "dataType": "Text"},
        ])
        suggestions = suggest_target_matches("Site", catalog)

        tied = [suggestion for suggestion in suggestions if suggestion.target_id.startswith("opportunity.site")]
        assert [suggestion.label for suggestion in tied] == ["site code", "Site Region"]
        assert tied[0].score == tied[1].score
