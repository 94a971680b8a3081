"""Reference template field records kept alongside a template config.

When a template is seeded from the Telarus master table, the rows that were
used are stored under 'telarusTemplateFields' so reviewers can see which
reference header fed which commissable label.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .mapping_v1 import MODE_CUSTOM, read_object, read_trimmed_string
from .mapping_v2 import DepositMappingConfigV2

TEMPLATE_FIELDS_KEY = "telarusTemplateFields"
GENERATED_CUSTOM_KEY_PREFIX = "cf_telarus_"

BLOCK_COMMON = "common"
BLOCK_TEMPLATE = "template"


class TelarusTemplateField(BaseModel):
    """One master table row: reference header name and its commissable label."""

    model_config = ConfigDict(populate_by_name=True)

    telarus_field_name: str = Field(..., alias="telarusFieldName")
    commissable_field_label: str = Field(..., alias="commissableFieldLabel")
    field_id: Optional[str] = Field(None, alias="fieldId")
    commission_type: Optional[str] = Field(None, alias="commissionType")
    block: Optional[str] = None


class TelarusTemplateFields(BaseModel):
    """Versioned audit record of the reference rows behind a template."""

    model_config = ConfigDict(populate_by_name=True)

    version: int = 1
    template_map_name: str = Field("", alias="templateMapName")
    origin: str = ""
    company_name: str = Field("", alias="companyName")
    template_id: Optional[str] = Field(None, alias="templateId")
    fields: List[TelarusTemplateField] = Field(default_factory=list)


def extract_template_fields_from_template_config(config: Any) -> Optional[TelarusTemplateFields]:
    """
    Read the template field record from a template config.

    Returns:
        TelarusTemplateFields, or None if absent or not version 1. Field
        entries without a header name or label are dropped.
    """
    candidate = read_object(config).get(TEMPLATE_FIELDS_KEY)
    if not isinstance(candidate, dict) or candidate.get("version") != 1:
        return None

    fields = []
    raw_fields = candidate.get("fields")
    for raw in raw_fields if isinstance(raw_fields, list) else []:
        if not isinstance(raw, dict):
            continue
        telarus_field_name = read_trimmed_string(raw.get("telarusFieldName"))
        commissable_field_label = read_trimmed_string(raw.get("commissableFieldLabel"))
        if not telarus_field_name or not commissable_field_label:
            continue
        block = raw.get("block")
        fields.append(
            TelarusTemplateField(
                telarus_field_name=telarus_field_name,
                commissable_field_label=commissable_field_label,
                field_id=read_trimmed_string(raw.get("fieldId")) or None,
                commission_type=read_trimmed_string(raw.get("commissionType")) or None,
                block=block if block in (BLOCK_COMMON, BLOCK_TEMPLATE) else None,
            )
        )

    return TelarusTemplateFields(
        template_map_name=read_trimmed_string(candidate.get("templateMapName")),
        origin=read_trimmed_string(candidate.get("origin")),
        company_name=read_trimmed_string(candidate.get("companyName")),
        template_id=read_trimmed_string(candidate.get("templateId")) or None,
        fields=fields,
    )


def serialize_template_fields_for_template(value: TelarusTemplateFields) -> Dict[str, Any]:
    data = value.model_dump(by_alias=True, exclude_none=True)
    data["version"] = 1
    if value.template_id is None:
        data["templateId"] = None
    return {TEMPLATE_FIELDS_KEY: data}


def strip_telarus_generated_custom_fields_v2(mapping: DepositMappingConfigV2) -> DepositMappingConfigV2:
    """Remove generated 'cf_telarus_*' custom fields and the columns using them."""
    generated_keys = [key for key in mapping.custom_fields if key.startswith(GENERATED_CUSTOM_KEY_PREFIX)]
    if not generated_keys:
        return mapping

    next_mapping = mapping.model_copy(deep=True)
    for key in generated_keys:
        del next_mapping.custom_fields[key]

    for column_name, config in list(next_mapping.columns.items()):
        if config.mode != MODE_CUSTOM:
            continue
        if config.custom_key and config.custom_key.startswith(GENERATED_CUSTOM_KEY_PREFIX):
            del next_mapping.columns[column_name]

    return next_mapping
