import asyncio
from datetime import datetime

import pytest

from core.imports.field_mapping_service import (
    FieldMappingService,
    InferenceContext,
    analyze_with_fallback,
    build_fallback_mappings,
    calculate_confidence,
    detect_data_type,
    fallback_field_mapping,
    format_field_label,
    generate_field_name,
    get_confidence_label,
    looks_like_phone,
)
from core.imports.models import NEW_CUSTOM_FIELD
from core.interfaces.repositories import ContactField
from conftest import InMemoryFieldRepository, InMemoryUserRepository, make_user


SAMPLE_HEADERS = ["First Name", "Last Name", "Email", "Phone", "Company", "Lead Score", "Assigned Agent"]
SAMPLE_ROWS = [
    ["John", "Doe", "john.doe@example.com", "555-123-4567", "Acme Inc", "85", "sarah.johnson@example.com"],
    ["Jane", "Smith", "jane.smith@example.com", "555-987-6543", "Globex", "72", "mike.wilson@example.com"],
]


def _custom_field(label, field_name, type="text"):
    return ContactField(
        id=f"f-{field_name}",
        label=label,
        field_name=field_name,
        type=type,
        core=False,
        required=False,
        created_on=datetime.utcnow()
    )


@pytest.mark.parametrize("samples,expected", [
    (["a@b.com", "c@d.org"], "email"),
    (["555-123-4567", "+1 (555) 987-6543"], "phone"),
    (["2024-01-15", "1/2/2024"], "datetime"),
    (["85", "-3.5"], "number"),
    (["yes", "No", "true"], "checkbox"),
    (["Acme", "42"], "text"),
    ([], "text"),
])
def test_detect_data_type(samples, expected):
    assert detect_data_type(samples) == expected


def test_detect_data_type_only_looks_at_first_ten_samples():
    samples = ["1"] * 10 + ["not a number"]
    assert detect_data_type(samples) == "number"


def test_short_digit_strings_are_not_phones():
    assert not looks_like_phone("555-0123")
    assert looks_like_phone("555-0123", min_digits=7)
    assert not looks_like_phone("1234567890123456")


def test_label_and_name_helpers():
    assert format_field_label("lead_score") == "Lead Score"
    assert format_field_label("DEAL-stage  value") == "Deal Stage Value"
    assert generate_field_name("Lead Score!") == "leadscore"
    assert len(generate_field_name("A very long column header name")) == 20


@pytest.mark.parametrize("confidence,label", [
    (100, "High"), (90, "High"), (89, "Good"), (70, "Good"), (69, "Medium"), (50, "Medium"), (49, "Low"), (0, "Low"),
])
def test_confidence_labels(confidence, label):
    assert get_confidence_label(confidence) == label


def test_calculate_confidence_combines_header_and_data():
    context = InferenceContext()

    assert calculate_confidence("First Name", ["John", "Jane"], "firstName", context) == 96
    assert calculate_confidence("Last Name", ["Doe", "Smith"], "lastName", context) == 92
    # Exact field name bonus pushes past 100 and is capped
    assert calculate_confidence("Email", ["john@example.com"], "email", context) == 100


def test_analyze_sample_file(user_repo):
    users = asyncio.run(user_repo.get_users())
    service = FieldMappingService(fields=[], users=users)

    mappings = service.analyze_file_headers(SAMPLE_HEADERS, SAMPLE_ROWS)
    by_column = {mapping.column_name: mapping for mapping in mappings}

    assert by_column["First Name"].suggested_field == "firstName"
    assert by_column["Last Name"].suggested_field == "lastName"
    assert by_column["Email"].suggested_field == "email"
    assert by_column["Email"].confidence == 100
    assert by_column["Phone"].suggested_field == "phone"
    assert by_column["Phone"].data_type == "phone"
    assert by_column["Assigned Agent"].suggested_field == "agentUid"

    company = by_column["Company"]
    assert company.suggested_field == NEW_CUSTOM_FIELD
    assert company.confidence == 30
    assert company.is_custom_field
    assert company.custom_field_config.field_name == "company"

    score = by_column["Lead Score"]
    assert score.data_type == "number"
    assert score.custom_field_config.label == "Lead Score"
    assert score.custom_field_config.field_name == "leadscore"


def test_mappings_sorted_by_confidence_and_keep_column_index():
    service = FieldMappingService()
    mappings = service.analyze_file_headers(SAMPLE_HEADERS, SAMPLE_ROWS)

    confidences = [mapping.confidence for mapping in mappings]
    assert confidences == sorted(confidences, reverse=True)
    for mapping in mappings:
        assert SAMPLE_HEADERS[mapping.column_index] == mapping.column_name
    assert len(mappings) == len(SAMPLE_HEADERS)


def test_sample_data_is_capped_at_five_values():
    rows = [[f"Name{chr(65 + i)}"] for i in range(8)]
    mappings = FieldMappingService().analyze_file_headers(["Notes"], rows)

    assert len(mappings[0].sample_data) == 5


def test_phone_number_header():
    mappings = FieldMappingService().analyze_file_headers(["Phone Number"], [["555-123-4567"]])

    assert mappings[0].suggested_field == "phone"
    assert mappings[0].confidence == 97


def test_agent_emails_of_known_users_map_to_agent():
    users = [make_user("u-sarah", "sarah.johnson@example.com")]
    service = FieldMappingService(users=users)

    mappings = service.analyze_file_headers(["Handler"], [["Sarah.Johnson@example.com"]])

    assert mappings[0].suggested_field == "agentUid"
    assert mappings[0].confidence == 85
    assert service.map_agent_email(" SARAH.JOHNSON@example.com ") == "u-sarah"
    assert service.map_agent_email("nobody@example.com") is None


def test_existing_custom_field_label_match():
    fields = [_custom_field("Lead Source", "lead_source")]
    service = FieldMappingService(fields=fields)

    mappings = service.analyze_file_headers(["Source"], [["Website"]])

    assert mappings[0].suggested_field == "lead_source"
    assert mappings[0].confidence == 75
    assert not mappings[0].is_custom_field


def test_unmatched_header_proposes_new_custom_field():
    mappings = FieldMappingService().analyze_file_headers(["Deal Stage"], [["Closed"]])

    assert mappings[0].suggested_field == NEW_CUSTOM_FIELD
    assert mappings[0].custom_field_config.label == "Deal Stage"
    assert mappings[0].custom_field_config.type == "text"
    assert not mappings[0].is_resolved


def test_fallback_field_mapping():
    assert fallback_field_mapping("Given Name") == "firstName"
    assert fallback_field_mapping("Surname") == "lastName"
    assert fallback_field_mapping("E-Mail") == "email"
    assert fallback_field_mapping("Mobile") == "phone"
    assert fallback_field_mapping("Organization") == NEW_CUSTOM_FIELD
    assert fallback_field_mapping("Favourite Colour") == NEW_CUSTOM_FIELD


def test_build_fallback_mappings_keeps_column_order():
    mappings = build_fallback_mappings(SAMPLE_HEADERS, SAMPLE_ROWS)

    assert [mapping.column_name for mapping in mappings] == SAMPLE_HEADERS
    assert all(mapping.confidence == 60 for mapping in mappings)
    assert mappings[6].custom_field_config.field_name == "assigned_agent"


def test_analyze_with_fallback_uses_repositories(user_repo):
    mappings, context, used_fallback = asyncio.run(
        analyze_with_fallback(SAMPLE_HEADERS, SAMPLE_ROWS, InMemoryFieldRepository(), user_repo)
    )

    assert not used_fallback
    assert len(context.users) == 2
    assert mappings[0].confidence == 100


def test_analyze_with_fallback_when_fields_fail_to_load():
    mappings, context, used_fallback = asyncio.run(
        analyze_with_fallback(
            SAMPLE_HEADERS,
            SAMPLE_ROWS,
            InMemoryFieldRepository(fail_on_read=True),
            InMemoryUserRepository()
        )
    )

    assert used_fallback
    assert context.users == []
    assert [mapping.suggested_field for mapping in mappings[:4]] == ["firstName", "lastName", "email", "phone"]


@pytest.mark.parametrize("header,samples,field", [
    ("firstName", ["John", "Jane"], "firstName"),
    ("lastName", ["Doe", "Smith"], "lastName"),
    ("email", ["a@b.com", "c@d.com"], "email"),
    ("phone", ["555-123-4567", "555-987-6543"], "phone"),
])
def test_exact_field_name_headers_score_high(header, samples, field):
    mapping = FieldMappingService().analyze_file_headers([header], [[s] for s in samples])[0]

    assert mapping.suggested_field == field
    assert mapping.confidence >= 90


def test_fallback_company_column_becomes_custom_field_draft():
    mappings = build_fallback_mappings(["Company", "Organization"], [["Acme Inc", "Acme"]])

    for mapping in mappings:
        assert mapping.suggested_field == NEW_CUSTOM_FIELD
        assert mapping.is_custom_field
        assert not mapping.is_resolved
    assert mappings[0].custom_field_config.field_name == "company"
    assert mappings[1].custom_field_config.label == "Organization"
