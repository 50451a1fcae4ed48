"""
测试 intake adapter 系统：
- ClaimWizardAdapter (JSON, camelCase)
- ProviderCsvAdapter / FacilityCsvAdapter (CSV, 与导出同表头)
- 工厂函数 get_adapter
- validate() 校验失败路径
"""

import json
from decimal import Decimal

import pytest

from billing.exceptions import ValidationError
from billing.intake import get_adapter
from billing.intake.adapters import ClaimWizardAdapter, FacilityCsvAdapter, ProviderCsvAdapter
from billing.intake.types import ImportRow
from billing.wizard import ClaimDraft


# ── 测试数据 ──────────────────────────────────────────────────────────────

WIZARD_PAYLOAD = {
    "patient": {"id": "6f1c0000-0000-0000-0000-000000000001", "name": "Alice Wang"},
    "serviceDate": "2026-10-01",
    "procedures": [
        {"cptCode": "99213", "description": "Office visit", "units": 1, "amount": 100},
        {"cptCode": "80053", "description": "Metabolic panel", "units": "2", "amount": "45.00"},
    ],
    "diagnoses": [
        {"icdCode": "i10", "description": "Essential hypertension", "primary": True},
        {"icdCode": "E11.9", "description": "Type 2 diabetes", "primary": False},
    ],
    "insurance": {"primary": {"id": "a2b3"}, "secondary": None, "authNumber": " AUTH-1 "},
    "provider": "9d8e",
    "notes": "  ",
    "confirm": False,
}

PROVIDERS_CSV = (
    "First Name,Last Name,NPI,Credentials,Specialty,Status,Phone,Email\n"
    "Sarah,Smith,1234567890,MD,Cardiology,active,555-0100,sarah@example.com\n"
    "\n"
    '"Lee, Jr.",Park,0987654321,DO,"Family Medicine, Pediatrics",inactive,,\n'
)

FACILITIES_CSV = (
    "Name,NPI,Address,City,State,Zip Code,Phone,Tax ID,Place of Service,Status\n"
    '"Main Street Clinic",1112223333,"100 Main St, Suite 4",Springfield,IL,62701,555-0199,12-3456789,11,active\n'
)


# ── ClaimWizardAdapter ────────────────────────────────────────────────────

class TestClaimWizardAdapter:
    def _make(self, payload=None):
        body = json.dumps(WIZARD_PAYLOAD if payload is None else payload)
        return ClaimWizardAdapter(raw_body=body.encode(), content_type="application/json")

    def test_process_returns_claim_draft(self):
        draft = self._make().process()
        assert isinstance(draft, ClaimDraft)

    def test_references_become_ids(self):
        draft = self._make().process()
        assert draft.patient == "6f1c0000-0000-0000-0000-000000000001"
        assert draft.provider == "9d8e"
        assert draft.insurance.primary == "a2b3"
        assert draft.insurance.secondary is None
        assert draft.insurance.auth_number == "AUTH-1"

    def test_lines_and_total(self):
        draft = self._make().process()
        assert [p.code for p in draft.procedures] == ["99213", "80053"]
        assert draft.procedures[1].units == 2
        assert draft.total_amount == Decimal("190.00")

    def test_icd_codes_uppercased(self):
        draft = self._make().process()
        assert draft.diagnoses[0].code == "I10"
        assert draft.primary_diagnosis.code == "I10"

    def test_raw_payload_kept(self):
        draft = self._make().process()
        assert draft.raw_payload["patient"]["name"] == "Alice Wang"

    def test_accepts_already_parsed_dict(self):
        draft = ClaimWizardAdapter(raw_body=dict(WIZARD_PAYLOAD)).process()
        assert draft.service_date == "2026-10-01"

    def test_snake_case_fallbacks(self):
        payload = {
            "service_date": "2026-10-02",
            "procedures": [{"code": "36415", "amount": 25}],
            "insurance": {"auth_number": "X1"},
        }
        draft = self._make(payload).process()
        assert draft.service_date == "2026-10-02"
        assert draft.procedures[0].code == "36415"
        assert draft.insurance.auth_number == "X1"

    def test_empty_body_is_empty_draft(self):
        draft = ClaimWizardAdapter(raw_body=b"").process()
        assert draft.patient is None
        assert draft.procedures == []

    def test_malformed_json(self):
        with pytest.raises(ValidationError) as exc_info:
            ClaimWizardAdapter(raw_body=b"{not json").process()
        assert exc_info.value.code == "MALFORMED_BODY"

    def test_non_object_body(self):
        with pytest.raises(ValidationError) as exc_info:
            ClaimWizardAdapter(raw_body=b"[1, 2]").process()
        assert exc_info.value.code == "MALFORMED_BODY"

    @pytest.mark.parametrize("service_date", ["10/01/2026", "2026-02-30"])
    def test_bad_service_date(self, service_date):
        payload = {**WIZARD_PAYLOAD, "serviceDate": service_date}
        with pytest.raises(ValidationError) as exc_info:
            self._make(payload).process()
        assert exc_info.value.detail["errors"][0]["field"] == "serviceDate"

    def test_bad_procedure_lines_collected(self):
        payload = {
            **WIZARD_PAYLOAD,
            "procedures": [
                {"cptCode": "ABC", "units": 1, "amount": 10},
                {"cptCode": "99213", "units": 0, "amount": -1},
            ],
        }
        with pytest.raises(ValidationError) as exc_info:
            self._make(payload).process()

        fields = [e["field"] for e in exc_info.value.detail["errors"]]
        assert fields == ["procedures[0].cptCode", "procedures[1].units", "procedures[1].amount"]

    def test_bad_icd_code(self):
        payload = {**WIZARD_PAYLOAD, "diagnoses": [{"icdCode": "hypertension", "primary": True}]}
        with pytest.raises(ValidationError) as exc_info:
            self._make(payload).process()
        assert exc_info.value.code == "VALIDATION_ERROR"

    def test_two_primaries_rejected(self):
        payload = {
            **WIZARD_PAYLOAD,
            "diagnoses": [{"icdCode": "I10", "primary": True}, {"icdCode": "E11.9", "primary": True}],
        }
        with pytest.raises(ValidationError) as exc_info:
            self._make(payload).process()
        assert exc_info.value.detail["errors"][0]["field"] == "diagnoses"

    @pytest.mark.parametrize("overrides, field", [
        ({"notes": 5}, "notes"),
        ({"insurance": "abc"}, "insurance"),
        ({"procedures": 7}, "procedures"),
        ({"procedures": ["99213"]}, "procedures[0]"),
        ({"procedures": [{"cptCode": "99213", "description": 42, "amount": 10}]}, "procedures[0].description"),
        ({"diagnoses": [{"icdCode": "I10", "primary": "true"}]}, "diagnoses[0].primary"),
        ({"patient": ["p-1"]}, "patient"),
        ({"confirm": "yes"}, "confirm"),
    ])
    def test_wrongly_typed_fields_reported(self, overrides, field):
        payload = {**WIZARD_PAYLOAD, **overrides}
        with pytest.raises(ValidationError) as exc_info:
            self._make(payload).process()

        assert exc_info.value.code == "VALIDATION_ERROR"
        assert field in [e["field"] for e in exc_info.value.detail["errors"]]

    def test_string_false_is_not_a_second_primary(self):
        payload = {
            **WIZARD_PAYLOAD,
            "diagnoses": [{"icdCode": "I10", "primary": True}, {"icdCode": "E11.9", "primary": "false"}],
        }
        with pytest.raises(ValidationError) as exc_info:
            self._make(payload).process()

        fields = [e["field"] for e in exc_info.value.detail["errors"]]
        assert fields == ["diagnoses[1].primary"]

    def test_numeric_cpt_code_accepted(self):
        payload = {**WIZARD_PAYLOAD, "procedures": [{"cptCode": 99213, "units": 1, "amount": 100}]}
        draft = self._make(payload).process()
        assert draft.procedures[0].code == "99213"


# ── CSV adapters ──────────────────────────────────────────────────────────

class TestProviderCsvAdapter:

    def test_rows_mapped_to_fields(self):
        rows = ProviderCsvAdapter(raw_body=PROVIDERS_CSV.encode()).process()

        assert len(rows) == 2
        assert isinstance(rows[0], ImportRow)
        assert rows[0].data["npi"] == "1234567890"
        assert rows[0].data["taxonomy_specialty"] == "Cardiology"

    def test_quoted_fields_keep_commas(self):
        rows = ProviderCsvAdapter(raw_body=PROVIDERS_CSV).process()
        assert rows[1].data["first_name"] == "Lee, Jr."
        assert rows[1].data["taxonomy_specialty"] == "Family Medicine, Pediatrics"

    def test_line_numbers_start_after_header(self):
        rows = ProviderCsvAdapter(raw_body=PROVIDERS_CSV).process()
        assert rows[0].line_number == 2

    def test_utf8_bom_stripped(self):
        rows = ProviderCsvAdapter(raw_body=b"\xef\xbb\xbf" + PROVIDERS_CSV.encode()).process()
        assert rows[0].data["first_name"] == "Sarah"

    def test_missing_required_column(self):
        body = "First Name,Last Name\nSarah,Smith\n"
        with pytest.raises(ValidationError) as exc_info:
            ProviderCsvAdapter(raw_body=body).process()

        assert exc_info.value.code == "CSV_MISSING_COLUMNS"
        assert exc_info.value.detail["missing"] == ["NPI"]

    def test_invalid_utf8(self):
        with pytest.raises(ValidationError) as exc_info:
            ProviderCsvAdapter(raw_body=b"\xff\xfe\x00bad").process()
        assert exc_info.value.code == "MALFORMED_BODY"


class TestFacilityCsvAdapter:

    def test_address_with_comma(self):
        rows = FacilityCsvAdapter(raw_body=FACILITIES_CSV).process()
        assert rows[0].data["address"] == "100 Main St, Suite 4"
        assert rows[0].data["place_of_service"] == "11"


# ── 工厂函数 ──────────────────────────────────────────────────────────────

class TestGetAdapter:

    @pytest.mark.parametrize("source,cls", [
        ("wizard", ClaimWizardAdapter),
        ("providers_csv", ProviderCsvAdapter),
        ("facilities_csv", FacilityCsvAdapter),
    ])
    def test_known_sources(self, source, cls):
        assert isinstance(get_adapter(source, b""), cls)

    def test_unknown_source(self):
        with pytest.raises(ValidationError) as exc_info:
            get_adapter("fax", b"")

        assert exc_info.value.code == "UNKNOWN_SOURCE"
        assert "wizard" in exc_info.value.detail["known_sources"]
