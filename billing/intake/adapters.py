"""
具体 Adapter 实现。

新增输入源：在此文件添加一个类，然后在 factory.py 注册即可。

已注册输入源：
  wizard          — ClaimWizardAdapter    (JSON, 前端理赔向导 camelCase 命名风格)
  providers_csv   — ProviderCsvAdapter    (CSV, 与 provider 导出同一套表头)
  facilities_csv  — FacilityCsvAdapter    (CSV, 与 facility 导出同一套表头)
"""

import csv
import io
import json
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from ..exceptions import ValidationError
from ..wizard.types import ClaimDraft, DiagnosisEntry, InsuranceSelection, ProcedureLine
from .base import CPT_RE, ICD10_RE, ISO_DATE_RE, BaseIntakeAdapter
from .types import ImportRow


def _ref(value: Any) -> Any:
    """UI 传来的引用可能是整个对象也可能只是 id，统一成 id 字符串。"""
    if isinstance(value, dict):
        value = value.get("id")
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _decimal_or_none(value: Any):
    if isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return None
    return amount if amount.is_finite() else None


def _int_or_none(value: Any):
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# ── ClaimWizardAdapter ─────────────────────────────────────────────────────
#
# 外部格式示例（JSON）:
# {
#   "patient":     { "id": "6f1c..." },
#   "serviceDate": "2026-10-01",
#   "procedures":  [ { "cptCode": "99213", "description": "Office visit", "units": 1, "amount": 100 } ],
#   "diagnoses":   [ { "icdCode": "I10", "description": "Essential hypertension", "primary": true } ],
#   "insurance":   { "primary": { "id": "a2b3..." }, "secondary": null, "authNumber": "AUTH-1" },
#   "provider":    { "id": "9d8e..." },
#   "notes":       "",
#   "confirm":     false
# }

class ClaimWizardAdapter(BaseIntakeAdapter):
    source = "wizard"

    def parse(self) -> Any:
        if isinstance(self._raw_body, dict):
            raw = self._raw_body
        else:
            try:
                raw = json.loads(self._decode() or "{}")
            except json.JSONDecodeError as exc:
                raise ValidationError(
                    message="Request body is not valid JSON.",
                    code="MALFORMED_BODY",
                    detail={"error": str(exc)},
                ) from exc
        if not isinstance(raw, dict):
            raise ValidationError(message="Claim payload must be a JSON object.", code="MALFORMED_BODY")
        self._parsed = raw
        return raw

    def transform(self) -> ClaimDraft:
        raw = self._parsed
        # 字段类型不对的错误先收集起来，validate() 里和其它错误一起报
        self._shape_errors = errors = []

        def text(value: Any, field: str, allow_number: bool = False) -> str:
            if value is None:
                return ""
            if isinstance(value, str):
                return value.strip()
            if allow_number and isinstance(value, int) and not isinstance(value, bool):
                return str(value)
            errors.append({"field": field, "message": "Must be a string."})
            return ""

        def flag(value: Any, field: str) -> bool:
            if value is None or isinstance(value, bool):
                return bool(value)
            errors.append({"field": field, "message": "Must be true or false."})
            return False

        def ref(value: Any, field: str) -> Any:
            if value is None or (isinstance(value, (dict, str, int)) and not isinstance(value, bool)):
                return _ref(value)
            errors.append({"field": field, "message": "Must be an id or an object with an id."})
            return None

        def items(key: str) -> list:
            value = raw.get(key)
            if value is None:
                return []
            if not isinstance(value, list):
                errors.append({"field": key, "message": "Must be a list."})
                return []
            for i, item in enumerate(value):
                if not isinstance(item, dict):
                    errors.append({"field": f"{key}[{i}]", "message": "Must be an object."})
            return [(i, item) for i, item in enumerate(value) if isinstance(item, dict)]

        procedures = [
            ProcedureLine(
                code=text(p.get("cptCode") or p.get("code"), f"procedures[{i}].cptCode", allow_number=True).upper(),
                description=text(p.get("description"), f"procedures[{i}].description"),
                units=_int_or_none(p.get("units", 1)),
                amount=_decimal_or_none(p.get("amount", 0)),
            )
            for i, p in items("procedures")
        ]
        diagnoses = [
            DiagnosisEntry(
                code=text(d.get("icdCode") or d.get("code"), f"diagnoses[{i}].icdCode").upper(),
                description=text(d.get("description"), f"diagnoses[{i}].description"),
                primary=flag(d.get("primary"), f"diagnoses[{i}].primary"),
            )
            for i, d in items("diagnoses")
        ]

        insurance = raw.get("insurance")
        if insurance is None:
            insurance = {}
        elif not isinstance(insurance, dict):
            errors.append({"field": "insurance", "message": "Must be an object."})
            insurance = {}

        return ClaimDraft(
            raw_payload=raw,                          # 保留原始数据
            confirm=flag(raw.get("confirm"), "confirm"),
            patient=ref(raw.get("patient"), "patient"),
            provider=ref(raw.get("provider"), "provider"),
            service_date=text(raw.get("serviceDate") or raw.get("service_date"), "serviceDate"),
            procedures=procedures,
            diagnoses=diagnoses,
            insurance=InsuranceSelection(
                primary=ref(insurance.get("primary"), "insurance.primary"),
                secondary=ref(insurance.get("secondary"), "insurance.secondary"),
                auth_number=text(
                    insurance.get("authNumber") or insurance.get("auth_number"), "insurance.authNumber",
                    allow_number=True,
                ),
            ),
            notes=text(raw.get("notes"), "notes"),
        )

    def validate(self, draft: ClaimDraft) -> None:
        errors = list(getattr(self, "_shape_errors", []))

        if draft.service_date:
            if not ISO_DATE_RE.match(draft.service_date):
                errors.append({"field": "serviceDate", "message": "Service date must be YYYY-MM-DD."})
            else:
                try:
                    date.fromisoformat(draft.service_date)
                except ValueError:
                    errors.append({"field": "serviceDate", "message": "Service date is not a real date."})

        for i, line in enumerate(draft.procedures):
            if not CPT_RE.match(line.code):
                errors.append({"field": f"procedures[{i}].cptCode", "message": f"Invalid CPT code: {line.code!r}."})
            if line.units is None or line.units < 1:
                errors.append({"field": f"procedures[{i}].units", "message": "Units must be a whole number >= 1."})
            if line.amount is None or line.amount < 0:
                errors.append({"field": f"procedures[{i}].amount", "message": "Amount must be a number >= 0."})

        for i, entry in enumerate(draft.diagnoses):
            if not ICD10_RE.match(entry.code):
                errors.append({
                    "field": f"diagnoses[{i}].icdCode",
                    "message": "Diagnosis must be valid ICD-10 format (e.g. I10, E11.9).",
                })

        if sum(1 for d in draft.diagnoses if d.primary) > 1:
            errors.append({"field": "diagnoses", "message": "Only one diagnosis can be primary."})

        self.raise_if_errors(errors)


# ── CSV adapters ───────────────────────────────────────────────────────────
#
# 表头与导出一致，导出的文件可以原样再导入。
# 引号包裹的字段（地址里带逗号）由 csv 模块处理。

class CsvRowsAdapter(BaseIntakeAdapter):
    # header -> model field
    COLUMNS: dict[str, str] = {}
    REQUIRED_COLUMNS: tuple[str, ...] = ()

    def parse(self) -> Any:
        reader = csv.DictReader(io.StringIO(self._decode()))
        self._header = [h.strip() for h in (reader.fieldnames or [])]
        self._parsed = list(reader)
        return self._parsed

    def transform(self) -> list[ImportRow]:
        rows = []
        for offset, raw_row in enumerate(self._parsed):
            values = {
                (key or "").strip(): (value or "").strip()
                for key, value in raw_row.items()
                if isinstance(value, str)
            }
            if not any(values.values()):
                continue  # 空行
            data = {field: values.get(header, "") for header, field in self.COLUMNS.items()}
            rows.append(ImportRow(line_number=offset + 2, data=data))
        return rows

    def validate(self, rows: list[ImportRow]) -> None:
        missing = [h for h in self.REQUIRED_COLUMNS if h not in self._header]
        if missing:
            raise ValidationError(
                message=f"CSV is missing required columns: {', '.join(missing)}.",
                code="CSV_MISSING_COLUMNS",
                detail={"missing": missing, "expected": list(self.COLUMNS)},
            )


class ProviderCsvAdapter(CsvRowsAdapter):
    source = "providers_csv"
    COLUMNS = {
        "First Name": "first_name",
        "Last Name": "last_name",
        "NPI": "npi",
        "Credentials": "credentials",
        "Specialty": "taxonomy_specialty",
        "Status": "status",
        "Phone": "phone",
        "Email": "email",
    }
    REQUIRED_COLUMNS = ("First Name", "Last Name", "NPI")


class FacilityCsvAdapter(CsvRowsAdapter):
    source = "facilities_csv"
    COLUMNS = {
        "Name": "name",
        "NPI": "npi",
        "Address": "address",
        "City": "city",
        "State": "state",
        "Zip Code": "zip_code",
        "Phone": "phone",
        "Tax ID": "tax_id",
        "Place of Service": "place_of_service",
        "Status": "status",
    }
    REQUIRED_COLUMNS = ("Name",)
