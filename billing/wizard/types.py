"""
ClaimDraft dataclass — 理赔向导在内存中聚合的唯一结构。

五个步骤（patient / services / diagnosis / insurance / review）各自只写自己的 key，
提交前不落库；提交时整个 draft 交给外部 on_submit 回调。
"""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Optional

CENTS = Decimal('0.01')


@dataclass
class ProcedureLine:
    code: str                                # CPT
    description: str = ""
    units: int = 1                           # >= 1
    amount: Decimal = Decimal('0.00')        # unit amount, >= 0

    @property
    def line_total(self) -> Decimal:
        return (self.amount * self.units).quantize(CENTS)


@dataclass
class DiagnosisEntry:
    code: str                                # ICD-10
    description: str = ""
    primary: bool = False


@dataclass
class InsuranceSelection:
    primary: Any = None                      # required to submit
    secondary: Any = None
    auth_number: str = ""


@dataclass
class ClaimDraft:
    """
    Staging structure for one claim.

    patient / provider / insurance payers are opaque references (ids as the UI
    sends them); the wizard never dereferences them.
    """

    patient: Any = None
    service_date: str = ""                   # ISO 8601: "YYYY-MM-DD"
    procedures: list[ProcedureLine] = field(default_factory=list)
    diagnoses: list[DiagnosisEntry] = field(default_factory=list)
    insurance: InsuranceSelection = field(default_factory=InsuranceSelection)
    provider: Any = None
    notes: str = ""
    confirm: bool = False
    raw_payload: Any = field(default=None, repr=False)

    @property
    def total_amount(self) -> Decimal:
        return sum((p.line_total for p in self.procedures), Decimal('0.00')).quantize(CENTS)

    @property
    def primary_diagnosis(self) -> Optional[DiagnosisEntry]:
        return next((d for d in self.diagnoses if d.primary), None)
