from .draft import DraftAggregator
from .sequencer import STEPS, ClaimWizard, first_incomplete_step, is_step_complete
from .types import ClaimDraft, DiagnosisEntry, InsuranceSelection, ProcedureLine

__all__ = [
    "ClaimDraft",
    "ClaimWizard",
    "DiagnosisEntry",
    "DraftAggregator",
    "InsuranceSelection",
    "ProcedureLine",
    "STEPS",
    "first_incomplete_step",
    "is_step_complete",
]
