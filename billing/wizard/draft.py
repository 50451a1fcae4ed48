"""
Draft aggregator: the operations each wizard step performs on the shared ClaimDraft.

Every step owns a disjoint set of keys, so ``update()`` is a plain shallow
merge and never has to resolve conflicts.
"""

from decimal import Decimal, InvalidOperation
from typing import Any, Mapping, Optional

from ..codes import lookup_cpt
from ..exceptions import ValidationError
from .types import ClaimDraft, DiagnosisEntry, InsuranceSelection, ProcedureLine

# step -> keys that step is allowed to write
STEP_KEYS = {
    1: ('patient', 'provider'),
    2: ('service_date', 'procedures'),
    3: ('diagnoses',),
    4: ('insurance',),
    5: ('notes',),
}
DRAFT_KEYS = frozenset(key for keys in STEP_KEYS.values() for key in keys)


def _parse_units(value: Any) -> int:
    try:
        units = int(value)
    except (TypeError, ValueError):
        return 1
    return units if units >= 1 else 1


def _parse_amount(value: Any) -> Decimal:
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, TypeError, ValueError):
        return Decimal('0.00')
    if not amount.is_finite() or amount < 0:
        return Decimal('0.00')
    return amount


def _bad_value(key: str, expected: str, value: Any) -> ValidationError:
    return ValidationError(
        message=f"Claim draft field {key!r} must be {expected}.",
        code='INVALID_DRAFT_VALUE',
        detail={'field': key, 'received': type(value).__name__},
    )


def _text(value: Any, key: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise _bad_value(key, 'a string', value)
    return value


def _to_procedure(item: Any) -> ProcedureLine:
    if isinstance(item, ProcedureLine):
        return item
    if not isinstance(item, Mapping):
        raise _bad_value('procedures', 'a list of procedure lines', item)
    return ProcedureLine(
        code=_text(item.get('code', item.get('cptCode')), 'procedures'),
        description=_text(item.get('description'), 'procedures'),
        units=_parse_units(item.get('units', 1)),
        amount=_parse_amount(item.get('amount', 0)),
    )


def _to_diagnosis(item: Any) -> DiagnosisEntry:
    if isinstance(item, DiagnosisEntry):
        return item
    if not isinstance(item, Mapping):
        raise _bad_value('diagnoses', 'a list of diagnosis entries', item)
    return DiagnosisEntry(
        code=_text(item.get('code', item.get('icdCode')), 'diagnoses'),
        description=_text(item.get('description'), 'diagnoses'),
        primary=item.get('primary') is True,
    )


def _coerce(key: str, value: Any) -> Any:
    """Bring a slice sent as plain data into the draft's own types."""
    if key == 'procedures':
        if not isinstance(value, (list, tuple)):
            raise _bad_value(key, 'a list of procedure lines', value)
        return [_to_procedure(item) for item in value]
    if key == 'diagnoses':
        if not isinstance(value, (list, tuple)):
            raise _bad_value(key, 'a list of diagnosis entries', value)
        return [_to_diagnosis(item) for item in value]
    if key == 'insurance':
        if value is None:
            return InsuranceSelection()
        if isinstance(value, InsuranceSelection):
            return value
        if not isinstance(value, Mapping):
            raise _bad_value(key, 'an insurance selection', value)
        return InsuranceSelection(
            primary=value.get('primary'),
            secondary=value.get('secondary'),
            auth_number=_text(value.get('auth_number', value.get('authNumber')), key),
        )
    if key in ('service_date', 'notes'):
        return _text(value, key)
    return value


class DraftAggregator:
    """Mutates one ClaimDraft in place."""

    def __init__(self, draft: Optional[ClaimDraft] = None):
        self.draft = draft if draft is not None else ClaimDraft()

    def update(self, partial: Mapping[str, Any]) -> ClaimDraft:
        """
        Shallow-merge ``partial`` into the draft (the ``onUpdate`` contract).

        Procedure, diagnosis and insurance slices may arrive as plain dicts;
        they are converted to ProcedureLine / DiagnosisEntry / InsuranceSelection.
        """
        unknown = set(partial) - DRAFT_KEYS
        if unknown:
            raise ValidationError(
                message=f"Unknown claim draft fields: {', '.join(sorted(unknown))}.",
                code='UNKNOWN_DRAFT_FIELD',
                detail={'fields': sorted(unknown)},
            )
        for key, value in partial.items():
            setattr(self.draft, key, _coerce(key, value))
        return self.draft

    # ── services step ────────────────────────────────────────────────────

    def set_service_date(self, service_date: str) -> None:
        self.update({'service_date': service_date})

    def add_procedure(self, code: str, description: Optional[str] = None, amount: Any = None) -> ProcedureLine:
        """Append a one-unit line; description and amount default to the CPT catalogue entry."""
        catalogue = lookup_cpt(code)
        if description is None:
            description = catalogue.description if catalogue else ""
        if amount is None:
            amount = catalogue.amount if catalogue else 0
        line = ProcedureLine(code=code, description=description, units=1, amount=_parse_amount(amount))
        self.update({'procedures': [*self.draft.procedures, line]})
        return line

    def remove_procedure(self, index: int) -> None:
        self._check_index(self.draft.procedures, index, 'procedure')
        self.update({'procedures': [p for i, p in enumerate(self.draft.procedures) if i != index]})

    def update_procedure(self, index: int, field_name: str, value: Any) -> ProcedureLine:
        """Edit one line; bad units fall back to 1 and bad amounts to 0, as the input boxes do."""
        self._check_index(self.draft.procedures, index, 'procedure')
        line = self.draft.procedures[index]
        if field_name == 'units':
            line.units = _parse_units(value)
        elif field_name == 'amount':
            line.amount = _parse_amount(value)
        elif field_name in ('code', 'description'):
            setattr(line, field_name, str(value))
        else:
            raise ValidationError(
                message=f"Procedure field {field_name!r} cannot be edited.",
                code='UNKNOWN_DRAFT_FIELD',
                detail={'field': field_name},
            )
        return line

    # ── diagnosis step ───────────────────────────────────────────────────

    def add_diagnosis(self, code: str, description: str = "") -> DiagnosisEntry:
        # 第一条诊断默认是 primary
        entry = DiagnosisEntry(code=code, description=description, primary=not self.draft.diagnoses)
        self.update({'diagnoses': [*self.draft.diagnoses, entry]})
        return entry

    def remove_diagnosis(self, index: int) -> None:
        """
        Drop entry ``index``. If it was the primary and entries remain, the new
        first entry becomes primary so exactly one primary survives.
        """
        self._check_index(self.draft.diagnoses, index, 'diagnosis')
        removed = self.draft.diagnoses[index]
        remaining = [d for i, d in enumerate(self.draft.diagnoses) if i != index]
        if remaining and removed.primary:
            remaining[0].primary = True
        self.update({'diagnoses': remaining})

    def set_primary(self, index: int) -> None:
        self._check_index(self.draft.diagnoses, index, 'diagnosis')
        for i, entry in enumerate(self.draft.diagnoses):
            entry.primary = i == index

    # ── insurance step ───────────────────────────────────────────────────

    def set_insurance(self, primary: Any = None, secondary: Any = None, auth_number: str = "") -> None:
        self.update({
            'insurance': InsuranceSelection(primary=primary, secondary=secondary, auth_number=auth_number or ""),
        })

    @staticmethod
    def _check_index(items: list, index: int, label: str) -> None:
        if not 0 <= index < len(items):
            raise ValidationError(
                message=f"No {label} at position {index}.",
                code='INVALID_DRAFT_INDEX',
                detail={'index': index, 'size': len(items)},
            )
