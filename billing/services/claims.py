"""
Claims: persisting what the claim wizard produced, and reading it back.

The wizard itself (billing.wizard) never touches the database; the functions
here are the ``on_submit`` side of that contract.
"""
import logging
from datetime import date
from decimal import Decimal

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.db.models import Q

from ..exceptions import BlockError, ValidationError, WarningError
from ..models import Claim, ClaimDiagnosis, ClaimProcedure, Patient, Payer, Provider
from ..wizard import (
    STEPS,
    ClaimDraft,
    ClaimWizard,
    DiagnosisEntry,
    InsuranceSelection,
    ProcedureLine,
    is_step_complete,
)
from .common import get_or_404, parse_date

logger = logging.getLogger(__name__)

# current status -> statuses it may move to
STATUS_TRANSITIONS = {
    'draft': ('submitted',),
    'submitted': ('accepted', 'denied'),
    'accepted': ('paid', 'denied'),
    'denied': ('submitted',),
    'paid': (),
}
EDITABLE_STATUSES = ('draft', 'submitted')


def _resolve(model, ref, field_name):
    if ref is None:
        return None
    try:
        return model.objects.get(id=ref)
    except (model.DoesNotExist, DjangoValidationError, ValueError):
        raise ValidationError(
            message=f"{model.__name__} {ref} does not exist.",
            code='UNKNOWN_REFERENCE',
            detail={'field': field_name, 'id': str(ref)},
        )


def walk_wizard(draft):
    """
    Replay the wizard's step gates on a draft that arrived in one piece.
    Returns the wizard parked on the review step, or raises INCOMPLETE_CLAIM
    naming the first step that blocks.
    """
    wizard = ClaimWizard(draft)
    while wizard.next_step():
        pass
    if wizard.current_step != len(STEPS):
        step = wizard.step
        raise ValidationError(
            message=f"Claim is incomplete: the {step.title} step is not finished.",
            code='INCOMPLETE_CLAIM',
            detail={'step': step.id, 'title': step.title, 'description': step.description},
        )
    return wizard


def preview_claim(draft):
    """Total and per-step completeness for a draft, without persisting anything."""
    return {
        'total_amount': draft.total_amount,
        'steps': [
            {'id': step.id, 'title': step.title, 'complete': is_step_complete(draft, step.id)}
            for step in STEPS
        ],
    }


def check_claim_duplicate(patient, service_date, confirm=False, exclude_id=None):
    """
    同一患者 + 同一服务日期已有理赔 → 收集警告（confirm=True 跳过）。
    """
    if confirm:
        return []

    existing = Claim.objects.filter(patient=patient, service_date=service_date)
    if exclude_id is not None:
        existing = existing.exclude(id=exclude_id)
    latest = existing.order_by('-created_at').first()
    if latest is None:
        return []

    return [{
        'code': 'DUPLICATE_CLAIM_SERVICE_DATE',
        'message': (
            f"Patient {patient.full_name} (MRN: {patient.mrn}) already has a claim for {service_date} "
            f"(status: {latest.status}). Re-submit with confirm=true if this is intentional."
        ),
        'existing_claim_id': str(latest.id),
    }]


def _write_lines(claim, draft):
    ClaimProcedure.objects.bulk_create([
        ClaimProcedure(
            claim=claim,
            position=i,
            cpt_code=line.code,
            description=line.description,
            units=line.units,
            amount=Decimal(line.amount).quantize(Decimal('0.01')),
        )
        for i, line in enumerate(draft.procedures)
    ])
    ClaimDiagnosis.objects.bulk_create([
        ClaimDiagnosis(
            claim=claim,
            position=i,
            icd_code=entry.code,
            description=entry.description,
            primary=entry.primary,
        )
        for i, entry in enumerate(draft.diagnoses)
    ])


def _claim_fields(draft):
    return {
        'patient': _resolve(Patient, draft.patient, 'patient'),
        'provider': _resolve(Provider, draft.provider, 'provider'),
        'primary_payer': _resolve(Payer, draft.insurance.primary, 'insurance.primary'),
        'secondary_payer': _resolve(Payer, draft.insurance.secondary, 'insurance.secondary'),
        'auth_number': draft.insurance.auth_number or '',
        'service_date': parse_date(draft.service_date, 'serviceDate') if draft.service_date else date.today(),
        'notes': draft.notes or '',
        'total_amount': draft.total_amount,
    }


def submit_claim(draft):
    """
    Persist a complete ClaimDraft as a submitted claim.
    Raises ValidationError / WarningError — View 层不需要处理，exception_handler 统一兜底。
    """
    fields = _claim_fields(draft)

    warnings = check_claim_duplicate(fields['patient'], fields['service_date'], confirm=draft.confirm)
    if warnings:
        raise WarningError.from_warnings(
            'A claim for this patient and service date already exists. Re-submit with confirm=true.',
            warnings,
        )

    with transaction.atomic():
        claim = Claim.objects.create(status='submitted', **fields)
        _write_lines(claim, draft)

    logger.info(
        "[Claims] claim id=%s submitted for patient=%s, %d procedures, total=%s",
        claim.id, fields['patient'].mrn, len(draft.procedures), claim.total_amount,
    )
    return claim


def submit_from_wizard(draft):
    wizard = walk_wizard(draft)
    return wizard.submit(submit_claim)


def get_claim_detail(claim_id):
    return get_or_404(Claim, claim_id, 'Claim')


def claim_to_draft(claim):
    """Re-express a stored claim as a wizard draft (edit mode)."""
    return ClaimDraft(
        patient=str(claim.patient_id),
        provider=str(claim.provider_id) if claim.provider_id else None,
        service_date=claim.service_date.isoformat(),
        procedures=[
            ProcedureLine(code=p.cpt_code, description=p.description, units=p.units, amount=p.amount)
            for p in claim.procedures.all()
        ],
        diagnoses=[
            DiagnosisEntry(code=d.icd_code, description=d.description, primary=d.primary)
            for d in claim.diagnoses.all()
        ],
        insurance=InsuranceSelection(
            primary=str(claim.primary_payer_id),
            secondary=str(claim.secondary_payer_id) if claim.secondary_payer_id else None,
            auth_number=claim.auth_number,
        ),
        notes=claim.notes,
    )


def replace_claim(claim_id, draft):
    """Overwrite an editable claim with the contents of a re-submitted draft."""
    claim = get_claim_detail(claim_id)
    if claim.status not in EDITABLE_STATUSES:
        raise BlockError(
            message=f"Claim is {claim.status} and can no longer be edited.",
            code='CLAIM_NOT_EDITABLE',
            detail={'claim_id': str(claim.id), 'current_status': claim.status},
        )

    walk_wizard(draft)
    fields = _claim_fields(draft)

    warnings = check_claim_duplicate(
        fields['patient'], fields['service_date'], confirm=draft.confirm, exclude_id=claim.id,
    )
    if warnings:
        raise WarningError.from_warnings(
            'A claim for this patient and service date already exists. Re-submit with confirm=true.',
            warnings,
        )

    with transaction.atomic():
        for name, value in fields.items():
            setattr(claim, name, value)
        claim.save()
        claim.procedures.all().delete()
        claim.diagnoses.all().delete()
        _write_lines(claim, draft)

    logger.info("[Claims] claim id=%s replaced from edited draft", claim.id)
    return claim


def update_claim_status(claim_id, status):
    claim = get_claim_detail(claim_id)
    allowed = STATUS_TRANSITIONS.get(claim.status, ())
    if status not in allowed:
        raise BlockError(
            message=f"Claim cannot move from {claim.status} to {status}.",
            code='INVALID_STATUS_TRANSITION',
            detail={'current_status': claim.status, 'requested': status, 'allowed': list(allowed)},
        )
    claim.status = status
    claim.save(update_fields=['status', 'updated_at'])
    logger.info("[Claims] claim id=%s -> %s", claim.id, status)
    return claim


def search_claims(query, status=None, limit=50):
    """Search claims by patient name / MRN or CPT code. Returns queryset, newest first."""
    claims = Claim.objects.select_related('patient', 'primary_payer')
    query = (query or '').strip()
    if query:
        claims = claims.filter(
            Q(patient__mrn__icontains=query) |
            Q(patient__first_name__icontains=query) |
            Q(patient__last_name__icontains=query) |
            Q(procedures__cpt_code__icontains=query) |
            Q(status__iexact=query)
        ).distinct()
    if status:
        claims = claims.filter(status=status)
    return claims.order_by('-created_at')[:limit]
