"""
Insurance eligibility checks: what the payer reported for one patient, and the
patient-responsibility estimate derived from it.

Estimate for one visit (every term is >= 0):
    base        = allowed_amount if given and > 0, else visit_charges
    copay       = min(copay, base)
    deductible  = min(base - copay, deductible_remaining)
    coinsurance = (base - copay - deductible) × coinsurance_percent / 100
    responsibility = copay + deductible + coinsurance
A patient who is not eligible owes the whole base.

total_collectible (what the front desk collects at check-in) = copay + deductible_remaining.
"""
import logging
from decimal import Decimal

from django.db.models import Q

from ..exceptions import ValidationError
from ..models import EligibilityVerification, Payer
from .common import get_or_404, parse_date, parse_money, require_fields
from .patients import get_patient

logger = logging.getLogger(__name__)

CENTS = Decimal('0.01')
ZERO = Decimal('0.00')


def estimate_responsibility(visit_charges, allowed_amount, copay, deductible_remaining, coinsurance_percent,
                            is_eligible=True):
    """Breakdown of one visit between patient and payer. All inputs are Decimals (or None for amounts)."""
    base = allowed_amount if allowed_amount else (visit_charges or ZERO)
    if not is_eligible:
        return {'base': base, 'copay': ZERO, 'deductible_applied': ZERO, 'coinsurance': ZERO,
                'insurance_pays': ZERO, 'patient_responsibility': base}

    copay_applied = min(copay, base)
    remaining = base - copay_applied
    deductible_applied = min(remaining, deductible_remaining)
    remaining -= deductible_applied
    coinsurance = (remaining * coinsurance_percent / 100).quantize(CENTS)
    return {
        'base': base,
        'copay': copay_applied,
        'deductible_applied': deductible_applied,
        'coinsurance': coinsurance,
        'insurance_pays': remaining - coinsurance,
        'patient_responsibility': (copay_applied + deductible_applied + coinsurance).quantize(CENTS),
    }


def _optional_money(data, name):
    if data.get(name) in (None, ''):
        return None
    return parse_money(data[name], name)


def _optional_date(data, name):
    return parse_date(data[name], name) if data.get(name) else None


def _coinsurance(value):
    if value in (None, ''):
        return ZERO
    percent = parse_money(value, 'coinsurance_percent')
    if percent > 100:
        raise ValidationError(
            message='coinsurance_percent must be between 0 and 100.',
            code='INVALID_PERCENTAGE',
            detail={'coinsurance_percent': str(value)},
        )
    return percent


def record_eligibility_check(data):
    """Store one payer response and derive the estimate and total collectible."""
    require_fields(data, ('patient_id', 'is_eligible'))
    if not isinstance(data['is_eligible'], bool):
        raise ValidationError(
            message='is_eligible must be true or false.',
            code='INVALID_FLAG',
            detail={'is_eligible': data['is_eligible']},
        )
    patient = get_patient(data['patient_id'])
    payer = get_or_404(Payer, data['payer_id'], 'Payer') if data.get('payer_id') else None

    network_status = data.get('network_status') or 'unknown'
    if network_status not in dict(EligibilityVerification.NETWORK_CHOICES):
        raise ValidationError(
            message=f"Invalid network status {network_status!r}.",
            code='INVALID_NETWORK_STATUS',
            detail={'allowed': list(dict(EligibilityVerification.NETWORK_CHOICES))},
        )

    effective_date = _optional_date(data, 'effective_date')
    termination_date = _optional_date(data, 'termination_date')
    if effective_date and termination_date and termination_date < effective_date:
        raise ValidationError(
            message='Termination date cannot be before the effective date.',
            code='INVALID_DATE_RANGE',
            detail={'effective_date': effective_date.isoformat(), 'termination_date': termination_date.isoformat()},
        )

    copay = _optional_money(data, 'copay') or ZERO
    deductible_remaining = _optional_money(data, 'deductible_remaining') or ZERO
    coinsurance_percent = _coinsurance(data.get('coinsurance_percent'))
    visit_charges = _optional_money(data, 'visit_charges')
    allowed_amount = _optional_money(data, 'allowed_amount')

    estimate = estimate_responsibility(
        visit_charges, allowed_amount, copay, deductible_remaining, coinsurance_percent, data['is_eligible'],
    )

    check = EligibilityVerification.objects.create(
        patient=patient,
        payer=payer,
        is_eligible=data['is_eligible'],
        plan_type=(data.get('plan_type') or '').strip(),
        network_status=network_status,
        member_id=(data.get('member_id') or '').strip(),
        group_number=(data.get('group_number') or '').strip(),
        effective_date=effective_date,
        termination_date=termination_date,
        service_date=_optional_date(data, 'service_date'),
        copay=copay,
        deductible_remaining=deductible_remaining,
        coinsurance_percent=coinsurance_percent,
        visit_charges=visit_charges,
        allowed_amount=allowed_amount,
        estimated_responsibility=estimate['patient_responsibility'],
        total_collectible=copay + deductible_remaining,
        notes=data.get('notes') or '',
        verified_by=data.get('verified_by') or '',
    )
    logger.info(
        "[Eligibility] check id=%s patient=%s eligible=%s collectible=%s",
        check.id, patient.mrn, check.is_eligible, check.total_collectible,
    )
    return check


def get_eligibility_check(check_id):
    return get_or_404(EligibilityVerification, check_id, 'Eligibility check')


def list_patient_eligibility(patient_id):
    """All checks for one patient, newest first."""
    return get_patient(patient_id).eligibility_checks.select_related('payer').order_by('-verified_at')


def latest_eligibility(patient):
    return patient.eligibility_checks.select_related('payer').order_by('-verified_at').first()


def search_eligibility(query=None, payer_id=None, eligible=None):
    """Filter by patient name / MRN / member id, payer and the eligible flag ('true' / 'false')."""
    checks = EligibilityVerification.objects.select_related('patient', 'payer')
    query = (query or '').strip()
    if query:
        checks = checks.filter(
            Q(patient__mrn__icontains=query) |
            Q(patient__first_name__icontains=query) |
            Q(patient__last_name__icontains=query) |
            Q(member_id__icontains=query)
        )
    if payer_id:
        checks = checks.filter(payer=get_or_404(Payer, payer_id, 'Payer'))
    if eligible in ('true', 'false'):
        checks = checks.filter(is_eligible=eligible == 'true')
    return checks.order_by('-verified_at')
