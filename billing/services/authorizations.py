"""
Prior authorization tracking.

Status flow:
    pending   → submitted | cancelled
    submitted → approved | denied | cancelled
    approved  → expired | cancelled
An approval needs the payer's auth number; the daily sweep expires approvals
whose service window has ended.
"""
import logging
from datetime import date

from django.db.models import Q
from django.utils import timezone

from ..exceptions import BlockError, ValidationError
from ..intake.base import CPT_RE, ICD10_RE
from ..models import Payer, PriorAuthorization, Provider
from .common import get_or_404, parse_date, parse_positive_int, require_fields
from .patients import get_patient

logger = logging.getLogger(__name__)

STATUS_TRANSITIONS = {
    'pending': ('submitted', 'cancelled'),
    'submitted': ('approved', 'denied', 'cancelled'),
    'approved': ('expired', 'cancelled'),
    'denied': (),
    'expired': (),
    'cancelled': (),
}


def _codes(value, pattern, field_name, required):
    if value in (None, '') and not required:
        return []
    if not isinstance(value, list) or (required and not value):
        raise ValidationError(
            message=f'{field_name} must be a {"non-empty " if required else ""}list of codes.',
            code='INVALID_CODES',
            detail={'field': field_name},
        )
    bad = [code for code in value if not isinstance(code, str) or not pattern.match(code.strip())]
    if bad:
        raise ValidationError(
            message=f'{field_name} contains invalid codes.',
            code='INVALID_CODES',
            detail={'field': field_name, 'invalid': [str(code) for code in bad]},
        )
    return [code.strip().upper() for code in value]


def create_authorization(data):
    require_fields(data, ('patient_id', 'service_start_date'))
    patient = get_patient(data['patient_id'])
    payer = get_or_404(Payer, data['payer_id'], 'Payer') if data.get('payer_id') else None
    provider = get_or_404(Provider, data['provider_id'], 'Provider') if data.get('provider_id') else None

    procedure_codes = _codes(data.get('procedure_codes'), CPT_RE, 'procedure_codes', required=True)
    diagnosis_codes = _codes(data.get('diagnosis_codes'), ICD10_RE, 'diagnosis_codes', required=False)

    start = parse_date(data['service_start_date'], 'service_start_date')
    end = parse_date(data['service_end_date'], 'service_end_date') if data.get('service_end_date') else None
    if end and end < start:
        raise ValidationError(
            message='Service end date cannot be before the start date.',
            code='INVALID_DATE_RANGE',
            detail={'service_start_date': start.isoformat(), 'service_end_date': end.isoformat()},
        )

    urgency = data.get('urgency') or 'routine'
    if urgency not in dict(PriorAuthorization.URGENCY_CHOICES):
        raise ValidationError(
            message=f"Invalid urgency {urgency!r}.",
            code='INVALID_URGENCY',
            detail={'allowed': list(dict(PriorAuthorization.URGENCY_CHOICES))},
        )

    authorization = PriorAuthorization.objects.create(
        patient=patient,
        payer=payer,
        provider=provider,
        service_type=(data.get('service_type') or '').strip(),
        procedure_codes=procedure_codes,
        diagnosis_codes=diagnosis_codes,
        clinical_indication=data.get('clinical_indication') or '',
        urgency=urgency,
        units_requested=parse_positive_int(data.get('units_requested', 1), 'units_requested'),
        service_start_date=start,
        service_end_date=end,
    )
    logger.info(
        "[Authorizations] request id=%s patient=%s codes=%s urgency=%s",
        authorization.id, patient.mrn, ','.join(procedure_codes), urgency,
    )
    return authorization


def get_authorization(authorization_id):
    return get_or_404(PriorAuthorization, authorization_id, 'Authorization')


def search_authorizations(query=None, status=None, patient_id=None):
    authorizations = PriorAuthorization.objects.select_related('patient', 'payer', 'provider')
    query = (query or '').strip()
    if query:
        authorizations = authorizations.filter(
            Q(patient__mrn__icontains=query) |
            Q(patient__first_name__icontains=query) |
            Q(patient__last_name__icontains=query) |
            Q(auth_number__icontains=query) |
            Q(service_type__icontains=query)
        )
    if status:
        authorizations = authorizations.filter(status=status)
    if patient_id:
        authorizations = authorizations.filter(patient=get_patient(patient_id))
    return authorizations.order_by('-created_at')


def update_authorization_status(authorization_id, data):
    """Move along STATUS_TRANSITIONS; approvals record the auth number and approved units."""
    authorization = get_authorization(authorization_id)
    require_fields(data, ('status',))
    status = data['status']
    allowed = STATUS_TRANSITIONS.get(authorization.status, ())
    if status not in allowed:
        raise BlockError(
            message=f"Authorization cannot move from {authorization.status} to {status}.",
            code='INVALID_STATUS_TRANSITION',
            detail={'current_status': authorization.status, 'requested': status, 'allowed': list(allowed)},
        )

    fields = ['status', 'updated_at']
    if status == 'approved':
        require_fields(data, ('auth_number',))
        authorization.auth_number = str(data['auth_number']).strip()
        units = data.get('units_approved')
        authorization.units_approved = (
            parse_positive_int(units, 'units_approved') if units not in (None, '') else authorization.units_requested
        )
        if authorization.units_approved > authorization.units_requested:
            raise ValidationError(
                message='Approved units cannot exceed the units requested.',
                code='INVALID_NUMBER',
                detail={'field': 'units_approved', 'value': str(authorization.units_approved)},
            )
        fields += ['auth_number', 'units_approved']
    if status == 'submitted':
        authorization.submitted_at = timezone.now()
        fields.append('submitted_at')
    if status in ('approved', 'denied'):
        authorization.decided_at = timezone.now()
        fields.append('decided_at')
    if data.get('decision_notes'):
        authorization.decision_notes = data['decision_notes']
        fields.append('decision_notes')

    authorization.status = status
    authorization.save(update_fields=fields)
    logger.info("[Authorizations] request id=%s -> %s", authorization.id, status)
    return authorization


def expire_authorizations(today=None):
    """Approved authorizations whose service window ended before ``today`` become expired."""
    today = today or date.today()
    count = PriorAuthorization.objects.filter(
        status='approved', service_end_date__lt=today,
    ).update(status='expired', updated_at=timezone.now())
    if count:
        logger.info("[Authorizations] %d authorizations expired", count)
    return count
