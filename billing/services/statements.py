import logging
from datetime import timedelta

from django.db import transaction
from django.utils import timezone

from ..exceptions import ValidationError
from ..models import BillingCycle, BillingStatement, Claim, PaymentReminder
from .common import get_or_404, parse_date, parse_money, parse_positive_int, require_fields
from .patients import get_patient

logger = logging.getLogger(__name__)

DEFAULT_REMINDER_DAYS = [15, 30, 60]
FOLLOW_UP_DAYS = 15
FOLLOW_UP_REMINDER = '15_day_reminder'


def create_billing_cycle(data):
    require_fields(data, ('name',))
    frequency = data.get('frequency') or 'monthly'
    if frequency not in dict(BillingCycle.FREQUENCY_CHOICES):
        raise ValidationError(
            message=f"Invalid frequency {frequency!r}.",
            code='INVALID_FREQUENCY',
            detail={'allowed': list(dict(BillingCycle.FREQUENCY_CHOICES))},
        )
    reminder_days = data.get('reminder_days') or DEFAULT_REMINDER_DAYS
    if not isinstance(reminder_days, list) or not all(isinstance(d, int) and d > 0 for d in reminder_days):
        raise ValidationError(
            message='reminder_days must be a list of positive whole numbers.',
            code='INVALID_REMINDER_DAYS',
            detail={'reminder_days': reminder_days},
        )

    cycle = BillingCycle.objects.create(
        name=data['name'].strip(),
        frequency=frequency,
        day_of_cycle=parse_positive_int(data.get('day_of_cycle') or 1, 'day_of_cycle'),
        reminder_days=sorted(reminder_days),
        is_active=bool(data.get('is_active', True)),
    )
    logger.info("[Billing] cycle id=%s created (%s)", cycle.id, cycle.frequency)
    return cycle


def list_billing_cycles(active_only=False):
    cycles = BillingCycle.objects.all()
    if active_only:
        cycles = cycles.filter(is_active=True)
    return cycles.order_by('name')


def set_cycle_active(cycle_id, is_active):
    if not isinstance(is_active, bool):
        raise ValidationError(
            message='is_active must be true or false.',
            code='INVALID_FLAG',
            detail={'is_active': is_active},
        )
    cycle = get_or_404(BillingCycle, cycle_id, 'Billing cycle')
    cycle.is_active = is_active
    cycle.save(update_fields=['is_active'])
    return cycle


def create_statement(data):
    require_fields(data, ('patient_id', 'amount_due'))
    patient = get_patient(data['patient_id'])
    claim = get_or_404(Claim, data['claim_id'], 'Claim') if data.get('claim_id') else None
    statement = BillingStatement.objects.create(
        patient=patient,
        claim=claim,
        amount_due=parse_money(data['amount_due'], 'amount_due', allow_zero=False),
        due_date=parse_date(data['due_date'], 'due_date') if data.get('due_date') else None,
    )
    logger.info("[Billing] statement id=%s created for patient=%s", statement.id, patient.mrn)
    return statement


def list_statements(status=None, patient_id=None):
    statements = BillingStatement.objects.select_related('patient')
    if status:
        statements = statements.filter(status=status)
    if patient_id:
        statements = statements.filter(patient_id=patient_id)
    return statements.order_by('-created_at')


def process_billing_cycle_run(now=None):
    """
    Send every pending statement through its patient's preferred channel and
    schedule a follow-up reminder 15 days out.

    Statements whose patient has no preferred channel stay pending.
    Returns {'message', 'processed_count'}.
    """
    if not BillingCycle.objects.filter(is_active=True).exists():
        logger.info("[Billing] no active billing cycles, nothing to process")
        return {'message': 'No active cycles', 'processed_count': 0}

    now = now or timezone.now()
    processed = 0
    pending = BillingStatement.objects.filter(status='pending').select_related('patient')

    for statement in pending:
        channel = statement.patient.preferred_channel
        if not channel:
            continue

        with transaction.atomic():
            statement.status = 'sent'
            statement.channel = channel
            statement.sent_at = now
            statement.save(update_fields=['status', 'channel', 'sent_at'])
            PaymentReminder.objects.create(
                statement=statement,
                patient=statement.patient,
                reminder_type=FOLLOW_UP_REMINDER,
                scheduled_for=now + timedelta(days=FOLLOW_UP_DAYS),
                channel=channel,
            )
        logger.info("[Billing] statement id=%s sent via %s", statement.id, channel)
        processed += 1

    logger.info("[Billing] processed %d statements", processed)
    return {'message': 'Billing cycle processed', 'processed_count': processed}
