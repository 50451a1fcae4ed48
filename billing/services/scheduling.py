import logging
from datetime import datetime, time, timedelta

from ..exceptions import BlockError, ValidationError
from ..models import Appointment, Provider
from .common import get_or_404, parse_date, parse_positive_int, require_fields
from .patients import get_patient

logger = logging.getLogger(__name__)

# 取消 / 爽约的预约不占用医生时间
INACTIVE_STATUSES = ('cancelled', 'no_show')
MAX_DURATION_MINUTES = 24 * 60


def parse_time(value, field_name):
    if isinstance(value, time):
        return value
    try:
        return time.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(
            message=f'{field_name} must be a time in HH:MM format.',
            code='INVALID_TIME',
            detail={'field': field_name, 'value': str(value)},
        )


def _window(scheduled_date, scheduled_time, duration_minutes):
    start = datetime.combine(scheduled_date, scheduled_time)
    return start, start + timedelta(minutes=duration_minutes)


def find_overlap(provider, scheduled_date, scheduled_time, duration_minutes, exclude_id=None):
    """
    First active appointment of ``provider`` that shares any minute with the new slot.

    Windows are compared as full datetimes, so a late slot running past
    midnight collides with the next morning and vice versa. Durations are
    capped at a day, which bounds the lookback to the previous date.
    """
    start, end = _window(scheduled_date, scheduled_time, duration_minutes)
    nearby = (
        Appointment.objects.filter(
            provider=provider,
            scheduled_date__gte=start.date() - timedelta(days=1),
            scheduled_date__lte=end.date(),
        )
        .exclude(status__in=INACTIVE_STATUSES)
    )
    if exclude_id is not None:
        nearby = nearby.exclude(id=exclude_id)

    for other in nearby:
        other_start, other_end = _window(other.scheduled_date, other.scheduled_time, other.duration_minutes)
        if start < other_end and other_start < end:
            return other
    return None


def create_appointment(data):
    require_fields(data, ('patient_id', 'scheduled_date', 'scheduled_time'))
    patient = get_patient(data['patient_id'])
    provider = get_or_404(Provider, data['provider_id'], 'Provider') if data.get('provider_id') else None
    scheduled_date = parse_date(data['scheduled_date'], 'scheduled_date')
    scheduled_time = parse_time(data['scheduled_time'], 'scheduled_time')
    duration = parse_positive_int(data.get('duration_minutes', 30), 'duration_minutes')
    if duration > MAX_DURATION_MINUTES:
        raise ValidationError(
            message=f'duration_minutes cannot exceed {MAX_DURATION_MINUTES}.',
            code='INVALID_NUMBER',
            detail={'field': 'duration_minutes', 'value': str(duration)},
        )

    appointment_type = data.get('appointment_type') or 'consultation'
    if appointment_type not in dict(Appointment.TYPE_CHOICES):
        raise ValidationError(
            message=f"Invalid appointment type {appointment_type!r}.",
            code='INVALID_APPOINTMENT_TYPE',
            detail={'allowed': list(dict(Appointment.TYPE_CHOICES))},
        )

    if provider is not None:
        clash = find_overlap(provider, scheduled_date, scheduled_time, duration)
        if clash is not None:
            raise BlockError(
                message=(
                    f"{provider.full_name} already has an appointment at "
                    f"{clash.scheduled_time.strftime('%H:%M')} on {clash.scheduled_date}."
                ),
                code='APPOINTMENT_OVERLAP',
                detail={'existing_appointment_id': str(clash.id)},
            )

    appointment = Appointment.objects.create(
        patient=patient,
        provider=provider,
        appointment_type=appointment_type,
        scheduled_date=scheduled_date,
        scheduled_time=scheduled_time,
        duration_minutes=duration,
        location=data.get('location') or '',
        notes=data.get('notes') or '',
    )
    logger.info(
        "[Scheduling] appointment id=%s for patient=%s on %s %s",
        appointment.id, patient.mrn, scheduled_date, scheduled_time,
    )
    return appointment


def get_appointment(appointment_id):
    return get_or_404(Appointment, appointment_id, 'Appointment')


def list_appointments(date_from=None, date_to=None, patient_id=None, provider_id=None, status=None):
    appointments = Appointment.objects.select_related('patient', 'provider')
    if date_from:
        appointments = appointments.filter(scheduled_date__gte=parse_date(date_from, 'from'))
    if date_to:
        appointments = appointments.filter(scheduled_date__lte=parse_date(date_to, 'to'))
    if patient_id:
        appointments = appointments.filter(patient_id=patient_id)
    if provider_id:
        appointments = appointments.filter(provider_id=provider_id)
    if status:
        appointments = appointments.filter(status=status)
    return appointments


def update_appointment_status(appointment_id, status):
    if status not in dict(Appointment.STATUS_CHOICES):
        raise ValidationError(
            message=f"Invalid appointment status {status!r}.",
            code='INVALID_STATUS',
            detail={'allowed': list(dict(Appointment.STATUS_CHOICES))},
        )
    appointment = get_appointment(appointment_id)
    appointment.status = status
    appointment.save(update_fields=['status', 'updated_at'])
    logger.info("[Scheduling] appointment id=%s -> %s", appointment.id, status)
    return appointment
