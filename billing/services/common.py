"""Helpers every service module uses for required-field checks and lookups."""

from datetime import date
from decimal import Decimal, InvalidOperation

from django.core.exceptions import ValidationError as DjangoValidationError

from ..exceptions import ValidationError, not_found


def require_fields(data, fields):
    """Raise one ValidationError listing every required field that is missing or blank."""
    errors = [
        {'field': name, 'message': f'{name} is required.'}
        for name in fields
        if data.get(name) is None or str(data.get(name)).strip() == ''
    ]
    if errors:
        raise ValidationError(
            message='Please fill in all required fields.',
            code='MISSING_REQUIRED_FIELDS',
            detail={'errors': errors},
        )


def parse_date(value, field_name):
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError(
            message=f'{field_name} must be a date in YYYY-MM-DD format.',
            code='INVALID_DATE',
            detail={'field': field_name, 'value': str(value)},
        )


def parse_money(value, field_name, allow_zero=True):
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, TypeError, ValueError):
        amount = None
    if amount is None or not amount.is_finite() or amount < 0 or (not allow_zero and amount == 0):
        raise ValidationError(
            message=f'{field_name} must be a {"non-negative" if allow_zero else "positive"} amount.',
            code='INVALID_AMOUNT',
            detail={'field': field_name, 'value': str(value)},
        )
    return amount.quantize(Decimal('0.01'))


def parse_positive_int(value, field_name, allow_zero=False):
    number = None
    if isinstance(value, float) and value.is_integer():
        number = int(value)
    elif not isinstance(value, (bool, float)):
        try:
            number = int(value)
        except (TypeError, ValueError):
            number = None
    if number is None or number < 0 or (not allow_zero and number == 0):
        raise ValidationError(
            message=f'{field_name} must be a {"non-negative" if allow_zero else "positive"} whole number.',
            code='INVALID_NUMBER',
            detail={'field': field_name, 'value': str(value)},
        )
    return number


def get_or_404(model, object_id, entity):
    """Fetch by primary key; malformed ids count as not found."""
    try:
        return model.objects.get(id=object_id)
    except (model.DoesNotExist, DjangoValidationError, ValueError):
        raise not_found(entity, object_id)


def apply_updates(instance, data, allowed):
    """Copy whitelisted keys from ``data`` onto ``instance`` and save them."""
    changed = [name for name in allowed if name in data]
    for name in changed:
        setattr(instance, name, data[name])
    if changed:
        if hasattr(instance, 'updated_at'):
            changed.append('updated_at')
        instance.save(update_fields=changed)
    return instance
