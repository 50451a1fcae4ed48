"""
Collections workflow: account → contact activities → settlement / dispute / attorney referral.

Every status-changing action also writes a CollectionActivity so the account
history reads as a timeline.
"""
import logging
from datetime import date, timedelta
from decimal import Decimal

from django.db import transaction
from django.db.models import Count, Q, Sum
from django.utils import timezone

from ..exceptions import BlockError, ValidationError
from ..models import CollectionAccount, CollectionActivity, CollectionLetter, Patient, SettlementOffer
from .common import apply_updates, get_or_404, parse_date, parse_money, parse_positive_int, require_fields

logger = logging.getLogger(__name__)

DEFAULT_SETTLEMENT_PERCENTAGE = 70
DEFAULT_SETTLEMENT_TERMS = 'Full payment due within 30 days of acceptance'
CLOSED_STATUSES = ('closed', 'settled')


def _check_choice(value, choices, field_name):
    if value not in dict(choices):
        raise ValidationError(
            message=f"Invalid {field_name} {value!r}.",
            code=f'INVALID_{field_name.upper()}',
            detail={'allowed': list(dict(choices))},
        )


def _ensure_open(account, action):
    if account.collection_status in CLOSED_STATUSES:
        raise BlockError(
            message=f"Account is {account.collection_status}; no further {action} can be made.",
            code='ACCOUNT_CLOSED',
            detail={'account_id': str(account.id)},
        )


def _log_activity(account, activity_type, notes='', **extra):
    return CollectionActivity.objects.create(
        collection_account=account,
        activity_type=activity_type,
        notes=notes,
        **extra,
    )


def create_collection_account(data):
    require_fields(data, ('patient_name', 'original_balance'))
    original_balance = parse_money(data['original_balance'], 'original_balance', allow_zero=False)
    current_balance = (
        parse_money(data['current_balance'], 'current_balance')
        if data.get('current_balance') not in (None, '') else original_balance
    )
    stage = data.get('collection_stage') or 'early_collection'
    _check_choice(stage, CollectionAccount.STAGE_CHOICES, 'collection_stage')

    patient = None
    if data.get('patient_id'):
        patient = get_or_404(Patient, data['patient_id'], 'Patient')

    account = CollectionAccount.objects.create(
        patient=patient,
        patient_name=data['patient_name'].strip(),
        patient_email=data.get('patient_email') or '',
        patient_phone=data.get('patient_phone') or '',
        original_balance=original_balance,
        current_balance=current_balance,
        days_overdue=parse_positive_int(data.get('days_overdue') or 0, 'days_overdue', allow_zero=True),
        collection_stage=stage,
        collection_status='active',
        next_action_date=parse_date(data['next_action_date'], 'next_action_date')
        if data.get('next_action_date') else None,
        notes=data.get('notes') or '',
    )
    logger.info("[Collections] account id=%s opened for %s (%s)", account.id, account.patient_name, original_balance)
    return account


def get_collection_account(account_id):
    return get_or_404(CollectionAccount, account_id, 'Collection account')


def update_collection_account(account_id, data):
    account = get_collection_account(account_id)
    if 'collection_stage' in data:
        _check_choice(data['collection_stage'], CollectionAccount.STAGE_CHOICES, 'collection_stage')
    if 'collection_status' in data:
        _check_choice(data['collection_status'], CollectionAccount.STATUS_CHOICES, 'collection_status')
    if 'current_balance' in data:
        data = {**data, 'current_balance': parse_money(data['current_balance'], 'current_balance')}
    if data.get('next_action_date'):
        data = {**data, 'next_action_date': parse_date(data['next_action_date'], 'next_action_date')}
    if 'days_overdue' in data:
        data = {**data, 'days_overdue': parse_positive_int(data['days_overdue'], 'days_overdue', allow_zero=True)}
    return apply_updates(
        account, data,
        ('collection_stage', 'collection_status', 'current_balance', 'next_action_date', 'notes', 'days_overdue'),
    )


def delete_collection_account(account_id):
    get_collection_account(account_id).delete()


def search_collection_accounts(query=None, stage=None, status=None):
    accounts = CollectionAccount.objects.all()
    query = (query or '').strip()
    if query:
        accounts = accounts.filter(
            Q(patient_name__icontains=query) |
            Q(patient_email__icontains=query) |
            Q(patient_phone__icontains=query)
        )
    if stage:
        accounts = accounts.filter(collection_stage=stage)
    if status:
        accounts = accounts.filter(collection_status=status)
    return accounts.order_by('-days_overdue', '-created_at')


def log_contact_activity(account_id, data):
    """Record a contact attempt and stamp the account's last contact date."""
    account = get_collection_account(account_id)
    require_fields(data, ('activity_type',))
    _check_choice(data['activity_type'], CollectionActivity.TYPE_CHOICES, 'activity_type')
    if data.get('contact_method'):
        _check_choice(data['contact_method'], CollectionActivity.METHOD_CHOICES, 'contact_method')

    with transaction.atomic():
        activity = _log_activity(
            account,
            data['activity_type'],
            notes=data.get('notes') or '',
            contact_method=data.get('contact_method') or '',
            outcome=data.get('outcome') or '',
            amount_discussed=parse_money(data['amount_discussed'], 'amount_discussed')
            if data.get('amount_discussed') not in (None, '') else None,
            promise_to_pay_date=parse_date(data['promise_to_pay_date'], 'promise_to_pay_date')
            if data.get('promise_to_pay_date') else None,
            performed_by=data.get('performed_by') or '',
        )
        account.last_contact_date = timezone.now()
        account.save(update_fields=['last_contact_date', 'updated_at'])

    return activity


def settlement_amount(balance, percentage):
    return (Decimal(balance) * Decimal(percentage) / 100).quantize(Decimal('0.01'))


def create_settlement_offer(account_id, data):
    """offer_amount = current_balance × offer_percentage / 100 (default 70%)."""
    account = get_collection_account(account_id)
    _ensure_open(account, 'offers')

    percentage = data.get('offer_percentage')
    if percentage in (None, ''):
        percentage = DEFAULT_SETTLEMENT_PERCENTAGE
    try:
        percentage = int(percentage)
    except (TypeError, ValueError):
        percentage = -1
    if not 1 <= percentage <= 100:
        raise ValidationError(
            message='Offer percentage must be between 1 and 100.',
            code='INVALID_PERCENTAGE',
            detail={'offer_percentage': data.get('offer_percentage')},
        )

    expiration_date = (
        parse_date(data['expiration_date'], 'expiration_date')
        if data.get('expiration_date') else date.today() + timedelta(days=30)
    )
    offer_amount = settlement_amount(account.current_balance, percentage)

    with transaction.atomic():
        offer = SettlementOffer.objects.create(
            collection_account=account,
            original_amount=account.current_balance,
            offer_percentage=percentage,
            offer_amount=offer_amount,
            expiration_date=expiration_date,
            payment_terms=data.get('payment_terms') or DEFAULT_SETTLEMENT_TERMS,
            notes=data.get('notes') or '',
        )
        _log_activity(
            account,
            'settlement_offer',
            notes=f"Settlement offer created: {percentage}% (${offer_amount}) of ${account.current_balance}",
            amount_discussed=offer_amount,
        )

    logger.info("[Collections] settlement offer %s%% on account id=%s", percentage, account.id)
    return offer


def send_collection_letter(account_id, data):
    """Record a mailed letter and log it on the account timeline as letter_sent."""
    account = get_collection_account(account_id)
    letter_type = data.get('letter_type') or 'initial_notice'
    _check_choice(letter_type, CollectionLetter.TYPE_CHOICES, 'letter_type')
    _ensure_open(account, 'letters')

    with transaction.atomic():
        letter = CollectionLetter.objects.create(
            collection_account=account,
            letter_type=letter_type,
            template_name=f'{letter_type}_template',
        )
        _log_activity(
            account,
            'letter_sent',
            notes=f"Sent {letter_type.replace('_', ' ')} letter",
            contact_method='mail',
            performed_by=data.get('performed_by') or '',
        )
        account.last_contact_date = timezone.now()
        account.save(update_fields=['last_contact_date', 'updated_at'])

    logger.info("[Collections] %s letter sent on account id=%s", letter_type, account.id)
    return letter


def open_dispute(account_id, data):
    account = get_collection_account(account_id)
    require_fields(data, ('reason',))
    with transaction.atomic():
        account.collection_status = 'dispute'
        account.save(update_fields=['collection_status', 'updated_at'])
        activity = _log_activity(account, 'dispute_received', notes=f"Dispute received: {data['reason']}")
    logger.info("[Collections] account id=%s disputed", account.id)
    return activity


def refer_to_attorney(account_id, data):
    account = get_collection_account(account_id)
    require_fields(data, ('attorney_name',))
    if account.collection_status == 'dispute':
        raise BlockError(
            message='Account is under dispute and cannot be referred to an attorney until it is resolved.',
            code='ACCOUNT_IN_DISPUTE',
            detail={'account_id': str(account.id)},
        )
    with transaction.atomic():
        account.collection_status = 'attorney_referral'
        account.collection_stage = 'pre_legal'
        account.save(update_fields=['collection_status', 'collection_stage', 'updated_at'])
        activity = _log_activity(
            account,
            'attorney_referral',
            notes=f"Referred to {data['attorney_name']}. {data.get('notes') or ''}".strip(),
            amount_discussed=account.current_balance,
        )
    logger.info("[Collections] account id=%s referred to attorney", account.id)
    return activity


def collections_summary():
    """Account count and outstanding balance per stage, open accounts only."""
    rows = (
        CollectionAccount.objects.exclude(collection_status__in=CLOSED_STATUSES)
        .values('collection_stage')
        .annotate(accounts=Count('id'), balance=Sum('current_balance'))
    )
    by_stage = {stage: {'accounts': 0, 'balance': Decimal('0.00')} for stage, _ in CollectionAccount.STAGE_CHOICES}
    for row in rows:
        by_stage[row['collection_stage']] = {'accounts': row['accounts'], 'balance': row['balance'] or Decimal('0.00')}
    return {
        'by_stage': by_stage,
        'total_accounts': sum(v['accounts'] for v in by_stage.values()),
        'total_balance': sum((v['balance'] for v in by_stage.values()), Decimal('0.00')),
    }
