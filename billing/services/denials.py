"""
Denial management: record a payer denial against a claim, analyse it, and run
the appeal through draft → submitted → outcome.

Denial lifecycle (ClaimDenial.status):
    open → appealed → overturned | upheld
    open → written_off

Recording a denial moves the claim to ``denied``; an approved (or partially
approved) appeal puts it back to ``submitted`` so it re-enters the payer queue.
"""
import logging
from datetime import date, timedelta
from decimal import Decimal

from django.db import transaction
from django.db.models import Count
from django.utils import timezone

from ..exceptions import BlockError, ValidationError
from ..models import Claim, ClaimDenial, DenialAppeal
from .claims import get_claim_detail, update_claim_status
from .common import get_or_404, parse_date, parse_money, require_fields

logger = logging.getLogger(__name__)

APPEAL_WINDOW_DAYS = 60

# CARC codes that mean the balance is patient responsibility
NON_APPEALABLE_CODES = ('CO-1', 'CO-2', 'CO-3')
ADMINISTRATIVE_CODES = ('CO-1', 'CO-2', 'CO-3', 'CO-18', 'CO-22')
CLINICAL_CODES = ('CO-11', 'CO-50')

DENIAL_REASONS = {
    'CO-1': 'Deductible Amount',
    'CO-2': 'Coinsurance Amount',
    'CO-3': 'Co-payment Amount',
    'CO-11': 'Diagnosis Not Covered',
    'CO-16': 'Prior Authorization Required',
    'CO-18': 'Duplicate Claim',
    'CO-22': 'Coordination of Benefits',
    'CO-50': 'Non-covered Services',
}

ROOT_CAUSES = {
    'CO-1': 'Deductible not met or incorrectly calculated',
    'CO-11': 'Diagnosis code not covered or invalid',
    'CO-16': 'Prior authorization missing or expired',
    'CO-18': 'Duplicate claim submitted',
    'CO-22': 'Coordination of benefits issue',
    'CO-50': 'Medical necessity not established',
}

APPEAL_STRATEGIES = {
    'CO-11': 'Provide additional clinical documentation demonstrating medical necessity and correct diagnosis coding.',
    'CO-16': 'Provide the prior authorization number and documentation showing it was obtained before service.',
    'CO-18': 'Verify this is truly a duplicate; if not, show the differing service dates or procedures.',
    'CO-22': 'Provide coordination of benefits information and proof the primary coverage was exhausted.',
    'CO-50': 'Provide medical necessity documentation, clinical notes and the treatment plan.',
}
DEFAULT_STRATEGY = 'Review the denial reason and provide documentation that supports the claim.'

OUTCOME_TO_APPEAL_STATUS = {'approved': 'approved', 'partial': 'approved', 'denied': 'denied'}


def normalize_code(code):
    return (code or '').strip().upper()


def categorize(code):
    code = normalize_code(code)
    if code in ADMINISTRATIVE_CODES:
        return 'administrative'
    if code == 'CO-16':
        return 'authorization'
    if code in CLINICAL_CODES:
        return 'clinical'
    if code.startswith(('CO-4', 'CO-5')):
        return 'eligibility'
    return 'other'


def is_appealable(code):
    return normalize_code(code) not in NON_APPEALABLE_CODES


def analyze_denial(denial):
    """Root cause, evidence found on the claim, and what an appeal would need."""
    code = denial.denial_code
    claim = denial.claim

    evidence = []
    if code == 'CO-16' and not claim.auth_number:
        evidence.append('No prior authorization number on the claim')
    if not claim.diagnoses.exists():
        evidence.append('No diagnosis codes on the claim')

    documents = []
    if code == 'CO-16':
        documents.append('Prior authorization documentation')
    if code in CLINICAL_CODES:
        documents += ['Clinical notes', 'Medical necessity documentation']
    documents += ['Original claim', 'Denial letter', 'Appeal letter']

    appealable = is_appealable(code)
    return {
        'root_cause': ROOT_CAUSES.get(code, 'Unknown root cause - requires manual review'),
        'evidence': evidence,
        'confidence': 'high' if evidence else 'medium',
        'can_appeal': appealable,
        'appeal_strategy': APPEAL_STRATEGIES.get(code, DEFAULT_STRATEGY)
        if appealable else 'Not appealable: patient responsibility.',
        'required_documents': documents if appealable else [],
    }


def record_denial(claim_id, data):
    """
    Record a payer denial. denied_amount defaults to the claim total, the
    denial date to today, and the appeal deadline to denial date + 60 days.
    """
    claim = get_claim_detail(claim_id)
    require_fields(data, ('denial_code',))
    code = normalize_code(data['denial_code'])
    denied_amount = (
        parse_money(data['denied_amount'], 'denied_amount', allow_zero=False)
        if data.get('denied_amount') not in (None, '') else claim.total_amount
    )
    if denied_amount > claim.total_amount:
        raise ValidationError(
            message='Denied amount cannot exceed the claim total.',
            code='INVALID_AMOUNT',
            detail={'denied_amount': str(denied_amount), 'total_amount': str(claim.total_amount)},
        )
    denial_date = parse_date(data['denial_date'], 'denial_date') if data.get('denial_date') else date.today()

    with transaction.atomic():
        if claim.status != 'denied':
            update_claim_status(claim.id, 'denied')
        denial = ClaimDenial.objects.create(
            claim=claim,
            denial_code=code,
            denial_reason=(data.get('denial_reason') or '').strip() or DENIAL_REASONS.get(code, 'Unknown Reason'),
            denied_amount=denied_amount,
            denial_date=denial_date,
            category=categorize(code),
            appeal_deadline=denial_date + timedelta(days=APPEAL_WINDOW_DAYS) if is_appealable(code) else None,
        )

    logger.info("[Denials] denial id=%s on claim id=%s code=%s (%s)", denial.id, claim.id, code, denial.category)
    return denial


def get_denial(denial_id):
    return get_or_404(ClaimDenial, denial_id, 'Denial')


def list_denials(status=None, category=None, claim_id=None):
    denials = ClaimDenial.objects.select_related('claim', 'claim__patient', 'claim__primary_payer')
    if claim_id:
        denials = denials.filter(claim=get_claim_detail(claim_id))
    if status:
        denials = denials.filter(status=status)
    if category:
        denials = denials.filter(category=category)
    return denials.order_by('-denial_date', '-created_at')


def _appeal_letter(denial):
    claim = denial.claim
    return (
        f"Re: Appeal of denied claim for {claim.patient.full_name}, date of service "
        f"{claim.service_date.isoformat()}.\n\n"
        f"The claim was denied on {denial.denial_date.isoformat()} with code {denial.denial_code} "
        f"({denial.denial_reason}) for ${denial.denied_amount}. "
        f"We request reconsideration. {APPEAL_STRATEGIES.get(denial.denial_code, DEFAULT_STRATEGY)}"
    )


def create_appeal(denial_id, data, today=None):
    """Open a draft appeal. Blocks non-appealable codes, missed deadlines and a second active appeal."""
    denial = get_denial(denial_id)
    today = today or date.today()

    if not is_appealable(denial.denial_code):
        raise BlockError(
            message=f"Denial {denial.denial_code} is patient responsibility and cannot be appealed.",
            code='DENIAL_NOT_APPEALABLE',
            detail={'denial_id': str(denial.id), 'denial_code': denial.denial_code},
        )
    if denial.status not in ('open', 'appealed'):
        raise BlockError(
            message=f"Denial is {denial.status}; it can no longer be appealed.",
            code='DENIAL_CLOSED',
            detail={'denial_id': str(denial.id), 'status': denial.status},
        )
    if denial.appeal_deadline and today > denial.appeal_deadline:
        raise BlockError(
            message=f"The appeal deadline ({denial.appeal_deadline.isoformat()}) has passed.",
            code='APPEAL_DEADLINE_PASSED',
            detail={'appeal_deadline': denial.appeal_deadline.isoformat()},
        )
    active = denial.appeals.filter(status__in=('draft', 'submitted', 'under_review')).first()
    if active is not None:
        raise BlockError(
            message='This denial already has an appeal in progress.',
            code='APPEAL_IN_PROGRESS',
            detail={'appeal_id': str(active.id), 'status': active.status},
        )

    appeal_type = data.get('appeal_type') or 'standard'
    if appeal_type not in dict(DenialAppeal.TYPE_CHOICES):
        raise ValidationError(
            message=f"Invalid appeal type {appeal_type!r}.",
            code='INVALID_APPEAL_TYPE',
            detail={'allowed': list(dict(DenialAppeal.TYPE_CHOICES))},
        )
    documents = data.get('supporting_documents') or []
    if not isinstance(documents, list) or not all(isinstance(d, str) for d in documents):
        raise ValidationError(
            message='supporting_documents must be a list of document names.',
            code='INVALID_DOCUMENTS',
            detail={'field': 'supporting_documents'},
        )

    appeal = DenialAppeal.objects.create(
        denial=denial,
        appeal_type=appeal_type,
        appeal_letter=(data.get('appeal_letter') or '').strip() or _appeal_letter(denial),
        supporting_documents=documents,
    )
    logger.info("[Denials] appeal id=%s drafted for denial id=%s", appeal.id, denial.id)
    return appeal


def get_appeal(appeal_id):
    return get_or_404(DenialAppeal, appeal_id, 'Appeal')


def submit_appeal(appeal_id):
    appeal = get_appeal(appeal_id)
    if appeal.status != 'draft':
        raise BlockError(
            message=f"Only draft appeals can be submitted; this one is {appeal.status}.",
            code='INVALID_STATUS_TRANSITION',
            detail={'current_status': appeal.status, 'requested': 'submitted'},
        )
    with transaction.atomic():
        appeal.status = 'submitted'
        appeal.submitted_at = timezone.now()
        appeal.save(update_fields=['status', 'submitted_at'])
        denial = appeal.denial
        denial.status = 'appealed'
        denial.save(update_fields=['status', 'updated_at'])
    logger.info("[Denials] appeal id=%s submitted", appeal.id)
    return appeal


def record_appeal_outcome(appeal_id, data):
    """
    approved / partial: denial overturned, claim back to submitted.
    denied: denial upheld, claim stays denied.
    """
    appeal = get_appeal(appeal_id)
    require_fields(data, ('outcome',))
    outcome = data['outcome']
    if outcome not in OUTCOME_TO_APPEAL_STATUS:
        raise ValidationError(
            message=f"Invalid appeal outcome {outcome!r}.",
            code='INVALID_OUTCOME',
            detail={'allowed': list(OUTCOME_TO_APPEAL_STATUS)},
        )
    if appeal.status not in ('submitted', 'under_review'):
        raise BlockError(
            message=f"Appeal is {appeal.status}; only submitted appeals can receive an outcome.",
            code='INVALID_STATUS_TRANSITION',
            detail={'current_status': appeal.status, 'requested': outcome},
        )

    denial = appeal.denial
    if outcome == 'denied':
        outcome_amount = Decimal('0.00')
    elif data.get('outcome_amount') not in (None, ''):
        outcome_amount = parse_money(data['outcome_amount'], 'outcome_amount')
    else:
        outcome_amount = denial.denied_amount
    if outcome_amount > denial.denied_amount:
        raise ValidationError(
            message='Recovered amount cannot exceed the denied amount.',
            code='INVALID_AMOUNT',
            detail={'outcome_amount': str(outcome_amount), 'denied_amount': str(denial.denied_amount)},
        )

    with transaction.atomic():
        appeal.status = OUTCOME_TO_APPEAL_STATUS[outcome]
        appeal.outcome = outcome
        appeal.outcome_amount = outcome_amount
        appeal.response_received_at = timezone.now()
        appeal.save(update_fields=['status', 'outcome', 'outcome_amount', 'response_received_at'])

        denial.status = 'upheld' if outcome == 'denied' else 'overturned'
        denial.save(update_fields=['status', 'updated_at'])
        if outcome != 'denied' and denial.claim.status == 'denied':
            update_claim_status(denial.claim_id, 'submitted')

    logger.info("[Denials] appeal id=%s outcome=%s amount=%s", appeal.id, outcome, outcome_amount)
    return appeal


def write_off_denial(denial_id, data):
    denial = get_denial(denial_id)
    if denial.status not in ('open', 'upheld'):
        raise BlockError(
            message=f"Denial is {denial.status} and cannot be written off.",
            code='DENIAL_NOT_WRITABLE_OFF',
            detail={'denial_id': str(denial.id), 'status': denial.status},
        )
    denial.status = 'written_off'
    denial.save(update_fields=['status', 'updated_at'])
    logger.info("[Denials] denial id=%s written off: %s", denial.id, (data.get('reason') or '').strip())
    return denial


def denial_trends(days=30, today=None):
    """Denial volume, rate against claims created in the window, top codes and appeal success."""
    today = today or date.today()
    since = today - timedelta(days=days)

    denials = ClaimDenial.objects.filter(denial_date__gte=since)
    total_denials = denials.count()
    total_claims = Claim.objects.filter(created_at__date__gte=since).count()

    top_codes = [
        {
            'code': row['denial_code'],
            'reason': DENIAL_REASONS.get(row['denial_code'], 'Unknown Reason'),
            'count': row['count'],
            'rate': round(row['count'] * 100 / total_denials, 1),
        }
        for row in denials.values('denial_code').annotate(count=Count('id')).order_by('-count', 'denial_code')[:5]
    ]
    by_category = {category: 0 for category, _ in ClaimDenial.CATEGORY_CHOICES}
    for row in denials.values('category').annotate(count=Count('id')):
        by_category[row['category']] = row['count']

    decided = DenialAppeal.objects.filter(denial__in=denials).exclude(outcome='')
    decided_count = decided.count()
    won = decided.filter(outcome__in=('approved', 'partial')).count()

    return {
        'days': days,
        'total_denials': total_denials,
        'denial_rate': round(total_denials * 100 / total_claims, 1) if total_claims else 0.0,
        'top_denial_codes': top_codes,
        'by_category': by_category,
        'appeal_success_rate': round(won * 100 / decided_count, 1) if decided_count else 0.0,
    }
