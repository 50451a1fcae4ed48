import calendar
import logging
from datetime import date
from decimal import Decimal

from django.db import transaction
from django.utils import timezone

from ..exceptions import BlockError, ValidationError
from ..models import PaymentInstallment, PaymentPlan
from .common import get_or_404, parse_date, parse_money, parse_positive_int, require_fields
from .patients import get_patient

logger = logging.getLogger(__name__)


def add_months(start, months):
    """
    ``start`` shifted by ``months`` calendar months. Days past the end of the
    target month clamp to its last day (Jan 31 + 1 month -> Feb 28/29).
    """
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def installment_schedule(start_date, number_of_payments, monthly_payment):
    """(installment_number, due_date, amount) for installments 1..N, one month apart."""
    return [
        (i, add_months(start_date, i), monthly_payment)
        for i in range(1, number_of_payments + 1)
    ]


def create_payment_plan(data):
    """
    Create a plan and its installment schedule in one transaction.

    remaining_balance = total - down payment; end_date = start + N months.
    """
    require_fields(data, ('patient_id', 'total_amount', 'monthly_payment', 'number_of_payments'))
    patient = get_patient(data['patient_id'])
    total_amount = parse_money(data['total_amount'], 'total_amount', allow_zero=False)
    down_payment = parse_money(data.get('down_payment') or 0, 'down_payment')
    monthly_payment = parse_money(data['monthly_payment'], 'monthly_payment', allow_zero=False)
    number_of_payments = parse_positive_int(data['number_of_payments'], 'number_of_payments')
    start_date = parse_date(data['start_date'], 'start_date') if data.get('start_date') else date.today()

    if down_payment > total_amount:
        raise ValidationError(
            message='Down payment cannot exceed the total amount.',
            code='INVALID_AMOUNT',
            detail={'total_amount': str(total_amount), 'down_payment': str(down_payment)},
        )

    with transaction.atomic():
        plan = PaymentPlan.objects.create(
            patient=patient,
            total_amount=total_amount,
            down_payment=down_payment,
            remaining_balance=total_amount - down_payment,
            monthly_payment=monthly_payment,
            number_of_payments=number_of_payments,
            start_date=start_date,
            end_date=add_months(start_date, number_of_payments),
            auto_pay=bool(data.get('auto_pay', False)),
            notes=data.get('notes') or '',
        )
        PaymentInstallment.objects.bulk_create([
            PaymentInstallment(payment_plan=plan, installment_number=number, due_date=due_date, amount=amount)
            for number, due_date, amount in installment_schedule(start_date, number_of_payments, monthly_payment)
        ])

    logger.info(
        "[PaymentPlans] plan id=%s created for patient=%s: %d x %s from %s",
        plan.id, patient.mrn, number_of_payments, monthly_payment, start_date,
    )
    return plan


def get_payment_plan(plan_id):
    return get_or_404(PaymentPlan, plan_id, 'Payment plan')


def record_installment_payment(installment_id, amount, method='manual'):
    """
    Record a payment against one installment and roll the plan forward.
    A payment below the installment amount leaves it ``partial``.
    """
    installment = get_or_404(PaymentInstallment, installment_id, 'Installment')
    amount = parse_money(amount, 'amount', allow_zero=False)
    if installment.status == 'paid':
        raise BlockError(
            message=f"Installment {installment.installment_number} is already paid.",
            code='INSTALLMENT_ALREADY_PAID',
            detail={'installment_id': str(installment.id)},
        )

    with transaction.atomic():
        installment.paid_amount = installment.paid_amount + amount
        installment.status = 'paid' if installment.paid_amount >= installment.amount else 'partial'
        installment.paid_date = timezone.now()
        installment.payment_method = method or 'manual'
        installment.save(update_fields=['paid_amount', 'status', 'paid_date', 'payment_method'])

        plan = installment.payment_plan
        installments = list(plan.installments.all())
        paid_total = sum((i.paid_amount for i in installments), Decimal('0.00'))
        plan.payments_completed = sum(1 for i in installments if i.status == 'paid')
        plan.remaining_balance = max(plan.total_amount - plan.down_payment - paid_total, Decimal('0.00'))
        if plan.payments_completed == plan.number_of_payments:
            plan.status = 'completed'
        plan.save(update_fields=['payments_completed', 'remaining_balance', 'status', 'updated_at'])

    logger.info(
        "[PaymentPlans] installment %d of plan id=%s -> %s (paid %s)",
        installment.installment_number, plan.id, installment.status, installment.paid_amount,
    )
    return installment


def update_plan_status(plan_id, status):
    if status not in dict(PaymentPlan.STATUS_CHOICES):
        raise ValidationError(
            message=f"Invalid payment plan status {status!r}.",
            code='INVALID_STATUS',
            detail={'allowed': list(dict(PaymentPlan.STATUS_CHOICES))},
        )
    plan = get_payment_plan(plan_id)
    plan.status = status
    plan.save(update_fields=['status', 'updated_at'])
    return plan


def list_payment_plans(status=None, patient_id=None):
    plans = PaymentPlan.objects.select_related('patient')
    if status:
        plans = plans.filter(status=status)
    if patient_id:
        plans = plans.filter(patient_id=patient_id)
    return plans.order_by('-created_at')


def get_overdue_plans(today=None):
    """Plans whose end date has passed without being completed."""
    today = today or date.today()
    return (
        PaymentPlan.objects.filter(end_date__lt=today)
        .exclude(status__in=('completed', 'cancelled'))
        .order_by('end_date')
    )


def remaining_payments(plan):
    return plan.number_of_payments - (plan.payments_completed or 0)


def progress_percentage(plan):
    return (plan.payments_completed or 0) / plan.number_of_payments * 100


def next_installment(plan):
    return plan.installments.exclude(status='paid').order_by('installment_number').first()


def mark_overdue_installments(today=None):
    """Pending or partial installments past their due date become overdue. Returns the count."""
    today = today or date.today()
    updated = PaymentInstallment.objects.filter(
        status__in=('pending', 'partial'),
        due_date__lt=today,
        payment_plan__status='active',
    ).update(status='overdue')
    logger.info("[PaymentPlans] %d installments marked overdue", updated)
    return updated
