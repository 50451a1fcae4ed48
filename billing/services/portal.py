from datetime import date
from decimal import Decimal

from django.db.models import Sum

from .eligibility import latest_eligibility
from .patients import get_patient
from .payment_plans import next_installment

RECENT_CLAIMS = 5


def get_portal_summary(patient_id, today=None):
    """Everything the patient portal home page shows for one patient."""
    patient = get_patient(patient_id)
    today = today or date.today()

    open_statements = patient.statements.exclude(status='paid').order_by('due_date', 'created_at')
    balance_due = open_statements.aggregate(total=Sum('amount_due'))['total'] or Decimal('0.00')

    active_plans = [
        (plan, next_installment(plan))
        for plan in patient.payment_plans.filter(status='active').order_by('start_date')
    ]

    return {
        'patient': patient,
        'balance_due': balance_due,
        'open_statements': list(open_statements),
        'active_plans': active_plans,
        'upcoming_appointments': list(
            patient.appointments.filter(scheduled_date__gte=today)
            .exclude(status__in=('cancelled', 'completed', 'no_show'))
        ),
        'recent_claims': list(patient.claims.order_by('-created_at')[:RECENT_CLAIMS]),
        'coverage': latest_eligibility(patient),
    }
