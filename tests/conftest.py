"""
Shared fixtures for all tests.

factory-boy factories live here so both unit/ and integration/ can import them.
"""
import pytest
from datetime import date, time
from decimal import Decimal
from django.test import Client

import factory
from billing.models import (
    Appointment,
    BillingCycle,
    BillingStatement,
    ChatConversation,
    ChatMessage,
    Claim,
    ClaimDenial,
    ClaimDiagnosis,
    ClaimProcedure,
    CollectionAccount,
    DenialAppeal,
    EligibilityVerification,
    Facility,
    Patient,
    Payer,
    PaymentInstallment,
    PaymentPlan,
    PriorAuthorization,
    Provider,
)


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------

class PatientFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Patient

    mrn = factory.Sequence(lambda n: f'{100000 + n}')
    first_name = 'John'
    last_name = 'Doe'
    dob = date(1990, 1, 15)
    email = 'john.doe@example.com'


class ProviderFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Provider

    npi = factory.Sequence(lambda n: f'{1000000000 + n}')
    first_name = 'Sarah'
    last_name = 'Smith'
    credentials = 'MD'
    taxonomy_specialty = 'Internal Medicine'


class FacilityFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Facility

    name = factory.Sequence(lambda n: f'Main Street Clinic {n}')
    city = 'Springfield'
    state = 'IL'


class PayerFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Payer

    name = 'Blue Cross'
    plan_name = 'PPO Gold'
    payer_type = 'commercial'
    payer_id = factory.Sequence(lambda n: f'BC{n:04d}')


class ClaimFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Claim

    patient = factory.SubFactory(PatientFactory)
    provider = factory.SubFactory(ProviderFactory)
    primary_payer = factory.SubFactory(PayerFactory)
    service_date = date(2026, 10, 1)
    status = 'submitted'
    total_amount = Decimal('100.00')


class ClaimProcedureFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ClaimProcedure

    claim = factory.SubFactory(ClaimFactory)
    position = factory.Sequence(lambda n: n)
    cpt_code = '99213'
    description = 'Office visit, established patient, low complexity'
    units = 1
    amount = Decimal('100.00')


class ClaimDiagnosisFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ClaimDiagnosis

    claim = factory.SubFactory(ClaimFactory)
    position = factory.Sequence(lambda n: n)
    icd_code = 'I10'
    description = 'Essential (primary) hypertension'
    primary = True


class ClaimDenialFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ClaimDenial

    claim = factory.SubFactory(ClaimFactory, status='denied')
    denial_code = 'CO-50'
    denial_reason = 'Non-covered Services'
    denied_amount = Decimal('100.00')
    denial_date = date(2026, 10, 10)
    category = 'clinical'
    appeal_deadline = date(2026, 12, 9)


class DenialAppealFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = DenialAppeal

    denial = factory.SubFactory(ClaimDenialFactory)
    appeal_letter = 'Please reconsider.'


class PriorAuthorizationFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PriorAuthorization

    patient = factory.SubFactory(PatientFactory)
    payer = factory.SubFactory(PayerFactory)
    service_type = 'MRI'
    procedure_codes = factory.LazyFunction(lambda: ['70553'])
    diagnosis_codes = factory.LazyFunction(lambda: ['G43.909'])
    units_requested = 2
    service_start_date = date(2026, 11, 1)
    service_end_date = date(2026, 12, 31)


class EligibilityVerificationFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = EligibilityVerification

    patient = factory.SubFactory(PatientFactory)
    payer = factory.SubFactory(PayerFactory)
    is_eligible = True
    plan_type = 'PPO'
    network_status = 'in_network'
    member_id = factory.Sequence(lambda n: f'MEM{n:05d}')
    copay = Decimal('25.00')
    deductible_remaining = Decimal('500.00')
    coinsurance_percent = Decimal('20.00')
    total_collectible = Decimal('525.00')


class PaymentPlanFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PaymentPlan

    patient = factory.SubFactory(PatientFactory)
    total_amount = Decimal('1200.00')
    down_payment = Decimal('0.00')
    remaining_balance = Decimal('1200.00')
    monthly_payment = Decimal('100.00')
    number_of_payments = 12
    start_date = date(2026, 1, 15)
    end_date = date(2027, 1, 15)


class PaymentInstallmentFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = PaymentInstallment

    payment_plan = factory.SubFactory(PaymentPlanFactory)
    installment_number = factory.Sequence(lambda n: n + 1)
    due_date = date(2026, 2, 15)
    amount = Decimal('100.00')


class CollectionAccountFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = CollectionAccount

    patient_name = 'Jane Roe'
    patient_email = 'jane.roe@example.com'
    original_balance = Decimal('1000.00')
    current_balance = Decimal('1000.00')
    days_overdue = 95


class BillingCycleFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = BillingCycle

    name = 'Monthly statements'
    frequency = 'monthly'
    reminder_days = [15, 30, 60]


class BillingStatementFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = BillingStatement

    patient = factory.SubFactory(PatientFactory, preferred_channel='email')
    amount_due = Decimal('150.00')


class AppointmentFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Appointment

    patient = factory.SubFactory(PatientFactory)
    provider = factory.SubFactory(ProviderFactory)
    scheduled_date = date(2026, 11, 2)
    scheduled_time = time(9, 0)
    duration_minutes = 30


class ChatConversationFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ChatConversation

    patient = factory.SubFactory(PatientFactory)
    title = 'Billing question'


class ChatMessageFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = ChatMessage

    conversation = factory.SubFactory(ChatConversationFactory)
    message = 'Why is my balance $150?'
    is_ai = False


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def api_client():
    """Django test client for integration tests."""
    return Client()


@pytest.fixture
def claim_refs(db):
    """Patient, provider and payer rows a wizard payload can point at."""
    return {
        'patient': PatientFactory(mrn='999001', first_name='Alice', last_name='Wang'),
        'provider': ProviderFactory(npi='9999900001'),
        'payer': PayerFactory(name='Aetna'),
    }


@pytest.fixture
def sample_claim_payload(claim_refs):
    """Minimal valid payload for POST /api/claims/ ($100 + 2 x $45 = $190.00)."""
    return {
        'patient': {'id': str(claim_refs['patient'].id)},
        'serviceDate': '2026-10-01',
        'procedures': [
            {'cptCode': '99213', 'description': 'Office visit', 'units': 1, 'amount': 100},
            {'cptCode': '80053', 'description': 'Comprehensive metabolic panel', 'units': 2, 'amount': 45},
        ],
        'diagnoses': [
            {'icdCode': 'I10', 'description': 'Essential (primary) hypertension', 'primary': True},
        ],
        'insurance': {'primary': {'id': str(claim_refs['payer'].id)}, 'secondary': None, 'authNumber': ''},
        'provider': {'id': str(claim_refs['provider'].id)},
        'notes': '',
    }
