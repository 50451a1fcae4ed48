from datetime import datetime, timedelta, timezone as dt_timezone
from decimal import Decimal

import pytest

from billing.exceptions import ValidationError
from billing.models import BillingStatement, PaymentReminder
from billing.services.statements import (
    create_billing_cycle,
    create_statement,
    process_billing_cycle_run,
)
from tests.conftest import BillingCycleFactory, BillingStatementFactory, PatientFactory

NOW = datetime(2026, 10, 17, 9, 0, tzinfo=dt_timezone.utc)


@pytest.mark.django_db
class TestBillingCycles:

    def test_create_with_defaults(self):
        cycle = create_billing_cycle({'name': 'Monthly'})

        assert cycle.frequency == 'monthly'
        assert cycle.reminder_days == [15, 30, 60]
        assert cycle.is_active is True

    def test_invalid_frequency(self):
        with pytest.raises(ValidationError) as exc_info:
            create_billing_cycle({'name': 'Daily', 'frequency': 'daily'})
        assert exc_info.value.code == 'INVALID_FREQUENCY'

    def test_invalid_reminder_days(self):
        with pytest.raises(ValidationError) as exc_info:
            create_billing_cycle({'name': 'Monthly', 'reminder_days': [15, -1]})
        assert exc_info.value.code == 'INVALID_REMINDER_DAYS'


@pytest.mark.django_db
class TestStatements:

    def test_create_statement(self):
        patient = PatientFactory()
        statement = create_statement({'patient_id': str(patient.id), 'amount_due': '75.5', 'due_date': '2026-11-15'})

        assert statement.status == 'pending'
        assert statement.amount_due == Decimal('75.50')


@pytest.mark.django_db
class TestProcessBillingCycle:

    def test_no_active_cycle_does_nothing(self):
        BillingCycleFactory(is_active=False)
        statement = BillingStatementFactory()

        result = process_billing_cycle_run(now=NOW)

        assert result == {'message': 'No active cycles', 'processed_count': 0}
        statement.refresh_from_db()
        assert statement.status == 'pending'

    def test_sends_via_preferred_channel_and_schedules_reminder(self):
        BillingCycleFactory()
        statement = BillingStatementFactory(patient__preferred_channel='sms')

        result = process_billing_cycle_run(now=NOW)

        assert result['processed_count'] == 1
        statement.refresh_from_db()
        assert statement.status == 'sent'
        assert statement.channel == 'sms'
        assert statement.sent_at == NOW

        reminder = PaymentReminder.objects.get(statement=statement)
        assert reminder.reminder_type == '15_day_reminder'
        assert reminder.scheduled_for == NOW + timedelta(days=15)
        assert reminder.channel == 'sms'
        assert reminder.patient_id == statement.patient_id

    def test_patient_without_channel_skipped(self):
        BillingCycleFactory()
        BillingStatementFactory(patient__preferred_channel='')
        BillingStatementFactory()

        assert process_billing_cycle_run(now=NOW)['processed_count'] == 1
        assert BillingStatement.objects.filter(status='pending').count() == 1

    def test_already_sent_not_resent(self):
        BillingCycleFactory()
        BillingStatementFactory(status='sent')

        assert process_billing_cycle_run(now=NOW)['processed_count'] == 0
        assert PaymentReminder.objects.count() == 0
