"""
Eligibility checks: patient-responsibility estimate, recording, lookups.
"""
import uuid
from datetime import timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from billing.exceptions import BlockError, ValidationError
from billing.models import EligibilityVerification
from billing.services.eligibility import (
    estimate_responsibility,
    latest_eligibility,
    list_patient_eligibility,
    record_eligibility_check,
    search_eligibility,
)
from tests.conftest import EligibilityVerificationFactory, PatientFactory, PayerFactory

D = Decimal


class TestEstimate:

    @pytest.mark.parametrize('charges,allowed,copay,deductible,coins,expected', [
        # allowed amount wins over charges; copay + deductible swallow it all
        ('200.00', '150.00', '25.00', '500.00', '20', '150.00'),
        # copay, then deductible, then 20% of the rest
        ('1000.00', None, '25.00', '100.00', '20', '300.00'),
        # copay larger than the visit
        ('10.00', None, '25.00', '0.00', '0', '10.00'),
        # deductible met, coinsurance only
        ('500.00', '400.00', '0.00', '0.00', '20', '80.00'),
        ('0.00', None, '0.00', '0.00', '0', '0.00'),
    ])
    def test_patient_responsibility(self, charges, allowed, copay, deductible, coins, expected):
        estimate = estimate_responsibility(
            D(charges), D(allowed) if allowed else None, D(copay), D(deductible), D(coins),
        )
        assert estimate['patient_responsibility'] == D(expected)
        assert estimate['patient_responsibility'] + estimate['insurance_pays'] == estimate['base']

    def test_not_eligible_owes_everything(self):
        estimate = estimate_responsibility(D('1000.00'), None, D('25.00'), D('100.00'), D('20'), is_eligible=False)

        assert estimate['patient_responsibility'] == D('1000.00')
        assert estimate['insurance_pays'] == D('0.00')


@pytest.mark.django_db
class TestRecordEligibilityCheck:

    def _data(self, **overrides):
        data = {
            'patient_id': str(PatientFactory().id),
            'payer_id': str(PayerFactory().id),
            'is_eligible': True,
            'network_status': 'in_network',
            'member_id': ' MEM001 ',
            'copay': '25.00',
            'deductible_remaining': '100.00',
            'coinsurance_percent': '20',
            'visit_charges': '1000.00',
        }
        data.update(overrides)
        return data

    def test_record(self):
        check = record_eligibility_check(self._data())

        assert check.member_id == 'MEM001'
        assert check.estimated_responsibility == D('300.00')
        assert check.total_collectible == D('125.00')
        assert check.coinsurance_percent == D('20.00')

    def test_minimal(self):
        check = record_eligibility_check({'patient_id': str(PatientFactory().id), 'is_eligible': False})

        assert check.payer is None
        assert check.network_status == 'unknown'
        assert check.total_collectible == D('0.00')
        assert check.coverage_active is False

    @pytest.mark.parametrize('flag', ['true', 1, None])
    def test_is_eligible_must_be_boolean(self, flag):
        with pytest.raises(ValidationError) as exc_info:
            record_eligibility_check(self._data(is_eligible=flag))
        assert exc_info.value.code in ('INVALID_FLAG', 'MISSING_REQUIRED_FIELDS')
        assert EligibilityVerification.objects.count() == 0

    @pytest.mark.parametrize('overrides,code', [
        ({'network_status': 'partner'}, 'INVALID_NETWORK_STATUS'),
        ({'coinsurance_percent': '120'}, 'INVALID_PERCENTAGE'),
        ({'copay': '-5'}, 'INVALID_AMOUNT'),
        ({'effective_date': '2026-06-01', 'termination_date': '2026-01-01'}, 'INVALID_DATE_RANGE'),
        ({'service_date': 'June'}, 'INVALID_DATE'),
    ])
    def test_invalid_values(self, overrides, code):
        with pytest.raises(ValidationError) as exc_info:
            record_eligibility_check(self._data(**overrides))
        assert exc_info.value.code == code

    def test_unknown_payer(self):
        with pytest.raises(BlockError) as exc_info:
            record_eligibility_check(self._data(payer_id=str(uuid.uuid4())))
        assert exc_info.value.http_status == 404

    @pytest.mark.parametrize('service_date,active', [
        ('2026-03-01', True),
        ('2025-12-31', False),
        ('2027-01-01', False),
    ])
    def test_coverage_window(self, service_date, active):
        check = record_eligibility_check(self._data(
            effective_date='2026-01-01', termination_date='2026-12-31', service_date=service_date,
        ))
        assert check.coverage_active is active


@pytest.mark.django_db
class TestLookups:

    def test_latest_and_history(self):
        patient = PatientFactory()
        older = EligibilityVerificationFactory(patient=patient)
        newer = EligibilityVerificationFactory(patient=patient, is_eligible=False)
        EligibilityVerification.objects.filter(id=older.id).update(verified_at=timezone.now() - timedelta(days=30))

        assert latest_eligibility(patient).id == newer.id
        assert [c.id for c in list_patient_eligibility(patient.id)] == [newer.id, older.id]

    def test_no_checks(self):
        assert latest_eligibility(PatientFactory()) is None

    def test_search(self):
        aetna = PayerFactory(name='Aetna')
        match = EligibilityVerificationFactory(patient__last_name='Nguyen', payer=aetna)
        EligibilityVerificationFactory(patient__last_name='Nguyen', is_eligible=False)
        EligibilityVerificationFactory(patient__last_name='Okafor', payer=aetna)

        assert [c.id for c in search_eligibility('nguyen', payer_id=aetna.id)] == [match.id]
        assert search_eligibility(eligible='false').count() == 1
        assert search_eligibility(match.member_id).get().id == match.id

    def test_search_unknown_payer(self):
        with pytest.raises(BlockError):
            search_eligibility(payer_id=str(uuid.uuid4()))
