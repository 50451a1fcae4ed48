"""
Integration tests for insurance-side endpoints: eligibility checks, claim
denials and appeals, prior authorizations.
"""
import json
from datetime import date, timedelta

import pytest

from billing.models import Claim, EligibilityVerification
from tests.conftest import (
    ClaimDenialFactory,
    ClaimFactory,
    EligibilityVerificationFactory,
    PatientFactory,
    PayerFactory,
    PriorAuthorizationFactory,
)


def send(api_client, method, url, payload=None):
    response = getattr(api_client, method)(
        url,
        data=json.dumps(payload) if payload is not None else None,
        content_type='application/json',
    )
    return response.status_code, json.loads(response.content) if response.content else None


# ===================================================================
# Eligibility
# ===================================================================

@pytest.mark.django_db
class TestEligibilityApi:

    def test_record_and_read_back(self, api_client):
        patient = PatientFactory()
        payer = PayerFactory(name='Aetna')

        status, body = send(api_client, 'post', '/api/eligibility/', {
            'patient_id': str(patient.id),
            'payer_id': str(payer.id),
            'is_eligible': True,
            'network_status': 'in_network',
            'plan_type': 'PPO',
            'copay': '30',
            'deductible_remaining': '250',
            'coinsurance_percent': '20',
            'visit_charges': '400.00',
            'allowed_amount': '300.00',
        })

        assert status == 201
        assert body['payer']['name'] == 'Aetna'
        assert body['coverage_active'] is True
        assert body['total_collectible'] == '280.00'
        assert body['estimated_responsibility'] == '284.00'
        assert body['coinsurance_percent'] == '20.00'

        status, detail = send(api_client, 'get', f"/api/eligibility/{body['id']}/")
        assert status == 200
        assert detail['member_id'] == ''

        _, history = send(api_client, 'get', f'/api/patients/{patient.id}/eligibility/')
        assert history['count'] == 1

    def test_string_flag_is_400(self, api_client):
        status, body = send(api_client, 'post', '/api/eligibility/', {
            'patient_id': str(PatientFactory().id), 'is_eligible': 'yes',
        })

        assert status == 400
        assert body['code'] == 'INVALID_FLAG'
        assert EligibilityVerification.objects.count() == 0

    def test_search_by_flag(self, api_client):
        EligibilityVerificationFactory()
        EligibilityVerificationFactory(is_eligible=False)

        status, body = send(api_client, 'get', '/api/eligibility/?eligible=false')

        assert status == 200
        assert body['count'] == 1
        assert body['checks'][0]['is_eligible'] is False

    def test_unknown_check_is_404(self, api_client):
        status, body = send(api_client, 'get', '/api/eligibility/00000000-0000-0000-0000-000000000000/')

        assert status == 404
        assert body['code'] == 'ELIGIBILITY_CHECK_NOT_FOUND'


# ===================================================================
# Denials + appeals
# ===================================================================

@pytest.mark.django_db
class TestDenialsApi:

    def test_denial_then_appeal_overturns(self, api_client):
        claim = ClaimFactory()

        status, denial = send(api_client, 'post', f'/api/claims/{claim.id}/denials/', {
            'denial_code': 'CO-11', 'denial_date': date.today().isoformat(),
        })
        assert status == 201
        assert denial['category'] == 'clinical'
        assert denial['analysis']['can_appeal'] is True
        assert Claim.objects.get(id=claim.id).status == 'denied'

        status, appeal = send(api_client, 'post', f"/api/denials/{denial['id']}/appeals/", {})
        assert status == 201
        assert appeal['status'] == 'draft'

        status, appeal = send(api_client, 'post', f"/api/appeals/{appeal['id']}/submit/")
        assert status == 200
        assert appeal['status'] == 'submitted'

        status, appeal = send(api_client, 'post', f"/api/appeals/{appeal['id']}/outcome/", {'outcome': 'approved'})
        assert status == 200
        assert appeal['outcome_amount'] == '100.00'

        _, detail = send(api_client, 'get', f"/api/denials/{denial['id']}/")
        assert detail['status'] == 'overturned'
        assert len(detail['appeals']) == 1
        assert Claim.objects.get(id=claim.id).status == 'submitted'

    def test_patient_responsibility_appeal_is_409(self, api_client):
        denial = ClaimDenialFactory(denial_code='CO-1', appeal_deadline=None)

        status, body = send(api_client, 'post', f'/api/denials/{denial.id}/appeals/', {})

        assert status == 409
        assert body['code'] == 'DENIAL_NOT_APPEALABLE'

    def test_draft_claim_cannot_be_denied(self, api_client):
        claim = ClaimFactory(status='draft')

        status, body = send(api_client, 'post', f'/api/claims/{claim.id}/denials/', {'denial_code': 'CO-50'})

        assert status == 409
        assert body['code'] == 'INVALID_STATUS_TRANSITION'

    def test_list_and_write_off(self, api_client):
        denial = ClaimDenialFactory()
        ClaimDenialFactory(denial_code='CO-16', category='authorization')

        _, listing = send(api_client, 'get', '/api/denials/?category=clinical')
        assert [d['id'] for d in listing['denials']] == [str(denial.id)]

        status, body = send(api_client, 'post', f'/api/denials/{denial.id}/write-off/', {'reason': 'Small balance'})
        assert status == 200
        assert body['status'] == 'written_off'

    def test_trends(self, api_client):
        ClaimDenialFactory(denial_date=date.today() - timedelta(days=3))

        status, body = send(api_client, 'get', '/api/denials/trends/?days=7')

        assert status == 200
        assert body['total_denials'] == 1
        assert body['top_denial_codes'][0]['code'] == 'CO-50'

    def test_trends_bad_days(self, api_client):
        status, body = send(api_client, 'get', '/api/denials/trends/?days=week')

        assert status == 400
        assert body['code'] == 'INVALID_NUMBER'


# ===================================================================
# Prior authorizations
# ===================================================================

@pytest.mark.django_db
class TestAuthorizationsApi:

    def test_create_and_approve(self, api_client):
        status, body = send(api_client, 'post', '/api/authorizations/', {
            'patient_id': str(PatientFactory().id),
            'procedure_codes': ['70553'],
            'service_start_date': '2026-11-01',
        })
        assert status == 201
        assert body['status'] == 'pending'

        url = f"/api/authorizations/{body['id']}/status/"
        send(api_client, 'patch', url, {'status': 'submitted'})
        status, body = send(api_client, 'patch', url, {'status': 'approved', 'auth_number': 'AUTH-9'})

        assert status == 200
        assert body['status'] == 'approved'
        assert body['units_approved'] == 1

    def test_bad_code_is_400(self, api_client):
        status, body = send(api_client, 'post', '/api/authorizations/', {
            'patient_id': str(PatientFactory().id),
            'procedure_codes': ['MRI'],
            'service_start_date': '2026-11-01',
        })

        assert status == 400
        assert body['code'] == 'INVALID_CODES'

    def test_skip_submission_is_409(self, api_client):
        authorization = PriorAuthorizationFactory()

        status, body = send(api_client, 'patch', f'/api/authorizations/{authorization.id}/status/', {
            'status': 'approved', 'auth_number': 'AUTH-9',
        })

        assert status == 409
        assert body['detail']['allowed'] == ['submitted', 'cancelled']

    def test_search(self, api_client):
        authorization = PriorAuthorizationFactory(status='submitted')
        PriorAuthorizationFactory()

        status, body = send(api_client, 'get', '/api/authorizations/?status=submitted')

        assert status == 200
        assert [a['id'] for a in body['authorizations']] == [str(authorization.id)]
