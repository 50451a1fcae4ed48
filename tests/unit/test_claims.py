"""
Claims service: wizard draft → persisted claim, and back.

覆盖：walk_wizard 步骤门控、submit_claim 落库、同日重复警告、编辑（replace）、状态流转、搜索。
"""
import uuid
from datetime import date
from decimal import Decimal

import pytest

from billing.exceptions import BlockError, ValidationError, WarningError
from billing.models import Claim
from billing.services.claims import (
    check_claim_duplicate,
    claim_to_draft,
    preview_claim,
    replace_claim,
    search_claims,
    submit_from_wizard,
    update_claim_status,
    walk_wizard,
)
from billing.wizard import ClaimDraft, DraftAggregator
from tests.conftest import (
    ClaimDiagnosisFactory,
    ClaimFactory,
    ClaimProcedureFactory,
    PatientFactory,
    PayerFactory,
    ProviderFactory,
)


def build_draft(patient=None, payer=None, provider=None, service_date='2026-10-01'):
    agg = DraftAggregator()
    agg.update({
        'patient': str(patient.id) if patient else None,
        'provider': str(provider.id) if provider else None,
    })
    agg.set_service_date(service_date)
    agg.add_procedure('99213', 'Office visit', 100)
    agg.add_procedure('80053', 'Metabolic panel', 45)
    agg.update_procedure(1, 'units', 2)
    agg.add_diagnosis('I10', 'Essential hypertension')
    agg.add_diagnosis('E11.9', 'Type 2 diabetes')
    agg.set_insurance(primary=str(payer.id) if payer else None, auth_number='AUTH-1')
    return agg.draft


class TestWalkWizard:

    def test_complete_draft_reaches_review(self):
        draft = ClaimDraft(patient='p-1')
        agg = DraftAggregator(draft)
        agg.add_procedure('99213', amount=100)
        agg.add_diagnosis('I10')
        agg.set_insurance(primary='payer-1')

        assert walk_wizard(draft).current_step == 5

    def test_incomplete_draft_names_blocking_step(self):
        draft = ClaimDraft(patient='p-1')

        with pytest.raises(ValidationError) as exc_info:
            walk_wizard(draft)

        assert exc_info.value.code == 'INCOMPLETE_CLAIM'
        assert exc_info.value.detail['step'] == 2
        assert exc_info.value.detail['title'] == 'Services'

    def test_preview_reports_each_step(self):
        preview = preview_claim(ClaimDraft(patient='p-1'))

        assert preview['total_amount'] == Decimal('0.00')
        assert [s['complete'] for s in preview['steps']] == [True, False, False, False, True]


@pytest.mark.django_db
class TestSubmitClaim:

    def test_submit_persists_claim_and_lines(self):
        patient, payer, provider = PatientFactory(), PayerFactory(), ProviderFactory()

        claim = submit_from_wizard(build_draft(patient, payer, provider))

        assert claim.status == 'submitted'
        assert claim.total_amount == Decimal('190.00')
        assert claim.service_date == date(2026, 10, 1)
        assert claim.auth_number == 'AUTH-1'
        assert [p.cpt_code for p in claim.procedures.all()] == ['99213', '80053']
        assert [(d.icd_code, d.primary) for d in claim.diagnoses.all()] == [('I10', True), ('E11.9', False)]

    def test_missing_service_date_defaults_to_today(self):
        patient, payer = PatientFactory(), PayerFactory()

        claim = submit_from_wizard(build_draft(patient, payer, service_date=''))

        assert claim.service_date == date.today()
        assert claim.provider is None

    def test_unknown_reference_rejected(self):
        draft = build_draft(PatientFactory(), PayerFactory())
        draft.insurance.primary = str(uuid.uuid4())

        with pytest.raises(ValidationError) as exc_info:
            submit_from_wizard(draft)

        assert exc_info.value.code == 'UNKNOWN_REFERENCE'
        assert exc_info.value.detail['field'] == 'insurance.primary'
        assert Claim.objects.count() == 0

    def test_incomplete_draft_not_persisted(self):
        draft = build_draft(PatientFactory(), payer=None)

        with pytest.raises(ValidationError) as exc_info:
            submit_from_wizard(draft)

        assert exc_info.value.detail['title'] == 'Insurance'
        assert Claim.objects.count() == 0

    def test_same_patient_same_date_needs_confirm(self):
        patient, payer = PatientFactory(), PayerFactory()
        first = submit_from_wizard(build_draft(patient, payer))

        with pytest.raises(WarningError) as exc_info:
            submit_from_wizard(build_draft(patient, payer))
        warning = exc_info.value.detail['warnings'][0]
        assert warning['code'] == 'DUPLICATE_CLAIM_SERVICE_DATE'
        assert warning['existing_claim_id'] == str(first.id)

        draft = build_draft(patient, payer)
        draft.confirm = True
        submit_from_wizard(draft)
        assert Claim.objects.filter(patient=patient).count() == 2

    def test_different_date_no_warning(self):
        claim = ClaimFactory(service_date=date(2026, 9, 1))
        assert check_claim_duplicate(claim.patient, date(2026, 10, 1)) == []


@pytest.mark.django_db
class TestEditClaim:

    def test_claim_to_draft_round_trip(self):
        claim = ClaimFactory()
        ClaimProcedureFactory(claim=claim, position=0, cpt_code='99213', units=2, amount=Decimal('50.00'))
        ClaimDiagnosisFactory(claim=claim, position=0, icd_code='I10', primary=True)

        draft = claim_to_draft(claim)

        assert draft.patient == str(claim.patient_id)
        assert draft.service_date == '2026-10-01'
        assert draft.total_amount == Decimal('100.00')
        assert draft.primary_diagnosis.code == 'I10'
        assert draft.insurance.primary == str(claim.primary_payer_id)

    def test_replace_overwrites_lines(self):
        patient, payer = PatientFactory(), PayerFactory()
        claim = submit_from_wizard(build_draft(patient, payer))

        draft = claim_to_draft(claim)
        agg = DraftAggregator(draft)
        agg.remove_procedure(1)
        agg.update({'notes': 'corrected'})
        replace_claim(claim.id, draft)

        claim.refresh_from_db()
        assert claim.total_amount == Decimal('100.00')
        assert claim.notes == 'corrected'
        assert claim.procedures.count() == 1

    def test_replace_paid_claim_blocked(self):
        claim = ClaimFactory(status='paid')

        with pytest.raises(BlockError) as exc_info:
            replace_claim(claim.id, ClaimDraft())
        assert exc_info.value.code == 'CLAIM_NOT_EDITABLE'


@pytest.mark.django_db
class TestClaimStatus:

    @pytest.mark.parametrize('start,target', [
        ('draft', 'submitted'),
        ('submitted', 'accepted'),
        ('submitted', 'denied'),
        ('accepted', 'paid'),
        ('denied', 'submitted'),
    ])
    def test_allowed_transitions(self, start, target):
        claim = ClaimFactory(status=start)
        assert update_claim_status(claim.id, target).status == target

    def test_paid_is_final(self):
        claim = ClaimFactory(status='paid')

        with pytest.raises(BlockError) as exc_info:
            update_claim_status(claim.id, 'submitted')

        assert exc_info.value.code == 'INVALID_STATUS_TRANSITION'
        assert exc_info.value.detail['allowed'] == []

    def test_missing_claim_404(self):
        with pytest.raises(BlockError) as exc_info:
            update_claim_status(uuid.uuid4(), 'paid')
        assert exc_info.value.code == 'CLAIM_NOT_FOUND'
        assert exc_info.value.http_status == 404


@pytest.mark.django_db
class TestSearchClaims:

    def test_search_by_mrn_cpt_and_status(self):
        alice = PatientFactory(mrn='123456', first_name='Alice')
        claim = ClaimFactory(patient=alice, status='denied')
        ClaimProcedureFactory(claim=claim, cpt_code='93000')
        ClaimFactory()

        assert [c.id for c in search_claims('123456')] == [claim.id]
        assert [c.id for c in search_claims('93000')] == [claim.id]
        assert [c.id for c in search_claims('', status='denied')] == [claim.id]
        assert len(search_claims('')) == 2

    def test_capped_at_limit(self):
        patient = PatientFactory()
        for _ in range(3):
            ClaimFactory(patient=patient)
        assert len(search_claims('', limit=2)) == 2
