"""
HTTP 层：只做「请求 → service → serializer → 响应」。

所有错误由 service 层 raise，exception_handler 统一格式化，View 里没有 try/except。
"""
from django.http import HttpResponse
from rest_framework import status as http
from rest_framework.response import Response
from rest_framework.views import APIView

from . import codes, serializers
from .exceptions import ValidationError
from .intake import get_adapter
from .services import (
    authorizations,
    chat,
    claims,
    collections,
    denials,
    eligibility,
    patients,
    payment_plans,
    portal,
    registry,
    scheduling,
    statements,
)
from .services.common import parse_positive_int, require_fields
from .wizard import ClaimDraft


def _csv_response(content, filename):
    response = HttpResponse(content, content_type='text/csv')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    return response


def _parse_draft(request):
    source = request.headers.get('X-Claim-Source', 'wizard')
    draft = get_adapter(source, request.body, request.content_type or '').process()
    if not isinstance(draft, ClaimDraft):
        raise ValidationError(
            message=f"Intake source {source!r} does not produce claims.",
            code='UNKNOWN_SOURCE',
            detail={'source': source},
        )
    return draft


# ── Patients ───────────────────────────────────────────────────────────────

class PatientListView(APIView):
    """GET /api/patients/?q= | POST /api/patients/"""

    def get(self, request):
        found = patients.search_patients(request.query_params.get('q'))
        return Response(serializers.serialize_list('patients', found, serializers.serialize_patient))

    def post(self, request):
        patient, created = patients.create_patient(request.data)
        return Response(
            serializers.serialize_patient(patient),
            status=http.HTTP_201_CREATED if created else http.HTTP_200_OK,
        )


class PatientDetailView(APIView):

    def get(self, request, patient_id):
        return Response(serializers.serialize_patient(patients.get_patient(patient_id)))

    def patch(self, request, patient_id):
        return Response(serializers.serialize_patient(patients.update_patient(patient_id, request.data)))

    def delete(self, request, patient_id):
        patients.delete_patient(patient_id)
        return Response(status=http.HTTP_204_NO_CONTENT)


# ── Providers ──────────────────────────────────────────────────────────────

class ProviderListView(APIView):

    def get(self, request):
        found = registry.search_providers(request.query_params.get('q'), request.query_params.get('status'))
        return Response(serializers.serialize_list('providers', found, serializers.serialize_provider))

    def post(self, request):
        provider, created = registry.create_provider(request.data)
        return Response(
            serializers.serialize_provider(provider),
            status=http.HTTP_201_CREATED if created else http.HTTP_200_OK,
        )


class ProviderDetailView(APIView):

    def get(self, request, provider_id):
        return Response(serializers.serialize_provider(registry.get_provider(provider_id)))

    def patch(self, request, provider_id):
        return Response(serializers.serialize_provider(registry.update_provider(provider_id, request.data)))

    def delete(self, request, provider_id):
        registry.delete_provider(provider_id)
        return Response(status=http.HTTP_204_NO_CONTENT)


class ProviderExportView(APIView):
    """GET /api/providers/export/: honours the same ?q= / ?status= filters as the list."""

    def get(self, request):
        found = registry.search_providers(request.query_params.get('q'), request.query_params.get('status'))
        return _csv_response(registry.export_providers_csv(found), 'providers.csv')


class ProviderImportView(APIView):
    """POST /api/providers/import/: raw CSV body."""

    def post(self, request):
        return Response(registry.import_providers_csv(request.body))


# ── Facilities ─────────────────────────────────────────────────────────────

class FacilityListView(APIView):

    def get(self, request):
        found = registry.search_facilities(request.query_params.get('q'), request.query_params.get('status'))
        return Response(serializers.serialize_list('facilities', found, serializers.serialize_facility))

    def post(self, request):
        facility = registry.create_facility(request.data)
        return Response(serializers.serialize_facility(facility), status=http.HTTP_201_CREATED)


class FacilityDetailView(APIView):

    def get(self, request, facility_id):
        return Response(serializers.serialize_facility(registry.get_facility(facility_id)))

    def patch(self, request, facility_id):
        return Response(serializers.serialize_facility(registry.update_facility(facility_id, request.data)))

    def delete(self, request, facility_id):
        registry.delete_facility(facility_id)
        return Response(status=http.HTTP_204_NO_CONTENT)


class FacilityExportView(APIView):

    def get(self, request):
        found = registry.search_facilities(request.query_params.get('q'), request.query_params.get('status'))
        return _csv_response(registry.export_facilities_csv(found), 'facilities.csv')


class FacilityImportView(APIView):

    def post(self, request):
        return Response(registry.import_facilities_csv(request.body))


# ── Payers ─────────────────────────────────────────────────────────────────

class PayerListView(APIView):

    def get(self, request):
        found = registry.search_payers(request.query_params.get('q'), request.query_params.get('type'))
        return Response(serializers.serialize_list('payers', found, serializers.serialize_payer))

    def post(self, request):
        payer = registry.create_payer(request.data)
        return Response(serializers.serialize_payer(payer), status=http.HTTP_201_CREATED)


class PayerDetailView(APIView):

    def get(self, request, payer_id):
        return Response(serializers.serialize_payer(registry.get_payer(payer_id)))

    def patch(self, request, payer_id):
        return Response(serializers.serialize_payer(registry.update_payer(payer_id, request.data)))

    def delete(self, request, payer_id):
        registry.delete_payer(payer_id)
        return Response(status=http.HTTP_204_NO_CONTENT)


# ── Code search ────────────────────────────────────────────────────────────

class CptCodeSearchView(APIView):

    def get(self, request):
        found = codes.search_cpt_codes(request.query_params.get('q', ''))
        return Response(serializers.serialize_list('codes', found, serializers.serialize_code))


class IcdCodeSearchView(APIView):

    def get(self, request):
        found = codes.search_icd_codes(request.query_params.get('q', ''))
        return Response(serializers.serialize_list('codes', found, serializers.serialize_code))


# ── Claims ─────────────────────────────────────────────────────────────────

class ClaimListView(APIView):
    """
    GET  /api/claims/?q=&status= : search
    POST /api/claims/            : submit a wizard draft (X-Claim-Source selects the intake adapter)
    """

    def get(self, request):
        found = claims.search_claims(request.query_params.get('q'), request.query_params.get('status'))
        return Response(serializers.serialize_claim_search_results(found))

    def post(self, request):
        draft = _parse_draft(request)
        claim = claims.submit_from_wizard(draft)
        return Response(serializers.serialize_claim_created(claim), status=http.HTTP_201_CREATED)


class ClaimPreviewView(APIView):

    def post(self, request):
        draft = _parse_draft(request)
        return Response(serializers.serialize_claim_preview(claims.preview_claim(draft)))


class ClaimDetailView(APIView):

    def get(self, request, claim_id):
        return Response(serializers.serialize_claim_detail(claims.get_claim_detail(claim_id)))

    def put(self, request, claim_id):
        draft = _parse_draft(request)
        claim = claims.replace_claim(claim_id, draft)
        return Response(serializers.serialize_claim_detail(claim))


class ClaimDraftView(APIView):
    """GET /api/claims/<id>/draft/: the stored claim as a wizard draft (edit mode)."""

    def get(self, request, claim_id):
        claim = claims.get_claim_detail(claim_id)
        return Response(serializers.serialize_draft(claims.claim_to_draft(claim)))


class ClaimStatusView(APIView):

    def patch(self, request, claim_id):
        require_fields(request.data, ('status',))
        claim = claims.update_claim_status(claim_id, request.data['status'])
        return Response(serializers.serialize_claim_detail(claim))


# ── Denials / appeals ──────────────────────────────────────────────────────

class ClaimDenialView(APIView):

    def get(self, request, claim_id):
        found = denials.list_denials(claim_id=claim_id)
        return Response(serializers.serialize_list('denials', found, serializers.serialize_denial))

    def post(self, request, claim_id):
        denial = denials.record_denial(claim_id, request.data)
        return Response(serializers.serialize_denial(denial, include_analysis=True), status=http.HTTP_201_CREATED)


class DenialListView(APIView):

    def get(self, request):
        found = denials.list_denials(request.query_params.get('status'), request.query_params.get('category'))
        return Response(serializers.serialize_list('denials', found, serializers.serialize_denial))


class DenialTrendsView(APIView):
    """GET /api/denials/trends/?days=30"""

    def get(self, request):
        days = parse_positive_int(request.query_params.get('days', 30), 'days')
        return Response(denials.denial_trends(days))


class DenialDetailView(APIView):

    def get(self, request, denial_id):
        denial = denials.get_denial(denial_id)
        return Response(serializers.serialize_denial(denial, include_analysis=True))


class DenialAppealView(APIView):

    def post(self, request, denial_id):
        appeal = denials.create_appeal(denial_id, request.data)
        return Response(serializers.serialize_appeal(appeal), status=http.HTTP_201_CREATED)


class DenialWriteOffView(APIView):

    def post(self, request, denial_id):
        denial = denials.write_off_denial(denial_id, request.data)
        return Response(serializers.serialize_denial(denial))


class AppealSubmitView(APIView):

    def post(self, request, appeal_id):
        return Response(serializers.serialize_appeal(denials.submit_appeal(appeal_id)))


class AppealOutcomeView(APIView):
    """POST /api/appeals/<id>/outcome/ {outcome: approved|partial|denied, outcome_amount?}"""

    def post(self, request, appeal_id):
        appeal = denials.record_appeal_outcome(appeal_id, request.data)
        return Response(serializers.serialize_appeal(appeal))


# ── Prior authorizations ───────────────────────────────────────────────────

class AuthorizationListView(APIView):

    def get(self, request):
        found = authorizations.search_authorizations(
            request.query_params.get('q'),
            request.query_params.get('status'),
            request.query_params.get('patient_id'),
        )
        return Response(serializers.serialize_list('authorizations', found, serializers.serialize_authorization))

    def post(self, request):
        authorization = authorizations.create_authorization(request.data)
        return Response(serializers.serialize_authorization(authorization), status=http.HTTP_201_CREATED)


class AuthorizationDetailView(APIView):

    def get(self, request, authorization_id):
        return Response(serializers.serialize_authorization(authorizations.get_authorization(authorization_id)))


class AuthorizationStatusView(APIView):

    def patch(self, request, authorization_id):
        authorization = authorizations.update_authorization_status(authorization_id, request.data)
        return Response(serializers.serialize_authorization(authorization))


# ── Eligibility ────────────────────────────────────────────────────────────

class EligibilityListView(APIView):
    """
    GET  /api/eligibility/?q=&payer_id=&eligible=true|false : search
    POST /api/eligibility/                                  : record a payer response
    """

    def get(self, request):
        found = eligibility.search_eligibility(
            request.query_params.get('q'),
            request.query_params.get('payer_id'),
            request.query_params.get('eligible'),
        )
        return Response(serializers.serialize_list('checks', found, serializers.serialize_eligibility))

    def post(self, request):
        check = eligibility.record_eligibility_check(request.data)
        return Response(serializers.serialize_eligibility(check), status=http.HTTP_201_CREATED)


class EligibilityDetailView(APIView):

    def get(self, request, check_id):
        return Response(serializers.serialize_eligibility(eligibility.get_eligibility_check(check_id)))


class PatientEligibilityView(APIView):

    def get(self, request, patient_id):
        found = eligibility.list_patient_eligibility(patient_id)
        return Response(serializers.serialize_list('checks', found, serializers.serialize_eligibility))


# ── Payment plans ──────────────────────────────────────────────────────────

class PaymentPlanListView(APIView):

    def get(self, request):
        if request.query_params.get('overdue'):
            found = payment_plans.get_overdue_plans()
        else:
            found = payment_plans.list_payment_plans(
                request.query_params.get('status'), request.query_params.get('patient_id'),
            )
        return Response(serializers.serialize_list('payment_plans', found, serializers.serialize_payment_plan))

    def post(self, request):
        plan = payment_plans.create_payment_plan(request.data)
        return Response(
            serializers.serialize_payment_plan(plan, include_installments=True),
            status=http.HTTP_201_CREATED,
        )


class PaymentPlanDetailView(APIView):

    def get(self, request, plan_id):
        plan = payment_plans.get_payment_plan(plan_id)
        return Response(serializers.serialize_payment_plan(plan, include_installments=True))


class PaymentPlanStatusView(APIView):

    def patch(self, request, plan_id):
        require_fields(request.data, ('status',))
        plan = payment_plans.update_plan_status(plan_id, request.data['status'])
        return Response(serializers.serialize_payment_plan(plan))


class InstallmentPaymentView(APIView):
    """POST /api/installments/<id>/pay/ {amount, payment_method?}"""

    def post(self, request, installment_id):
        require_fields(request.data, ('amount',))
        installment = payment_plans.record_installment_payment(
            installment_id, request.data['amount'], request.data.get('payment_method'),
        )
        plan = installment.payment_plan
        plan.refresh_from_db()
        return Response({
            'installment': serializers.serialize_installment(installment),
            'payment_plan': serializers.serialize_payment_plan(plan),
        })


# ── Collections ────────────────────────────────────────────────────────────

class CollectionAccountListView(APIView):

    def get(self, request):
        found = collections.search_collection_accounts(
            request.query_params.get('q'),
            request.query_params.get('stage'),
            request.query_params.get('status'),
        )
        return Response(serializers.serialize_list('accounts', found, serializers.serialize_collection_account))

    def post(self, request):
        account = collections.create_collection_account(request.data)
        return Response(serializers.serialize_collection_account(account), status=http.HTTP_201_CREATED)


class CollectionAccountDetailView(APIView):

    def get(self, request, account_id):
        account = collections.get_collection_account(account_id)
        body = serializers.serialize_collection_account(account)
        body['activities'] = [serializers.serialize_activity(a) for a in account.activities.all()]
        body['settlements'] = [serializers.serialize_settlement(s) for s in account.settlements.all()]
        body['letters'] = [serializers.serialize_letter(letter) for letter in account.letters.all()]
        return Response(body)

    def patch(self, request, account_id):
        account = collections.update_collection_account(account_id, request.data)
        return Response(serializers.serialize_collection_account(account))

    def delete(self, request, account_id):
        collections.delete_collection_account(account_id)
        return Response(status=http.HTTP_204_NO_CONTENT)


class CollectionActivityView(APIView):

    def post(self, request, account_id):
        activity = collections.log_contact_activity(account_id, request.data)
        return Response(serializers.serialize_activity(activity), status=http.HTTP_201_CREATED)


class SettlementOfferView(APIView):

    def post(self, request, account_id):
        offer = collections.create_settlement_offer(account_id, request.data)
        return Response(serializers.serialize_settlement(offer), status=http.HTTP_201_CREATED)


class DisputeView(APIView):

    def post(self, request, account_id):
        activity = collections.open_dispute(account_id, request.data)
        return Response(serializers.serialize_activity(activity), status=http.HTTP_201_CREATED)


class AttorneyReferralView(APIView):

    def post(self, request, account_id):
        activity = collections.refer_to_attorney(account_id, request.data)
        return Response(serializers.serialize_activity(activity), status=http.HTTP_201_CREATED)


class CollectionLetterView(APIView):
    """POST /api/collections/<id>/letters/ {letter_type?}: records the letter and a letter_sent activity."""

    def post(self, request, account_id):
        letter = collections.send_collection_letter(account_id, request.data)
        return Response(serializers.serialize_letter(letter), status=http.HTTP_201_CREATED)


class CollectionsSummaryView(APIView):

    def get(self, request):
        return Response(serializers.serialize_collections_summary(collections.collections_summary()))


# ── Billing cycles / statements ────────────────────────────────────────────

class BillingCycleListView(APIView):

    def get(self, request):
        found = statements.list_billing_cycles(bool(request.query_params.get('active')))
        return Response(serializers.serialize_list('cycles', found, serializers.serialize_billing_cycle))

    def post(self, request):
        cycle = statements.create_billing_cycle(request.data)
        return Response(serializers.serialize_billing_cycle(cycle), status=http.HTTP_201_CREATED)


class BillingCycleDetailView(APIView):
    """PATCH /api/billing-cycles/<id>/ {is_active}"""

    def patch(self, request, cycle_id):
        require_fields(request.data, ('is_active',))
        cycle = statements.set_cycle_active(cycle_id, request.data['is_active'])
        return Response(serializers.serialize_billing_cycle(cycle))


class BillingCycleRunView(APIView):
    """POST /api/billing-cycles/run/: run the statement send synchronously (beat runs it daily)."""

    def post(self, request):
        return Response(statements.process_billing_cycle_run())


class StatementListView(APIView):

    def get(self, request):
        found = statements.list_statements(
            request.query_params.get('status'), request.query_params.get('patient_id'),
        )
        return Response(serializers.serialize_list('statements', found, serializers.serialize_statement))

    def post(self, request):
        statement = statements.create_statement(request.data)
        return Response(serializers.serialize_statement(statement), status=http.HTTP_201_CREATED)


# ── Scheduling ─────────────────────────────────────────────────────────────

class AppointmentListView(APIView):

    def get(self, request):
        params = request.query_params
        found = scheduling.list_appointments(
            date_from=params.get('from'),
            date_to=params.get('to'),
            patient_id=params.get('patient_id'),
            provider_id=params.get('provider_id'),
            status=params.get('status'),
        )
        return Response(serializers.serialize_list('appointments', found, serializers.serialize_appointment))

    def post(self, request):
        appointment = scheduling.create_appointment(request.data)
        return Response(serializers.serialize_appointment(appointment), status=http.HTTP_201_CREATED)


class AppointmentStatusView(APIView):

    def patch(self, request, appointment_id):
        require_fields(request.data, ('status',))
        appointment = scheduling.update_appointment_status(appointment_id, request.data['status'])
        return Response(serializers.serialize_appointment(appointment))


# ── Portal / chat ──────────────────────────────────────────────────────────

class PortalSummaryView(APIView):

    def get(self, request, patient_id):
        return Response(serializers.serialize_portal_summary(portal.get_portal_summary(patient_id)))


class ConversationListView(APIView):

    def post(self, request):
        conversation = chat.start_conversation(request.data)
        return Response(serializers.serialize_conversation(conversation), status=http.HTTP_201_CREATED)


class ConversationMessagesView(APIView):
    """
    GET  /api/chat/<id>/messages/ : poll for the assistant reply
    POST /api/chat/<id>/messages/ : {message}; 202, reply is generated in the background
    """

    def get(self, request, conversation_id):
        found = chat.list_messages(conversation_id)
        return Response(serializers.serialize_list('messages', found, serializers.serialize_message))

    def post(self, request, conversation_id):
        message = chat.post_message(conversation_id, request.data.get('message'))
        return Response(serializers.serialize_message(message), status=http.HTTP_202_ACCEPTED)
