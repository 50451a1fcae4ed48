from django.urls import path

from . import views

urlpatterns = [
    path('patients/', views.PatientListView.as_view(), name='patient-list'),
    path('patients/<uuid:patient_id>/', views.PatientDetailView.as_view(), name='patient-detail'),
    path('patients/<uuid:patient_id>/portal/', views.PortalSummaryView.as_view(), name='patient-portal'),
    path('patients/<uuid:patient_id>/eligibility/', views.PatientEligibilityView.as_view(),
         name='patient-eligibility'),

    path('providers/', views.ProviderListView.as_view(), name='provider-list'),
    path('providers/export/', views.ProviderExportView.as_view(), name='provider-export'),
    path('providers/import/', views.ProviderImportView.as_view(), name='provider-import'),
    path('providers/<uuid:provider_id>/', views.ProviderDetailView.as_view(), name='provider-detail'),

    path('facilities/', views.FacilityListView.as_view(), name='facility-list'),
    path('facilities/export/', views.FacilityExportView.as_view(), name='facility-export'),
    path('facilities/import/', views.FacilityImportView.as_view(), name='facility-import'),
    path('facilities/<uuid:facility_id>/', views.FacilityDetailView.as_view(), name='facility-detail'),

    path('payers/', views.PayerListView.as_view(), name='payer-list'),
    path('payers/<uuid:payer_id>/', views.PayerDetailView.as_view(), name='payer-detail'),

    path('codes/cpt/', views.CptCodeSearchView.as_view(), name='cpt-search'),
    path('codes/icd/', views.IcdCodeSearchView.as_view(), name='icd-search'),

    path('claims/', views.ClaimListView.as_view(), name='claim-list'),
    path('claims/preview/', views.ClaimPreviewView.as_view(), name='claim-preview'),
    path('claims/<uuid:claim_id>/', views.ClaimDetailView.as_view(), name='claim-detail'),
    path('claims/<uuid:claim_id>/draft/', views.ClaimDraftView.as_view(), name='claim-draft'),
    path('claims/<uuid:claim_id>/status/', views.ClaimStatusView.as_view(), name='claim-status'),
    path('claims/<uuid:claim_id>/denials/', views.ClaimDenialView.as_view(), name='claim-denials'),

    path('denials/', views.DenialListView.as_view(), name='denial-list'),
    path('denials/trends/', views.DenialTrendsView.as_view(), name='denial-trends'),
    path('denials/<uuid:denial_id>/', views.DenialDetailView.as_view(), name='denial-detail'),
    path('denials/<uuid:denial_id>/appeals/', views.DenialAppealView.as_view(), name='denial-appeals'),
    path('denials/<uuid:denial_id>/write-off/', views.DenialWriteOffView.as_view(), name='denial-write-off'),
    path('appeals/<uuid:appeal_id>/submit/', views.AppealSubmitView.as_view(), name='appeal-submit'),
    path('appeals/<uuid:appeal_id>/outcome/', views.AppealOutcomeView.as_view(), name='appeal-outcome'),

    path('authorizations/', views.AuthorizationListView.as_view(), name='authorization-list'),
    path('authorizations/<uuid:authorization_id>/', views.AuthorizationDetailView.as_view(),
         name='authorization-detail'),
    path('authorizations/<uuid:authorization_id>/status/', views.AuthorizationStatusView.as_view(),
         name='authorization-status'),

    path('eligibility/', views.EligibilityListView.as_view(), name='eligibility-list'),
    path('eligibility/<uuid:check_id>/', views.EligibilityDetailView.as_view(), name='eligibility-detail'),

    path('payment-plans/', views.PaymentPlanListView.as_view(), name='payment-plan-list'),
    path('payment-plans/<uuid:plan_id>/', views.PaymentPlanDetailView.as_view(), name='payment-plan-detail'),
    path('payment-plans/<uuid:plan_id>/status/', views.PaymentPlanStatusView.as_view(), name='payment-plan-status'),
    path('installments/<uuid:installment_id>/pay/', views.InstallmentPaymentView.as_view(), name='installment-pay'),

    path('collections/', views.CollectionAccountListView.as_view(), name='collection-list'),
    path('collections/summary/', views.CollectionsSummaryView.as_view(), name='collection-summary'),
    path('collections/<uuid:account_id>/', views.CollectionAccountDetailView.as_view(), name='collection-detail'),
    path('collections/<uuid:account_id>/activities/', views.CollectionActivityView.as_view(),
         name='collection-activity'),
    path('collections/<uuid:account_id>/settlement/', views.SettlementOfferView.as_view(),
         name='collection-settlement'),
    path('collections/<uuid:account_id>/dispute/', views.DisputeView.as_view(), name='collection-dispute'),
    path('collections/<uuid:account_id>/attorney/', views.AttorneyReferralView.as_view(),
         name='collection-attorney'),
    path('collections/<uuid:account_id>/letters/', views.CollectionLetterView.as_view(), name='collection-letters'),

    path('billing-cycles/', views.BillingCycleListView.as_view(), name='billing-cycle-list'),
    path('billing-cycles/run/', views.BillingCycleRunView.as_view(), name='billing-cycle-run'),
    path('billing-cycles/<uuid:cycle_id>/', views.BillingCycleDetailView.as_view(), name='billing-cycle-detail'),
    path('statements/', views.StatementListView.as_view(), name='statement-list'),

    path('appointments/', views.AppointmentListView.as_view(), name='appointment-list'),
    path('appointments/<uuid:appointment_id>/status/', views.AppointmentStatusView.as_view(),
         name='appointment-status'),

    path('chat/', views.ConversationListView.as_view(), name='conversation-create'),
    path('chat/<uuid:conversation_id>/messages/', views.ConversationMessagesView.as_view(),
         name='conversation-messages'),
]
