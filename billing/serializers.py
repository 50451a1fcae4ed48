"""
Response serializers — ORM 对象 → JSON-able dict。

只负责「输出格式化」，不做任何解析或校验。
输入解析和校验在 billing/intake/ adapter 系统和 services 层。

金额统一输出为两位小数的字符串（"190.00"），避免浮点误差。
"""


def _money(value):
    return None if value is None else f'{value:.2f}'


def _iso(value):
    return value.isoformat() if value else None


# ── Registries ─────────────────────────────────────────────────────────────

def serialize_patient(patient):
    return {
        'id': str(patient.id),
        'mrn': patient.mrn,
        'first_name': patient.first_name,
        'last_name': patient.last_name,
        'name': patient.full_name,
        'dob': _iso(patient.dob),
        'email': patient.email,
        'phone': patient.phone,
        'address': patient.address,
        'preferred_channel': patient.preferred_channel,
    }


def serialize_provider(provider):
    return {
        'id': str(provider.id),
        'npi': provider.npi,
        'first_name': provider.first_name,
        'last_name': provider.last_name,
        'name': provider.full_name,
        'credentials': provider.credentials,
        'taxonomy_specialty': provider.taxonomy_specialty,
        'phone': provider.phone,
        'email': provider.email,
        'status': provider.status,
    }


def serialize_facility(facility):
    return {
        'id': str(facility.id),
        'name': facility.name,
        'npi': facility.npi,
        'address': facility.address,
        'city': facility.city,
        'state': facility.state,
        'zip_code': facility.zip_code,
        'phone': facility.phone,
        'tax_id': facility.tax_id,
        'place_of_service': facility.place_of_service,
        'status': facility.status,
    }


def serialize_payer(payer):
    return {
        'id': str(payer.id),
        'name': payer.name,
        'plan_name': payer.plan_name,
        'payer_type': payer.payer_type,
        'payer_id': payer.payer_id,
        'phone': payer.phone,
        'address': payer.address,
        'status': payer.status,
    }


def serialize_list(key, items, serialize):
    """{'count': N, key: [...]}: every list endpoint uses this shape."""
    results = [serialize(item) for item in items]
    return {'count': len(results), key: results}


def serialize_code(code):
    """CptCode / IcdCode → dict. ICD codes carry no standard amount."""
    result = {'code': code.code, 'description': code.description}
    if hasattr(code, 'amount'):
        result['amount'] = _money(code.amount)
    return result


# ── Claims ─────────────────────────────────────────────────────────────────

def serialize_claim_created(claim):
    """Serialize claim for 201 creation response."""
    return {
        'claim_id': str(claim.id),
        'status': claim.status,
        'total_amount': _money(claim.total_amount),
        'message': 'Claim submitted successfully.',
        'created_at': _iso(claim.created_at),
    }


def serialize_claim_detail(claim):
    return {
        'claim_id': str(claim.id),
        'status': claim.status,
        'patient': {
            'id': str(claim.patient_id),
            'name': claim.patient.full_name,
            'mrn': claim.patient.mrn,
        },
        'provider': {
            'id': str(claim.provider_id),
            'name': claim.provider.full_name,
            'npi': claim.provider.npi,
        } if claim.provider_id else None,
        'service_date': _iso(claim.service_date),
        'procedures': [
            {
                'cpt_code': p.cpt_code,
                'description': p.description,
                'units': p.units,
                'amount': _money(p.amount),
                'line_total': _money(p.amount * p.units),
            }
            for p in claim.procedures.all()
        ],
        'diagnoses': [
            {'icd_code': d.icd_code, 'description': d.description, 'primary': d.primary}
            for d in claim.diagnoses.all()
        ],
        'insurance': {
            'primary': {'id': str(claim.primary_payer_id), 'name': claim.primary_payer.name},
            'secondary': {
                'id': str(claim.secondary_payer_id), 'name': claim.secondary_payer.name,
            } if claim.secondary_payer_id else None,
            'auth_number': claim.auth_number,
        },
        'notes': claim.notes,
        'total_amount': _money(claim.total_amount),
        'created_at': _iso(claim.created_at),
        'updated_at': _iso(claim.updated_at),
    }


def serialize_claim_search_results(claims):
    results = [
        {
            'claim_id': str(claim.id),
            'status': claim.status,
            'patient_name': claim.patient.full_name,
            'patient_mrn': claim.patient.mrn,
            'payer': claim.primary_payer.name,
            'service_date': _iso(claim.service_date),
            'total_amount': _money(claim.total_amount),
            'created_at': _iso(claim.created_at),
        }
        for claim in claims
    ]
    return {'count': len(results), 'claims': results}


def serialize_draft(draft):
    """ClaimDraft → the camelCase payload the wizard UI posts back (edit mode)."""
    return {
        'patient': {'id': draft.patient} if draft.patient else None,
        'serviceDate': draft.service_date,
        'procedures': [
            {
                'cptCode': p.code,
                'description': p.description,
                'units': p.units,
                'amount': _money(p.amount),
            }
            for p in draft.procedures
        ],
        'diagnoses': [
            {'icdCode': d.code, 'description': d.description, 'primary': d.primary}
            for d in draft.diagnoses
        ],
        'insurance': {
            'primary': {'id': draft.insurance.primary} if draft.insurance.primary else None,
            'secondary': {'id': draft.insurance.secondary} if draft.insurance.secondary else None,
            'authNumber': draft.insurance.auth_number,
        },
        'provider': {'id': draft.provider} if draft.provider else None,
        'notes': draft.notes,
        'totalAmount': _money(draft.total_amount),
    }


def serialize_claim_preview(preview):
    return {
        'total_amount': _money(preview['total_amount']),
        'steps': preview['steps'],
        'ready_to_submit': all(step['complete'] for step in preview['steps']),
    }


# ── Denials / appeals ──────────────────────────────────────────────────────

def serialize_appeal(appeal):
    return {
        'id': str(appeal.id),
        'denial_id': str(appeal.denial_id),
        'appeal_type': appeal.appeal_type,
        'status': appeal.status,
        'appeal_letter': appeal.appeal_letter,
        'supporting_documents': appeal.supporting_documents,
        'submitted_at': _iso(appeal.submitted_at),
        'response_received_at': _iso(appeal.response_received_at),
        'outcome': appeal.outcome or None,
        'outcome_amount': _money(appeal.outcome_amount),
    }


def serialize_denial(denial, include_analysis=False):
    result = {
        'id': str(denial.id),
        'claim_id': str(denial.claim_id),
        'patient_name': denial.claim.patient.full_name,
        'payer': denial.claim.primary_payer.name,
        'denial_code': denial.denial_code,
        'denial_reason': denial.denial_reason,
        'denied_amount': _money(denial.denied_amount),
        'denial_date': _iso(denial.denial_date),
        'category': denial.category,
        'appeal_deadline': _iso(denial.appeal_deadline),
        'status': denial.status,
    }
    if include_analysis:
        from .services.denials import analyze_denial

        result['analysis'] = analyze_denial(denial)
        result['appeals'] = [serialize_appeal(a) for a in denial.appeals.all()]
    return result


# ── Prior authorizations ───────────────────────────────────────────────────

def serialize_authorization(authorization):
    return {
        'id': str(authorization.id),
        'patient': {'id': str(authorization.patient_id), 'name': authorization.patient.full_name},
        'payer': {
            'id': str(authorization.payer_id), 'name': authorization.payer.name,
        } if authorization.payer_id else None,
        'provider': {
            'id': str(authorization.provider_id), 'name': authorization.provider.full_name,
        } if authorization.provider_id else None,
        'service_type': authorization.service_type,
        'procedure_codes': authorization.procedure_codes,
        'diagnosis_codes': authorization.diagnosis_codes,
        'clinical_indication': authorization.clinical_indication,
        'urgency': authorization.urgency,
        'units_requested': authorization.units_requested,
        'units_approved': authorization.units_approved,
        'service_start_date': _iso(authorization.service_start_date),
        'service_end_date': _iso(authorization.service_end_date),
        'status': authorization.status,
        'auth_number': authorization.auth_number,
        'decision_notes': authorization.decision_notes,
        'submitted_at': _iso(authorization.submitted_at),
        'decided_at': _iso(authorization.decided_at),
    }


# ── Eligibility ────────────────────────────────────────────────────────────

def serialize_eligibility(check):
    return {
        'id': str(check.id),
        'patient': {'id': str(check.patient_id), 'name': check.patient.full_name, 'mrn': check.patient.mrn},
        'payer': {'id': str(check.payer_id), 'name': check.payer.name} if check.payer_id else None,
        'is_eligible': check.is_eligible,
        'coverage_active': check.coverage_active,
        'plan_type': check.plan_type,
        'network_status': check.network_status,
        'member_id': check.member_id,
        'group_number': check.group_number,
        'effective_date': _iso(check.effective_date),
        'termination_date': _iso(check.termination_date),
        'service_date': _iso(check.service_date),
        'copay': _money(check.copay),
        'deductible_remaining': _money(check.deductible_remaining),
        'coinsurance_percent': _money(check.coinsurance_percent),
        'visit_charges': _money(check.visit_charges),
        'allowed_amount': _money(check.allowed_amount),
        'estimated_responsibility': _money(check.estimated_responsibility),
        'total_collectible': _money(check.total_collectible),
        'notes': check.notes,
        'verified_by': check.verified_by,
        'verified_at': _iso(check.verified_at),
    }


# ── Payment plans ──────────────────────────────────────────────────────────

def serialize_installment(installment):
    return {
        'id': str(installment.id),
        'installment_number': installment.installment_number,
        'due_date': _iso(installment.due_date),
        'amount': _money(installment.amount),
        'paid_amount': _money(installment.paid_amount),
        'status': installment.status,
        'paid_date': _iso(installment.paid_date),
        'payment_method': installment.payment_method,
    }


def serialize_payment_plan(plan, include_installments=False):
    from .services.payment_plans import progress_percentage, remaining_payments

    result = {
        'id': str(plan.id),
        'patient': {'id': str(plan.patient_id), 'name': plan.patient.full_name, 'mrn': plan.patient.mrn},
        'total_amount': _money(plan.total_amount),
        'down_payment': _money(plan.down_payment),
        'remaining_balance': _money(plan.remaining_balance),
        'monthly_payment': _money(plan.monthly_payment),
        'number_of_payments': plan.number_of_payments,
        'payments_completed': plan.payments_completed,
        'remaining_payments': remaining_payments(plan),
        'progress_percentage': round(progress_percentage(plan), 1),
        'start_date': _iso(plan.start_date),
        'end_date': _iso(plan.end_date),
        'auto_pay': plan.auto_pay,
        'status': plan.status,
        'notes': plan.notes,
    }
    if include_installments:
        result['installments'] = [serialize_installment(i) for i in plan.installments.all()]
    return result


# ── Collections ────────────────────────────────────────────────────────────

def serialize_collection_account(account):
    return {
        'id': str(account.id),
        'patient_id': str(account.patient_id) if account.patient_id else None,
        'patient_name': account.patient_name,
        'patient_email': account.patient_email,
        'patient_phone': account.patient_phone,
        'original_balance': _money(account.original_balance),
        'current_balance': _money(account.current_balance),
        'days_overdue': account.days_overdue,
        'collection_stage': account.collection_stage,
        'collection_status': account.collection_status,
        'last_contact_date': _iso(account.last_contact_date),
        'next_action_date': _iso(account.next_action_date),
        'notes': account.notes,
        'created_at': _iso(account.created_at),
    }


def serialize_activity(activity):
    return {
        'id': str(activity.id),
        'activity_type': activity.activity_type,
        'contact_method': activity.contact_method,
        'notes': activity.notes,
        'outcome': activity.outcome,
        'amount_discussed': _money(activity.amount_discussed),
        'promise_to_pay_date': _iso(activity.promise_to_pay_date),
        'performed_by': activity.performed_by,
        'created_at': _iso(activity.created_at),
    }


def serialize_settlement(offer):
    return {
        'id': str(offer.id),
        'collection_account_id': str(offer.collection_account_id),
        'original_amount': _money(offer.original_amount),
        'offer_percentage': offer.offer_percentage,
        'offer_amount': _money(offer.offer_amount),
        'expiration_date': _iso(offer.expiration_date),
        'payment_terms': offer.payment_terms,
        'status': offer.status,
    }


def serialize_letter(letter):
    return {
        'id': str(letter.id),
        'collection_account_id': str(letter.collection_account_id),
        'letter_type': letter.letter_type,
        'template_name': letter.template_name,
        'delivery_status': letter.delivery_status,
        'sent_at': _iso(letter.sent_at),
    }


def serialize_collections_summary(summary):
    return {
        'by_stage': {
            stage: {'accounts': row['accounts'], 'balance': _money(row['balance'])}
            for stage, row in summary['by_stage'].items()
        },
        'total_accounts': summary['total_accounts'],
        'total_balance': _money(summary['total_balance']),
    }


# ── Billing cycles / statements ────────────────────────────────────────────

def serialize_billing_cycle(cycle):
    return {
        'id': str(cycle.id),
        'name': cycle.name,
        'frequency': cycle.frequency,
        'day_of_cycle': cycle.day_of_cycle,
        'reminder_days': cycle.reminder_days,
        'is_active': cycle.is_active,
    }


def serialize_statement(statement):
    return {
        'id': str(statement.id),
        'patient_id': str(statement.patient_id),
        'claim_id': str(statement.claim_id) if statement.claim_id else None,
        'amount_due': _money(statement.amount_due),
        'due_date': _iso(statement.due_date),
        'status': statement.status,
        'channel': statement.channel,
        'sent_at': _iso(statement.sent_at),
    }


# ── Scheduling ─────────────────────────────────────────────────────────────

def serialize_appointment(appointment):
    return {
        'id': str(appointment.id),
        'patient': {'id': str(appointment.patient_id), 'name': appointment.patient.full_name},
        'provider': {
            'id': str(appointment.provider_id), 'name': appointment.provider.full_name,
        } if appointment.provider_id else None,
        'appointment_type': appointment.appointment_type,
        'scheduled_date': _iso(appointment.scheduled_date),
        'scheduled_time': appointment.scheduled_time.strftime('%H:%M'),
        'duration_minutes': appointment.duration_minutes,
        'status': appointment.status,
        'location': appointment.location,
        'notes': appointment.notes,
    }


# ── Portal / chat ──────────────────────────────────────────────────────────

def serialize_portal_summary(summary):
    return {
        'patient': serialize_patient(summary['patient']),
        'balance_due': _money(summary['balance_due']),
        'open_statements': [serialize_statement(s) for s in summary['open_statements']],
        'active_plans': [
            {
                **serialize_payment_plan(plan),
                'next_installment': serialize_installment(installment) if installment else None,
            }
            for plan, installment in summary['active_plans']
        ],
        'upcoming_appointments': [serialize_appointment(a) for a in summary['upcoming_appointments']],
        'recent_claims': serialize_claim_search_results(summary['recent_claims'])['claims'],
        'coverage': serialize_eligibility(summary['coverage']) if summary['coverage'] else None,
    }


def serialize_conversation(conversation):
    return {
        'conversation_id': str(conversation.id),
        'patient_id': str(conversation.patient_id),
        'title': conversation.title,
        'created_at': _iso(conversation.created_at),
    }


def serialize_message(message):
    return {
        'id': str(message.id),
        'message': message.message,
        'is_ai': message.is_ai,
        'reply_to': str(message.reply_to_id) if message.reply_to_id else None,
        'llm_model': message.llm_model,
        'created_at': _iso(message.created_at),
    }
