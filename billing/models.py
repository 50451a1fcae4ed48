import uuid
from decimal import Decimal

from django.db import models


class Patient(models.Model):
    CHANNEL_CHOICES = [
        ('email', 'Email'),
        ('sms', 'SMS'),
        ('mail', 'Mail'),
        ('portal', 'Portal'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    mrn = models.CharField(max_length=6, unique=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    dob = models.DateField()
    email = models.EmailField(blank=True, default='')
    phone = models.CharField(max_length=30, blank=True, default='')
    address = models.CharField(max_length=255, blank=True, default='')
    preferred_channel = models.CharField(max_length=10, choices=CHANNEL_CHOICES, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'patients'

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


class Provider(models.Model):
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('inactive', 'Inactive'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    npi = models.CharField(max_length=10, unique=True)
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    credentials = models.CharField(max_length=50, blank=True, default='')
    taxonomy_specialty = models.CharField(max_length=100, blank=True, default='')
    phone = models.CharField(max_length=30, blank=True, default='')
    email = models.EmailField(blank=True, default='')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='active')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'providers'

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


class Facility(models.Model):
    STATUS_CHOICES = Provider.STATUS_CHOICES

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    npi = models.CharField(max_length=10, blank=True, default='')
    address = models.CharField(max_length=255, blank=True, default='')
    city = models.CharField(max_length=100, blank=True, default='')
    state = models.CharField(max_length=2, blank=True, default='')
    zip_code = models.CharField(max_length=10, blank=True, default='')
    phone = models.CharField(max_length=30, blank=True, default='')
    tax_id = models.CharField(max_length=20, blank=True, default='')
    place_of_service = models.CharField(max_length=2, blank=True, default='11')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='active')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'facilities'


class Payer(models.Model):
    TYPE_CHOICES = [
        ('commercial', 'Commercial'),
        ('medicare', 'Medicare'),
        ('medicaid', 'Medicaid'),
        ('tricare', 'Tricare'),
        ('workers_comp', "Workers' Comp"),
        ('self_pay', 'Self Pay'),
    ]
    STATUS_CHOICES = Provider.STATUS_CHOICES

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    plan_name = models.CharField(max_length=200, blank=True, default='')
    payer_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='commercial')
    payer_id = models.CharField(max_length=20, blank=True, default='')
    phone = models.CharField(max_length=30, blank=True, default='')
    address = models.CharField(max_length=255, blank=True, default='')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='active')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payers'


class Claim(models.Model):
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('submitted', 'Submitted'),
        ('accepted', 'Accepted'),
        ('denied', 'Denied'),
        ('paid', 'Paid'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='claims')
    provider = models.ForeignKey(Provider, on_delete=models.SET_NULL, null=True, blank=True, related_name='claims')
    primary_payer = models.ForeignKey(Payer, on_delete=models.PROTECT, related_name='primary_claims')
    secondary_payer = models.ForeignKey(
        Payer, on_delete=models.SET_NULL, null=True, blank=True, related_name='secondary_claims',
    )
    auth_number = models.CharField(max_length=50, blank=True, default='')
    service_date = models.DateField()
    notes = models.TextField(blank=True, default='')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='submitted')
    total_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'claims'


class ClaimProcedure(models.Model):
    claim = models.ForeignKey(Claim, on_delete=models.CASCADE, related_name='procedures')
    position = models.PositiveIntegerField()
    cpt_code = models.CharField(max_length=5)
    description = models.CharField(max_length=255, blank=True, default='')
    units = models.PositiveIntegerField(default=1)
    amount = models.DecimalField(max_digits=12, decimal_places=2)

    class Meta:
        db_table = 'claim_procedures'
        ordering = ['position']


class ClaimDiagnosis(models.Model):
    claim = models.ForeignKey(Claim, on_delete=models.CASCADE, related_name='diagnoses')
    position = models.PositiveIntegerField()
    icd_code = models.CharField(max_length=10)
    description = models.CharField(max_length=255, blank=True, default='')
    primary = models.BooleanField(default=False)

    class Meta:
        db_table = 'claim_diagnoses'
        ordering = ['position']


class ClaimDenial(models.Model):
    CATEGORY_CHOICES = [
        ('administrative', 'Administrative'),
        ('clinical', 'Clinical'),
        ('authorization', 'Authorization'),
        ('eligibility', 'Eligibility'),
        ('other', 'Other'),
    ]
    STATUS_CHOICES = [
        ('open', 'Open'),
        ('appealed', 'Appealed'),
        ('overturned', 'Overturned'),
        ('upheld', 'Upheld'),
        ('written_off', 'Written Off'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    claim = models.ForeignKey(Claim, on_delete=models.CASCADE, related_name='denials')
    denial_code = models.CharField(max_length=20)
    denial_reason = models.TextField()
    denied_amount = models.DecimalField(max_digits=12, decimal_places=2)
    denial_date = models.DateField()
    category = models.CharField(max_length=20, choices=CATEGORY_CHOICES, default='other')
    appeal_deadline = models.DateField(blank=True, null=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='open')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'claim_denials'
        ordering = ['-denial_date', '-created_at']


class DenialAppeal(models.Model):
    TYPE_CHOICES = [
        ('standard', 'Standard'),
        ('expedited', 'Expedited'),
        ('external', 'External Review'),
    ]
    STATUS_CHOICES = [
        ('draft', 'Draft'),
        ('submitted', 'Submitted'),
        ('under_review', 'Under Review'),
        ('approved', 'Approved'),
        ('denied', 'Denied'),
        ('withdrawn', 'Withdrawn'),
    ]
    OUTCOME_CHOICES = [
        ('approved', 'Approved'),
        ('partial', 'Partially Approved'),
        ('denied', 'Denied'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    denial = models.ForeignKey(ClaimDenial, on_delete=models.CASCADE, related_name='appeals')
    appeal_type = models.CharField(max_length=10, choices=TYPE_CHOICES, default='standard')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='draft')
    appeal_letter = models.TextField(blank=True, default='')
    supporting_documents = models.JSONField(default=list, blank=True)
    submitted_at = models.DateTimeField(blank=True, null=True)
    response_received_at = models.DateTimeField(blank=True, null=True)
    outcome = models.CharField(max_length=10, choices=OUTCOME_CHOICES, blank=True, default='')
    outcome_amount = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'denial_appeals'
        ordering = ['-created_at']


class PriorAuthorization(models.Model):
    URGENCY_CHOICES = [
        ('routine', 'Routine'),
        ('urgent', 'Urgent'),
        ('stat', 'STAT'),
    ]
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('submitted', 'Submitted'),
        ('approved', 'Approved'),
        ('denied', 'Denied'),
        ('expired', 'Expired'),
        ('cancelled', 'Cancelled'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='authorizations')
    payer = models.ForeignKey(Payer, on_delete=models.SET_NULL, null=True, blank=True, related_name='authorizations')
    provider = models.ForeignKey(
        Provider, on_delete=models.SET_NULL, null=True, blank=True, related_name='authorizations',
    )
    service_type = models.CharField(max_length=100, blank=True, default='')
    procedure_codes = models.JSONField(default=list)
    diagnosis_codes = models.JSONField(default=list, blank=True)
    clinical_indication = models.TextField(blank=True, default='')
    urgency = models.CharField(max_length=10, choices=URGENCY_CHOICES, default='routine')
    units_requested = models.PositiveIntegerField(default=1)
    units_approved = models.PositiveIntegerField(blank=True, null=True)
    service_start_date = models.DateField()
    service_end_date = models.DateField(blank=True, null=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='pending')
    auth_number = models.CharField(max_length=50, blank=True, default='')
    decision_notes = models.TextField(blank=True, default='')
    submitted_at = models.DateTimeField(blank=True, null=True)
    decided_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'authorization_requests'


class EligibilityVerification(models.Model):
    NETWORK_CHOICES = [
        ('in_network', 'In Network'),
        ('out_of_network', 'Out of Network'),
        ('unknown', 'Unknown'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='eligibility_checks')
    payer = models.ForeignKey(
        Payer, on_delete=models.SET_NULL, null=True, blank=True, related_name='eligibility_checks',
    )
    is_eligible = models.BooleanField()
    plan_type = models.CharField(max_length=50, blank=True, default='')
    network_status = models.CharField(max_length=20, choices=NETWORK_CHOICES, default='unknown')
    member_id = models.CharField(max_length=50, blank=True, default='')
    group_number = models.CharField(max_length=50, blank=True, default='')
    effective_date = models.DateField(blank=True, null=True)
    termination_date = models.DateField(blank=True, null=True)
    service_date = models.DateField(blank=True, null=True)
    copay = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    deductible_remaining = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    coinsurance_percent = models.DecimalField(max_digits=5, decimal_places=2, default=Decimal('0.00'))
    visit_charges = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    allowed_amount = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    estimated_responsibility = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total_collectible = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    notes = models.TextField(blank=True, default='')
    verified_by = models.CharField(max_length=100, blank=True, default='')
    verified_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'eligibility_verifications'
        ordering = ['-verified_at']

    @property
    def coverage_active(self):
        """Eligible, and the service date (if known) falls inside the coverage window."""
        if not self.is_eligible:
            return False
        if self.service_date is None:
            return True
        if self.effective_date and self.service_date < self.effective_date:
            return False
        if self.termination_date and self.service_date > self.termination_date:
            return False
        return True


class PaymentPlan(models.Model):
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('completed', 'Completed'),
        ('defaulted', 'Defaulted'),
        ('cancelled', 'Cancelled'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='payment_plans')
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    down_payment = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    remaining_balance = models.DecimalField(max_digits=12, decimal_places=2)
    monthly_payment = models.DecimalField(max_digits=12, decimal_places=2)
    number_of_payments = models.PositiveIntegerField()
    payments_completed = models.PositiveIntegerField(default=0)
    start_date = models.DateField()
    end_date = models.DateField()
    auto_pay = models.BooleanField(default=False)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payment_plans'


class PaymentInstallment(models.Model):
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('paid', 'Paid'),
        ('partial', 'Partial'),
        ('overdue', 'Overdue'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    payment_plan = models.ForeignKey(PaymentPlan, on_delete=models.CASCADE, related_name='installments')
    installment_number = models.PositiveIntegerField()
    due_date = models.DateField()
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='pending')
    paid_date = models.DateTimeField(blank=True, null=True)
    payment_method = models.CharField(max_length=30, blank=True, default='')

    class Meta:
        db_table = 'payment_installments'
        ordering = ['installment_number']


class CollectionAccount(models.Model):
    STAGE_CHOICES = [
        ('early_collection', 'Early Collection'),
        ('mid_collection', 'Mid Collection'),
        ('late_collection', 'Late Collection'),
        ('pre_legal', 'Pre-Legal'),
    ]
    STATUS_CHOICES = [
        ('active', 'Active'),
        ('closed', 'Closed'),
        ('payment_plan', 'Payment Plan'),
        ('settled', 'Settled'),
        ('attorney_referral', 'Attorney Referral'),
        ('dispute', 'Dispute'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(
        Patient, on_delete=models.SET_NULL, null=True, blank=True, related_name='collection_accounts',
    )
    patient_name = models.CharField(max_length=200)
    patient_email = models.EmailField(blank=True, default='')
    patient_phone = models.CharField(max_length=30, blank=True, default='')
    original_balance = models.DecimalField(max_digits=12, decimal_places=2)
    current_balance = models.DecimalField(max_digits=12, decimal_places=2)
    days_overdue = models.PositiveIntegerField(default=0)
    collection_stage = models.CharField(max_length=20, choices=STAGE_CHOICES, default='early_collection')
    collection_status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    last_contact_date = models.DateTimeField(blank=True, null=True)
    next_action_date = models.DateField(blank=True, null=True)
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'collections_accounts'


class CollectionActivity(models.Model):
    TYPE_CHOICES = [
        ('phone_call', 'Phone Call'),
        ('email_sent', 'Email Sent'),
        ('letter_sent', 'Letter Sent'),
        ('promise_to_pay', 'Promise to Pay'),
        ('partial_payment', 'Partial Payment'),
        ('settlement_offer', 'Settlement Offer'),
        ('dispute_received', 'Dispute Received'),
        ('attorney_referral', 'Attorney Referral'),
        ('note_added', 'Note Added'),
    ]
    METHOD_CHOICES = [
        ('phone', 'Phone'),
        ('email', 'Email'),
        ('mail', 'Mail'),
        ('sms', 'SMS'),
        ('in_person', 'In Person'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    collection_account = models.ForeignKey(CollectionAccount, on_delete=models.CASCADE, related_name='activities')
    activity_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    contact_method = models.CharField(max_length=10, choices=METHOD_CHOICES, blank=True, default='')
    notes = models.TextField(blank=True, default='')
    outcome = models.CharField(max_length=200, blank=True, default='')
    amount_discussed = models.DecimalField(max_digits=12, decimal_places=2, blank=True, null=True)
    promise_to_pay_date = models.DateField(blank=True, null=True)
    performed_by = models.CharField(max_length=100, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'collection_activities'
        ordering = ['-created_at']


class SettlementOffer(models.Model):
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('accepted', 'Accepted'),
        ('rejected', 'Rejected'),
        ('expired', 'Expired'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    collection_account = models.ForeignKey(CollectionAccount, on_delete=models.CASCADE, related_name='settlements')
    original_amount = models.DecimalField(max_digits=12, decimal_places=2)
    offer_percentage = models.PositiveIntegerField()
    offer_amount = models.DecimalField(max_digits=12, decimal_places=2)
    expiration_date = models.DateField()
    payment_terms = models.CharField(max_length=255, blank=True, default='')
    notes = models.TextField(blank=True, default='')
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='pending')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'settlement_offers'


class CollectionLetter(models.Model):
    TYPE_CHOICES = [
        ('initial_notice', 'Initial Notice'),
        ('second_notice', 'Second Notice'),
        ('final_notice', 'Final Notice'),
        ('pre_legal_notice', 'Pre-Legal Notice'),
        ('cease_communication', 'Cease Communication'),
        ('settlement_agreement', 'Settlement Agreement'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    collection_account = models.ForeignKey(CollectionAccount, on_delete=models.CASCADE, related_name='letters')
    letter_type = models.CharField(max_length=30, choices=TYPE_CHOICES)
    template_name = models.CharField(max_length=100)
    delivery_status = models.CharField(max_length=20, default='sent')
    sent_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'collection_letters'
        ordering = ['-sent_at']


class BillingCycle(models.Model):
    FREQUENCY_CHOICES = [
        ('weekly', 'Weekly'),
        ('bi_weekly', 'Bi-Weekly'),
        ('monthly', 'Monthly'),
        ('quarterly', 'Quarterly'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=100)
    frequency = models.CharField(max_length=10, choices=FREQUENCY_CHOICES, default='monthly')
    day_of_cycle = models.PositiveIntegerField(default=1)
    reminder_days = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'billing_cycles'


class BillingStatement(models.Model):
    STATUS_CHOICES = [
        ('pending', 'Pending'),
        ('sent', 'Sent'),
        ('paid', 'Paid'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='statements')
    claim = models.ForeignKey(Claim, on_delete=models.SET_NULL, null=True, blank=True, related_name='statements')
    amount_due = models.DecimalField(max_digits=12, decimal_places=2)
    due_date = models.DateField(blank=True, null=True)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='pending')
    channel = models.CharField(max_length=10, blank=True, default='')
    sent_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'billing_statements'


class PaymentReminder(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    statement = models.ForeignKey(BillingStatement, on_delete=models.CASCADE, related_name='reminders')
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='payment_reminders')
    reminder_type = models.CharField(max_length=30)
    scheduled_for = models.DateTimeField()
    channel = models.CharField(max_length=10, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'payment_reminders'


class Appointment(models.Model):
    TYPE_CHOICES = [
        ('consultation', 'Consultation'),
        ('follow_up', 'Follow-up'),
        ('routine_checkup', 'Routine Checkup'),
        ('procedure', 'Procedure'),
        ('telehealth', 'Telehealth'),
    ]
    STATUS_CHOICES = [
        ('scheduled', 'Scheduled'),
        ('confirmed', 'Confirmed'),
        ('completed', 'Completed'),
        ('cancelled', 'Cancelled'),
        ('no_show', 'No Show'),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='appointments')
    provider = models.ForeignKey(
        Provider, on_delete=models.SET_NULL, null=True, blank=True, related_name='appointments',
    )
    appointment_type = models.CharField(max_length=20, choices=TYPE_CHOICES, default='consultation')
    scheduled_date = models.DateField()
    scheduled_time = models.TimeField()
    duration_minutes = models.PositiveIntegerField(default=30)
    status = models.CharField(max_length=10, choices=STATUS_CHOICES, default='scheduled')
    location = models.CharField(max_length=200, blank=True, default='')
    notes = models.TextField(blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'appointments'
        ordering = ['scheduled_date', 'scheduled_time']


class ChatConversation(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(Patient, on_delete=models.CASCADE, related_name='chat_conversations')
    title = models.CharField(max_length=200, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'chat_conversations'


class ChatMessage(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    conversation = models.ForeignKey(ChatConversation, on_delete=models.CASCADE, related_name='messages')
    message = models.TextField()
    is_ai = models.BooleanField(default=False)
    # 对 AI 回复：它回答的是哪条用户消息（保证每条用户消息只写一次回复）
    reply_to = models.OneToOneField(
        'self', on_delete=models.CASCADE, null=True, blank=True, related_name='reply',
    )
    llm_model = models.CharField(max_length=50, blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'chat_messages'
        ordering = ['created_at']
