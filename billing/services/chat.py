"""
Billing chat: the patient's message is stored right away, the assistant reply
is produced by billing.tasks.generate_chat_reply and written later. Clients
poll list_messages() for it.
"""
import logging

from ..exceptions import ValidationError
from ..llm import ChatTurn
from ..models import ChatConversation, ChatMessage
from .common import get_or_404, require_fields
from .patients import get_patient
from .portal import get_portal_summary

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 2000


def start_conversation(data):
    require_fields(data, ('patient_id',))
    patient = get_patient(data['patient_id'])
    conversation = ChatConversation.objects.create(
        patient=patient,
        title=(data.get('title') or 'Billing question').strip()[:200],
    )
    logger.info("[Chat] conversation id=%s started for patient=%s", conversation.id, patient.mrn)
    return conversation


def get_conversation(conversation_id):
    return get_or_404(ChatConversation, conversation_id, 'Conversation')


def validate_message(message):
    if not isinstance(message, str) or not message.strip():
        raise ValidationError(message='Message cannot be empty.', code='INVALID_MESSAGE')
    if len(message) > MAX_MESSAGE_LENGTH:
        raise ValidationError(
            message=f'Message too long (max {MAX_MESSAGE_LENGTH} characters).',
            code='MESSAGE_TOO_LONG',
            detail={'length': len(message), 'max_length': MAX_MESSAGE_LENGTH},
        )
    return message


def post_message(conversation_id, message):
    """Store the patient's message and queue the assistant reply. Returns the stored message."""
    conversation = get_conversation(conversation_id)
    validate_message(message)

    chat_message = ChatMessage.objects.create(conversation=conversation, message=message, is_ai=False)
    conversation.save(update_fields=['updated_at'])

    from billing.tasks import generate_chat_reply
    generate_chat_reply.delay(str(chat_message.id))
    logger.info("[Chat] message id=%s queued for reply", chat_message.id)
    return chat_message


def list_messages(conversation_id):
    return get_conversation(conversation_id).messages.all()


def build_history(user_message):
    """
    Conversation turns up to and including ``user_message``, oldest first,
    in the role/content shape every LLM service accepts.
    """
    messages = user_message.conversation.messages.filter(created_at__lte=user_message.created_at)
    return [
        ChatTurn(role='assistant' if m.is_ai else 'user', content=m.message)
        for m in messages
    ]


def build_account_context(patient):
    """Short plain-text account summary appended to the assistant's system prompt."""
    summary = get_portal_summary(patient.id)
    lines = [
        f"Patient: {patient.full_name} (MRN {patient.mrn})",
        f"Balance due: ${summary['balance_due']:.2f} across {len(summary['open_statements'])} open statement(s)",
    ]
    for plan, installment in summary['active_plans']:
        line = (
            f"Payment plan: ${plan.monthly_payment:.2f}/month, "
            f"{plan.payments_completed} of {plan.number_of_payments} paid"
        )
        if installment is not None:
            line += f", next ${installment.amount:.2f} due {installment.due_date.isoformat()}"
        lines.append(line)
    coverage = summary['coverage']
    if coverage is not None:
        payer = coverage.payer.name if coverage.payer_id else 'insurance'
        lines.append(
            f"Coverage: {payer} {'active' if coverage.coverage_active else 'not active'}, "
            f"copay ${coverage.copay:.2f}, deductible remaining ${coverage.deductible_remaining:.2f}"
        )
    return "\n".join(lines)
