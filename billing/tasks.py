import logging
from celery import shared_task

logger = logging.getLogger(__name__)

FALLBACK_REPLY = (
    "I'm sorry, I'm having trouble answering right now. "
    "Please try again in a few minutes or contact our billing office directly."
)


@shared_task(
    bind=True,
    max_retries=3,
    default_retry_delay=10,   # 初始重试延迟（秒），指数退避会乘以 2^retry_count
    acks_late=True,           # 任务执行完才 ack，防止 worker 崩溃时任务丢失
    reject_on_worker_lost=True,
)
def generate_chat_reply(self, message_id: str):
    """
    为一条患者消息生成 AI 回复。

    重试策略：
      - 最多重试 3 次
      - 指数退避：10s → 20s → 40s
      - 超出次数后写入一条道歉回复，前端轮询即可看到
    每条用户消息只写一次回复（reply_to 是 OneToOne）。
    """
    from billing.llm import get_assistant
    from billing.models import ChatMessage
    from billing.services.chat import build_account_context, build_history

    logger.info("[Celery][generate_chat_reply] 开始处理 message_id=%s (attempt %d/%d)",
                message_id, self.request.retries + 1, self.max_retries + 1)

    try:
        user_message = ChatMessage.objects.select_related('conversation__patient').get(id=message_id, is_ai=False)
    except ChatMessage.DoesNotExist:
        logger.error("[Celery] ChatMessage %s 不存在，跳过", message_id)
        return  # 不重试，直接结束

    if ChatMessage.objects.filter(reply_to=user_message).exists():
        logger.info("[Celery] message_id=%s 已有回复，跳过", message_id)
        return

    try:
        # 1. 构建对话历史
        turns = build_history(user_message)
        logger.info("[Celery] 对话历史构建完成，共 %d 条", len(turns))

        # 2. 调用 LLM（系统提示词里带上患者账户摘要）
        context = build_account_context(user_message.conversation.patient)
        response = get_assistant().reply(turns, context)
        logger.info("[Celery] LLM 返回成功，内容前100字符: %s", response.content[:100])

        # 3. 写入回复
        ChatMessage.objects.create(
            conversation=user_message.conversation,
            message=response.content,
            is_ai=True,
            reply_to=user_message,
            llm_model=response.model,
        )
        logger.info("[Celery] message_id=%s 处理完成", message_id)

    except Exception as exc:
        logger.warning(
            "[Celery] message_id=%s 处理失败 (attempt %d): %s",
            message_id, self.request.retries + 1, str(exc)
        )

        if self.request.retries < self.max_retries:
            # 指数退避：countdown = 10 * 2^retries → 10s, 20s, 40s
            countdown = self.default_retry_delay * (2 ** self.request.retries)
            logger.info(
                "[Celery] 将在 %ds 后重试 (第 %d 次)...",
                countdown, self.request.retries + 1
            )
            raise self.retry(exc=exc, countdown=countdown)

        # 全部重试耗尽，写入道歉回复
        logger.error("[Celery] message_id=%s 已达最大重试次数，写入道歉回复", message_id)
        ChatMessage.objects.get_or_create(
            reply_to=user_message,
            defaults={
                'conversation': user_message.conversation,
                'message': FALLBACK_REPLY,
                'is_ai': True,
            },
        )


@shared_task
def process_billing_cycle():
    """Celery beat 每日触发：发送待发账单并排期 15 天提醒。"""
    from billing.services.statements import process_billing_cycle_run

    result = process_billing_cycle_run()
    logger.info("[Celery][process_billing_cycle] %s: %d", result['message'], result['processed_count'])
    return result['processed_count']


@shared_task
def mark_overdue_installments():
    """Celery beat 每日触发：逾期未付的分期标记为 overdue。"""
    from billing.services.payment_plans import mark_overdue_installments as sweep

    count = sweep()
    logger.info("[Celery][mark_overdue_installments] %d installments marked overdue", count)
    return count


@shared_task
def expire_authorizations():
    """Celery beat 每日触发：服务期已结束的已批准预授权标记为 expired。"""
    from billing.services.authorizations import expire_authorizations as sweep

    count = sweep()
    logger.info("[Celery][expire_authorizations] %d authorizations expired", count)
    return count
