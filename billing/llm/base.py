"""
BillingAssistant：患者门户聊天助手的抽象基类。

这里负责所有与供应商无关的部分：
  - 系统提示词（账单助手的角色设定 + 患者账户摘要）
  - 对话历史整理（截断、去掉开头的 assistant 轮、合并同角色的连续消息）
  - 模型名 / API key 从 Django settings 读取

子类只实现 _send()：把整理好的 messages 发给各自的 SDK，返回文本。
"""

from abc import ABC, abstractmethod

from django.conf import settings

from .types import ChatTurn, LLMResponse

SYSTEM_PROMPT = """You are a helpful medical billing assistant. You can help patients with:
- Checking their current balance
- Explaining charges on their statements
- Setting up payment plans
- Understanding insurance claims
- Answering billing questions

Be professional, empathetic, and clear in your responses. If you need to access specific billing data or \
perform actions like setting up payment plans, let the patient know you'll need to escalate to a billing specialist."""


def build_system_prompt(account_context: str = "") -> str:
    if not account_context:
        return SYSTEM_PROMPT
    return f"{SYSTEM_PROMPT}\n\nWhat the billing system shows for this patient:\n{account_context}"


def frame_history(turns: list[ChatTurn], limit: int) -> list[dict]:
    """
    Turn stored chat turns into the alternating user/assistant messages the
    provider APIs accept, oldest first, ending on the patient's message.
    """
    messages: list[dict] = []
    for turn in turns[-limit:]:
        content = (turn.content or "").strip()
        if not content:
            continue
        if not messages and turn.role != "user":
            continue
        if messages and messages[-1]["role"] == turn.role:
            messages[-1]["content"] += "\n\n" + content
        else:
            messages.append({"role": turn.role, "content": content})
    while messages and messages[-1]["role"] != "user":
        messages.pop()
    return messages


class BillingAssistant(ABC):

    provider = ""
    default_model = ""
    api_key_setting = ""

    # 回复控制在几段话以内
    max_tokens = 600
    history_limit = 20

    def __init__(self, model: str | None = None, api_key: str | None = None):
        self.model = model or getattr(settings, "LLM_MODEL", "") or self.default_model
        self.api_key = api_key if api_key is not None else getattr(settings, self.api_key_setting, "")

    def reply(self, turns: list[ChatTurn], account_context: str = "") -> LLMResponse:
        """
        回答对话里最后一条患者消息。

        Raises:
            ValueError: API key 未配置，或历史里没有可回答的患者消息
            Exception:  SDK 调用失败时原样抛出，由 tasks.py 的重试机制处理
        """
        if not self.api_key:
            raise ValueError(f"{self.api_key_setting} is not set")

        messages = frame_history(turns, self.history_limit)
        if not messages:
            raise ValueError("Conversation has no patient message to answer")

        content = self._send(build_system_prompt(account_context), messages)
        return LLMResponse(content=content.strip(), model=self.model)

    @abstractmethod
    def _send(self, system_prompt: str, messages: list[dict]) -> str:
        """Call the provider and return the reply text."""
