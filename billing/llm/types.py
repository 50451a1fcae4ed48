"""
LLM 层的标准输入/输出结构。

BillingAssistant.reply() 接收 ChatTurn 列表（按时间顺序），返回 LLMResponse。
tasks.py 只认识这两个结构，不知道背后用的是哪家 LLM。
"""

from dataclasses import dataclass


@dataclass
class ChatTurn:
    role: str          # "user" | "assistant"
    content: str


@dataclass
class LLMResponse:
    content: str       # 生成的文本内容
    model: str         # 实际使用的模型名，写入 ChatMessage.llm_model
