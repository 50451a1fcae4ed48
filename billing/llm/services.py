"""
Provider implementations of BillingAssistant, and the selector tasks.py uses.

  anthropic — ClaudeAssistant  (ANTHROPIC_API_KEY)
  openai    — OpenAIAssistant  (OPENAI_API_KEY)

LLM_PROVIDER picks one; LLM_MODEL overrides its default model.
"""

from django.conf import settings

from .base import BillingAssistant


class ClaudeAssistant(BillingAssistant):

    provider = "anthropic"
    default_model = "claude-sonnet-4-20250514"
    api_key_setting = "ANTHROPIC_API_KEY"

    def _send(self, system_prompt: str, messages: list[dict]) -> str:
        import anthropic

        client = anthropic.Anthropic(api_key=self.api_key)
        response = client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            system=system_prompt,
            messages=messages,
        )
        return "".join(block.text for block in response.content if block.type == "text")


class OpenAIAssistant(BillingAssistant):

    provider = "openai"
    default_model = "gpt-4o"
    api_key_setting = "OPENAI_API_KEY"

    def _send(self, system_prompt: str, messages: list[dict]) -> str:
        import openai

        client = openai.OpenAI(api_key=self.api_key)
        response = client.chat.completions.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "system", "content": system_prompt}, *messages],
        )
        return response.choices[0].message.content or ""


ASSISTANTS = {cls.provider: cls for cls in (ClaudeAssistant, OpenAIAssistant)}


def get_assistant(provider: str | None = None) -> BillingAssistant:
    provider = provider or getattr(settings, "LLM_PROVIDER", "anthropic")
    try:
        return ASSISTANTS[provider]()
    except KeyError:
        raise ValueError(f"Unknown LLM_PROVIDER: {provider!r}. Known providers: {sorted(ASSISTANTS)}") from None
