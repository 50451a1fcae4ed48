"""
BaseIntakeAdapter — 所有输入源 Adapter 的抽象基类。

每个新输入源只需：
1. 继承 BaseIntakeAdapter
2. 实现 parse() 和 transform()
3. 在 factory.py 的 _build_registry 注册一行

业务代码（services/）无需任何改动，只消费 transform() 的产物。
"""

import re
from abc import ABC, abstractmethod
from typing import Any

from ..exceptions import ValidationError

# ── 共用校验正则（Adapter 可直接复用） ─────────────────────────────────────
NPI_RE = re.compile(r"^\d{10}$")
MRN_RE = re.compile(r"^\d{6}$")
ICD10_RE = re.compile(r"^[A-Za-z]\d{2}(\.\d{1,4})?$")
CPT_RE = re.compile(r"^\d{4}[0-9A-Z]$")
ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class BaseIntakeAdapter(ABC):
    """
    三步流水线：parse → transform → validate

    子类必须实现 parse() 和 transform()；
    validate() 默认不做任何检查，子类按需 override，失败时收集 errors 后统一 raise。
    """

    # 子类声明自己对应的 source 标识符（与 factory 注册键一致）
    source: str = ""

    def __init__(self, raw_body: bytes | str, content_type: str = ""):
        self._raw_body = raw_body
        self._content_type = content_type
        self._parsed: Any = None

    # ── 必须实现 ───────────────────────────────────────────────────────────

    @abstractmethod
    def parse(self) -> Any:
        """
        解析原始数据（bytes / str）→ 中间结构（dict / list of rows）。
        应将解析结果赋值给 self._parsed 以便 transform() 使用。
        """

    @abstractmethod
    def transform(self) -> Any:
        """将 self._parsed 转换为业务层认识的结构。"""

    # ── 提供默认实现，子类可 override ──────────────────────────────────────

    def validate(self, result: Any) -> None:
        """Raise ValidationError if ``result`` is unusable. Default: accept."""

    @staticmethod
    def raise_if_errors(errors: list[dict]) -> None:
        if errors:
            raise ValidationError(
                message="Request validation failed.",
                code="VALIDATION_ERROR",
                detail={"errors": errors},
            )

    def _decode(self) -> str:
        if isinstance(self._raw_body, bytes):
            try:
                return self._raw_body.decode("utf-8-sig")
            except UnicodeDecodeError as exc:
                raise ValidationError(
                    message="Request body is not valid UTF-8.",
                    code="MALFORMED_BODY",
                ) from exc
        return self._raw_body

    # ── 对外统一入口 ───────────────────────────────────────────────────────

    def process(self) -> Any:
        """parse → transform → validate，返回校验通过的结果。"""
        self.parse()
        result = self.transform()
        self.validate(result)
        return result
