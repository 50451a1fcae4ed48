"""
Intake 层的中间结构。

理赔向导的 ClaimDraft 定义在 billing.wizard.types；这里只放批量导入用的行结构。
"""

from dataclasses import dataclass, field


@dataclass
class ImportRow:
    """
    CSV 中的一行，已按表头映射成 model 字段名。

    line_number  从 2 开始（第 1 行是表头），用于把失败原因回报给用户。
    """

    line_number: int
    data: dict[str, str] = field(default_factory=dict)
