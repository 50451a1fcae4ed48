"""
统一异常体系。

每个业务异常带四样东西，exception_handler 原样渲染成响应体：
- type:        错误类型标识（validation_error / block / warning），前端据此决定怎么提示
- code:        业务错误码（INVALID_NPI / NPI_CONFLICT / INCOMPLETE_CLAIM / APPOINTMENT_OVERLAP ...）
- message:     给人看的描述
- detail:      可选的附加信息（出错字段、冲突记录 id、warnings 列表……）

http_status 只决定响应码，不进响应体。
Service 层只管 raise；View 里没有 try/except。
"""


class BaseAppException(Exception):
    """所有业务异常的基类。直接 raise 时是 500。"""

    type = 'error'
    code = 'UNKNOWN_ERROR'
    http_status = 500

    def __init__(self, message, code=None, detail=None, http_status=None):
        self.message = message
        if code is not None:
            self.code = code
        if http_status is not None:
            self.http_status = http_status
        self.detail = detail
        super().__init__(message)

    def to_dict(self):
        """响应体；detail 为 None 时不输出该字段。"""
        body = {'type': self.type, 'code': self.code, 'message': self.message}
        if self.detail is not None:
            body['detail'] = self.detail
        return body


class ValidationError(BaseAppException):
    """请求内容本身不合法（格式、必填、取值范围）。intake adapter / service 层抛出，400。"""

    type = 'validation_error'
    code = 'VALIDATION_ERROR'
    http_status = 400


class BlockError(BaseAppException):
    """
    请求合法，但当前数据状态不允许：NPI 冲突、理赔状态不可流转、预约时间重叠等。
    409；记录不存在时由 not_found() 改成 404。
    """

    type = 'block'
    code = 'BUSINESS_BLOCK'
    http_status = 409


class WarningError(BaseAppException):
    """
    需要用户确认才能继续（疑似重复患者、同日重复理赔）。

    不是失败而是暂停：前端展示 detail.warnings，用户确认后带 confirm=true 重新提交。
    """

    type = 'warning'
    code = 'CONFIRMATION_REQUIRED'
    http_status = 409

    @classmethod
    def from_warnings(cls, message, warnings):
        return cls(message=message, detail={'warnings': warnings})


def not_found(entity, object_id):
    """Shortcut for the 404 BlockError every service raises on a missing row."""
    return BlockError(
        message=f'{entity} not found',
        code=f'{entity.upper().replace(" ", "_")}_NOT_FOUND',
        detail={'id': str(object_id)},
        http_status=404,
    )
