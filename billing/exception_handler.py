"""
统一异常处理器，挂在 REST_FRAMEWORK['EXCEPTION_HANDLER'] 上。

前端对所有响应用同一套判断：
  body.type 存在  → 出错了（validation_error / block / warning / error）
  body.type 不存在 → 成功

错误响应体：
{
    "type":    "block",
    "code":    "APPOINTMENT_OVERLAP",
    "message": "Provider already has an appointment at 09:00 on 2026-11-02.",
    "detail":  { "existing_appointment_id": "..." }   // 可选
}
"""
import logging

from django.http import Http404, JsonResponse
from rest_framework.exceptions import APIException, NotFound, ParseError
from rest_framework.exceptions import ValidationError as DRFValidationError

from .exceptions import BaseAppException

logger = logging.getLogger(__name__)


def _view_name(context):
    view = context.get('view')
    return type(view).__name__ if view is not None else '-'


def unified_exception_handler(exc, context):
    """
    优先级：
    1. BaseAppException 及其子类 → exc.to_dict()
    2. DRF 的 ValidationError / ParseError（请求体不是合法 JSON 等）→ validation_error
    3. 其他 DRF APIException（405、415、404 ...）→ type=error，code 取 DRF 的 default_code
    4. 非 API 异常 → 返回 None，照常冒泡成 500
    """
    if isinstance(exc, Http404):
        exc = NotFound()

    if isinstance(exc, BaseAppException):
        logger.info("[API] %s -> %s %s: %s", _view_name(context), exc.http_status, exc.code, exc.message)
        return JsonResponse(exc.to_dict(), status=exc.http_status)

    if isinstance(exc, (DRFValidationError, ParseError)):
        logger.info("[API] %s -> 400 request rejected by DRF: %s", _view_name(context), exc.detail)
        return JsonResponse({
            'type': 'validation_error',
            'code': 'VALIDATION_ERROR',
            'message': 'Request validation failed',
            'detail': exc.detail,
        }, status=400)

    if isinstance(exc, APIException):
        logger.info("[API] %s -> %s %s", _view_name(context), exc.status_code, exc.default_code)
        return JsonResponse({
            'type': 'error',
            'code': str(exc.default_code).upper(),
            'message': str(exc.detail),
        }, status=exc.status_code)

    return None
