"""
业务异常体系

领域层抛出带错误码的异常，由 app.main 中注册的异常处理器统一转换为
{"success": false, "error": {...}} 格式的响应。
"""

from typing import Any, Optional


class AppError(Exception):
    """应用异常基类"""

    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    default_message: str = "服务器内部错误"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        error = {"code": self.code, "message": self.message}
        if self.details is not None:
            error["details"] = self.details
        return {"success": False, "error": error}


class ValidationError(AppError):
    """参数校验失败（动作不合法、明细不合法、税率或折扣越界）"""
    code = "VALIDATION_ERROR"
    status_code = 400
    default_message = "参数校验失败"


class NotFoundError(AppError):
    """资源不存在"""
    code = "NOT_FOUND"
    status_code = 404

    def __init__(self, resource: str, details: Any = None):
        self.resource = resource
        super().__init__(f"{resource}不存在", details if details is not None else {"resource": resource})


class InvalidStateError(AppError):
    """当前状态不允许执行该操作"""
    code = "INVALID_STATE"
    status_code = 400
    default_message = "当前状态不允许执行该操作"


class InsufficientStockError(AppError):
    """库存不足（整单校验，不区分具体明细）"""
    code = "INSUFFICIENT_STOCK"
    status_code = 400
    default_message = "库存不足"


class PermissionDeniedError(AppError):
    """无操作权限"""
    code = "FORBIDDEN"
    status_code = 403
    default_message = "无操作权限"


class InternalError(AppError):
    """未预期的内部错误"""
    code = "INTERNAL_ERROR"
    status_code = 500


class LedgerPostingError(AppError):
    """总账过账失败，只在过账器内部使用，不会返回给调用方"""
    code = "LEDGER_POSTING_ERROR"
    status_code = 500
    default_message = "总账过账失败"
