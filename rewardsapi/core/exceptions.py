from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class BaseAPIException(HTTPException):
    """API 에러 공통 베이스

    응답 본문은 항상 {"success": false, "error": {"code", "message", "details"}} 형태입니다.
    """

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}

        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error": {
                    "code": error_code,
                    "message": message,
                    "details": self.details,
                },
            },
            headers=headers,
        )

    def __str__(self) -> str:
        return self.message


class _CodedAPIException(BaseAPIException):
    """상태 코드/에러 코드가 고정된 예외 (서브클래스에서 클래스 속성으로 지정)"""

    http_status: int = status.HTTP_400_BAD_REQUEST
    code: str = "ERROR"
    default_message: str = "Request failed"

    def __init__(self, message: Optional[str] = None, details: Optional[Dict] = None):
        super().__init__(
            status_code=self.http_status,
            error_code=self.code,
            message=message or self.default_message,
            details=details,
        )


class AuthenticationError(BaseAPIException):
    """토큰 없음/무효/사용자 없음"""

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTH_001",
            message=message,
            details=details,
            headers={"WWW-Authenticate": "Bearer"},
        )


class AuthorizationError(_CodedAPIException):
    http_status = status.HTTP_403_FORBIDDEN
    code = "AUTH_002"
    default_message = "Access forbidden"


class ValidationError(_CodedAPIException):
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "VALIDATION_001"
    default_message = "Validation failed"


class NotFoundError(_CodedAPIException):
    http_status = status.HTTP_404_NOT_FOUND
    code = "NOT_FOUND_001"
    default_message = "Resource not found"


class ConflictError(_CodedAPIException):
    """중복 귀속 / 코드 충돌"""

    http_status = status.HTTP_409_CONFLICT
    code = "CONFLICT_001"
    default_message = "Resource conflict"


class InternalServerError(_CodedAPIException):
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "INTERNAL_001"
    default_message = "Internal server error"


class InsufficientBalanceError(_CodedAPIException):
    """사용 가능 포인트 부족 (차감/음수 조정)"""

    code = "BALANCE_001"
    default_message = "Insufficient balance"


class BusinessLogicError(BaseAPIException):
    """비즈니스 규칙 위반 - 에러 코드를 호출자가 지정"""

    def __init__(self, error_code: str, message: str, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=error_code,
            message=message,
            details=details,
        )


class TierRequiredError(BusinessLogicError):
    def __init__(self, required_tier: int, current_tier: int):
        super().__init__(
            "TIER_REQUIRED",
            f"Requires tier level {required_tier}",
            {"required_tier": required_tier, "current_tier": current_tier},
        )


class SelfReferralError(BusinessLogicError):
    def __init__(self):
        super().__init__("REFERRAL_SELF", "Self-referral not allowed")


class FulfillmentError(BaseAPIException):
    """포인트 차감 후 지급 실패 - 교환 건은 failed로 격리되어 수동 검토 대기"""

    def __init__(self, redemption_id: int, message: str = "Fulfillment failed, points held for review"):
        self.redemption_id = redemption_id
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            error_code="REDEMPTION_FAILED",
            message=message,
            details={"redemption_id": redemption_id},
        )
