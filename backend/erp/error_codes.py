# Overview: Symbolic error codes with their HTTP status and user-facing message.

"""
Central error code table.

Every code maps to an HTTP status and a Korean message shown to the end user.
Services raise ApiError("ERR_BIZ_010") instead of building ad hoc responses;
the handler registered in errors.py renders the envelope:

    {"success": false, "code": "ERR_BIZ_010", "message": "..."}
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ErrorCode:
    code: str
    status: int
    message: str


_TABLE = [
    # Auth
    ErrorCode("ERR_AUTH_001", 401, "이메일 또는 비밀번호가 올바르지 않습니다."),
    ErrorCode("ERR_AUTH_002", 401, "인증 토큰이 만료되었습니다. 다시 로그인해주세요."),
    ErrorCode("ERR_AUTH_003", 401, "유효하지 않은 인증 토큰입니다."),
    ErrorCode("ERR_AUTH_004", 401, "인증 토큰이 필요합니다."),
    ErrorCode("ERR_AUTH_005", 401, "인증이 필요합니다."),
    ErrorCode("ERR_AUTH_006", 403, "접근 권한이 없습니다."),
    ErrorCode("ERR_AUTH_007", 409, "이미 사용 중인 이메일입니다."),
    ErrorCode("ERR_AUTH_008", 404, "등록되지 않은 이메일입니다."),
    ErrorCode("ERR_AUTH_009", 400, "비밀번호가 보안 정책을 충족하지 않습니다."),
    ErrorCode("ERR_AUTH_010", 400, "현재 비밀번호가 올바르지 않습니다."),
    ErrorCode("ERR_AUTH_011", 401, "세션이 만료되었습니다."),
    ErrorCode("ERR_AUTH_012", 403, "유효하지 않은 리프레시 토큰입니다."),
    # Business resources
    ErrorCode("ERR_BIZ_001", 404, "사업자 정보를 찾을 수 없습니다."),
    ErrorCode("ERR_BIZ_002", 404, "거래처 정보를 찾을 수 없습니다."),
    ErrorCode("ERR_BIZ_003", 404, "상품 정보를 찾을 수 없습니다."),
    ErrorCode("ERR_BIZ_004", 404, "매출 정보를 찾을 수 없습니다."),
    ErrorCode("ERR_BIZ_005", 404, "매입 정보를 찾을 수 없습니다."),
    ErrorCode("ERR_BIZ_006", 404, "결제 정보를 찾을 수 없습니다."),
    ErrorCode("ERR_BIZ_007", 409, "이미 등록된 사업자번호입니다."),
    ErrorCode("ERR_BIZ_008", 400, "유효하지 않은 사업자번호입니다."),
    ErrorCode("ERR_BIZ_009", 403, "해당 사업자에 접근 권한이 없습니다."),
    ErrorCode("ERR_BIZ_010", 409, "이미 전자서명이 완료된 문서입니다."),
    # Database
    ErrorCode("ERR_DB_001", 503, "데이터베이스 연결에 실패했습니다."),
    ErrorCode("ERR_DB_002", 500, "데이터베이스 쿼리 실행에 실패했습니다."),
    ErrorCode("ERR_DB_003", 500, "트랜잭션 처리에 실패했습니다."),
    ErrorCode("ERR_DB_004", 409, "중복된 데이터입니다."),
    ErrorCode("ERR_DB_005", 409, "참조 무결성 제약 조건 위반입니다."),
    ErrorCode("ERR_DB_006", 504, "데이터베이스 작업 시간이 초과되었습니다."),
    # Validation
    ErrorCode("ERR_VAL_001", 400, "입력값이 유효하지 않습니다."),
    ErrorCode("ERR_VAL_002", 400, "필수 입력 항목이 누락되었습니다."),
    ErrorCode("ERR_VAL_003", 400, "올바른 이메일 형식이 아닙니다."),
    ErrorCode("ERR_VAL_004", 400, "올바른 전화번호 형식이 아닙니다."),
    ErrorCode("ERR_VAL_005", 400, "올바른 날짜 형식이 아닙니다."),
    ErrorCode("ERR_VAL_006", 400, "올바른 숫자 형식이 아닙니다."),
    ErrorCode("ERR_VAL_007", 400, "허용된 범위를 벗어났습니다."),
    ErrorCode("ERR_VAL_008", 400, "올바른 형식이 아닙니다."),
    # Rate limiting
    ErrorCode("ERR_RATE_001", 429, "요청 한도를 초과했습니다. 잠시 후 다시 시도해주세요."),
    ErrorCode("ERR_RATE_002", 429, "로그인 시도 횟수를 초과했습니다. 15분 후 다시 시도해주세요."),
    ErrorCode("ERR_RATE_003", 429, "API 요청 한도를 초과했습니다. 잠시 후 다시 시도해주세요."),
    # Files
    ErrorCode("ERR_FILE_001", 400, "파일 크기가 너무 큽니다."),
    ErrorCode("ERR_FILE_002", 400, "허용되지 않는 파일 형식입니다."),
    ErrorCode("ERR_FILE_003", 400, "허용되지 않는 파일 확장자입니다."),
    ErrorCode("ERR_FILE_004", 404, "파일을 찾을 수 없습니다."),
    ErrorCode("ERR_FILE_005", 500, "파일 업로드에 실패했습니다."),
    ErrorCode("ERR_FILE_006", 400, "파일 개수가 너무 많습니다."),
    ErrorCode("ERR_FILE_007", 400, "유효하지 않은 파일명입니다."),
    ErrorCode("ERR_FILE_008", 400, "파일 확장자와 MIME 타입이 일치하지 않습니다."),
    # CSRF
    ErrorCode("ERR_CSRF_001", 403, "유효하지 않은 CSRF 토큰입니다."),
    ErrorCode("ERR_CSRF_002", 403, "CSRF 토큰이 필요합니다."),
    ErrorCode("ERR_CSRF_003", 403, "CSRF 토큰이 만료되었습니다. 페이지를 새로고침해주세요."),
    # Server
    ErrorCode("ERR_SRV_001", 500, "서버 내부 오류가 발생했습니다."),
    ErrorCode("ERR_SRV_002", 503, "서비스를 일시적으로 사용할 수 없습니다."),
    ErrorCode("ERR_SRV_003", 504, "서버 응답 시간이 초과되었습니다."),
    ErrorCode("ERR_SRV_004", 501, "아직 구현되지 않은 기능입니다."),
    # External services
    ErrorCode("ERR_EXT_001", 502, "알림톡 전송에 실패했습니다."),
    ErrorCode("ERR_EXT_002", 502, "SMS 전송에 실패했습니다."),
    ErrorCode("ERR_EXT_003", 502, "이메일 전송에 실패했습니다."),
    ErrorCode("ERR_EXT_004", 502, "외부 API 호출에 실패했습니다."),
    # OTP
    ErrorCode("ERR_OTP_001", 400, "유효하지 않은 인증번호입니다."),
    ErrorCode("ERR_OTP_002", 400, "인증번호가 만료되었습니다."),
    ErrorCode("ERR_OTP_003", 429, "인증 시도 횟수를 초과했습니다."),
    ErrorCode("ERR_OTP_004", 500, "인증번호 전송에 실패했습니다."),
    # Notifications
    ErrorCode("ERR_NOTIF_001", 404, "알림을 찾을 수 없습니다."),
    ErrorCode("ERR_NOTIF_002", 500, "알림 전송에 실패했습니다."),
]

ERROR_CODES: dict[str, ErrorCode] = {e.code: e for e in _TABLE}


class ApiError(Exception):
    """
    Raised by services for conditions that have a symbolic error code.

    `message` overrides the table text when a more specific sentence helps
    the user (e.g. which row of an upload failed); `extra` is merged into
    the response body.
    """

    def __init__(self, code: str, message: str | None = None, **extra):
        if code not in ERROR_CODES:
            raise KeyError(f"Unknown error code: {code}")
        entry = ERROR_CODES[code]
        super().__init__(message or entry.message)
        self.code = code
        self.status = entry.status
        self.message = message or entry.message
        self.extra = extra

    def to_dict(self) -> dict:
        body = {"success": False, "code": self.code, "message": self.message}
        body.update(self.extra)
        return body
