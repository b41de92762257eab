"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across the build driver."""

    VALIDATION = "E_VALIDATION"
    PLATFORM_UNSUPPORTED = "E_PLATFORM_UNSUPPORTED"
    ACQUISITION = "E_ACQUISITION"
    UNSUPPORTED_WINDOWS_TARGET = "E_UNSUPPORTED_WINDOWS_TARGET"
    PROCESS_FAILURE = "E_PROCESS_FAILURE"


class ZigBuildError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        for k, v in self.context.items():
            if v:
                parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class ValidationError(ZigBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.VALIDATION, hint=hint, context=context)


class PlatformUnsupportedError(ZigBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.PLATFORM_UNSUPPORTED, hint=hint, context=context)


class AcquisitionError(ZigBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.ACQUISITION, hint=hint, context=context)


class UnsupportedWindowsTargetError(ZigBuildError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(
            message, code=ErrorCode.UNSUPPORTED_WINDOWS_TARGET, hint=hint, context=context
        )


class ProcessFailureError(ZigBuildError):
    """Raised when a spawned process exits non-zero or is killed by a signal."""

    exit_code: int | None
    signal: int | None

    def __init__(
        self,
        message: str,
        *,
        exit_code: int | None,
        signal: int | None = None,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        merged = dict(context or {})
        merged["exit_code"] = "null" if exit_code is None else str(exit_code)
        if signal is not None:
            merged["signal"] = str(signal)
        super().__init__(message, code=ErrorCode.PROCESS_FAILURE, hint=hint, context=merged)
        self.exit_code = exit_code
        self.signal = signal


__all__ = [
    "AcquisitionError",
    "ErrorCode",
    "PlatformUnsupportedError",
    "ProcessFailureError",
    "UnsupportedWindowsTargetError",
    "ValidationError",
    "ZigBuildError",
]
