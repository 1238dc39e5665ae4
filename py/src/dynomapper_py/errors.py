from __future__ import annotations


class DynomapperError(Exception):
    retryable: bool = False


class ConditionFailedError(DynomapperError):
    pass


class NotFoundError(DynomapperError):
    pass


class ValidationError(DynomapperError):
    pass


class AwsError(DynomapperError):
    def __init__(self, *, code: str, message: str, retryable: bool = False) -> None:
        super().__init__(f"{code}: {message}")
        self.code = code
        self.message = message
        self.retryable = retryable


def is_retryable(err: BaseException) -> bool:
    return bool(getattr(err, "retryable", False))
