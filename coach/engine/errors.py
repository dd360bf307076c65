"""
Error codes and PolicyError exception for configuration and simulation failures.
"""
from enum import Enum

class ErrorCode(str, Enum):
    ERR_GENERIC = "ERR_GENERIC"
    ERR_EMPTY_REGISTRY = "ERR_EMPTY_REGISTRY"
    ERR_DUPLICATE_TEMPLATE = "ERR_DUPLICATE_TEMPLATE"
    ERR_UNKNOWN_TEMPLATE = "ERR_UNKNOWN_TEMPLATE"
    ERR_INVALID_CACHE_KEY = "ERR_INVALID_CACHE_KEY"
    ERR_INVALID_CONFIG = "ERR_INVALID_CONFIG"
    ERR_ILLEGAL_PLACEMENT = "ERR_ILLEGAL_PLACEMENT"
    ERR_UNKNOWN_PIECE = "ERR_UNKNOWN_PIECE"

class PolicyError(Exception):
    def __init__(self, code: ErrorCode, message: str = "", details: dict = None):
        super().__init__(message or code.value)
        self.code = code
        self.details = details or {}

    def to_dict(self):
        return {"code": self.code.value, "message": str(self), "details": self.details}
