from dataclasses import dataclass
from typing import Any, Dict, Optional

from versioned_cms.errors import CMSError


@dataclass
class OperationResult:
    """Outcome of a facade operation; failures carry a taxonomy code instead of raising."""

    success: bool
    data: Any = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    details: Optional[Dict[str, Any]] = None

    @classmethod
    def ok(cls, data: Any = None) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, error: CMSError) -> "OperationResult":
        return cls(
            success=False,
            error=error.message,
            error_code=error.code,
            details=error.details or None,
        )
