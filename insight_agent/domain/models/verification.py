from typing import Any, Dict, Optional
from pydantic import BaseModel, Field
from enum import Enum


class VerificationStatus(str, Enum):
    """Verdict of a triangulation run"""
    VERIFIED = "VERIFIED"
    FAILED_TRUTH = "FAILED_TRUTH"
    FAILED_PHYSICS = "FAILED_PHYSICS"
    USAGE_ERROR = "USAGE_ERROR"


class VerificationOutcome(BaseModel):
    """Result of one triangulation run, returned to the model as JSON"""
    status: VerificationStatus
    metric: Optional[str] = None
    value: Optional[float] = None
    value_a: Optional[float] = Field(None, description="Value from the direct SQL path")
    value_b: Optional[float] = Field(None, description="Value from the fetch + Python path")
    delta: Optional[str] = Field(None, description="Relative difference as a percentage string")
    message: Optional[str] = None
    suggestion: Optional[str] = None
    debug: Dict[str, Any] = Field(default_factory=dict)

    @property
    def trusted(self) -> bool:
        return self.status == VerificationStatus.VERIFIED

    @classmethod
    def verified(cls, metric: str, value: float, delta: str) -> "VerificationOutcome":
        return cls(
            status=VerificationStatus.VERIFIED,
            metric=metric,
            value=value,
            value_a=value,
            delta=delta,
            message="Both paths agree. Confidence: HIGH. Method: Triangulation (SQL + Python).",
        )

    @classmethod
    def failed_truth(
        cls, metric: str, value_a: float, value_b: float, delta: str, python_code: str
    ) -> "VerificationOutcome":
        return cls(
            status=VerificationStatus.FAILED_TRUTH,
            metric=metric,
            value_a=value_a,
            value_b=value_b,
            delta=delta,
            message=f"Logic Error: SQL result ({value_a}) diverged from Python result ({value_b}).",
            suggestion="Trust neither number. Did the SQL join multiply rows? Did the Python filter correctly?",
            debug={"debug_python_code": python_code},
        )

    @classmethod
    def failed_physics(cls, metric: str, reason: str, sql_raw: Any, python_result: Any) -> "VerificationOutcome":
        return cls(
            status=VerificationStatus.FAILED_PHYSICS,
            metric=metric,
            message=reason,
            debug={"sql_raw": sql_raw, "python_result": python_result},
        )

    @classmethod
    def usage_error(cls, metric: str, reason: str, suggestion: str) -> "VerificationOutcome":
        return cls(
            status=VerificationStatus.USAGE_ERROR,
            metric=metric,
            message=reason,
            suggestion=suggestion,
        )

    def to_payload(self) -> str:
        """JSON payload handed back to the model"""
        return self.model_dump_json(exclude_none=True)
