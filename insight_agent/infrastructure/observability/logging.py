import structlog
import logging
import sys
from typing import Dict, Any, Optional
import os


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "insight-agent"
) -> None:
    """Setup structured logging configuration"""

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
        force=True,
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        drop_empty_fields,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
        version=os.getenv("SERVICE_VERSION", "unknown")
    )


def drop_empty_fields(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Remove None-valued keys so optional fields don't clutter every line"""

    return {key: value for key, value in event_dict.items() if value is not None}


class AgentLogger:
    """Specialized logger for agent operations"""

    def __init__(self, name: str):
        self.logger = structlog.get_logger(name)

    def log_agent_event(
        self,
        event_type: str,
        session_id: Optional[str],
        data: Optional[Dict[str, Any]] = None,
        **kwargs
    ):
        """Log agent lifecycle events"""

        self.logger.info(
            "agent_event",
            event_type=event_type,
            session_id=session_id,
            data=data or {},
            **kwargs
        )

    def log_tool_execution(
        self,
        tool_name: str,
        session_id: Optional[str],
        input_data: Dict[str, Any],
        output_data: Optional[Dict[str, Any]] = None,
        duration_ms: Optional[float] = None,
        success: bool = True,
        error: Optional[str] = None
    ):
        """Log tool execution events"""

        log = self.logger.info if success else self.logger.warning
        log(
            "tool_execution",
            tool_name=tool_name,
            session_id=session_id,
            input_data=input_data,
            output_data=output_data,
            duration_ms=round(duration_ms, 2) if duration_ms is not None else None,
            success=success,
            error=error
        )

    def log_workflow_transition(
        self,
        session_id: Optional[str],
        from_node: str,
        to_node: str,
        condition: Optional[str] = None,
        state_summary: Optional[Dict[str, Any]] = None
    ):
        """Log turn engine state transitions"""

        self.logger.info(
            "workflow_transition",
            session_id=session_id,
            from_node=from_node,
            to_node=to_node,
            condition=condition,
            state_summary=state_summary or {}
        )

    def log_context_update(
        self,
        session_id: Optional[str],
        context_type: str,
        action: str,
        details: Optional[Dict[str, Any]] = None
    ):
        """Log context updates"""

        self.logger.info(
            "context_update",
            session_id=session_id,
            context_type=context_type,
            action=action,
            details=details or {}
        )


agent_logger = AgentLogger("insight_agent")


def series_key(name: str, tags: Optional[Dict[str, str]] = None) -> str:
    """Metric name with its tags folded in, e.g. `triangulation.verdict{status=VERIFIED}`"""
    if not tags:
        return name
    labels = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
    return f"{name}{{{labels}}}"


class MetricsCollector:
    """In-process latency and counter aggregation, one series per name and tag set"""

    def __init__(self):
        self.latencies: Dict[str, Dict[str, float]] = {}
        self.counters: Dict[str, int] = {}

    def record_latency(self, operation: str, duration_ms: float, tags: Optional[Dict[str, str]] = None):
        key = series_key(f"latency.{operation}", tags)
        entry = self.latencies.setdefault(key, {"count": 0, "sum": 0.0, "min": duration_ms, "max": duration_ms})
        entry["count"] += 1
        entry["sum"] += duration_ms
        entry["min"] = min(entry["min"], duration_ms)
        entry["max"] = max(entry["max"], duration_ms)

        agent_logger.logger.debug(
            "metric",
            metric_type="latency",
            operation=operation,
            duration_ms=round(duration_ms, 2),
            tags=tags or {}
        )

    def increment_counter(self, name: str, value: int = 1, tags: Optional[Dict[str, str]] = None):
        key = series_key(name, tags)
        self.counters[key] = self.counters.get(key, 0) + value

        agent_logger.logger.debug(
            "metric",
            metric_type="counter",
            name=name,
            value=value,
            tags=tags or {}
        )

    def counter(self, name: str, tags: Optional[Dict[str, str]] = None) -> int:
        return self.counters.get(series_key(name, tags), 0)

    def get_metrics_summary(self) -> Dict[str, Any]:
        """Counters as plain values, latencies as count/avg/min/max"""

        summary: Dict[str, Any] = dict(self.counters)
        for key, entry in self.latencies.items():
            summary[key] = {
                "count": entry["count"],
                "avg": entry["sum"] / entry["count"],
                "min": entry["min"],
                "max": entry["max"],
            }
        return summary

    def reset(self):
        self.latencies.clear()
        self.counters.clear()


metrics = MetricsCollector()
