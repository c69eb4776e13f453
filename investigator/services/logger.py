"""Centralized logging service using loguru."""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from loguru import logger

from investigator.config import settings

LOG_DIR = Path(settings.log_dir)
LOG_DIR.mkdir(parents=True, exist_ok=True)

logger.remove()

logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
    level=settings.app_log_level.upper(),
    colorize=True,
)

logger.add(
    LOG_DIR / "investigator_{time:YYYY-MM-DD}.log",
    format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}",
    level="DEBUG",
    rotation="00:00",
    retention="7 days",
    compression="zip",
)

for logger_name in (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "sse_starlette.sse",
    "httpx",
    "httpcore",
    "hpack",
    "openai._base_client",
    "chromadb",
    "sentence_transformers",
    "asyncio",
):
    logging.getLogger(logger_name).setLevel(settings.noisy_log_level.upper())


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_llm_call(
    model: str,
    caller: str,
    input_tokens: int = 0,
    output_tokens: int = 0,
    duration_ms: int = 0,
    status: str = "success",
    error: Optional[str] = None,
) -> None:
    """Log an LLM API call."""
    call_data = {
        "timestamp": _now(),
        "model": model,
        "caller": caller,
        "input_tokens": input_tokens,
        "output_tokens": output_tokens,
        "total_tokens": input_tokens + output_tokens,
        "duration_ms": duration_ms,
        "status": status,
        "error": error,
    }
    if status == "success":
        logger.info(f"LLM_CALL: {json.dumps(call_data)}")
    else:
        logger.warning(f"LLM_CALL: {json.dumps(call_data)}")


def log_agent_step(
    investigation_id: str,
    step: int,
    action: str,
    next_action: str,
    confidence: float,
    duration_ms: int = 0,
) -> None:
    """Log one orchestrator step."""
    step_data = {
        "timestamp": _now(),
        "investigation_id": investigation_id,
        "step": step,
        "action": action,
        "next_action": next_action,
        "confidence": round(confidence, 4),
        "duration_ms": duration_ms,
    }
    logger.info(f"AGENT_STEP: {json.dumps(step_data)}")


def log_tool_call(
    tool: str,
    operation: str,
    status: str,
    duration_ms: int = 0,
    details: Optional[dict] = None,
    error: Optional[str] = None,
) -> None:
    """Log a call to an external tool (search, extract, memory)."""
    tool_data = {
        "timestamp": _now(),
        "tool": tool,
        "operation": operation,
        "status": status,
        "duration_ms": duration_ms,
        "details": details,
        "error": error,
    }
    if error:
        logger.warning(f"TOOL_CALL: {json.dumps(tool_data)}")
    else:
        logger.info(f"TOOL_CALL: {json.dumps(tool_data)}")


def log_event(
    event_type: str,
    message: str,
    **kwargs,
) -> None:
    """Log a generic event."""
    event_data = {
        "timestamp": _now(),
        "event_type": event_type,
        "message": message,
        **kwargs,
    }
    logger.info(f"EVENT: {json.dumps(event_data, default=str)}")
