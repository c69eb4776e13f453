from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sse_starlette.sse import EventSourceResponse

from investigator.api.deps import get_investigation_service, parse_config, require_query
from investigator.llm_client import client as llm_client
from investigator.models.events import SSEEvent
from investigator.models.investigation import AgentThought
from investigator.models.schemas import InvestigateRequest, StreamRequest
from investigator.services import logger as log_service
from investigator.services import streaming
from investigator.services.investigations import InvestigationService

router = APIRouter(prefix="/api/agent", tags=["stream"])


@router.post("/investigate/stream")
async def stream_investigation(
    request: InvestigateRequest,
    service: InvestigationService = Depends(get_investigation_service),
):
    """SSE endpoint streaming each agent thought, then the finished investigation."""
    query = require_query(request.query)
    config = parse_config(request.config)

    async def event_generator():
        queue: asyncio.Queue[SSEEvent | None] = asyncio.Queue()

        def on_thought(thought: AgentThought) -> None:
            queue.put_nowait(streaming.agent_thought(thought))

        yield streaming.investigation_started(query, config.model_dump(mode="json")).to_sse_dict()

        task = asyncio.create_task(
            service.start(query, config, user_id=request.user_id, on_thought=on_thought)
        )
        task.add_done_callback(lambda _: queue.put_nowait(None))
        try:
            while True:
                event = await queue.get()
                if event is None:
                    break
                yield event.to_sse_dict()
            investigation = task.result()
            yield streaming.investigation_complete(investigation).to_sse_dict()
        except Exception as exc:
            log_service.log_event(
                event_type="investigation_stream_error",
                message="Investigation stream failed",
                error=str(exc),
                query=query[:100],
            )
            yield streaming.error(str(exc)).to_sse_dict()
        finally:
            if not task.done():
                task.cancel()

    return EventSourceResponse(event_generator())


@router.post("/stream")
async def stream_text(request: StreamRequest):
    """Stream raw model output as plain text chunks."""
    if not request.prompt or not request.prompt.strip():
        raise HTTPException(status_code=400, detail="Prompt is required")
    prompt = request.prompt

    async def text_generator():
        try:
            async with llm_client().stream(prompt, caller="api.stream") as stream:
                async for chunk in stream.text_stream:
                    yield chunk
        except Exception as exc:
            yield f"Error: {exc}"

    return StreamingResponse(text_generator(), media_type="text/plain; charset=utf-8")
