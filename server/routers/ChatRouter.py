from fastapi import APIRouter, Depends, Request

from server.dependencies.auth import verify_api_key
from server.models.requests import ChatRequest
from server.models.responses import ErrorResponse
from shared.models.chat import ChatMessage

router = APIRouter(
    prefix="/chat",
    tags=["chat"],
    responses={
        400: {"model": ErrorResponse},
        401: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        502: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)


@router.post("")
async def chat(
    request: Request,
    body: ChatRequest,
    _: None = Depends(verify_api_key),
) -> ChatMessage:
    """Answer the last user message from the library's passages.

    Args:
        request (Request): FastAPI request (provides app.state.query_service).
        body (ChatRequest): The conversation so far, oldest first.
        _ (None): Auth dependency result (unused).

    Returns:
        ChatMessage: The assistant reply (HTML) with its deduplicated sources.
    """
    query_service = request.app.state.query_service
    return await query_service.do_chat(body.messages)
