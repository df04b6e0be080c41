"""Chat API router."""

from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, status

from travel_agent.api.models import ChatRequest, ChatResponse
from travel_agent.services.agent_service import agent_service

router = APIRouter()


def get_caller_id(x_user_id: Optional[str] = Header(None)) -> int:
    """
    Resolve the caller from the X-User-ID header.

    The header is set by the authenticating gateway in front of this service.
    """
    if x_user_id is None or not x_user_id.strip().isdigit() or int(x_user_id) <= 0:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return int(x_user_id)


@router.post("/chat", tags=["Chat"], response_model=ChatResponse)
async def chat(request: ChatRequest, caller_id: int = Depends(get_caller_id)):
    """
    Answer a user message with the travel agent.

    The agent may look up, book or cancel tickets for the caller and use the
    calendar integration when it is available. Internal failures come back as
    an apology reply, never as an error status.
    """
    if not request.message.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Message is required")

    reply = await agent_service.generate_response(request.message, caller_id)
    return ChatResponse(reply=reply)
