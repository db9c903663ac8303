"""FastAPI routes for the farming chatbot."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from controllers.chat_controller import (
	chat_analytics,
	delete_chat_session,
	get_chat_session,
	list_chat_sessions,
	quick_responses,
	rename_chat_session,
	send_chat_message,
)
from models.errors import AgriAssistError
from utils.auth import Identity, get_current_user

router = APIRouter(prefix="/api/chatbot", tags=["chatbot"])


class ChatPayload(BaseModel):
	message: str = ""
	session_id: Optional[str] = None
	language: str = "en"
	create_if_absent: bool = True


class TitlePayload(BaseModel):
	title: str = ""


@router.post("/chat")
async def chat_route(request: Request, payload: ChatPayload, identity: Identity = Depends(get_current_user)):
	try:
		return await send_chat_message(
			request, identity, payload.message, payload.session_id, payload.language, payload.create_if_absent
		)
	except (HTTPException, AgriAssistError):
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/sessions")
async def sessions_route(
	request: Request,
	page: int = Query(1, ge=1),
	limit: int = Query(10, ge=1, le=100),
	identity: Identity = Depends(get_current_user),
):
	return await list_chat_sessions(request, identity, page, limit)


@router.get("/sessions/{session_id}")
async def session_route(request: Request, session_id: str, identity: Identity = Depends(get_current_user)):
	return await get_chat_session(request, identity, session_id)


@router.delete("/sessions/{session_id}")
async def delete_session_route(request: Request, session_id: str, identity: Identity = Depends(get_current_user)):
	return await delete_chat_session(request, identity, session_id)


@router.put("/sessions/{session_id}/title")
async def title_route(
	request: Request, session_id: str, payload: TitlePayload, identity: Identity = Depends(get_current_user)
):
	return await rename_chat_session(request, identity, session_id, payload.title)


@router.get("/quick-responses")
async def quick_responses_route(identity: Identity = Depends(get_current_user)):
	return quick_responses()


@router.get("/analytics")
async def analytics_route(request: Request, period: str = "30d", identity: Identity = Depends(get_current_user)):
	return await chat_analytics(request, identity, period)
