"""Chatbot controllers."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional

from fastapi import Request

from controllers.common import get_conversations, parse_period
from models.chat_models import ChatSession
from services.chat.prompts import QUICK_RESPONSES
from utils.auth import Identity


async def send_chat_message(
	request: Request,
	identity: Identity,
	message: str,
	session_id: Optional[str],
	language: str,
	create_if_absent: bool,
) -> Dict[str, Any]:
	"""Run one chat turn for the caller."""
	reply = await get_conversations(request).send_message(
		identity.user_id,
		message,
		session_id=session_id,
		language=language,
		create_if_absent=create_if_absent,
	)
	return {"success": True, "data": asdict(reply)}


async def list_chat_sessions(request: Request, identity: Identity, page: int, limit: int) -> Dict[str, Any]:
	result = await get_conversations(request).list_sessions(identity.user_id, page=page, limit=limit)
	return {"success": True, "data": result.to_dict(ChatSession.summary, key="sessions")}


async def get_chat_session(request: Request, identity: Identity, session_id: str) -> Dict[str, Any]:
	session = await get_conversations(request).get_session(identity.user_id, session_id)
	return {"success": True, "data": {"session": session.to_dict()}}


async def delete_chat_session(request: Request, identity: Identity, session_id: str) -> Dict[str, Any]:
	await get_conversations(request).delete_session(identity.user_id, session_id)
	return {"success": True, "message": "Chat session deleted successfully"}


async def rename_chat_session(request: Request, identity: Identity, session_id: str, title: str) -> Dict[str, Any]:
	session = await get_conversations(request).rename_session(identity.user_id, session_id, title)
	return {"success": True, "message": "Session title updated successfully", "data": {"title": session.title}}


async def chat_analytics(request: Request, identity: Identity, period: str) -> Dict[str, Any]:
	analytics = await get_conversations(request).analytics(identity.user_id, parse_period(period))
	return {"success": True, "data": analytics}


def quick_responses() -> Dict[str, Any]:
	return {"success": True, "data": {"responses": QUICK_RESPONSES}}
