"""Chat sessions with provider fallback."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Dict, List, Optional

from dal.chat_dal import COLLECTION, ChatSessionDAL
from dal.query_builder import RollupQuery
from models.chat_models import (
	ROLE_ASSISTANT,
	ROLE_USER,
	SOURCE_LOCAL,
	SOURCE_PROVIDER,
	ChatMessage,
	ChatReply,
	ChatSession,
)
from models.errors import NotFoundError, StorageError, ValidationError
from models.page import Page, page_window
from services.chat.local_responder import LocalResponder
from services.chat.prompts import chat_system_prompt

LOCAL_MODEL_NAME = "local-knowledge"
SECONDS_PER_DAY = 86_400
SAVE_ATTEMPTS = 5


class ConversationSessionManager:
	"""Append chat turns to owner-scoped sessions.

	Args:
		sessions: Session persistence.
		provider: Object exposing `async complete(system_prompt, history, new_message)`,
			or None when no provider credential is configured. A None provider
			is never invoked.
		responder: Local fallback used when the provider is absent or fails.
		provider_timeout: Seconds before a provider call counts as failed.
		history_limit: Trailing messages sent to the provider as context.
	"""

	def __init__(
		self,
		sessions: ChatSessionDAL,
		provider: Optional[Any] = None,
		*,
		responder: Optional[LocalResponder] = None,
		provider_timeout: float = 20.0,
		history_limit: int = 10,
	) -> None:
		self.sessions = sessions
		self.provider = provider
		self.responder = responder or LocalResponder()
		self.provider_timeout = provider_timeout
		self.history_limit = history_limit

	async def send_message(
		self,
		owner: str,
		text: str,
		session_id: Optional[str] = None,
		language: str = "en",
		create_if_absent: bool = True,
	) -> ChatReply:
		"""Run one chat turn and persist both of its messages together.

		When `session_id` does not name a session owned by `owner`, a new
		session is started if `create_if_absent` is set.

		Raises:
			ValidationError: If `text` is empty.
			NotFoundError: If the session cannot be resolved and
				`create_if_absent` is False.
		"""
		message = (text or "").strip()
		if not message:
			raise ValidationError("Message is required")

		session = await self._resolve_session(owner, session_id, create_if_absent)
		history = session.messages[-self.history_limit:] if self.history_limit else []

		reply, source, model = await self._reply(message, history, language or "en")

		turn = [
			ChatMessage(role=ROLE_USER, content=message),
			ChatMessage(role=ROLE_ASSISTANT, content=reply, metadata={"source": source, "model": model}),
		]
		saved = await self._append_turn(owner, session, turn)

		return ChatReply(
			reply=reply,
			session_id=saved.id,
			message_count=saved.message_count,
			response_source=source,
			model=model,
		)

	async def list_sessions(self, owner: str, page: int = 1, limit: int = 10) -> Page[ChatSession]:
		skip = page_window(page, limit)
		items = await self.sessions.list(owner, skip=skip, limit=limit)
		total = await self.sessions.count(owner)
		return Page(items=items, page=page, limit=limit, total=total)

	async def get_session(self, owner: str, session_id: str) -> ChatSession:
		session = await self.sessions.get_owned(owner, session_id)
		if session is None:
			raise NotFoundError("Chat session not found")
		return session

	async def delete_session(self, owner: str, session_id: str) -> None:
		session = await self.get_session(owner, session_id)
		await self.sessions.delete(session.id)

	async def rename_session(self, owner: str, session_id: str, title: str) -> ChatSession:
		title = (title or "").strip()
		if not title:
			raise ValidationError("Title is required")
		session = await self.get_session(owner, session_id)
		updated = await self.sessions.set_title(session.id, title)
		if updated is None:
			raise NotFoundError("Chat session not found")
		return updated

	async def analytics(self, owner: str, period_days: int = 30) -> Dict[str, Any]:
		"""Session and message counts over the last `period_days` days."""
		if period_days < 1:
			raise ValidationError("period must be at least one day")
		now = time.time()
		rollup = await self.sessions.rollup(
			RollupQuery(
				collection=COLLECTION,
				owner=owner,
				since=now - period_days * SECONDS_PER_DAY,
				until=now,
				sum_of="message_count",
			)
		)
		summary = rollup["summary"]
		total_sessions = int(summary.get("total") or 0)
		total_messages = int(summary.get("sum") or 0)
		return {
			"summary": {
				"total_sessions": total_sessions,
				"total_messages": total_messages,
				"average_messages_per_session": round(total_messages / total_sessions, 2) if total_sessions else 0,
			},
			"monthly": [
				{
					"year": row["year"],
					"month": row["month"],
					"sessions": row["count"],
					"messages": int(row.get("sum") or 0),
				}
				for row in rollup["monthly"]
			],
		}

	async def _resolve_session(self, owner: str, session_id: Optional[str], create_if_absent: bool) -> ChatSession:
		if session_id:
			session = await self.sessions.get_owned(owner, session_id)
			if session is not None:
				return session
			if not create_if_absent:
				raise NotFoundError("Chat session not found")
			logging.info("Session %s not found for %s; starting a new one", session_id, owner)
		return await self.sessions.create(owner)

	async def _append_turn(self, owner: str, session: ChatSession, turn: List[ChatMessage]) -> ChatSession:
		"""Append `turn` to the stored transcript without dropping concurrent turns.

		Raises:
			NotFoundError: If the session was deleted meanwhile.
			StorageError: If the session kept changing for every attempt.
		"""
		for _ in range(SAVE_ATTEMPTS):
			candidate = replace(session, messages=session.messages + turn)
			saved = await self.sessions.save_messages(candidate)
			if saved is not None:
				return saved
			logging.warning("Chat session %s changed during the turn; re-appending", session.id)
			session = await self.sessions.get_owned(owner, session.id)
			if session is None:
				raise NotFoundError("Chat session not found")
		raise StorageError("Chat session is busy, please retry")

	async def _reply(self, message: str, history: list, language: str) -> tuple:
		"""Return (reply text, response source, model name)."""
		if self.provider is not None:
			try:
				reply = await asyncio.wait_for(
					self.provider.complete(chat_system_prompt(language), history, message),
					timeout=self.provider_timeout,
				)
				return reply, SOURCE_PROVIDER, getattr(self.provider, "model_name", "provider")
			except asyncio.TimeoutError:
				logging.warning("Chat provider timed out after %ss; using local responder", self.provider_timeout)
			except Exception as exc:
				logging.error("Chat provider error: %s; using local responder", exc)
		return self.responder.respond(message), SOURCE_LOCAL, LOCAL_MODEL_NAME
