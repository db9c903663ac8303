"""Data access for chat sessions."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Mapping, Optional

from dal.query_builder import RollupQuery
from dal.record_store import RecordStore
from models.chat_models import ChatMessage, ChatSession

COLLECTION = "chat_sessions"


class ChatSessionDAL:
	"""Persist ChatSession documents.

	The stored body carries a denormalized `message_count` so analytics can
	sum it without unpacking transcripts.
	"""

	def __init__(self, store: RecordStore) -> None:
		self._store = store

	async def create(self, owner: str, title: Optional[str] = None) -> ChatSession:
		doc = await self._store.create(COLLECTION, owner, {"title": title, "messages": [], "message_count": 0})
		return self._document_to_session(doc)

	async def get_owned(self, owner: str, session_id: str) -> Optional[ChatSession]:
		doc = await self._store.find_one(COLLECTION, {"id": session_id, "owner": owner})
		return self._document_to_session(doc) if doc else None

	async def list(self, owner: str, *, skip: int = 0, limit: int = 10) -> List[ChatSession]:
		"""Sessions for `owner`, most recently updated first."""
		docs = await self._store.find_many(COLLECTION, {"owner": owner}, sort="-updated_at", skip=skip, limit=limit)
		return [self._document_to_session(d) for d in docs]

	async def count(self, owner: str) -> int:
		return await self._store.count(COLLECTION, {"owner": owner})

	async def save_messages(self, session: ChatSession) -> Optional[ChatSession]:
		"""Persist the full transcript of `session` in one update.

		The write only applies while the stored revision still equals
		`session.revision`; None means the session changed or is gone.
		"""
		patch = {
			"messages": [asdict(m) for m in session.messages],
			"message_count": len(session.messages),
		}
		doc = await self._store.update_by_id(COLLECTION, session.id, patch, expected_revision=session.revision)
		return self._document_to_session(doc) if doc else None

	async def set_title(self, session_id: str, title: str) -> Optional[ChatSession]:
		doc = await self._store.update_by_id(COLLECTION, session_id, {"title": title})
		return self._document_to_session(doc) if doc else None

	async def delete(self, session_id: str) -> bool:
		return await self._store.delete_by_id(COLLECTION, session_id)

	async def rollup(self, query: RollupQuery) -> Dict[str, Any]:
		return await self._store.aggregate(query)

	@staticmethod
	def _document_to_session(doc: Mapping[str, Any]) -> ChatSession:
		return ChatSession(
			id=doc["id"],
			owner=doc["owner"],
			title=doc.get("title"),
			messages=[ChatMessage(**m) for m in doc.get("messages") or []],
			created_at=doc.get("created_at"),
			updated_at=doc.get("updated_at"),
			revision=doc.get("revision", 0),
		)
