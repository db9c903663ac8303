"""Chat session domain models."""

from __future__ import annotations

import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"

SOURCE_PROVIDER = "provider"
SOURCE_LOCAL = "local"


@dataclass
class ChatMessage:
	"""One entry of a session transcript. Never mutated once appended."""

	role: str
	content: str
	timestamp: float = field(default_factory=lambda: time.time())
	metadata: Optional[Dict[str, Any]] = None


@dataclass
class ChatSession:
	"""Persisted conversation owned by a single user."""

	id: Optional[str]
	owner: str
	title: Optional[str] = None
	messages: List[ChatMessage] = field(default_factory=list)
	created_at: Optional[float] = None
	updated_at: Optional[float] = None
	revision: int = 0

	@property
	def message_count(self) -> int:
		return len(self.messages)

	def to_dict(self) -> Dict[str, Any]:
		data = asdict(self)
		data["message_count"] = self.message_count
		return data

	def summary(self) -> Dict[str, Any]:
		"""Listing view without the transcript."""
		return {
			"id": self.id,
			"title": self.title,
			"message_count": self.message_count,
			"created_at": self.created_at,
			"updated_at": self.updated_at,
		}


@dataclass
class ChatReply:
	"""Outcome of one chat turn."""

	reply: str
	session_id: str
	message_count: int
	response_source: str
	model: str
