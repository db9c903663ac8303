import asyncio

import pytest

from models.chat_models import SOURCE_LOCAL, SOURCE_PROVIDER
from models.errors import NotFoundError, ValidationError
from services.chat.local_responder import LocalResponder
from services.conversation_manager import LOCAL_MODEL_NAME, ConversationSessionManager

from conftest import FixedChoice


class RecordingProvider:
	model_name = "fake-chat"

	def __init__(self, reply="Rotate your crops.", delay=0.0, error=None):
		self.reply = reply
		self.delay = delay
		self.error = error
		self.calls = []

	async def complete(self, system_prompt, history, new_message):
		self.calls.append((system_prompt, list(history), new_message))
		if self.delay:
			await asyncio.sleep(self.delay)
		if self.error is not None:
			raise self.error
		return self.reply


def manager(chat_sessions, provider=None, **kwargs):
	return ConversationSessionManager(
		chat_sessions, provider, responder=LocalResponder(rng=FixedChoice()), provider_timeout=0.2, **kwargs
	)


async def test_without_provider_reply_comes_from_local_knowledge(chat_sessions):
	reply = await manager(chat_sessions).send_message("alice", "What fertilizer should I use?")

	assert reply.response_source == SOURCE_LOCAL
	assert reply.model == LOCAL_MODEL_NAME
	assert reply.reply == LocalResponder.candidates("soil_health")[0]
	assert reply.message_count == 2


async def test_each_turn_appends_two_messages(chat_sessions):
	chat = manager(chat_sessions)
	first = await chat.send_message("alice", "hello")
	second = await chat.send_message("alice", "what about irrigation?", session_id=first.session_id)

	assert second.session_id == first.session_id
	assert second.message_count == 4
	session = await chat.get_session("alice", first.session_id)
	assert [m.role for m in session.messages] == ["user", "assistant", "user", "assistant"]
	assert session.messages[-1].metadata == {"source": SOURCE_LOCAL, "model": LOCAL_MODEL_NAME}


async def test_provider_reply_and_history_window(chat_sessions):
	provider = RecordingProvider()
	chat = manager(chat_sessions, provider, history_limit=2)
	first = await chat.send_message("alice", "one")
	second = await chat.send_message("alice", "two", session_id=first.session_id, language="hi")

	assert second.response_source == SOURCE_PROVIDER
	assert second.model == "fake-chat"
	assert second.reply == "Rotate your crops."
	system_prompt, history, new_message = provider.calls[1]
	assert "advice in hi." in system_prompt
	assert [m.content for m in history] == ["one", "Rotate your crops."]
	assert new_message == "two"


async def test_provider_error_falls_back_to_local(chat_sessions):
	provider = RecordingProvider(error=RuntimeError("quota exceeded"))
	reply = await manager(chat_sessions, provider).send_message("alice", "insects eating my beans")

	assert reply.response_source == SOURCE_LOCAL
	assert reply.reply == LocalResponder.candidates("pest_control")[0]
	assert reply.message_count == 2


async def test_provider_timeout_falls_back_to_local(chat_sessions):
	provider = RecordingProvider(delay=1.0)
	reply = await manager(chat_sessions, provider).send_message("alice", "frost warning")

	assert reply.response_source == SOURCE_LOCAL
	assert len(provider.calls) == 1


async def test_empty_message_is_rejected(chat_sessions):
	with pytest.raises(ValidationError):
		await manager(chat_sessions).send_message("alice", "   ")


async def test_unknown_session_starts_new_one_by_default(chat_sessions):
	reply = await manager(chat_sessions).send_message("alice", "hi", session_id="nope")
	assert reply.session_id != "nope"
	assert reply.message_count == 2


async def test_unknown_session_without_create_is_not_found(chat_sessions):
	with pytest.raises(NotFoundError):
		await manager(chat_sessions).send_message("alice", "hi", session_id="nope", create_if_absent=False)


async def test_sessions_are_owner_scoped(chat_sessions):
	chat = manager(chat_sessions)
	mine = await chat.send_message("alice", "hi")

	with pytest.raises(NotFoundError):
		await chat.get_session("bob", mine.session_id)
	with pytest.raises(NotFoundError):
		await chat.send_message("bob", "hi", session_id=mine.session_id, create_if_absent=False)
	theirs = await chat.send_message("bob", "hi", session_id=mine.session_id)

	assert theirs.session_id != mine.session_id
	assert (await chat.get_session("alice", mine.session_id)).message_count == 2


async def test_list_rename_delete_and_analytics(chat_sessions):
	chat = manager(chat_sessions)
	first = await chat.send_message("alice", "hi")
	await chat.send_message("alice", "hi again", session_id=first.session_id)
	await chat.send_message("alice", "new topic")

	page = await chat.list_sessions("alice")
	renamed = await chat.rename_session("alice", first.session_id, "Soil questions")
	analytics = await chat.analytics("alice", 30)

	assert page.total == 2
	assert renamed.title == "Soil questions"
	assert analytics["summary"]["total_sessions"] == 2
	assert analytics["summary"]["total_messages"] == 6
	assert analytics["summary"]["average_messages_per_session"] == 3

	await chat.delete_session("alice", first.session_id)
	with pytest.raises(NotFoundError):
		await chat.get_session("alice", first.session_id)
	with pytest.raises(ValidationError):
		await chat.rename_session("alice", "whatever", "")


class PerMessageDelayProvider:
	model_name = "fake-chat"

	def __init__(self, delays):
		self.delays = delays

	async def complete(self, system_prompt, history, new_message):
		await asyncio.sleep(self.delays.get(new_message, 0))
		return f"re: {new_message}"


async def test_overlapping_turns_on_one_session_are_all_kept(chat_sessions):
	provider = PerMessageDelayProvider({"slow": 0.3})
	chat = ConversationSessionManager(chat_sessions, provider, provider_timeout=2.0)
	first = await chat.send_message("alice", "start")

	async def fast_turns():
		await asyncio.sleep(0.05)
		await chat.send_message("alice", "fast one", session_id=first.session_id)
		await chat.send_message("alice", "fast two", session_id=first.session_id)

	slow, _ = await asyncio.gather(
		chat.send_message("alice", "slow", session_id=first.session_id),
		fast_turns(),
	)

	session = await chat.get_session("alice", first.session_id)
	contents = [m.content for m in session.messages]
	assert slow.message_count == 8
	assert session.message_count == 8
	assert contents[:2] == ["start", "re: start"]
	assert contents[-2:] == ["slow", "re: slow"]
	for text in ("fast one", "fast two"):
		index = contents.index(text)
		assert contents[index + 1] == f"re: {text}"


async def test_turn_on_deleted_session_is_not_found(chat_sessions):
	provider = PerMessageDelayProvider({"slow": 0.1})
	chat = ConversationSessionManager(chat_sessions, provider, provider_timeout=2.0)
	first = await chat.send_message("alice", "start")

	async def delete_soon():
		await asyncio.sleep(0.02)
		await chat.delete_session("alice", first.session_id)

	results = await asyncio.gather(
		chat.send_message("alice", "slow", session_id=first.session_id),
		delete_soon(),
		return_exceptions=True,
	)

	assert isinstance(results[0], NotFoundError)
