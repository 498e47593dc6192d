"""
Integration tests for the orchestration services behind AIService.

Flows run end to end against the in-memory record store, with the
Gemini session scripted per test.
"""

import asyncio
import json
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

import pytest

from conftest import (
    FIXED_NOW,
    FakeResponse,
    FakeSession,
    envelope,
    error_body,
    make_client,
)
from moneywise_ai.audit import AuditLogger
from moneywise_ai.gateway import (
    CancellationToken,
    ClientFailureError,
    DecodingFailureError,
    MissingCredentialError,
    OperationCancelledError,
)
from moneywise_ai.models import AuditEventType
from moneywise_ai.models.finance import (
    Conversation,
    InsightPeriod,
    Message,
    MessageRole,
    SpendingCategory,
    Transaction,
    TransactionType,
)
from moneywise_ai.models.gemini import InsightResult
from moneywise_ai.orchestrator import AIService, create_app_components
from moneywise_ai.services import InMemoryRecordStore, PLACEHOLDER_TITLE


def run(coro):
    return asyncio.run(coro)


class SteppingClock:
    """Each call is one minute after the previous one."""

    def __init__(self, start: datetime = FIXED_NOW):
        self._now = start

    def __call__(self) -> datetime:
        current = self._now
        self._now += timedelta(minutes=1)
        return current


def make_service(store, session, api_key="test-key", clock=None) -> AIService:
    return AIService(
        make_client(session),
        store,
        lambda: api_key,
        audit_logger=AuditLogger(store),
        clock=clock or SteppingClock(),
    )


def reply(data: dict) -> FakeResponse:
    return FakeResponse(200, envelope(json.dumps(data)))


def text_reply(text: str) -> FakeResponse:
    return FakeResponse(200, envelope(text))


def event_types(store) -> list[AuditEventType]:
    return [e.event_type for e in run(store.get_recent_events())]


# =============================================================================
# TRANSACTION PARSING
# =============================================================================

class TestTransactionParsing:

    def test_lunch_expense(self, store):
        session = FakeSession(reply({
            "amount": 30,
            "type": "expense",
            "category": "Food",
            "note": "lunch",
            "confidence": 0.9,
            "date": "2025-01-15",
        }))
        service = make_service(store, session)

        transaction = run(service.parse("spent $30 on lunch", now=FIXED_NOW))

        assert transaction.amount == Decimal("30")
        assert transaction.type == TransactionType.EXPENSE
        assert transaction.category.name == "Food"
        assert transaction.note == "lunch"
        assert transaction.account == "Cash"
        assert transaction.payment_method == "Cash"
        assert transaction.confidence == 0.9
        assert transaction.is_ai_generated
        assert transaction.date.date() == date(2025, 1, 15)

    def test_extracted_transaction_is_not_persisted(self, store):
        session = FakeSession(reply({"amount": 30, "category": "Food"}))
        service = make_service(store, session)

        run(service.parse("spent $30 on lunch", now=FIXED_NOW))

        assert run(store.list_transactions()) == []

    def test_naive_now_is_taken_as_utc(self, store):
        """A dateless reply saved with a naive reference time can still be analyzed."""
        session = FakeSession(
            reply({"amount": 30, "category": "Food"}),
            text_reply("About 30 on food."),
        )
        service = make_service(store, session, clock=lambda: FIXED_NOW)

        transaction = run(service.parse("spent 30 on lunch", now=datetime(2025, 1, 15, 12, 0)))
        assert transaction.date.tzinfo is not None
        assert transaction.date == FIXED_NOW
        assert run(service.save_transaction(transaction))

        answer = run(service.analyze("how much?"))

        assert answer == "About 30 on food."
        assert "2025-01-15:" in session.sent_prompt()

    def test_defaults_for_empty_object(self, store):
        session = FakeSession(text_reply("{}"))
        service = make_service(store, session)

        transaction = run(service.parse("something", now=FIXED_NOW))

        assert transaction.amount == Decimal("0")
        assert transaction.type == TransactionType.EXPENSE
        assert transaction.category_name == "Uncategorized"
        assert transaction.account == "Cash"
        assert transaction.payment_method == "Cash"
        assert transaction.confidence == 0.5
        assert transaction.date == FIXED_NOW

    def test_payment_method_defaults_to_account(self, store):
        session = FakeSession(reply({"amount": 12, "account": "Credit Card"}))
        service = make_service(store, session)

        transaction = run(service.parse("taxi 12 on card", now=FIXED_NOW))

        assert transaction.payment_method == "Credit Card"

    def test_fenced_reply_gives_same_transaction_fields(self, store):
        data = {"amount": 4.5, "category": "Food", "note": "latte", "date": "2025-01-14"}
        clean = run(make_service(store, FakeSession(reply(data))).parse("latte", now=FIXED_NOW))
        fenced = run(make_service(
            store,
            FakeSession(text_reply(f"```json\n{json.dumps(data)}\n```")),
        ).parse("latte", now=FIXED_NOW))

        assert fenced.model_dump(exclude={"id"}) == clean.model_dump(exclude={"id"})

    def test_category_is_reused(self, store):
        session = FakeSession(reply({"amount": 5, "category": "Food"}))
        service = make_service(store, session)

        first = run(service.parse("coffee", now=FIXED_NOW))
        second = run(service.parse("tea", now=FIXED_NOW))

        assert first.category.id == second.category.id

    def test_income_creates_income_category(self, store):
        session = FakeSession(reply({"amount": 3000, "type": "income", "category": "Salary"}))
        service = make_service(store, session)

        transaction = run(service.parse("received salary 3000", now=FIXED_NOW))

        assert transaction.type == TransactionType.INCOME
        assert transaction.category.type == TransactionType.INCOME

    def test_missing_key_sends_nothing(self, store):
        session = FakeSession(reply({"amount": 5}))
        service = make_service(store, session, api_key=None)

        with pytest.raises(MissingCredentialError):
            run(service.parse("coffee"))

        assert session.call_count == 0

    def test_unparseable_reply_is_decoding_failure(self, store):
        session = FakeSession(text_reply("Sorry, I can't help with that."))
        service = make_service(store, session)

        with pytest.raises(DecodingFailureError) as exc_info:
            run(service.parse("???", now=FIXED_NOW))

        assert exc_info.value.details["operation"] == "transaction_extraction"
        assert AuditEventType.AI_REQUEST_FAILED in event_types(store)

    def test_gateway_error_propagates_unchanged(self, store):
        session = FakeSession(FakeResponse(400, error_body(400, "bad request")))
        service = make_service(store, session)

        with pytest.raises(ClientFailureError) as exc_info:
            run(service.parse("coffee", now=FIXED_NOW))

        assert exc_info.value.message == "Request Error (Code: 400): bad request"

    def test_save_persists(self, store):
        session = FakeSession(reply({"amount": 30, "category": "Food"}))
        service = make_service(store, session)
        transaction = run(service.parse("lunch 30", now=FIXED_NOW))

        assert run(service.save_transaction(transaction)) is True

        saved = run(store.list_transactions())
        assert [t.id for t in saved] == [transaction.id]
        assert AuditEventType.TRANSACTION_SAVED in event_types(store)

    def test_save_failure_is_reported_not_raised(self):
        store = InMemoryRecordStore(fail_saves=True)
        service = make_service(store, FakeSession(reply({})))

        assert run(service.save_transaction(Transaction(amount=Decimal("1")))) is False
        assert run(store.list_transactions()) == []


# =============================================================================
# CONVERSATIONS
# =============================================================================

def seed_conversation(store, message_count: int, title: str = "Budget chat") -> Conversation:
    conversation = Conversation(
        title=title,
        created_at=FIXED_NOW - timedelta(days=1),
        updated_at=FIXED_NOW - timedelta(days=1),
    )
    run(store.save_conversation(conversation))
    for i in range(message_count):
        role = MessageRole.USER if i % 2 == 0 else MessageRole.ASSISTANT
        run(store.add_message(conversation.id, Message(
            role=role,
            content=f"message {i}",
            timestamp=FIXED_NOW - timedelta(hours=message_count - i),
        )))
    return conversation


class TestConversationExchange:

    def test_first_message_creates_conversation(self, store):
        session = FakeSession(text_reply("You spent $200 on food."))
        service = make_service(store, session)

        answer, conversation_id = run(service.chat("How much on food?"))

        assert answer == "You spent $200 on food."
        conversations = run(store.list_conversations())
        assert len(conversations) == 1
        conversation = conversations[0]
        assert str(conversation.id) == conversation_id
        assert conversation.title == "How much on food?"
        assert [m.role for m in conversation.sorted_messages] == [
            MessageRole.USER,
            MessageRole.ASSISTANT,
        ]
        assert [m.content for m in conversation.sorted_messages] == [
            "How much on food?",
            "You spent $200 on food.",
        ]

    def test_assistant_message_carries_token_counts(self, store):
        service = make_service(store, FakeSession(text_reply("ok")))

        _, conversation_id = run(service.chat("hi"))

        conversation = run(service.get_conversation(conversation_id))
        assistant = conversation.sorted_messages[-1]
        assert (assistant.input_tokens, assistant.output_tokens) == (12, 34)

    def test_follow_up_reuses_conversation(self, store):
        session = FakeSession(text_reply("first"), text_reply("second"))
        service = make_service(store, session)

        _, first_id = run(service.chat("How much on food?"))
        _, second_id = run(service.chat("And transport?", conversation_id=first_id))

        assert first_id == second_id
        conversation = run(service.get_conversation(first_id))
        assert len(conversation.messages) == 4
        assert conversation.title == "How much on food?"
        assert "User: How much on food?\nAssistant: first\nUser: And transport?" in (
            session.sent_prompt()
        )

    @pytest.mark.parametrize("conversation_id", ["not-a-uuid", str(uuid4())])
    def test_unknown_id_starts_new_conversation(self, store, conversation_id):
        service = make_service(store, FakeSession(text_reply("hello")))

        _, new_id = run(service.chat("hi", conversation_id=conversation_id))

        assert new_id != conversation_id
        assert len(run(store.list_conversations())) == 1

    def test_history_is_limited_to_last_ten(self, store):
        conversation = seed_conversation(store, 12)
        session = FakeSession(text_reply("ok"))
        service = make_service(store, session)

        run(service.chat("latest question", conversation_id=conversation.id))

        prompt_lines = session.sent_prompt().split("\n")
        turns = [
            line for line in prompt_lines
            if line.startswith("User: ") or line.startswith("Assistant: ")
        ]
        assert len(turns) == 11
        assert turns[0] == "User: message 2"
        assert turns[-2] == "Assistant: message 11"
        assert turns[-1] == "User: latest question"

    def test_existing_title_is_kept(self, store):
        conversation = seed_conversation(store, 2, title="Budget chat")
        service = make_service(store, FakeSession(text_reply("ok")))

        run(service.chat("something else entirely", conversation_id=conversation.id))

        assert run(service.get_conversation(conversation.id)).title == "Budget chat"

    def test_placeholder_title_is_replaced(self, store):
        conversation = seed_conversation(store, 0, title=PLACEHOLDER_TITLE)
        service = make_service(store, FakeSession(text_reply("ok")))

        run(service.chat("Rent question", conversation_id=conversation.id))

        assert run(service.get_conversation(conversation.id)).title == "Rent question"

    def test_long_first_message_is_truncated_for_title(self, store):
        message = "Please summarise all of my grocery costs"
        assert len(message) == 40
        service = make_service(store, FakeSession(text_reply("ok")))

        _, conversation_id = run(service.chat(message))

        title = run(service.get_conversation(conversation_id)).title
        assert title == message[:30] + "..."

    def test_short_first_message_is_title(self, store):
        service = make_service(store, FakeSession(text_reply("ok")))

        _, conversation_id = run(service.chat("Coffee tip"))

        assert run(service.get_conversation(conversation_id)).title == "Coffee tip"

    def test_updated_at_advances(self, store):
        conversation = seed_conversation(store, 2)
        service = make_service(store, FakeSession(text_reply("ok")))

        run(service.chat("hi", conversation_id=conversation.id))

        updated = run(service.get_conversation(conversation.id))
        assert updated.updated_at > conversation.updated_at

    def test_failed_send_persists_nothing(self, store):
        session = FakeSession(FakeResponse(400, error_body(400, "bad")))
        service = make_service(store, session)

        with pytest.raises(ClientFailureError) as exc_info:
            run(service.chat("hi"))

        assert exc_info.value.details["operation"] == "chat"
        assert run(store.list_conversations()) == []

    def test_cancelled_exchange_persists_nothing(self, store):
        session = FakeSession(text_reply("ok"))
        service = make_service(store, session)
        token = CancellationToken()
        token.cancel()

        with pytest.raises(OperationCancelledError):
            run(service.chat("hi", token=token))

        assert session.call_count == 0
        assert run(store.list_conversations()) == []

    def test_exchange_is_audited(self, store):
        service = make_service(store, FakeSession(text_reply("ok")))

        run(service.chat("hi"))

        types = event_types(store)
        assert AuditEventType.CONVERSATION_CREATED in types
        assert AuditEventType.MESSAGE_EXCHANGED in types

    def test_store_failure_is_not_raised(self):
        store = InMemoryRecordStore(fail_saves=True)
        service = make_service(store, FakeSession(text_reply("still answered")))

        answer, _ = run(service.chat("hi"))

        assert answer == "still answered"


class TestConversationManagement:

    def test_list_excludes_archived_and_orders_by_recency(self, store):
        older = seed_conversation(store, 0, title="older")
        newer = Conversation(title="newer", updated_at=FIXED_NOW)
        run(store.save_conversation(newer))
        archived = Conversation(title="archived", is_archived=True, updated_at=FIXED_NOW)
        run(store.save_conversation(archived))
        service = make_service(store, FakeSession(text_reply("ok")))

        listed = run(service.list_conversations())

        assert [c.title for c in listed] == ["newer", "older"]
        assert older.id in {c.id for c in listed}

    def test_archive_hides_but_keeps(self, store):
        conversation = seed_conversation(store, 2)
        service = make_service(store, FakeSession(text_reply("ok")))

        assert run(service.archive_conversation(str(conversation.id))) is True

        assert run(service.list_conversations()) == []
        kept = run(service.get_conversation(conversation.id))
        assert kept.is_archived
        assert len(kept.messages) == 2

    def test_delete_cascades(self, store):
        conversation = seed_conversation(store, 4)
        service = make_service(store, FakeSession(text_reply("ok")))

        assert run(service.delete_conversation(conversation.id)) is True

        assert run(service.get_conversation(conversation.id)) is None
        assert run(service.delete_conversation(conversation.id)) is False
        assert AuditEventType.CONVERSATION_DELETED in event_types(store)

    def test_unknown_ids(self, store):
        service = make_service(store, FakeSession(text_reply("ok")))

        assert run(service.get_conversation("garbage")) is None
        assert run(service.archive_conversation(uuid4())) is False
        assert run(service.delete_conversation("garbage")) is False


# =============================================================================
# INSIGHTS & ANALYSIS
# =============================================================================

def food(amount: str, note: str, when: datetime) -> Transaction:
    return Transaction(
        amount=Decimal(amount),
        category=SpendingCategory(name="Food"),
        note=note,
        date=when,
    )


class TestInsights:

    def test_summarize(self, store):
        session = FakeSession(text_reply(
            '```json\n{"summary": "Food dominated.", "insights": ["Cook more", "Fewer lattes"]}\n```'
        ))
        service = make_service(store, session)
        transactions = [
            food("12.50", "lunch", datetime(2025, 1, 10, 13, tzinfo=timezone.utc)),
            Transaction(amount=Decimal("40"), note="misc", date=datetime(2025, 1, 11, tzinfo=timezone.utc)),
        ]

        result = run(service.generate_insights(transactions, "January 2025"))

        assert result.summary == "Food dominated."
        assert result.insights == ["Cook more", "Fewer lattes"]
        prompt = session.sent_prompt()
        assert "2025-01-10: Food - 12.50 (lunch)" in prompt
        assert "2025-01-11: Uncategorized - 40 (misc)" in prompt
        assert "January 2025" in prompt
        assert session.sent_payload()["generationConfig"]["responseMimeType"] == "application/json"

    def test_summarize_blank_reply_is_decoding_failure(self, store):
        service = make_service(store, FakeSession(text_reply("   ")))

        with pytest.raises(DecodingFailureError):
            run(service.generate_insights([], "this week"))

    def test_analyze_reads_lookback_window(self, store):
        run(store.save_transaction(food("12", "lunch", FIXED_NOW - timedelta(days=10))))
        run(store.save_transaction(food("99", "old gym", FIXED_NOW - timedelta(days=400))))
        session = FakeSession(text_reply("You mostly spend on lunch."))
        service = make_service(store, session, clock=lambda: FIXED_NOW)

        answer = run(service.analyze("What do I spend on?"))

        assert answer == "You mostly spend on lunch."
        prompt = session.sent_prompt()
        assert "2025-01-05: lunch - 12" in prompt
        assert "old gym" not in prompt
        assert session.sent_payload()["generationConfig"]["responseMimeType"] == "text/plain"

    def test_store_insight_latest_wins(self, store):
        service = make_service(store, FakeSession(text_reply("ok")))
        week = (date(2025, 1, 6), date(2025, 1, 12))

        run(service.store_insight(InsightResult(summary="first"), InsightPeriod.WEEKLY, *week))
        run(service.store_insight(
            InsightResult(summary="monthly"), InsightPeriod.MONTHLY,
            date(2025, 1, 1), date(2025, 1, 31),
        ))
        latest = run(service.store_insight(
            InsightResult(summary="second", insights=["a"]), InsightPeriod.WEEKLY, *week
        ))

        weekly = run(store.list_insights(InsightPeriod.WEEKLY))
        assert [i.id for i in weekly] == [latest.id]
        assert weekly[0].summary == "second"
        assert weekly[0].consumption_insights == ["a"]
        assert len(run(store.list_insights(InsightPeriod.MONTHLY))) == 1


# =============================================================================
# USAGE & FACADE
# =============================================================================

class TestUsage:

    def test_starts_at_zero(self, store):
        stats = run(make_service(store, FakeSession(text_reply("ok"))).usage())
        assert (stats.input_tokens, stats.output_tokens, stats.total_calls) == (0, 0, 0)

    def test_accumulates_across_operations(self, store):
        session = FakeSession(text_reply("ok"), reply({"amount": 1}))
        service = make_service(store, session)

        run(service.chat("hi"))
        run(service.parse("coffee 1", now=FIXED_NOW))

        stats = run(service.usage())
        assert stats.total_calls == 2
        assert stats.input_tokens == 24
        assert stats.output_tokens == 68

    def test_failed_call_is_not_counted(self, store):
        service = make_service(store, FakeSession(FakeResponse(400)))

        with pytest.raises(ClientFailureError):
            run(service.chat("hi"))

        assert run(service.usage()).total_calls == 0

    def test_reset(self, store):
        service = make_service(store, FakeSession(text_reply("ok")))
        run(service.chat("hi"))

        stats = run(service.reset_usage())

        assert (stats.input_tokens, stats.output_tokens, stats.total_calls) == (0, 0, 0)
        assert run(service.usage()).total_calls == 0


class TestCreateAppComponents:

    def test_wires_one_shared_client(self, store):
        client = make_client(FakeSession(text_reply("ok")))

        service, returned_store = create_app_components(
            store=store,
            api_key_provider=lambda: "test-key",
            client=client,
        )

        assert returned_store is store
        assert service.client is client
        answer, _ = run(service.chat("hi"))
        assert answer == "ok"

    def test_defaults_to_in_memory_store(self):
        _, store = create_app_components(client=make_client(FakeSession(text_reply("ok"))))
        assert isinstance(store, InMemoryRecordStore)
