from unittest.mock import patch

import pytest

from batch_ocr.batch import (
    BatchProcessor,
    BatchStatus,
    FailureKind,
    ItemStatus,
    ResultSink,
)
from batch_ocr.credentials import CredentialPool
from batch_ocr.errors import (
    BatchInProgressError,
    CredentialsExhaustedError,
    EmptyPoolError,
    RateLimitedError,
    TerminalRemoteError,
)

from conftest import ScriptedClient

EXHAUSTED_REASON = CredentialsExhaustedError(0).message


def rate_limited(image, credential):
    return RateLimitedError()


class TestRetryBound:
    @pytest.mark.parametrize("pool_size", [1, 2, 3, 5])
    def test_always_rate_limited_tries_every_key_once(self, pool_size, make_items, sink):
        keys = [f"k{i}" for i in range(pool_size)]
        pool = CredentialPool(keys)
        client = ScriptedClient(default=rate_limited)
        processor = BatchProcessor(pool, client, sink)

        with patch.object(pool, "advance", wraps=pool.advance) as advance:
            run = processor.process(make_items(1))

        outcome = run.outcomes[0]
        assert outcome.status == ItemStatus.FAILED
        assert outcome.failure_kind == FailureKind.CREDENTIALS_EXHAUSTED
        assert outcome.reason == EXHAUSTED_REASON
        assert outcome.attempts == pool_size
        assert client.credentials_for(0) == keys
        assert advance.call_count == pool_size

    def test_single_key_rate_limited_fails_after_one_attempt(self, make_items, sink):
        pool = CredentialPool(["k1"])
        client = ScriptedClient(default=RateLimitedError())
        processor = BatchProcessor(pool, client, sink)

        run = processor.process(make_items(1))

        outcome = run.outcomes[0]
        assert outcome.status == ItemStatus.FAILED
        assert outcome.failure_kind == FailureKind.CREDENTIALS_EXHAUSTED
        assert outcome.attempts == 1
        assert client.calls == [(0, "k1")]

    def test_bound_counts_only_active_keys(self, make_items, sink):
        pool = CredentialPool(["k1", "", "k2", "  "])
        client = ScriptedClient(default=rate_limited)

        run = BatchProcessor(pool, client, sink).process(make_items(1))

        assert run.outcomes[0].attempts == 2
        assert client.credentials_for(0) == ["k1", "k2"]


class TestTerminalOutcomes:
    def test_first_success_makes_one_call_and_keeps_cursor(self, make_items, sink):
        pool = CredentialPool(["k1", "k2", "k3"])
        pool.advance()
        client = ScriptedClient(default="HELLO")

        with patch.object(pool, "advance", wraps=pool.advance) as advance:
            run = BatchProcessor(pool, client, sink).process(make_items(1))

        outcome = run.outcomes[0]
        assert outcome.status == ItemStatus.SUCCEEDED
        assert outcome.text == "HELLO"
        assert outcome.attempts == 1
        assert client.calls == [(0, "k2")]
        assert pool.cursor == 1
        advance.assert_not_called()

    def test_terminal_error_is_not_retried(self, make_items, sink):
        pool = CredentialPool(["k1", "k2", "k3"])
        client = ScriptedClient(default=TerminalRemoteError("API key not valid. Please pass a valid API key.", status_code=400))

        run = BatchProcessor(pool, client, sink).process(make_items(1))

        outcome = run.outcomes[0]
        assert outcome.status == ItemStatus.FAILED
        assert outcome.failure_kind == FailureKind.REMOTE_ERROR
        assert outcome.reason == "API key not valid. Please pass a valid API key."
        assert outcome.attempts == 1
        assert len(client.calls) == 1
        assert pool.cursor == 0

    def test_terminal_error_after_rate_limit_stops_retrying(self, make_items, sink):
        pool = CredentialPool(["k1", "k2", "k3"])
        client = ScriptedClient(script={0: [RateLimitedError(), TerminalRemoteError("Internal error")]})

        run = BatchProcessor(pool, client, sink).process(make_items(1))

        outcome = run.outcomes[0]
        assert outcome.failure_kind == FailureKind.REMOTE_ERROR
        assert outcome.reason == "Internal error"
        assert client.credentials_for(0) == ["k1", "k2"]
        assert pool.cursor == 1

    def test_exhausted_and_remote_failures_are_distinguishable(self, make_items, sink):
        pool = CredentialPool(["k1"])
        client = ScriptedClient(script={
            0: [RateLimitedError()],
            1: [TerminalRemoteError("Bad image")],
        })

        run = BatchProcessor(pool, client, sink).process(make_items(2))

        assert run.outcomes[0].failure_kind == FailureKind.CREDENTIALS_EXHAUSTED
        assert run.outcomes[1].failure_kind == FailureKind.REMOTE_ERROR
        assert run.outcomes[0].reason != run.outcomes[1].reason


class TestScenarios:
    def test_rate_limited_then_success_on_second_key(self, make_items, sink):
        pool = CredentialPool(["k1", "k2"])
        client = ScriptedClient(default=lambda image, cred: RateLimitedError() if cred == "k1" else "HELLO")

        run = BatchProcessor(pool, client, sink).process(make_items(1))

        outcome = run.outcomes[0]
        assert outcome.status == ItemStatus.SUCCEEDED
        assert outcome.text == "HELLO"
        assert outcome.attempts == 2
        assert pool.current() == "k2"

    def test_rotation_is_shared_across_images(self, make_items, sink):
        pool = CredentialPool(["A", "B"])
        client = ScriptedClient(script={
            0: [RateLimitedError(), "one"],
            1: ["two"],
        })

        run = BatchProcessor(pool, client, sink).process(make_items(2))

        assert client.credentials_for(0) == ["A", "B"]
        assert client.credentials_for(1) == ["B"]
        assert [o.text for o in run.outcomes.values()] == ["one", "two"]

    def test_success_does_not_pin_the_key(self, make_items, sink):
        pool = CredentialPool(["A", "B", "C"])
        client = ScriptedClient(script={
            0: ["zero"],
            1: [RateLimitedError(), "one"],
            2: ["two"],
        })

        BatchProcessor(pool, client, sink).process(make_items(3))

        assert client.credentials_for(0) == ["A"]
        assert client.credentials_for(1) == ["A", "B"]
        assert client.credentials_for(2) == ["B"]

    def test_cursor_persists_across_batches(self, make_items, sink):
        pool = CredentialPool(["A", "B"])
        client = ScriptedClient(script={0: [RateLimitedError(), "first"]})
        processor = BatchProcessor(pool, client, sink)

        processor.process(make_items(1))
        client.script = {0: ["second"]}
        processor.process(make_items(1))

        assert client.calls == [(0, "A"), (0, "B"), (0, "B")]

    def test_failure_does_not_abort_batch(self, make_items, sink):
        pool = CredentialPool(["k1"])
        client = ScriptedClient(script={
            0: [TerminalRemoteError("boom")],
            1: [RateLimitedError()],
            2: ["fine"],
        })

        run = BatchProcessor(pool, client, sink).process(make_items(3))

        assert [o.status for o in run.outcomes.values()] == [
            ItemStatus.FAILED,
            ItemStatus.FAILED,
            ItemStatus.SUCCEEDED,
        ]
        assert run.status == BatchStatus.COMPLETE
        assert run.completed_at is not None

    def test_reprocessing_a_succeeded_item_runs_again(self, make_items, sink):
        pool = CredentialPool(["k1"])
        client = ScriptedClient(default="same")
        processor = BatchProcessor(pool, client, sink)
        items = make_items(1)

        first = processor.process(items)
        second = processor.process(items)

        assert first.outcomes[0].status == ItemStatus.SUCCEEDED
        assert second.outcomes[0].status == ItemStatus.SUCCEEDED
        assert second.outcomes[0] is not first.outcomes[0]
        assert len(client.calls) == 2
        assert sink.statuses(0) == [
            ItemStatus.PENDING, ItemStatus.IN_PROGRESS, ItemStatus.SUCCEEDED,
            ItemStatus.PENDING, ItemStatus.IN_PROGRESS, ItemStatus.SUCCEEDED,
        ]


class TestEmptyPool:
    @pytest.mark.parametrize("keys", [[], ["", " "]])
    def test_refuses_before_anything_happens(self, keys, make_items, sink):
        client = ScriptedClient()
        processor = BatchProcessor(CredentialPool(keys), client, sink)
        items = make_items(2)

        with pytest.raises(EmptyPoolError):
            processor.process(items)

        assert client.calls == []
        assert sink.events == []
        assert not processor.busy


class MutatingSink(ResultSink):
    """Runs `action(position)` whenever an image reaches a final status."""

    def __init__(self, action):
        self.action = action

    def on_item_status_changed(self, run, item, outcome):
        if outcome.status.is_terminal:
            self.action(item.position)


class TestPoolChangesDuringBatch:
    def test_added_key_raises_bound_for_next_image(self, make_items):
        pool = CredentialPool(["k1"])
        client = ScriptedClient(default=rate_limited)
        sink = MutatingSink(lambda position: pool.add("k2") if position == 0 else None)

        run = BatchProcessor(pool, client, sink).process(make_items(2))

        assert run.outcomes[0].attempts == 1
        assert run.outcomes[1].attempts == 2
        assert client.credentials_for(1) == ["k1", "k2"]

    def test_removed_keys_lower_bound_for_next_image(self, make_items):
        pool = CredentialPool(["k1", "k2", "k3"])
        client = ScriptedClient(script={0: ["ok"]}, default=rate_limited)
        sink = MutatingSink(lambda position: pool.set_credentials(["k9"]) if position == 0 else None)

        run = BatchProcessor(pool, client, sink).process(make_items(2))

        assert run.outcomes[1].attempts == 1
        assert client.credentials_for(1) == ["k9"]

    def test_pool_emptied_mid_batch_exhausts_remaining_images(self, make_items):
        pool = CredentialPool(["k1"])
        client = ScriptedClient(default="ok")
        sink = MutatingSink(lambda position: pool.set_credentials([]))

        run = BatchProcessor(pool, client, sink).process(make_items(2))

        assert run.outcomes[0].status == ItemStatus.SUCCEEDED
        assert run.outcomes[1].failure_kind == FailureKind.CREDENTIALS_EXHAUSTED
        assert run.outcomes[1].attempts == 0
        assert client.credentials_for(1) == []

    def test_pool_emptied_during_remote_call_fails_item_and_finishes_batch(self, make_items, sink):
        pool = CredentialPool(["k1", "k2"])

        def empty_pool_then_rate_limit(image, credential):
            pool.set_credentials([])
            return RateLimitedError()

        client = ScriptedClient(script={0: [empty_pool_then_rate_limit]}, default="ok")

        run = BatchProcessor(pool, client, sink).process(make_items(3))

        assert run.status == BatchStatus.COMPLETE
        assert run.outcomes[0].status == ItemStatus.FAILED
        assert run.outcomes[0].failure_kind == FailureKind.CREDENTIALS_EXHAUSTED
        assert run.outcomes[0].attempts == 1
        for position in (1, 2):
            assert run.outcomes[position].failure_kind == FailureKind.CREDENTIALS_EXHAUSTED
            assert run.outcomes[position].attempts == 0
        assert client.calls == [(0, "k1")]
        assert sink.retries() == []
        assert sink.kinds()[-1] == "batch_complete"

    def test_keys_restored_after_being_emptied_are_used_by_later_images(self, make_items):
        pool = CredentialPool(["k1"])

        def empty_pool_then_rate_limit(image, credential):
            pool.set_credentials([])
            return RateLimitedError()

        client = ScriptedClient(script={0: [empty_pool_then_rate_limit]}, default="ok")
        restore = MutatingSink(lambda position: pool.set_credentials(["k2"]) if position == 0 else None)

        run = BatchProcessor(pool, client, restore).process(make_items(2))

        assert run.outcomes[0].failure_kind == FailureKind.CREDENTIALS_EXHAUSTED
        assert run.outcomes[1].status == ItemStatus.SUCCEEDED
        assert client.credentials_for(1) == ["k2"]


class TestSinkEvents:
    def test_event_order(self, make_items, sink):
        pool = CredentialPool(["k1", "k2"])
        client = ScriptedClient(script={0: [RateLimitedError(), "a"], 1: ["b"]})

        BatchProcessor(pool, client, sink).process(make_items(2))

        assert sink.kinds() == [
            "batch_started",
            "item_status",
            "item_status",
            "item_status",
            "retrying",
            "item_status",
            "item_status",
            "item_status",
            "batch_complete",
        ]
        assert sink.statuses(0) == [ItemStatus.PENDING, ItemStatus.IN_PROGRESS, ItemStatus.SUCCEEDED]
        assert sink.statuses(1) == [ItemStatus.PENDING, ItemStatus.IN_PROGRESS, ItemStatus.SUCCEEDED]

    def test_retry_signal_carries_attempt_count(self, make_items, sink):
        pool = CredentialPool(["k1", "k2", "k3"])
        client = ScriptedClient(default=rate_limited)

        BatchProcessor(pool, client, sink).process(make_items(1))

        assert sink.retries() == [1, 2, 3]

    def test_processor_default_sink_is_used(self, make_items, sink):
        processor = BatchProcessor(CredentialPool(["k1"]), ScriptedClient(), sink)

        processor.process(make_items(1))

        assert sink.kinds()[0] == "batch_started"
        assert sink.kinds()[-1] == "batch_complete"


class ReentrantSink(ResultSink):
    def __init__(self, processor_ref, items):
        self.processor_ref = processor_ref
        self.items = items
        self.error = None

    def on_batch_started(self, run):
        try:
            self.processor_ref[0].process(self.items)
        except BatchInProgressError as e:
            self.error = e


class TestSingleBatchAtATime:
    def test_second_batch_while_running_is_rejected(self, make_items):
        items = make_items(1)
        processor_ref = []
        sink = ReentrantSink(processor_ref, items)
        client = ScriptedClient(default="ok")
        processor = BatchProcessor(CredentialPool(["k1"]), client, sink)
        processor_ref.append(processor)

        run = processor.process(items)

        assert isinstance(sink.error, BatchInProgressError)
        assert run.status == BatchStatus.COMPLETE
        assert len(client.calls) == 1
        assert not processor.busy
