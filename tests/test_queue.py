"""Тесты клиента очереди Supabase Queues (pgmq)."""
from unittest.mock import MagicMock

import pytest

from tests.conftest import make_supabase


def _rows(*ids: int) -> list[dict]:
    return [
        {"msg_id": i, "read_ct": 1, "message": {"task_id": f"t{i}", "url": "https://example.com"}}
        for i in ids
    ]


class TestReceive:
    async def test_returns_messages(self) -> None:
        from scrapeworker.queue import SupabaseQueue

        db = make_supabase()
        db.schema.return_value.rpc.return_value.execute.return_value = MagicMock(data=_rows(1, 2))

        queue = SupabaseQueue(db, "scrape_jobs")
        messages = await queue.receive(max_batch=10, wait_seconds=0, visibility_timeout=300)

        assert [m.handle for m in messages] == [1, 2]
        assert messages[0].body["task_id"] == "t1"
        assert messages[0].read_count == 1
        db.schema.assert_called_with("pgmq_public")
        db.schema.return_value.rpc.assert_called_with(
            "read", {"queue_name": "scrape_jobs", "sleep_seconds": 300, "n": 10}
        )

    async def test_empty_queue_returns_after_wait(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Пустая очередь перечитывается до окончания wait_seconds."""
        import scrapeworker.queue as queue_module
        from scrapeworker.queue import SupabaseQueue

        monkeypatch.setattr(queue_module, "QUEUE_REPOLL_INTERVAL", 0.01)
        db = make_supabase()

        queue = SupabaseQueue(db, "scrape_jobs")
        messages = await queue.receive(max_batch=10, wait_seconds=0.05, visibility_timeout=300)

        assert messages == []
        assert db.schema.return_value.rpc.return_value.execute.call_count >= 2

    async def test_long_poll_picks_up_late_message(self, monkeypatch: pytest.MonkeyPatch) -> None:
        import scrapeworker.queue as queue_module
        from scrapeworker.queue import SupabaseQueue

        monkeypatch.setattr(queue_module, "QUEUE_REPOLL_INTERVAL", 0.01)
        db = make_supabase()
        db.schema.return_value.rpc.return_value.execute.side_effect = [
            MagicMock(data=[]),
            MagicMock(data=_rows(7)),
        ]

        queue = SupabaseQueue(db, "scrape_jobs")
        messages = await queue.receive(max_batch=10, wait_seconds=5, visibility_timeout=300)
        assert [m.handle for m in messages] == [7]

    async def test_rpc_error_wrapped(self) -> None:
        from scrapeworker.queue import QueueError, SupabaseQueue

        db = make_supabase()
        db.schema.return_value.rpc.return_value.execute.side_effect = Exception("connection reset")

        queue = SupabaseQueue(db, "scrape_jobs")
        with pytest.raises(QueueError, match="connection reset"):
            await queue.receive(max_batch=10, wait_seconds=0, visibility_timeout=300)


class TestDeleteAndSend:
    async def test_delete(self) -> None:
        from scrapeworker.queue import SupabaseQueue

        db = make_supabase()
        db.schema.return_value.rpc.return_value.execute.return_value = MagicMock(data=True)

        await SupabaseQueue(db, "scrape_jobs").delete(42)
        db.schema.return_value.rpc.assert_called_with(
            "delete", {"queue_name": "scrape_jobs", "message_id": 42}
        )

    async def test_archive(self) -> None:
        from scrapeworker.queue import SupabaseQueue

        db = make_supabase()
        db.schema.return_value.rpc.return_value.execute.return_value = MagicMock(data=True)

        await SupabaseQueue(db, "scrape_jobs").archive(7)
        db.schema.assert_called_with("pgmq_public")
        db.schema.return_value.rpc.assert_called_with(
            "archive", {"queue_name": "scrape_jobs", "message_id": 7}
        )

    async def test_send_returns_message_id(self) -> None:
        from scrapeworker.queue import SupabaseQueue

        db = make_supabase()
        db.schema.return_value.rpc.return_value.execute.return_value = MagicMock(data=[15])

        msg_id = await SupabaseQueue(db, "scrape_jobs").send({"task_id": "t1"})
        assert msg_id == 15
        db.schema.return_value.rpc.assert_called_with(
            "send", {"queue_name": "scrape_jobs", "message": {"task_id": "t1"}, "sleep_seconds": 0}
        )

    async def test_send_without_id_fails(self) -> None:
        from scrapeworker.queue import QueueError, SupabaseQueue

        db = make_supabase()
        db.schema.return_value.rpc.return_value.execute.return_value = MagicMock(data=[])

        with pytest.raises(QueueError):
            await SupabaseQueue(db, "scrape_jobs").send({"task_id": "t1"})
