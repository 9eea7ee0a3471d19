"""Unit tests for the per-event channel hub."""
import asyncio

from felicity.realtime import ChannelHub


def run(coro):
    return asyncio.run(coro)


class TestChannelHub:
    def test_publish_reaches_topic_only(self):
        async def scenario():
            hub = ChannelHub()
            mine = hub.subscribe("evt-1", "acc-1")
            other = hub.subscribe("evt-2", "acc-2")
            assert hub.publish("evt-1", "new_message", {"message_id": 1}) == 1
            envelope = await asyncio.wait_for(mine.receive(), timeout=1)
            assert envelope == {"event": "new_message", "data": {"message_id": 1}}
            assert other.queue.empty()

        run(scenario())

    def test_exclude_sender(self):
        async def scenario():
            hub = ChannelHub()
            sender = hub.subscribe("evt-1", "acc-1")
            watcher = hub.subscribe("evt-1", "acc-2")
            assert hub.publish("evt-1", "user_typing", {"account_id": "acc-1"}, exclude=sender) == 1
            assert (await asyncio.wait_for(watcher.receive(), timeout=1))["event"] == "user_typing"
            await asyncio.sleep(0)
            assert sender.queue.empty()

        run(scenario())

    def test_order_preserved(self):
        async def scenario():
            hub = ChannelHub()
            sub = hub.subscribe("evt-1")
            for i in range(20):
                hub.publish("evt-1", "new_message", {"message_id": i})
            received = [(await sub.receive())["data"]["message_id"] for _ in range(20)]
            assert received == list(range(20))

        run(scenario())

    def test_unsubscribe(self):
        async def scenario():
            hub = ChannelHub()
            sub = hub.subscribe("evt-1")
            assert hub.subscriber_count("evt-1") == 1
            hub.unsubscribe(sub)
            assert hub.subscriber_count("evt-1") == 0
            assert hub.publish("evt-1", "new_message", {}) == 0

        run(scenario())

    def test_close_releases_subscribers(self):
        async def scenario():
            hub = ChannelHub()
            sub = hub.subscribe("evt-1")
            hub.close()
            assert await asyncio.wait_for(sub.receive(), timeout=1) is None
            assert hub.subscriber_count("evt-1") == 0

        run(scenario())

    def test_dead_loop_dropped(self):
        hub = ChannelHub()

        async def subscribe():
            return hub.subscribe("evt-1")

        run(subscribe())
        # The loop that owned the subscription is closed now
        assert hub.publish("evt-1", "new_message", {}) == 0
        assert hub.subscriber_count("evt-1") == 0

    def test_ordered_lock_per_topic(self):
        hub = ChannelHub()
        assert hub.ordered("evt-1") is hub.ordered("evt-1")
        assert hub.ordered("evt-1") is not hub.ordered("evt-2")
