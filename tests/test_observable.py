from climb_intelligence.core.observable import StateHolder, SubscriptionGroup


def test_subscribe_and_cancel():
    holder = StateHolder(0, name="counter")
    seen = []
    subscription = holder.subscribe(seen.append)
    holder.set(1)
    subscription.cancel()
    subscription.cancel()
    holder.set(2)

    assert seen == [1]
    assert holder.value == 2
    assert holder.subscriber_count == 0


def test_emit_current_replays_value():
    holder = StateHolder("ready")
    seen = []
    holder.subscribe(seen.append, emit_current=True)
    assert seen == ["ready"]


def test_failing_subscriber_does_not_block_others():
    holder = StateHolder(0)
    seen = []

    def broken(_):
        raise RuntimeError("boom")

    holder.subscribe(broken)
    holder.subscribe(seen.append)
    holder.set(5)
    assert seen == [5]


def test_subscriber_may_cancel_itself():
    holder = StateHolder(0)
    seen = []
    subscription = None

    def once(value):
        seen.append(value)
        subscription.cancel()

    subscription = holder.subscribe(once)
    holder.set(1)
    holder.set(2)
    assert seen == [1]


def test_subscription_group_cancels_all():
    first, second = StateHolder(0), StateHolder(0)
    group = SubscriptionGroup()
    group.add(first.subscribe(lambda _: None))
    group.add(second.subscribe(lambda _: None))
    assert len(group) == 2

    group.cancel_all()
    assert len(group) == 0
    assert first.subscriber_count == 0
    assert second.subscriber_count == 0


def test_subscription_as_context_manager():
    holder = StateHolder(0)
    with holder.subscribe(lambda _: None):
        assert holder.subscriber_count == 1
    assert holder.subscriber_count == 0


def test_failing_subscriber_on_replay_stays_registered():
    holder = StateHolder(1, name="counter")
    calls = []

    def broken(value):
        calls.append(value)
        raise RuntimeError("boom")

    subscription = holder.subscribe(broken, emit_current=True)
    holder.set(2)
    assert calls == [1, 2]
    assert holder.subscriber_count == 1
    subscription.cancel()
