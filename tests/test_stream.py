from mynotes.stream import SnapshotStream


async def test_new_subscriber_gets_empty_default():
    stream = SnapshotStream()
    subscription = stream.subscribe()
    assert await anext(subscription) == ()


async def test_late_subscriber_gets_latest_snapshot_only():
    stream = SnapshotStream()
    stream.publish([1])
    stream.publish([1, 2])

    subscription = stream.subscribe()
    assert await anext(subscription) == (1, 2)
    assert subscription.pending() == 0


async def test_every_subscriber_sees_every_snapshot_in_order():
    stream = SnapshotStream()
    first = stream.subscribe()
    second = stream.subscribe()

    stream.publish([1])
    stream.publish([1, 2])
    stream.publish([])

    expected = [(), (1,), (1, 2), ()]
    assert [await anext(first) for _ in expected] == expected
    assert [await anext(second) for _ in expected] == expected


async def test_snapshots_are_copies():
    stream = SnapshotStream()
    items = [1]
    stream.publish(items)
    items.append(2)
    assert stream.current == (1,)


async def test_close_ends_iteration():
    stream = SnapshotStream()
    subscription = stream.subscribe()
    stream.publish([1])
    stream.close()

    received = [snapshot async for snapshot in subscription]
    assert received == [(), (1,)]
    assert stream.subscriber_count == 0


async def test_closed_subscription_stops_receiving():
    stream = SnapshotStream()
    async with stream.subscribe() as subscription:
        assert stream.subscriber_count == 1
    assert subscription.closed
    assert stream.subscriber_count == 0

    stream.publish([1])
    assert [snapshot async for snapshot in subscription] == [()]
