import asyncio

from sandpilot.kernel.signal_hub import Signal, SignalHub, SignalKind, SignalPriority


def test_handlers_run_in_priority_order():
    hub = SignalHub()
    calls = []
    hub.connect(SignalKind.TOOL_STATUS, lambda s: calls.append("low"), SignalPriority.LOW)
    hub.connect(SignalKind.TOOL_STATUS, lambda s: calls.append("high"), SignalPriority.HIGH)

    asyncio.run(hub.emit(Signal(kind=SignalKind.TOOL_STATUS, payload="x")))

    assert calls == ["high", "low"]


def test_emit_nowait_delivers_after_drain_and_supports_coroutines():
    hub = SignalHub()
    seen = []

    async def handler(signal):
        await asyncio.sleep(0)
        seen.append(signal.payload)

    hub.connect(SignalKind.TURN_APPENDED, handler)

    async def scenario():
        hub.emit_nowait(SignalKind.TURN_APPENDED, "first")
        hub.emit_nowait(SignalKind.TURN_APPENDED, "second")
        assert seen == []
        await hub.drain()

    asyncio.run(scenario())
    assert seen == ["first", "second"]


def test_handler_errors_are_contained():
    hub = SignalHub()
    seen = []

    def broken(signal):
        raise ValueError("boom")

    hub.connect("custom.kind", broken)
    hub.connect("custom.kind", lambda s: seen.append(s.payload))

    asyncio.run(hub.emit(Signal(kind="custom.kind", payload=1)))

    assert seen == [1]


def test_disconnect_and_counts():
    hub = SignalHub()
    slot = hub.connect(SignalKind.RUN_STATE, lambda s: None)
    hub.connect(SignalKind.TOOL_STATUS, lambda s: None)

    assert hub.slot_count() == 2
    assert hub.disconnect(slot)
    assert not hub.disconnect(slot)
    assert hub.slot_count(SignalKind.RUN_STATE) == 0
