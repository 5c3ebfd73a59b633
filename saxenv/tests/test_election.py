import threading

from saxenv.election import ElectionGate, ReleaseSignal

TIMEOUT = 5


def lead_in_thread(gate, path):
    """Start leading in a thread, returning the event that is set once leading."""
    acquired = threading.Event()
    signals = []

    def run():
        signals.append(gate.lead(path))
        acquired.set()

    threading.Thread(target=run, daemon=True).start()

    return acquired, signals


def test_sequential_leaders():
    gate = ElectionGate()

    first = gate.lead("/root/cell")
    assert gate.held
    first.close()

    acquired, signals = lead_in_thread(gate, "/root/cell")
    assert acquired.wait(TIMEOUT)

    signals[0].close()


def test_second_leader_blocks_until_release():
    gate = ElectionGate()

    first = gate.lead("/root/cell")

    acquired, signals = lead_in_thread(gate, "/root/cell")
    assert not acquired.wait(0.2)

    first.close()
    assert acquired.wait(TIMEOUT)

    signals[0].close()


def test_path_is_ignored():
    gate = ElectionGate()

    first = gate.lead("/root/cell-a")

    acquired, signals = lead_in_thread(gate, "/root/cell-b")
    assert not acquired.wait(0.2)

    first.close()
    assert acquired.wait(TIMEOUT)

    signals[0].close()


def test_unreleased_gate_blocks_forever():
    gate = ElectionGate()

    gate.lead("/root/cell")

    acquired, _ = lead_in_thread(gate, "/root/cell")
    assert not acquired.wait(0.5)


def test_separate_gates_are_independent():
    first = ElectionGate().lead("/root/cell")

    acquired, signals = lead_in_thread(ElectionGate(), "/root/cell")
    assert acquired.wait(TIMEOUT)

    first.close()
    signals[0].close()


def test_signal_as_context_manager():
    gate = ElectionGate()

    with gate.lead("/root/cell") as signal:
        assert not signal.closed

    assert signal.closed

    acquired, signals = lead_in_thread(gate, "/root/cell")
    assert acquired.wait(TIMEOUT)

    signals[0].close()


def test_close_twice():
    gate = ElectionGate()

    signal = gate.lead("/root/cell")
    signal.close()
    signal.close()

    acquired, signals = lead_in_thread(gate, "/root/cell")
    assert acquired.wait(TIMEOUT)

    # The second close must not have released the new leader's hold
    assert gate.held
    signals[0].close()


def test_release_signal_wait():
    signal = ReleaseSignal()

    assert not signal.wait(0.01)
    signal.close()
    assert signal.wait(0.01)
