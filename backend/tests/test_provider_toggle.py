from __future__ import annotations

import threading

from saferoute.provider_toggle import ProviderToggle


def test_set_returns_previous_value() -> None:
    toggle = ProviderToggle(True)
    assert toggle.set_enabled(False) is True
    assert toggle.is_enabled() is False
    assert toggle.set_enabled(False) is False
    assert toggle.set_enabled(True) is False
    assert toggle.is_enabled() is True


def test_per_call_override_wins() -> None:
    toggle = ProviderToggle(False)
    assert toggle.resolve(None) is False
    assert toggle.resolve(True) is True
    toggle.set_enabled(True)
    assert toggle.resolve(False) is False


def test_concurrent_writers_leave_a_consistent_value() -> None:
    toggle = ProviderToggle(True)

    def flip(value: bool) -> None:
        for _ in range(500):
            toggle.set_enabled(value)
            assert toggle.is_enabled() in (True, False)

    threads = [threading.Thread(target=flip, args=(i % 2 == 0,)) for i in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert toggle.is_enabled() in (True, False)
