"""
test_scan_gate.py — Debounce and cooldown behaviour of the scan gate.
"""

from scan_gate import gate_prime, gate_reset, gate_submit, gate_suppress, make_scan_gate

T0 = 1000.0


def test_first_scan_accepted():
    gate = make_scan_gate(1.5)
    assert gate_submit(gate, "88000001", T0) is True
    assert gate["last_code"] == "88000001"
    assert gate["last_accepted_at"] == T0


def test_repeat_inside_window_rejected():
    gate = make_scan_gate(1.5)
    assert gate_submit(gate, "88000001", T0)
    assert gate_submit(gate, "88000001", T0 + 0.5) is False
    assert gate_submit(gate, "88000001", T0 + 2.0) is True


def test_rejected_repeats_do_not_extend_window():
    gate = make_scan_gate(1.5)
    gate_submit(gate, "88000001", T0)
    for offset in (0.3, 0.6, 0.9, 1.2, 1.4):
        assert gate_submit(gate, "88000001", T0 + offset) is False
    assert gate["last_accepted_at"] == T0
    assert gate_submit(gate, "88000001", T0 + 1.5) is True


def test_different_code_accepted_immediately():
    gate = make_scan_gate(2.0)
    assert gate_submit(gate, "88000001", T0)
    assert gate_submit(gate, "99000001", T0 + 0.1) is True
    # The earlier code is no longer the last one, so it passes again
    assert gate_submit(gate, "88000001", T0 + 0.2) is True


def test_suppression_rejects_everything():
    gate = make_scan_gate(1.5)
    gate_suppress(gate, T0, 1.0)
    assert gate_submit(gate, "99000001", T0 + 0.5) is False
    assert gate["last_code"] is None
    assert gate_submit(gate, "99000001", T0 + 1.0) is True


def test_prime_blocks_same_code():
    gate = make_scan_gate(1.5)
    gate_prime(gate, "88000001", T0, cooldown=0.8)
    assert gate_submit(gate, "88000001", T0 + 0.1) is False
    # Past the cooldown the debounce window still holds the primed code back
    assert gate_submit(gate, "88000001", T0 + 1.0) is False
    assert gate_submit(gate, "99000001", T0 + 1.0) is True


def test_suppress_never_shortens_cooldown():
    gate = make_scan_gate(1.5)
    gate_suppress(gate, T0, 5.0)
    gate_suppress(gate, T0, 1.0)
    assert gate["suppress_until"] == T0 + 5.0


def test_reset_clears_state():
    gate = make_scan_gate(1.5)
    gate_prime(gate, "88000001", T0, cooldown=10.0)
    gate_reset(gate)
    assert gate_submit(gate, "88000001", T0 + 0.1) is True
