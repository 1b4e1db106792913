"""
Cooldown gate tests (manual ticks and the background ticker).
"""

import time
import unittest

from maisoku.cooldown import CooldownGate


class TestCooldownGate(unittest.TestCase):

    def test_starts_open(self):
        gate = CooldownGate(duration=5, auto_tick=False)
        self.assertEqual(gate.remaining, 0)
        self.assertFalse(gate.is_active)

    def test_trigger_and_tick_down(self):
        gate = CooldownGate(duration=3, auto_tick=False)
        gate.trigger()

        self.assertTrue(gate.is_active)
        self.assertEqual(gate.tick(), 2)
        self.assertEqual(gate.tick(), 1)
        self.assertEqual(gate.tick(), 0)
        self.assertFalse(gate.is_active)
        # Never goes negative
        self.assertEqual(gate.tick(), 0)

    def test_retrigger_restarts_countdown(self):
        gate = CooldownGate(duration=4, auto_tick=False)
        gate.trigger()
        gate.tick()
        gate.tick()
        gate.trigger()
        self.assertEqual(gate.remaining, 4)

    def test_reset(self):
        gate = CooldownGate(duration=120, auto_tick=False)
        gate.trigger()
        gate.reset()
        self.assertFalse(gate.is_active)

    def test_negative_duration_rejected(self):
        with self.assertRaises(ValueError):
            CooldownGate(duration=-1)

    def test_background_ticker_clears_gate(self):
        gate = CooldownGate(duration=3, auto_tick=True, tick_interval=0.01)
        gate.trigger()
        self.assertTrue(gate.is_active)

        deadline = time.monotonic() + 5
        while gate.is_active and time.monotonic() < deadline:
            time.sleep(0.01)

        self.assertFalse(gate.is_active)

    def test_ticker_restarts_after_finishing(self):
        gate = CooldownGate(duration=2, auto_tick=True, tick_interval=0.01)
        for _ in range(2):
            gate.trigger()
            deadline = time.monotonic() + 5
            while gate.is_active and time.monotonic() < deadline:
                time.sleep(0.01)
            self.assertFalse(gate.is_active)


if __name__ == "__main__":
    unittest.main()
