"""Step panel bookkeeping tests (no live rendering)."""


from contextlib import redirect_stdout
import unittest
import io

from pan.tui import StepPanel, StepStatus, step_panel
from pan.utils import StepResult
from pan import utils
from tests._shell import quiet_flags


class StepPanelTests(unittest.TestCase):
    def setUp(self) -> None:
        quiet_flags()

    def test_disabled_panel_prints_through(self) -> None:
        buf = io.StringIO()
        with redirect_stdout(buf), step_panel(["a", "b"], enabled=False) \
                as panel:
            panel.add_message(0, "hello", prfx=False)
        self.assertIn("hello", buf.getvalue())
        self.assertEqual(panel.statuses, [StepStatus.PENDING] * 2)

    def test_finish_maps_step_results(self) -> None:
        panel = StepPanel(["a", "b", "c", "d"], enabled=True)
        for idx, result in enumerate((StepResult.OK, StepResult.SKIP,
                                      StepResult.ABORT, StepResult.FAIL)):
            panel.start(idx)
            panel.finish(idx, result)
            self.assertIsNotNone(panel.elapsed(idx))
        self.assertEqual(panel.statuses, [StepStatus.DONE,
                         StepStatus.SKIPPED, StepStatus.ABORT,
                         StepStatus.FAIL])
        self.assertEqual(panel._caption(), "4/4 steps")

    def test_message_tail_is_capped(self) -> None:
        panel = StepPanel(["a"], enabled=True)
        for n in range(20): panel.add_message(0, f"line {n}")
        tail = [msg for msg, _, _ in panel._tails[0]]
        self.assertEqual(tail[-1], "line 19")
        self.assertEqual(len(tail), 6)

    def test_exit_unbinds_console(self) -> None:
        panel = StepPanel(["a"], enabled=False)
        utils.bind_console(panel)
        panel.__exit__(None, None, None)
        buf = io.StringIO()
        with redirect_stdout(buf):
            utils.transmit("plain", quiet=False, prfx=False)
        self.assertIn("plain", buf.getvalue())


if __name__ == "__main__":
    unittest.main()
