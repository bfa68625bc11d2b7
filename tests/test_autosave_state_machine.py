import unittest


def _cfg(name: str):
    return {
        "version": 2,
        "events": {"issue": {"enabled": True, "rules": [{"id": "r1", "name": name, "actions": [{"id": "a1", "robotId": "b"}]}]}},
    }


def _rule_name(config) -> str:
    return config.events["issue"].rules[0].name


class TestAutoSaveStateMachine(unittest.TestCase):
    def test_edit_equal_to_baseline_does_not_save(self) -> None:
        from hookcode.kernel.autosave import AutoSaveMachine, AutoSaveState

        m = AutoSaveMachine(_cfg("a"))
        self.assertIsNone(m.on_edit(_cfg("a")))
        self.assertEqual(m.state, AutoSaveState.SAVED)

    def test_edits_during_save_coalesce_to_latest(self) -> None:
        from hookcode.kernel.autosave import AutoSaveMachine, AutoSaveState

        m = AutoSaveMachine(_cfg("a"))
        first = m.on_edit(_cfg("b"))
        assert first is not None
        self.assertEqual(_rule_name(first), "b")
        self.assertEqual(m.state, AutoSaveState.SAVING)

        self.assertIsNone(m.on_edit(_cfg("c")))
        self.assertIsNone(m.on_edit(_cfg("d")))
        self.assertEqual(m.state, AutoSaveState.SAVING_WITH_PENDING)

        nxt = m.on_save_succeeded()
        assert nxt is not None
        self.assertEqual(_rule_name(nxt), "d")
        self.assertEqual(m.state, AutoSaveState.SAVING)

        self.assertIsNone(m.on_save_succeeded())
        self.assertEqual(m.state, AutoSaveState.SAVED)

    def test_pending_equal_to_saved_is_dropped(self) -> None:
        from hookcode.kernel.autosave import AutoSaveMachine, AutoSaveState

        m = AutoSaveMachine(_cfg("a"))
        m.on_edit(_cfg("b"))
        m.on_edit(_cfg("b"))
        self.assertIsNone(m.on_save_succeeded())
        self.assertEqual(m.state, AutoSaveState.SAVED)

    def test_failure_and_retry(self) -> None:
        from hookcode.kernel.autosave import AutoSaveMachine, AutoSaveState

        m = AutoSaveMachine(_cfg("a"))
        m.on_edit(_cfg("b"))
        err = RuntimeError("disk full")
        self.assertIsNone(m.on_save_failed(err))
        self.assertEqual(m.state, AutoSaveState.FAILED)
        self.assertIs(m.last_error, err)

        again = m.retry()
        assert again is not None
        self.assertEqual(_rule_name(again), "b")
        self.assertEqual(m.state, AutoSaveState.SAVING)
        self.assertIsNone(m.on_save_succeeded())
        self.assertEqual(m.state, AutoSaveState.SAVED)
        self.assertIsNone(m.last_error)
        self.assertIsNone(m.retry())

    def test_failure_with_pending_continues_with_pending(self) -> None:
        from hookcode.kernel.autosave import AutoSaveMachine, AutoSaveState

        m = AutoSaveMachine(_cfg("a"))
        m.on_edit(_cfg("b"))
        m.on_edit(_cfg("c"))
        nxt = m.on_save_failed(RuntimeError("boom"))
        assert nxt is not None
        self.assertEqual(_rule_name(nxt), "c")
        self.assertEqual(m.state, AutoSaveState.SAVING)

    def test_failed_save_after_revert_settles_without_retry(self) -> None:
        from hookcode.kernel.autosave import AutoSaveMachine, AutoSaveState

        m = AutoSaveMachine(_cfg("a"))
        self.assertIsNotNone(m.on_edit(_cfg("b")))
        self.assertIsNone(m.on_edit(_cfg("a")))
        self.assertEqual(m.state, AutoSaveState.SAVING_WITH_PENDING)

        self.assertIsNone(m.on_save_failed(RuntimeError("boom")))
        self.assertEqual(m.state, AutoSaveState.SAVED)
        self.assertIsNone(m.last_error)
        self.assertIsNone(m.retry())

    def test_reset_adopts_new_baseline(self) -> None:
        from hookcode.kernel.autosave import AutoSaveMachine, AutoSaveState

        m = AutoSaveMachine(_cfg("a"))
        m.on_edit(_cfg("b"))
        m.reset(_cfg("z"))
        self.assertEqual(m.state, AutoSaveState.IDLE)
        self.assertIsNone(m.in_flight)
        self.assertIsNone(m.on_edit(_cfg("z")))

    def test_run_autosave_drives_saves(self) -> None:
        from hookcode.kernel.autosave import AutoSaveMachine, AutoSaveState, run_autosave

        saved = []
        m = AutoSaveMachine()
        self.assertEqual(run_autosave(m, _cfg("x"), saved.append), AutoSaveState.SAVED)
        self.assertEqual([_rule_name(c) for c in saved], ["x"])

        def failing(_config) -> None:
            raise OSError("nope")

        self.assertEqual(run_autosave(m, _cfg("y"), failing), AutoSaveState.FAILED)
        self.assertIsInstance(m.last_error, OSError)


if __name__ == "__main__":
    unittest.main()
