import unittest


def _clause(field, op, value=None, values=None, negate=False):
    from hookcode.contracts.v1 import AutomationClause

    return AutomationClause(field=field, op=op, value=value, values=values, negate=negate)


class TestClauseEvaluation(unittest.TestCase):
    def test_equals_is_trimmed_and_case_insensitive(self) -> None:
        from hookcode.kernel.clauses import evaluate_clause
        from hookcode.kernel.facts import EventFacts

        facts = EventFacts({"branch.name": "  Main "})
        self.assertTrue(evaluate_clause(_clause("branch.name", "equals", value="main"), facts))
        self.assertFalse(evaluate_clause(_clause("branch.name", "equals", value="dev"), facts))
        self.assertFalse(evaluate_clause(_clause("branch.name", "equals"), facts))
        self.assertFalse(evaluate_clause(_clause("missing", "equals", value="main"), facts))

    def test_in_is_case_sensitive(self) -> None:
        from hookcode.kernel.clauses import evaluate_clause
        from hookcode.kernel.facts import EventFacts

        facts = EventFacts({"event.subType": "created"})
        self.assertTrue(evaluate_clause(_clause("event.subType", "in", values=["commented", "created"]), facts))
        self.assertFalse(evaluate_clause(_clause("event.subType", "in", values=["Created"]), facts))
        self.assertFalse(evaluate_clause(_clause("event.subType", "in", values=[]), facts))
        self.assertFalse(evaluate_clause(_clause("event.subType", "in"), facts))
        self.assertFalse(evaluate_clause(_clause("event.type", "in", values=["issue"]), facts))

    def test_contains_any_for_people_and_ids(self) -> None:
        from hookcode.kernel.clauses import evaluate_clause
        from hookcode.kernel.facts import EventFacts

        facts = EventFacts(
            {
                "issue.assignees": ["alice", "bob"],
                "comment.mentions": ["@review-bot"],
                "comment.mentionRobotIds": ["rb_1"],
            }
        )
        self.assertTrue(evaluate_clause(_clause("issue.assignees", "containsAny", values=["BOB"]), facts))
        self.assertFalse(evaluate_clause(_clause("issue.assignees", "containsAny", values=["carol"]), facts))
        self.assertTrue(evaluate_clause(_clause("comment.mentions", "containsAny", values=["Review Bot"]), facts))
        self.assertTrue(evaluate_clause(_clause("comment.mentionRobotIds", "containsAny", values=["rb_1"]), facts))
        self.assertFalse(evaluate_clause(_clause("comment.mentionRobotIds", "containsAny", values=["RB_1"]), facts))
        self.assertFalse(evaluate_clause(_clause("issue.assignees", "containsAny", values=[]), facts))

    def test_matches_any_is_exact(self) -> None:
        from hookcode.kernel.clauses import evaluate_clause
        from hookcode.kernel.facts import EventFacts

        facts = EventFacts({"branch.name": "release/1.2"})
        self.assertTrue(evaluate_clause(_clause("branch.name", "matchesAny", values=["main", "release/1.2"]), facts))
        self.assertFalse(evaluate_clause(_clause("branch.name", "matchesAny", values=["release/*"]), facts))

    def test_exists(self) -> None:
        from hookcode.kernel.clauses import evaluate_clause
        from hookcode.kernel.facts import EventFacts

        facts = EventFacts({"comment.body": "hi", "issue.assignees": [], "branch.name": "   "})
        self.assertTrue(evaluate_clause(_clause("comment.body", "exists"), facts))
        self.assertFalse(evaluate_clause(_clause("issue.assignees", "exists"), facts))
        self.assertFalse(evaluate_clause(_clause("branch.name", "exists"), facts))
        self.assertFalse(evaluate_clause(_clause("nope", "exists"), facts))

    def test_text_contains_any(self) -> None:
        from hookcode.kernel.clauses import evaluate_clause
        from hookcode.kernel.facts import EventFacts

        facts = EventFacts({"text.all": "Crash on startup\n\nSteps: open the app"})
        self.assertTrue(evaluate_clause(_clause("text.all", "textContainsAny", values=["feature", "CRASH"]), facts))
        self.assertFalse(evaluate_clause(_clause("text.all", "textContainsAny", values=["feature"]), facts))
        self.assertFalse(evaluate_clause(_clause("missing", "textContainsAny", values=["crash"]), facts))

    def test_unknown_op_is_false_and_negatable(self) -> None:
        from hookcode.kernel.clauses import evaluate_clause
        from hookcode.kernel.facts import EventFacts

        facts = EventFacts({"event.subType": "created"})
        self.assertFalse(evaluate_clause(_clause("event.subType", "regex", values=[".*"]), facts))
        self.assertTrue(evaluate_clause(_clause("event.subType", "regex", values=[".*"], negate=True), facts))

    def test_negation_flips_every_op(self) -> None:
        from hookcode.contracts.v1 import AUTOMATION_CLAUSE_OPS
        from hookcode.kernel.clauses import evaluate_clause
        from hookcode.kernel.facts import EventFacts

        fact_sets = [
            EventFacts({}),
            EventFacts({"f": "alpha"}),
            EventFacts({"f": ["alpha", "beta"]}),
        ]
        for op in (*AUTOMATION_CLAUSE_OPS, "regex", ""):
            for facts in fact_sets:
                plain = _clause("f", op, value="alpha", values=["alpha"])
                flipped = _clause("f", op, value="alpha", values=["alpha"], negate=True)
                self.assertEqual(
                    evaluate_clause(flipped, facts),
                    not evaluate_clause(plain, facts),
                    msg=f"{op} {facts!r}",
                )


if __name__ == "__main__":
    unittest.main()
