import unittest


class TestEventFacts(unittest.TestCase):
    def test_gitlab_event_mapping(self) -> None:
        from hookcode.kernel.facts import map_provider_event

        def key(name, payload=None):
            m = map_provider_event("gitlab", name, payload or {})
            return None if m is None else (m.event_key, m.sub_type)

        self.assertEqual(key("Push Hook"), ("commit", "created"))
        self.assertEqual(key("Issue Hook"), ("issue", "created"))
        self.assertEqual(key("Merge Request Hook", {"object_attributes": {"action": "open"}}), ("merge_request", "created"))
        self.assertEqual(key("Merge Request Hook", {"object_attributes": {"action": "update"}}), ("merge_request", "updated"))
        self.assertIsNone(key("Merge Request Hook", {"object_attributes": {"action": "close"}}))
        self.assertEqual(key("Note Hook", {"object_attributes": {"noteable_type": "Issue"}}), ("issue", "commented"))
        self.assertEqual(key("Note Hook", {"object_attributes": {"noteable_type": "Commit"}}), ("commit", "commented"))
        self.assertIsNone(key("Pipeline Hook"))

    def test_github_event_mapping(self) -> None:
        from hookcode.kernel.facts import map_provider_event

        def key(name, payload=None):
            m = map_provider_event("GitHub", name, payload or {})
            return None if m is None else (m.event_key, m.sub_type)

        self.assertEqual(key("push"), ("commit", "created"))
        self.assertEqual(key("issues", {"action": "opened"}), ("issue", "created"))
        self.assertIsNone(key("issues", {"action": "closed"}))
        self.assertEqual(key("issue_comment", {"action": "created", "issue": {}}), ("issue", "commented"))
        self.assertEqual(
            key("issue_comment", {"action": "created", "issue": {"pull_request": {"url": "x"}}}),
            ("merge_request", "commented"),
        )
        self.assertEqual(key("pull_request", {"action": "synchronize"}), ("merge_request", "updated"))

    def test_unknown_provider_raises(self) -> None:
        from hookcode.kernel.facts import map_provider_event

        with self.assertRaises(ValueError):
            map_provider_event("bitbucket", "push", {})

    def test_mention_handle_normalization(self) -> None:
        from hookcode.kernel.facts import normalize_mention_handle

        self.assertEqual(normalize_mention_handle("@Review Bot"), "review-bot")
        self.assertEqual(normalize_mention_handle("  @ci_bot "), "ci_bot")
        self.assertEqual(normalize_mention_handle("@"), "")
        self.assertEqual(normalize_mention_handle(None), "")

    def test_issue_comment_facts(self) -> None:
        from hookcode.contracts.v1 import RepoRobot
        from hookcode.kernel.facts import ListFact, TextFact, build_event_facts

        robots = [
            RepoRobot(id="rb_1", repo_id="R", name="Review Bot"),
            RepoRobot(id="rb_2", repo_id="R", name="other", repo_token_username="ci-helper"),
        ]
        payload = {
            "object_attributes": {"note": "ping @review-bot and @CI-Helper please", "noteable_type": "Issue"},
            "issue": {"title": "Crash", "assignees": [{"username": "Alice"}]},
        }
        facts = build_event_facts("issue", payload, sub_type="commented", robots=robots)
        self.assertEqual(facts.fact("event.type"), TextFact("issue"))
        self.assertEqual(facts.fact("event.subType"), TextFact("commented"))
        self.assertEqual(facts.fact("text.all"), TextFact("ping @review-bot and @CI-Helper please"))
        self.assertEqual(facts.fact("issue.assignees"), ListFact(("alice",)))
        self.assertEqual(facts.fact("comment.mentions"), ListFact(("@review-bot", "@ci-helper")))
        self.assertEqual(facts.fact("comment.mentionRobotIds"), ListFact(("rb_1", "rb_2")))
        self.assertIsNone(facts.fact("nope"))

    def test_push_and_merge_request_facts(self) -> None:
        from hookcode.kernel.facts import build_event_facts

        push = build_event_facts(
            "commit",
            {"ref": "refs/heads/main", "commits": [{"message": "fix: crash\n\nlong body"}, {"title": "docs"}]},
            sub_type="created",
        )
        self.assertEqual(push.to_dict()["branch.name"], "main")
        self.assertEqual(push.to_dict()["text.all"], "fix: crash\ndocs")

        mr = build_event_facts(
            "merge_request",
            {"pull_request": {"title": "Add X", "body": "details", "base": {"ref": "develop"}}},
            sub_type="created",
        )
        self.assertEqual(mr.to_dict()["branch.name"], "develop")
        self.assertEqual(mr.to_dict()["text.all"], "Add X\n\ndetails")

    def test_event_facts_coerces_values(self) -> None:
        from hookcode.kernel.facts import EventFacts, ListFact, TextFact

        facts = EventFacts({"a": "x", "b": ["y", None, "z"], "c": None, "d": 3})
        self.assertEqual(facts.fact("a"), TextFact("x"))
        self.assertEqual(facts.fact("b"), ListFact(("y", "z")))
        self.assertIsNone(facts.fact("c"))
        self.assertEqual(facts.fact("d"), TextFact("3"))
        self.assertEqual(sorted(facts), ["a", "b", "d"])


if __name__ == "__main__":
    unittest.main()
