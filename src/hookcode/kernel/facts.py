"""Event facts: the flat field view clauses are evaluated against.

A fact is either text (``TextFact``), a list of strings (``ListFact``) or absent.
``build_event_facts`` derives the standard fields from GitLab/GitHub webhook
payloads:

- event.type / event.subType
- branch.name (push ref, merge request target branch)
- text.all (comment body for comments, otherwise title + body / commit titles)
- issue.assignees (lowercased usernames)
- comment.body / comment.mentions / comment.mentionRobotIds
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

from ..contracts.v1 import RepoRobot


@dataclass(frozen=True)
class TextFact:
    value: str


@dataclass(frozen=True)
class ListFact:
    values: Tuple[str, ...]


FactValue = Union[TextFact, ListFact, None]


class EventFacts(Mapping[str, Union[TextFact, ListFact]]):
    """Read-only field -> fact lookup; missing fields are absent (``None``)."""

    def __init__(self, raw: Optional[Mapping[str, Any]] = None) -> None:
        facts: Dict[str, Union[TextFact, ListFact]] = {}
        for key, value in (raw or {}).items():
            fact = _coerce_fact(value)
            if fact is not None:
                facts[str(key)] = fact
        self._facts = facts

    def __getitem__(self, key: str) -> Union[TextFact, ListFact]:
        return self._facts[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._facts)

    def __len__(self) -> int:
        return len(self._facts)

    def fact(self, field: str) -> FactValue:
        return self._facts.get(field)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for key, fact in self._facts.items():
            out[key] = fact.value if isinstance(fact, TextFact) else list(fact.values)
        return out

    def __repr__(self) -> str:
        return f"EventFacts({self.to_dict()!r})"


def _coerce_fact(value: Any) -> FactValue:
    if value is None:
        return None
    if isinstance(value, (TextFact, ListFact)):
        return value
    if isinstance(value, (list, tuple)):
        return ListFact(tuple(str(v) for v in value if v is not None))
    return TextFact(str(value))


@dataclass(frozen=True)
class EventMapping:
    event_key: str
    sub_type: str


def map_gitlab_event(event_name: Optional[str], payload: Any) -> Optional[EventMapping]:
    attrs = _dict(_dict(payload).get("object_attributes"))
    if event_name == "Push Hook":
        return EventMapping("commit", "created")
    if event_name == "Issue Hook":
        return EventMapping("issue", "created")
    if event_name == "Merge Request Hook":
        action = attrs.get("action")
        if not action or action in ("open", "reopen", "create"):
            return EventMapping("merge_request", "created")
        if action == "update":
            return EventMapping("merge_request", "updated")
        return None
    if event_name == "Note Hook":
        noteable = attrs.get("noteable_type")
        if noteable == "Issue":
            return EventMapping("issue", "commented")
        if noteable == "MergeRequest":
            return EventMapping("merge_request", "commented")
        if noteable == "Commit":
            return EventMapping("commit", "commented")
        return None
    return None


def map_github_event(event_name: Optional[str], payload: Any) -> Optional[EventMapping]:
    doc = _dict(payload)
    action = doc.get("action")
    if event_name == "push":
        return EventMapping("commit", "created")
    if event_name == "issues":
        if not action or action in ("opened", "reopened"):
            return EventMapping("issue", "created")
        return None
    if event_name == "issue_comment":
        if action and action != "created":
            return None
        is_pr = bool(_dict(doc.get("issue")).get("pull_request"))
        return EventMapping("merge_request" if is_pr else "issue", "commented")
    if event_name == "pull_request":
        if not action or action in ("opened", "reopened"):
            return EventMapping("merge_request", "created")
        if action in ("synchronize", "edited"):
            return EventMapping("merge_request", "updated")
        return None
    if event_name == "commit_comment":
        if action and action != "created":
            return None
        return EventMapping("commit", "commented")
    return None


def map_provider_event(provider: str, event_name: Optional[str], payload: Any) -> Optional[EventMapping]:
    p = str(provider or "").strip().lower()
    if p == "gitlab":
        return map_gitlab_event(event_name, payload)
    if p == "github":
        return map_github_event(event_name, payload)
    raise ValueError(f"unsupported provider: {provider}")


_MENTION_RE = re.compile(r"@[A-Za-z0-9][A-Za-z0-9_-]*")


def normalize_mention_handle(value: Any) -> str:
    """``"@Review Bot"`` -> ``"review-bot"``; empty string when nothing usable remains."""
    raw = "" if value is None else str(value)
    handle = raw.strip()
    if handle.startswith("@"):
        handle = handle[1:].strip()
    if not handle:
        return ""
    handle = handle.lower()
    handle = re.sub(r"\s+", "-", handle)
    handle = re.sub(r"[^a-z0-9_-]", "-", handle)
    handle = re.sub(r"-+", "-", handle)
    return handle.strip("-_")


def _dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _comment_body(doc: Dict[str, Any]) -> str:
    note = _dict(doc.get("object_attributes")).get("note")
    if isinstance(note, str):
        return note
    comment = _dict(doc.get("comment"))
    return _text(comment.get("body")) or _text(comment.get("body_text"))


def _branch_name(event_key: str, doc: Dict[str, Any]) -> str:
    if event_key == "commit":
        ref = doc.get("ref")
        if isinstance(ref, str) and ref.startswith("refs/heads/"):
            return ref[len("refs/heads/"):]
        return _text(ref)
    if event_key == "merge_request":
        target = _dict(doc.get("object_attributes")).get("target_branch")
        if not isinstance(target, str):
            target = _dict(doc.get("merge_request")).get("target_branch")
        if isinstance(target, str):
            return target.strip()
        base = _dict(_dict(doc.get("pull_request")).get("base")).get("ref")
        return base.strip() if isinstance(base, str) else ""
    return ""


def _title_and_body(primary: Dict[str, Any], secondary: Dict[str, Any]) -> str:
    title = _text(primary.get("title")) or _text(secondary.get("title"))
    body = primary.get("description")
    if not isinstance(body, str):
        body = _text(secondary.get("body"))
    return "\n\n".join(p for p in (title, body) if p).strip()


def _text_all(event_key: str, sub_type: str, doc: Dict[str, Any]) -> str:
    comment = _comment_body(doc)
    if sub_type == "commented" and comment.strip():
        return comment
    if event_key == "issue":
        gitlab = _dict(doc.get("object_attributes")) or _dict(doc.get("issue"))
        return _title_and_body(gitlab, _dict(doc.get("issue")))
    if event_key == "merge_request":
        gitlab = _dict(doc.get("object_attributes")) or _dict(doc.get("merge_request"))
        return _title_and_body(gitlab, _dict(doc.get("pull_request")))
    if event_key == "commit":
        lines: List[str] = []
        for commit in doc.get("commits") if isinstance(doc.get("commits"), list) else []:
            c = _dict(commit)
            msg = c.get("title") if c.get("title") is not None else c.get("message")
            if isinstance(msg, str) and msg.split("\n")[0].strip():
                lines.append(msg.split("\n")[0].strip())
        return "\n".join(lines).strip()
    return ""


def _assignees(doc: Dict[str, Any]) -> List[str]:
    gitlab_issue = _dict(doc.get("object_attributes")) or _dict(doc.get("issue"))
    github_issue = _dict(doc.get("issue"))
    raw = doc.get("assignees")
    if raw is None:
        raw = gitlab_issue.get("assignees")
    if raw is None:
        raw = github_issue.get("assignees")
    people: List[Any] = list(raw) if isinstance(raw, list) else []
    single = gitlab_issue.get("assignee") or github_issue.get("assignee") or doc.get("assignee")
    if single:
        people.append(single)
    out: List[str] = []
    for person in people:
        p = _dict(person)
        ident = p.get("username") or p.get("login") or p.get("name") or p.get("id")
        if isinstance(ident, bool) or not isinstance(ident, (str, int)):
            continue
        value = str(ident).strip().lower()
        if value:
            out.append(value)
    return out


def _mentions(doc: Dict[str, Any], comment: str) -> List[str]:
    from_payload = doc.get("__mentions") if isinstance(doc.get("__mentions"), list) else []
    from_text = _MENTION_RE.findall(comment)
    out: List[str] = []
    for m in [*from_payload, *from_text]:
        value = str(m).strip().lower()
        if value:
            out.append(value)
    return out


def _mentioned_robot_ids(mentions: Sequence[str], robots: Iterable[RepoRobot]) -> List[str]:
    handle_to_ids: Dict[str, List[str]] = {}
    for robot in robots:
        for candidate in (robot.name, robot.repo_token_username):
            handle = normalize_mention_handle(candidate)
            if not handle:
                continue
            ids = handle_to_ids.setdefault(handle, [])
            if robot.id not in ids:
                ids.append(robot.id)
    hit: List[str] = []
    for mention in mentions:
        for robot_id in handle_to_ids.get(normalize_mention_handle(mention), []):
            if robot_id not in hit:
                hit.append(robot_id)
    return hit


def build_event_facts(
    event_key: str,
    payload: Any,
    *,
    sub_type: str = "",
    robots: Iterable[RepoRobot] = (),
) -> EventFacts:
    doc = _dict(payload)
    sub = str(sub_type or _text(doc.get("__subType"))).strip()
    comment = _comment_body(doc)
    mentions = _mentions(doc, comment)
    return EventFacts(
        {
            "event.type": event_key,
            "event.subType": sub,
            "branch.name": _branch_name(event_key, doc),
            "text.all": _text_all(event_key, sub, doc),
            "issue.assignees": _assignees(doc),
            "comment.body": comment,
            "comment.mentions": mentions,
            "comment.mentionRobotIds": _mentioned_robot_ids(mentions, robots),
        }
    )
