"""Prompt builders for each AI feature, plus the lenient parsers for list output."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from jiralite.types.core import DuplicateCandidate

NO_LABELS_ANSWER = "none"
_JSON_ARRAY = re.compile(r"\[[\s\S]*\]")
_LIST_MARKERS = "-*• \t\"'`"


def summary_prompt(description: str) -> str:
    return (
        "You are the assistant of an issue tracker. Summarize the following issue "
        "description in 2-4 concise sentences.\n\n"
        f"Issue description:\n{description}\n\n"
        "Summary:"
    )


def suggestion_prompt(title: str, description: str) -> str:
    return (
        "You are an experienced software engineer. Propose a concrete approach and "
        "the steps needed to resolve the following issue.\n\n"
        f"Issue title: {title}\n"
        f"Issue description: {description}\n\n"
        "Approach:"
    )


def comment_summary_prompt(comments: Sequence[str]) -> str:
    joined = "\n\n---\n\n".join(comments)
    return (
        "You are the assistant of an issue tracker. Summarize the discussion in the "
        "following comments in 3-5 sentences, and list any decisions that were made.\n\n"
        f"Comments:\n{joined}\n\n"
        "Summary:"
    )


def label_prompt(title: str, description: str, label_names: Iterable[str], *, max_labels: int) -> str:
    return (
        f"Pick at most {max_labels} labels for the issue below from the existing label list. "
        f'Answer with label names separated by commas only. If none fit, answer "{NO_LABELS_ANSWER}".\n\n'
        f"Existing labels: {', '.join(label_names)}\n"
        f"Issue title: {title}\n"
        f"Issue description: {description or NO_LABELS_ANSWER}\n\n"
        "Labels:"
    )


def duplicates_prompt(title: str, issues: Sequence[Mapping[str, Any]], *, max_results: int) -> str:
    listing = "\n".join(f"{idx}. [{issue['id']}] {issue['title']}" for idx, issue in enumerate(issues, start=1))
    return (
        "Find existing issues that look like duplicates of the new issue. Answer with a JSON "
        f'array of objects with the issue "id" and a "similarity" of "high" or "medium", at most '
        f"{max_results} entries. Answer [] if nothing is similar.\n"
        'Example: [{"id": "abc123", "similarity": "high"}]\n\n'
        f"New issue title: {title}\n\n"
        f"Existing issues:\n{listing}\n\n"
        "JSON:"
    )


def parse_label_names(text: str, known: Iterable[str], *, limit: int) -> list[str]:
    """Keep only names that exist in *known*, in answer order, deduplicated."""
    answer = text.strip()
    if not answer or answer.lower().strip(".") == NO_LABELS_ANSWER:
        return []
    known_set = set(known)
    picked: list[str] = []
    for raw in re.split(r"[,\n]", answer):
        name = raw.strip(_LIST_MARKERS)
        if name in known_set and name not in picked:
            picked.append(name)
        if len(picked) >= limit:
            break
    return picked


def parse_duplicates(
    text: str,
    issues: Sequence[Mapping[str, Any]],
    *,
    limit: int,
) -> list[DuplicateCandidate]:
    """Parse the first JSON array in *text*; malformed output yields ``[]``."""
    match = _JSON_ARRAY.search(text)
    if match is None:
        return []
    try:
        parsed = json.loads(match.group(0))
    except json.JSONDecodeError:
        return []
    if not isinstance(parsed, list):
        return []
    titles = {str(i["id"]): str(i.get("title") or "") for i in issues}
    found: list[DuplicateCandidate] = []
    for entry in parsed:
        if not isinstance(entry, dict):
            continue
        issue_id = entry.get("id")
        if not isinstance(issue_id, str) or not titles.get(issue_id):
            continue
        if any(d["id"] == issue_id for d in found):
            continue
        similarity = entry.get("similarity")
        found.append(
            DuplicateCandidate(
                id=issue_id,
                title=titles[issue_id],
                similarity=similarity if isinstance(similarity, str) else "",
            )
        )
        if len(found) >= limit:
            break
    return found
