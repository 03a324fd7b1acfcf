"""Tests for AI prompt builders and the lenient output parsers."""

from __future__ import annotations

from jiralite.ai.prompts import (
    comment_summary_prompt,
    duplicates_prompt,
    label_prompt,
    parse_duplicates,
    parse_label_names,
    suggestion_prompt,
    summary_prompt,
)

ISSUES = [
    {"id": "a1", "title": "Login fails on Safari"},
    {"id": "b2", "title": "Signup slow"},
    {"id": "c3", "title": "Fix typo"},
    {"id": "d4", "title": "Refactor auth"},
]


class TestPrompts:
    def test_summary_embeds_description(self) -> None:
        assert "Cookies are blocked." in summary_prompt("Cookies are blocked.")

    def test_suggestion_embeds_title_and_description(self) -> None:
        prompt = suggestion_prompt("Login fails", "Cookies are blocked.")
        assert "Issue title: Login fails" in prompt
        assert "Issue description: Cookies are blocked." in prompt

    def test_comment_summary_separates_comments(self) -> None:
        prompt = comment_summary_prompt(["Alice: one", "Bob: two"])
        assert "Alice: one\n\n---\n\nBob: two" in prompt

    def test_label_prompt_lists_names_and_cap(self) -> None:
        prompt = label_prompt("Crash", "", ["bug", "ui"], max_labels=3)
        assert "at most 3 labels" in prompt
        assert "Existing labels: bug, ui" in prompt

    def test_duplicates_prompt_numbers_issues(self) -> None:
        prompt = duplicates_prompt("Safari login", ISSUES[:2], max_results=3)
        assert "1. [a1] Login fails on Safari" in prompt
        assert "2. [b2] Signup slow" in prompt


class TestParseLabelNames:
    def test_keeps_known_names_in_order(self) -> None:
        assert parse_label_names("ui, bug, feature", ["bug", "ui", "docs"], limit=3) == ["ui", "bug"]

    def test_none_answer(self) -> None:
        assert parse_label_names("None.", ["bug"], limit=3) == []
        assert parse_label_names("   ", ["bug"], limit=3) == []

    def test_markers_and_duplicates_are_stripped(self) -> None:
        assert parse_label_names('- "bug"\n* bug\n- docs', ["bug", "docs"], limit=3) == ["bug", "docs"]

    def test_limit(self) -> None:
        assert parse_label_names("a, b, c, d", ["a", "b", "c", "d"], limit=3) == ["a", "b", "c"]


class TestParseDuplicates:
    def test_extracts_array_from_chatter(self) -> None:
        text = 'Sure! Here you go:\n```json\n[{"id": "a1", "similarity": "high"}]\n```'
        assert parse_duplicates(text, ISSUES, limit=3) == [{"id": "a1", "title": "Login fails on Safari", "similarity": "high"}]

    def test_unknown_ids_and_duplicates_are_dropped(self) -> None:
        text = '[{"id": "zz"}, {"id": "b2", "similarity": "medium"}, {"id": "b2"}, "junk"]'
        assert [d["id"] for d in parse_duplicates(text, ISSUES, limit=3)] == ["b2"]

    def test_limit(self) -> None:
        text = '[{"id": "a1"}, {"id": "b2"}, {"id": "c3"}, {"id": "d4"}]'
        found = parse_duplicates(text, ISSUES, limit=3)
        assert [d["id"] for d in found] == ["a1", "b2", "c3"]
        assert all(d["similarity"] == "" for d in found)

    def test_malformed_output_is_empty(self) -> None:
        assert parse_duplicates("no idea", ISSUES, limit=3) == []
        assert parse_duplicates("[{'id': 'a1'}]", ISSUES, limit=3) == []
