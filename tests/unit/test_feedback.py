"""Tests for feedback validation and submission."""

from unittest.mock import MagicMock

import pytest

from tidymemo.feedback import build_feedback, submit_feedback
from tests.unit.fakes import ALICE


def test_build_feedback_record_shape() -> None:
    record = build_feedback("bug", "It crashed", contact="me@example.com", page_path="cli")

    assert record["category"] == "bug"
    assert record["message"] == "It crashed"
    assert record["contact"] == "me@example.com"
    assert record["page_path"] == "cli"
    assert record["user_agent"].startswith("tidymemo/")


def test_blank_contact_becomes_none() -> None:
    assert build_feedback("other", "hi", contact="")["contact"] is None


def test_blank_message_is_rejected() -> None:
    with pytest.raises(ValueError, match="Please enter your message"):
        build_feedback("bug", "   \n")


def test_unknown_category_is_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown feedback category"):
        build_feedback("praise", "great")


def test_submit_feedback_inserts_record() -> None:
    store = MagicMock()

    submit_feedback(store, "feature", "Dark mode please", identity=ALICE)

    record, identity = store.insert_feedback.call_args.args
    assert record["message"] == "Dark mode please"
    assert identity == ALICE


def test_submit_feedback_validates_before_sending() -> None:
    store = MagicMock()

    with pytest.raises(ValueError):
        submit_feedback(store, "bug", "")

    store.insert_feedback.assert_not_called()
