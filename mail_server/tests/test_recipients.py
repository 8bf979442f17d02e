"""Tests for recipient normalization."""
import pytest

from mail_server.recipients import RecipientError, normalize_recipients, to_graph_recipients


def test_none_and_blank_are_empty():
    assert normalize_recipients(None) == []
    assert normalize_recipients("") == []
    assert normalize_recipients("   ") == []


def test_list_is_stripped_and_deduplicated_in_order():
    assert normalize_recipients([" b@x.com", "a@x.com", "", "b@x.com"]) == ["b@x.com", "a@x.com"]


def test_json_encoded_list():
    assert normalize_recipients('["a@x.com", "b@x.com"]') == ["a@x.com", "b@x.com"]


def test_comma_and_semicolon_separated_string():
    assert normalize_recipients("a@x.com, b@x.com; c@x.com") == ["a@x.com", "b@x.com", "c@x.com"]


def test_malformed_json_raises():
    with pytest.raises(RecipientError, match="Malformed 'cc'"):
        normalize_recipients('["a@x.com"', "cc")


def test_non_string_entries_raise():
    with pytest.raises(RecipientError):
        normalize_recipients('["a@x.com", 5]')


def test_json_object_raises():
    with pytest.raises(RecipientError):
        normalize_recipients({"to": "a@x.com"})


def test_address_without_at_raises():
    with pytest.raises(RecipientError, match="Invalid email address"):
        normalize_recipients(["not-an-address"])


def test_graph_shape():
    assert to_graph_recipients(["a@x.com"]) == [{"emailAddress": {"address": "a@x.com"}}]
