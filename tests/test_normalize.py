"""Tests for the shared normalization helpers."""

import logging

import pytest

from matrix_index.normalize import (
    decode_list,
    encode_item,
    encode_list,
    fold,
    normalize_term,
    pad_token,
    search_surface,
    search_text,
    tokenize,
    user_localpart,
)


def test_tokenize_lowercases_and_splits_on_punctuation():
    assert tokenize("Hello, World! see #Room and @Bob:matrix.org") == [
        "hello",
        "world",
        "see",
        "#room",
        "and",
        "@bob:matrix",
        "org",
    ]


def test_tokenize_keeps_unicode_words():
    assert tokenize("Привет мир") == ["привет", "мир"]


def test_tokenize_empty():
    assert tokenize(None) == []
    assert tokenize("   ") == []


@pytest.mark.parametrize(
    "values",
    [[], ["a"], ["hi", "alice", "team"], ["⭐", "🔥"], ["with space", 'quote"d', "b\\s"]],
)
def test_list_encoding_round_trips(values):
    assert decode_list(encode_list(values)) == values


def test_encoded_item_appears_inside_encoded_list():
    assert encode_item("image") in encode_list(["video", "image"])
    assert encode_item("⭐") in encode_list(["⭐"])


@pytest.mark.parametrize("raw", ["not json", "{}", '{"a": 1}', "[1, 2]", '"image"', ""])
def test_corrupt_lists_decode_to_empty(raw, caplog):
    with caplog.at_level(logging.WARNING):
        assert decode_list(raw, "tags") == []
    assert "tags" in caplog.text


def test_missing_list_decodes_to_empty():
    assert decode_list(None) == []


def test_search_surface_is_space_framed():
    assert search_surface(["hi", "Alice", "team"]) == " hi alice team "
    assert search_surface([]) == "  "


def test_padded_token_only_matches_whole_tokens():
    assert pad_token("Alice") in search_surface(["hi", "alice", "team"])
    assert pad_token("alice") not in search_surface(["hi", "alicia", "team"])
    assert pad_token("ice") not in search_surface(["alice"])


def test_normalize_term():
    assert normalize_term("  Hello ") == "hello"
    assert normalize_term("   ") is None
    assert normalize_term(None) is None


@pytest.mark.parametrize(
    "user_id,expected",
    [
        ("@Alice:matrix.org", "alice"),
        ("bob:example.com", "bob"),
        ("@carol", "carol"),
        ("@:matrix.org", ""),
        ("", ""),
        (None, ""),
    ],
)
def test_user_localpart(user_id, expected):
    assert user_localpart(user_id) == expected


def test_fold_lowercases_beyond_ascii():
    assert fold("Привет ÜBER Ёж") == "привет über ёж"
    assert fold(None) == ""


def test_search_text_joins_plain_values():
    text = search_text("Hello Мир", "@Bob:hs", ['say "hi"', "Work"], ["🔥", "👍"])
    assert text == 'hello мир @bob:hs say "hi" work 🔥 👍'
    assert "[" not in text
    assert search_text(None, "@a:hs", [], []) == " @a:hs  "
