"""Tests for signed identity tokens."""

import pytest

from xoarena.errors import InvalidCredential
from xoarena.identity import Identity, SignedTokenVerifier, bearer_token


def test_issued_token_verifies():
    verifier = SignedTokenVerifier("secret")
    token = verifier.issue("42", "alice")
    assert verifier.verify(token) == Identity(user_id="42", display_name="alice")


@pytest.mark.parametrize("token", ["", "abc", "abc.def", "..."])
def test_garbage_is_rejected(token):
    with pytest.raises(InvalidCredential):
        SignedTokenVerifier("secret").verify(token)


def test_token_from_other_secret_is_rejected():
    token = SignedTokenVerifier("other").issue("42", "alice")
    with pytest.raises(InvalidCredential):
        SignedTokenVerifier("secret").verify(token)


def test_bearer_header_parsing():
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("basic abc") is None
    assert bearer_token(None) is None


@pytest.mark.parametrize("token", ["café.sig", "abc.sïg", "ü"])
def test_non_ascii_tokens_are_rejected(token):
    with pytest.raises(InvalidCredential):
        SignedTokenVerifier("secret").verify(token)
