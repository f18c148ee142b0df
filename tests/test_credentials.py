import asyncio

import pytest

from bochi.ai.credentials import CredentialRotator, parse_keys
from bochi.errors import NoCredentialsAvailable


def test_parse_keys_drops_blanks():
    assert parse_keys(" a , ,b,") == ["a", "b"]
    assert parse_keys("") == []


def test_draw_is_round_robin():
    rot = CredentialRotator("Gemini", ["k1", "k2", "k3"])
    assert [rot.draw() for _ in range(4)] == ["k1", "k2", "k3", "k1"]


def test_replace_resets_cursor():
    rot = CredentialRotator("Gemini", ["k1", "k2"])
    rot.draw()
    rot.replace(["x", "y"])
    assert rot.draw() == "x"


def test_empty_rotator_raises():
    rot = CredentialRotator("OpenAI")
    assert not rot
    with pytest.raises(NoCredentialsAvailable):
        rot.draw()
    with pytest.raises(NoCredentialsAvailable):
        rot.peek_first()


def test_peek_first_does_not_rotate():
    rot = CredentialRotator("Gemini", ["k1", "k2"])
    assert rot.peek_first() == "k1"
    assert rot.draw() == "k1"


def test_masked_hides_the_middle():
    rot = CredentialRotator("Gemini", ["AIzaSyABCDEFGHIJ", "short"])
    assert rot.masked() == ["AIza…GHIJ", "****"]


@pytest.mark.asyncio
async def test_concurrent_draws_get_distinct_slots():
    rot = CredentialRotator("Gemini", ["k1", "k2", "k3"])

    async def one():
        await asyncio.sleep(0)
        return rot.draw()

    keys = await asyncio.gather(one(), one(), one())
    assert sorted(keys) == ["k1", "k2", "k3"]
