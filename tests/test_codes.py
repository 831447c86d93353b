import pytest

from livequiz.services import codes
from livequiz.services.codes import JOIN_CODE_ALPHABET, generate_unique_code, normalize_code, random_code


def test_random_code_uses_unambiguous_alphabet():
    for _ in range(200):
        code = random_code()
        assert len(code) == 6
        assert set(code) <= set(JOIN_CODE_ALPHABET)
    assert not set("01IO") & set(JOIN_CODE_ALPHABET)


@pytest.mark.asyncio
async def test_retries_until_free(monkeypatch):
    drawn = iter(["AAAAAA", "BBBBBB", "CCCCCC"])
    monkeypatch.setattr(codes, "random_code", lambda length=6: next(drawn))
    taken = {"AAAAAA", "BBBBBB"}

    async def is_taken(code):
        return code in taken

    assert await generate_unique_code(is_taken) == "CCCCCC"


@pytest.mark.asyncio
async def test_gives_up_when_every_code_is_taken():
    async def is_taken(code):
        return True

    with pytest.raises(RuntimeError):
        await generate_unique_code(is_taken)


def test_normalize_code():
    assert normalize_code("  geo123 ") == "GEO123"
    assert normalize_code(None) == ""
