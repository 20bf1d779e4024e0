import random

import pytest

from app.services.transformer import FUN_PREFIXES, FUN_SUFFIXES, transform


def test_transform_wraps_body():
    out = transform("Take your medicine", rng=random.Random(7))
    assert any(out.startswith(p + " ") for p in FUN_PREFIXES)
    assert any(out.endswith(s) for s in FUN_SUFFIXES)
    assert "take your medicine" in out


def test_transform_keeps_tail_verbatim():
    body = "Call Mom at 5PM re: TAXES"
    out = transform(body, rng=random.Random(1))
    assert body[1:] in out
    assert "call Mom" in out


def test_transform_is_deterministic_for_seeded_rng():
    assert transform("Water the plants", rng=random.Random(42)) == transform(
        "Water the plants", rng=random.Random(42)
    )


def test_single_character_body():
    out = transform("X", rng=random.Random(3))
    prefix = next(p for p in FUN_PREFIXES if out.startswith(p + " "))
    assert out[len(prefix) + 1] == "x"


@pytest.mark.parametrize("body", ["", "   "])
def test_empty_body_rejected(body):
    with pytest.raises(ValueError):
        transform(body)
