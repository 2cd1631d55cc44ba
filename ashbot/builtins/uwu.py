"""uwu-speak text transform."""

import random

_REPLACEMENTS = [
    ("small", "smol"),
    ("cute", "kawaii"),
    ("love", "wuv"),
    ("Love", "Wuv"),
    ("LOVE", "WUV"),
    ("this", "dis"),
    ("This", "Dis"),
    ("the ", "da "),
    ("The ", "Da "),
    ("have", "haz"),
    ("ove", "uv"),
    ("th", "d"),
    ("Th", "D"),
]

_CHARS = str.maketrans({"r": "w", "l": "w", "R": "W", "L": "W"})

FACES = [" uwu", " owo", " >w<", " ^w^", " (◕ᴗ◕✿)", " ✧w✧", " ~nyaa"]


def uwuify(text: str, rng: random.Random | None = None) -> str:
    """
    Transform text into uwu-speak.

    Word substitutions run first, then r/l become w, every fourth word
    starting with a letter gets a stutter, and a random face is
    appended.
    """
    result = text
    for old, new in _REPLACEMENTS:
        result = result.replace(old, new)
    result = result.translate(_CHARS)

    words = result.split()
    if words:
        for i, word in enumerate(words):
            if i % 4 == 0 and len(word) > 1 and word[0].isascii() and word[0].isalpha():
                words[i] = f"{word[0]}-{word}"
        result = " ".join(words)

    return result + (rng or random).choice(FACES)
