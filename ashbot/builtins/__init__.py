"""
In-process command routines.

- uwuify: text transform
- yap: word-count leaderboard and rank guessing
- quote: random message from recent history
- knockknock: scripted joke exchange
"""

from ashbot.builtins.knockknock import JOKES, Joke, pick_joke
from ashbot.builtins.leaderboard import (
    GuessResult,
    Leaderboard,
    YapEntry,
    parse_yap_args,
    render_guess,
    render_top,
    start_of_today,
)
from ashbot.builtins.quote import Quote, random_quote, render_quote
from ashbot.builtins.uwu import uwuify

__all__ = [
    "JOKES",
    "Joke",
    "pick_joke",
    "GuessResult",
    "Leaderboard",
    "YapEntry",
    "parse_yap_args",
    "render_guess",
    "render_top",
    "start_of_today",
    "Quote",
    "random_quote",
    "render_quote",
    "uwuify",
]
