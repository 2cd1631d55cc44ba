"""Knock-knock jokes for the scripted exchange."""

import random
from dataclasses import dataclass


@dataclass(frozen=True)
class Joke:
    """A knock-knock joke."""
    name: str
    punchline: str


JOKES = [
    Joke("Lettuce", "Lettuce in, it's cold out here!"),
    Joke("Atch", "Bless you!"),
    Joke("Nobel", "Nobel, that's why I knocked!"),
    Joke("Cow says", "No, a cow says moo!"),
    Joke("Interrupting cow", "MOO!"),
    Joke("Who", "‼️ That's the sound of da police ‼️"),
    Joke("Boo", "Don't cry, it's just a joke!"),
    Joke("Tank", "You're welcome!"),
    Joke("Broken pencil", "Never mind, it's pointless."),
    Joke("Dishes", "Dishes the police, open up!"),
    Joke("Honey bee", "Honey bee a dear and open the door!"),
    Joke("Ice cream", "Ice cream every time I see a scary movie!"),
    Joke("Olive", "Olive you and I don't care who knows it!"),
    Joke("Harry", "Harry up and answer the door!"),
    Joke("Canoe", "Canoe help me with my homework?"),
    Joke("Annie", "Annie thing you can do, I can do better!"),
    Joke("Woo", "Don't get so excited, it's just a joke!"),
    Joke("Déja", "Knock knock."),
    Joke("Spell", "W-H-O"),
    Joke("Yukon", "Yukon say that again!"),
    Joke("Alpaca", "Alpaca the suitcase, you load the car!"),
    Joke("Needle", "Needle little help getting in!"),
    Joke("Butch", "Butch your arms around me!"),
    Joke("Mikey", "Mikey doesn't fit in the lock!"),
    Joke("Iva", "Iva sore hand from knocking!"),
    Joke("Figs", "Figs the doorbell, it's broken!"),
    Joke("Ketchup", "Ketchup with me and I'll tell you!"),
    Joke("Wooden shoe", "Wooden shoe like to hear another joke?"),
    Joke("Owls say", "Yes, they do!"),
    Joke("To", "To whom."),
    Joke("Banana", "Banana split, let's get out of here!"),
    Joke("Justin", "Justin time for dinner!"),
    Joke("Water", "Water you doing in my house?"),
    Joke("Nana", "Nana your business!"),
    Joke("Doris", "Doris locked, that's why I'm knocking!"),
    Joke("Europe", "Europe next to open the door!"),
    Joke("Abby", "Abby birthday to you!"),
    Joke("Luke", "Luke through the peephole and find out!"),
    Joke("Ash", "Ash you a question, but you might not like it!"),
    Joke("Cargo", "Car go beep beep, vroom vroom!"),
    Joke("Howard", "Howard I know? I forgot!"),
    Joke("Wendy", "Wendy wind blows the cradle will rock!"),
    Joke("Noah", "Noah good place to eat around here?"),
    Joke("Al", "Al give you a hug if you open this door!"),
    Joke("Cows go", "No they don't, cows go moo!"),
    Joke("Stopwatch", "Stopwatch you're doing and open the door!"),
    Joke("Radio", "Radio not, here I come!"),
]

OPENER = "Knock knock! (reply to this message)"


def pick_joke(rng: random.Random | None = None) -> Joke:
    """Pick a random joke."""
    return (rng or random).choice(JOKES)


def opener_line(label: str) -> str:
    return f"{label}{OPENER}"


def name_line(joke: Joke, label: str) -> str:
    return f"{label}{joke.name} (reply to this message)"


def punchline_line(joke: Joke, label: str) -> str:
    return f"{label}{joke.punchline}"
