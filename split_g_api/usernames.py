import random

ADJECTIVES = [
    "Creamy", "Velvet", "Dark", "Smooth", "Frothy", "Roasted", "Silky",
    "Malty", "Stout", "Toasty", "Golden", "Foamy", "Rich", "Mellow",
    "Bold", "Hoppy", "Settled", "Perfect", "Patient", "Dublin",
]

NOUNS = [
    "Pint", "Harp", "Pourer", "Barrel", "Tap", "Head", "Split", "Keg",
    "Publican", "Toucan", "Cellar", "Gate", "Liffey", "Shamrock",
    "Barman", "Tankard", "Session", "Hop", "Brewer", "Stoutie",
]


def generate_beer_username(rng=random):
    """Random pub-themed display name, e.g. ``CreamyHarp42``."""
    return f"{rng.choice(ADJECTIVES)}{rng.choice(NOUNS)}{rng.randint(10, 999)}"
