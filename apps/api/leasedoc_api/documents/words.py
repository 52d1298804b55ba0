"""French amounts in words, as written in lease contracts."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Union

UNITS = [
    "zéro", "un", "deux", "trois", "quatre", "cinq", "six", "sept", "huit", "neuf",
    "dix", "onze", "douze", "treize", "quatorze", "quinze", "seize",
    "dix-sept", "dix-huit", "dix-neuf",
]
TENS = {2: "vingt", 3: "trente", 4: "quarante", 5: "cinquante", 6: "soixante"}


def _below_hundred(n: int, final: bool) -> str:
    if n < 20:
        return UNITS[n]
    tens, unit = divmod(n, 10)
    if tens < 7:
        if unit == 0:
            return TENS[tens]
        joiner = "-et-" if unit == 1 else "-"
        return TENS[tens] + joiner + UNITS[unit]
    if tens == 7:
        joiner = "-et-" if unit == 1 else "-"
        return "soixante" + joiner + UNITS[10 + unit]
    if tens == 8:
        if unit == 0:
            return "quatre-vingts" if final else "quatre-vingt"
        return "quatre-vingt-" + UNITS[unit]
    return "quatre-vingt-" + UNITS[10 + unit]


def _below_thousand(n: int, final: bool) -> str:
    hundreds, rest = divmod(n, 100)
    if hundreds == 0:
        return _below_hundred(rest, final)
    head = "cent" if hundreds == 1 else UNITS[hundreds] + " cent"
    if rest == 0:
        # "deux cents" but "deux cent mille"
        return head + "s" if hundreds > 1 and final else head
    return head + " " + _below_hundred(rest, final)


def number_to_words(n: int) -> str:
    """Spell a non-negative integer in French (1990 spelling reform not applied)."""
    if n < 0:
        raise ValueError("Only non-negative amounts can be spelled")
    if n == 0:
        return UNITS[0]

    parts = []
    billions, n = divmod(n, 1_000_000_000)
    millions, n = divmod(n, 1_000_000)
    thousands, rest = divmod(n, 1000)

    if billions:
        parts.append(_below_thousand(billions, True) + (" milliards" if billions > 1 else " milliard"))
    if millions:
        parts.append(_below_thousand(millions, True) + (" millions" if millions > 1 else " million"))
    if thousands:
        parts.append("mille" if thousands == 1 else _below_thousand(thousands, False) + " mille")
    if rest:
        parts.append(_below_thousand(rest, True))
    return " ".join(parts)


def amount_in_words(amount: Union[Decimal, int, float, str]) -> str:
    """Spell a euro amount, e.g. ``950.50`` -> "neuf cent cinquante euros et cinquante centimes"."""
    value = Decimal(str(amount)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    if value < 0:
        raise ValueError("Only non-negative amounts can be spelled")

    euros = int(value)
    cents = int((value - euros) * 100)

    currency = "euro" if euros <= 1 else "euros"
    # "un million d'euros"
    if euros >= 1_000_000 and euros % 1_000_000 == 0:
        words = f"{number_to_words(euros)} d'euros"
    else:
        words = f"{number_to_words(euros)} {currency}"

    if cents:
        words += f" et {number_to_words(cents)} {'centime' if cents == 1 else 'centimes'}"
    return words
