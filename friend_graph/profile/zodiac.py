"""
Zodiac affinity between two roster entries.

Scale 1-5:
  5  listed as compatible
  4  same element
  3  complementary element (Fire/Air, Earth/Water)
  2  neutral element (Fire/Earth, Air/Water)
  1  anything else
Unknown first sign scores 0.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class ZodiacSign:
    name: str
    symbol: str
    element: str
    compatible: tuple[str, ...]


SIGNS: dict[str, ZodiacSign] = {s.name: s for s in [
    ZodiacSign("aries", "♈", "Fire", ("leo", "sagittarius", "gemini", "aquarius")),
    ZodiacSign("taurus", "♉", "Earth", ("virgo", "capricorn", "cancer", "pisces")),
    ZodiacSign("gemini", "♊", "Air", ("libra", "aquarius", "aries", "leo")),
    ZodiacSign("cancer", "♋", "Water", ("scorpio", "pisces", "taurus", "virgo")),
    ZodiacSign("leo", "♌", "Fire", ("aries", "sagittarius", "gemini", "libra")),
    ZodiacSign("virgo", "♍", "Earth", ("taurus", "capricorn", "cancer", "scorpio")),
    ZodiacSign("libra", "♎", "Air", ("gemini", "aquarius", "leo", "sagittarius")),
    ZodiacSign("scorpio", "♏", "Water", ("cancer", "pisces", "virgo", "capricorn")),
    ZodiacSign("sagittarius", "♐", "Fire", ("aries", "leo", "libra", "aquarius")),
    ZodiacSign("capricorn", "♑", "Earth", ("taurus", "virgo", "scorpio", "pisces")),
    ZodiacSign("aquarius", "♒", "Air", ("gemini", "libra", "aries", "sagittarius")),
    ZodiacSign("pisces", "♓", "Water", ("cancer", "scorpio", "taurus", "capricorn")),
]}

COMPLEMENTARY = {"Fire": "Air", "Air": "Fire", "Earth": "Water", "Water": "Earth"}
NEUTRAL = {"Fire": "Earth", "Earth": "Fire", "Air": "Water", "Water": "Air"}


def lookup(sign: str):
    if not sign:
        return None
    return SIGNS.get(sign.strip().lower())


def zodiac_affinity(sign_a: str, sign_b: str) -> int:
    a = lookup(sign_a)
    if a is None:
        return 0
    b_name = (sign_b or "").strip().lower()
    if b_name in a.compatible:
        return 5
    b = lookup(b_name)
    if b is None:
        return 1
    if a.element == b.element:
        return 4
    if COMPLEMENTARY[a.element] == b.element:
        return 3
    if NEUTRAL[a.element] == b.element:
        return 2
    return 1
