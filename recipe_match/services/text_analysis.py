# =========================
# FILE: recipe_match/services/text_analysis.py
# (analysis chain shared by index and query: fold -> stop -> stem -> synonyms)
# =========================
from __future__ import annotations

import re
import unicodedata
from typing import Dict, List

from recipe_match.domain.entities import singularize

_WORD_RE = re.compile(r"[0-9]+|[a-z]+(?:[-'][a-z]+)*")

STOP_WORDS = frozenset(
    """
    a an and are as at be by for from has have in into is it its of on or
    that the their this to was were will with without your you my our
    some any very fresh
    """.split()
)

# alias -> canonical, both sides in stemmed form.
# Declared explicitly; nothing here is inferred from data.
SYNONYMS: Dict[str, str] = {
    "green onion": "scallion",
    "spring onion": "scallion",
    "cilantro": "coriander",
    "aubergine": "eggplant",
    "courgette": "zucchini",
    "capsicum": "bell pepper",
    "garbanzo bean": "chickpea",
    "garbanzo": "chickpea",
    "prawn": "shrimp",
    "rocket": "arugula",
    "icing sugar": "powdered sugar",
    "confectioner sugar": "powdered sugar",
    "minced beef": "ground beef",
    "beef mince": "ground beef",
    "double cream": "heavy cream",
    "corn starch": "cornstarch",
    "cornflour": "cornstarch",
    "chili pepper": "chili",
    "chilli": "chili",
    "caster sugar": "superfine sugar",
}

# longest alias first so "garbanzo bean" wins over "garbanzo"
_SYNONYM_RE = re.compile(
    r"\b(" + "|".join(re.escape(k) for k in sorted(SYNONYMS, key=len, reverse=True)) + r")\b"
)


def _strip_accents(s: str) -> str:
    s = unicodedata.normalize("NFD", s)
    return "".join(ch for ch in s if unicodedata.category(ch) != "Mn")


def fold(text: str) -> str:
    """Lowercase, drop accents and punctuation, squeeze whitespace."""
    t = _strip_accents((text or "").lower().strip())
    t = re.sub(r"[^0-9a-z\s\-']", " ", t)
    return re.sub(r"\s+", " ", t).strip()


def apply_synonyms(text: str) -> str:
    return _SYNONYM_RE.sub(lambda m: SYNONYMS[m.group(1)], text)


def analyze(text: str) -> List[str]:
    """Tokens for indexing and querying. "Tomatoes" and "tomato" both give ["tomato"]."""
    words = [w for w in _WORD_RE.findall(fold(text)) if w not in STOP_WORDS]
    stemmed = " ".join(singularize(w) for w in words)
    return apply_synonyms(stemmed).split()


def analyze_many(texts) -> List[str]:
    out: List[str] = []
    for t in texts:
        out.extend(analyze(t))
    return out


def canonical_term(text: str) -> str:
    """Folded term as used in cache fingerprints.

    Every scorer starts from `fold(term)`, so only case, accent, punctuation
    and whitespace variants may share a key. Inflection and synonyms may not:
    the fuzzy name score sees them differently.
    """
    return fold(text)


def char_ngram_preprocess(text: str) -> str:
    return apply_synonyms(fold(text))
