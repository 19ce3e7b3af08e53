"""
Brand mention detection in free text.
Matches a brand (or competitor) name and its common human-written variations,
with a per-match confidence that drops as the variant moves away from the canonical name.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field

from schemas import TextMatch

CORPORATE_SUFFIXES = (
    "inc",
    "incorporated",
    "llc",
    "ltd",
    "limited",
    "corp",
    "corporation",
    "co",
    "company",
    "gmbh",
    "plc",
)
DOMAIN_SUFFIXES = (".com", ".io", ".ai", ".co", ".net", ".org", ".app", ".dev")
# Bare names that read as ordinary words once the domain suffix is gone (Monday.com, Box.com).
COMMON_WORDS = frozenset(
    {
        "monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday",
        "january", "february", "march", "april", "may", "june", "july", "august",
        "september", "october", "november", "december",
        "box", "home", "news", "shop", "store", "mail", "market", "search", "open", "best", "free",
    }
)

EXACT_CONFIDENCE = 1.0
SPACING_CONFIDENCE = 0.9
STRIPPED_CONFIDENCE = 0.8
CASE_MISMATCH_PENALTY = 0.05


class BrandDetectionOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    case_sensitive: bool = False
    whole_word_only: bool = True
    include_variations: bool = True


class BrandDetectionResult(BaseModel):
    mentioned: bool = False
    matches: list[TextMatch] = Field(default_factory=list)


DEFAULT_OPTIONS = BrandDetectionOptions()


def _strip_suffixes(name: str) -> str:
    """'Acme, Inc.' -> 'Acme'; 'Zentro.io' -> 'Zentro'; 'Monday.com' is kept whole."""
    stripped = name.strip()
    lower = stripped.lower()
    for tld in DOMAIN_SUFFIXES:
        if lower.endswith(tld) and len(stripped) > len(tld):
            if lower[: -len(tld)] not in COMMON_WORDS:
                stripped = stripped[: -len(tld)]
            break
    words = stripped.rstrip(".").split()
    if len(words) > 1 and words[-1].rstrip(".,").lower() in CORPORATE_SUFFIXES:
        words = words[:-1]
    return " ".join(words).rstrip(",").strip()


def generate_name_variations(name: str) -> list[tuple[str, float]]:
    """Return (variant, confidence) pairs, canonical first, no duplicates (case-insensitive)."""
    base = " ".join(name.split())
    variations: list[tuple[str, float]] = []
    seen: set[str] = set()

    def add(variant: str, confidence: float, min_length: int = 2) -> None:
        variant = " ".join(variant.split())
        key = variant.lower()
        if len(variant) < min_length or key in seen:
            return
        seen.add(key)
        variations.append((variant, confidence))

    # the canonical name is always kept, even a single character ("X")
    add(base, EXACT_CONFIDENCE, min_length=1)

    parts = [p for p in re.split(r"[\s\-_]+", base) if p]
    if len(parts) > 1:
        add("".join(parts), SPACING_CONFIDENCE)
        add("-".join(parts), SPACING_CONFIDENCE)
        add(" ".join(parts), SPACING_CONFIDENCE)
    if "&" in base:
        add(base.replace("&", " and "), SPACING_CONFIDENCE)
    if re.search(r"\sand\s", base, flags=re.IGNORECASE):
        add(re.sub(r"\s+and\s+", " & ", base, flags=re.IGNORECASE), SPACING_CONFIDENCE)

    stripped = _strip_suffixes(base)
    if len(stripped) >= 3 and stripped.lower() != base.lower():
        add(stripped, STRIPPED_CONFIDENCE)
    return variations


def _variant_pattern(variant: str, whole_word_only: bool) -> str:
    body = r"\s+".join(re.escape(piece) for piece in variant.split())
    if whole_word_only:
        return rf"(?<!\w){body}(?!\w)"
    return body


def detect_brand_mention(
    text: str,
    brand_name: str,
    options: BrandDetectionOptions | None = None,
) -> BrandDetectionResult:
    """Find every mention of brand_name in text. Overlapping weaker variants are dropped."""
    options = options or DEFAULT_OPTIONS
    if not text or not (brand_name or "").strip():
        return BrandDetectionResult()

    if options.include_variations:
        variants = generate_name_variations(brand_name)
    else:
        variants = [(" ".join(brand_name.split()), EXACT_CONFIDENCE)]
    flags = 0 if options.case_sensitive else re.IGNORECASE

    accepted: list[tuple[int, int, TextMatch]] = []
    for variant, confidence in variants:
        for m in re.finditer(_variant_pattern(variant, options.whole_word_only), text, flags):
            start, end = m.span()
            if any(start < e and s < end for s, e, _ in accepted):
                continue
            matched = m.group(0)
            score = confidence if matched == variant else confidence - CASE_MISMATCH_PENALTY
            accepted.append((start, end, TextMatch(text=matched, index=start, confidence=round(score, 2))))

    matches = [match for _, _, match in sorted(accepted, key=lambda a: a[0])]
    return BrandDetectionResult(mentioned=bool(matches), matches=matches)


def detect_multiple_brands(
    text: str,
    names: list[str],
    options: BrandDetectionOptions | None = None,
) -> dict[str, BrandDetectionResult]:
    """Detect each name independently; keys keep the input order."""
    return {name: detect_brand_mention(text, name, options) for name in names}
