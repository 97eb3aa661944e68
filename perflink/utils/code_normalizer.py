"""Product-code normalization: ASP-native code -> ordered search variants.

Every affiliate source (ASP) renders the same title code differently:

    FANZA   gvh00802, FANZA-gvh00802, h_1234abc00123
    MGS     425bdsx-01902, 300MIUM-123
    DTI     112918_776, CARIBBEAN-112918_776
    TMP     4037-PPV2543

Wiki indexes on the other hand are keyed on the "shelf" rendering
(``GVH-802``, ``BDSX-1902``).  :func:`variants` bridges the two by producing
every plausible canonical rendering, most specific first.

The conversions are expressed as an ordered table of :class:`VariantRule`
objects (a compiled matcher plus a transform).  Supporting a new ASP
convention means appending a rule to the table, not editing control flow,
and each rule can be unit-tested in isolation through :meth:`VariantRule.apply`.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, Sequence

# ASP wrapper prefixes that ingestion prepends to native codes.  Stripped
# (when followed by "-") so the wrapped code is searched on its own.
DEFAULT_ASP_PREFIXES: tuple[str, ...] = (
    "FANZA",
    "MGS",
    "DUGA",
    "SOKMIL",
    "B10F",
    "FC2",
    "JAPANSKA",
    "CARIBBEANCOMPR",
    "CARIBBEAN",
    "1PONDO",
    "HEYZO",
    "10MUSUME",
    "PACOPACOMAMA",
    "H4610",
    "H0930",
    "C0930",
    "GACHINCO",
    "KIN8TENGOKU",
    "NYOSHIN",
    "HEYDOUGA",
    "X1X",
    "ENKOU55",
    "UREKKO",
    "XXXURABI",
    "TOKYOHOT",
    "TVDEAV",
)

# FANZA "h_<maker>" wrapper, e.g. H_1234ABC00123 -> ABC00123
_FANZA_H_PREFIX = re.compile(r"^H_\d+(?=[A-Z])")

# A stripped remainder is only kept when it still looks like a product code;
# "HEYZO-0463" must not degrade into the bare number "0463".
_LOOKS_LIKE_CODE = re.compile(r"[A-Z]|^\d+[-_]\d+$")

_SEPARATORS = re.compile(r"[-_\s]")
_LETTERS_DIGITS = re.compile(r"^(\d*[A-Z]+)(\d+)$")


def _strip_zeros(digits: str) -> str:
    return digits.lstrip("0") or "0"


@dataclass(frozen=True)
class VariantRule:
    """One ``(matcher, transform)`` entry of the normalization table.

    Attributes
    ----------
    name:
        Short identifier used in tests and debug logs.
    pattern:
        Anchored regex applied to an upper-cased, trimmed base code.
    transform:
        Receives the match and returns the renderings it implies, most
        likely first.
    """

    name: str
    pattern: re.Pattern[str]
    transform: Callable[[re.Match[str]], Sequence[str]]

    def apply(self, code: str) -> list[str]:
        match = self.pattern.match(code)
        if match is None:
            return []
        return list(self.transform(match))


# ---------------------------------------------------------------------------
# The rule table.  Order is priority: earlier rules emit more specific forms.
# ---------------------------------------------------------------------------

DEFAULT_RULES: tuple[VariantRule, ...] = (
    # SSIS00865 / GVH00802 / ABP-001 -> SSIS-865 / GVH-802 / ABP-1
    VariantRule(
        name="letters_digits",
        pattern=re.compile(r"^([A-Z]+)[-_]?(\d+)$"),
        transform=lambda m: [f"{m.group(1)}-{_strip_zeros(m.group(2))}"],
    ),
    # 425BDSX-01902 -> BDSX-01902, BDSX-1902 (studio/series marker dropped)
    VariantRule(
        name="numeric_prefix",
        pattern=re.compile(r"^(\d{2,3})([A-Z]+)[-_]?(\d+)$"),
        transform=lambda m: [
            f"{m.group(2)}-{m.group(3)}",
            f"{m.group(2)}-{_strip_zeros(m.group(3))}",
        ],
    ),
    # 300MIUM01359 -> 300MIUM-1359 (prefix kept, zeros stripped)
    VariantRule(
        name="numeric_prefix_kept",
        pattern=re.compile(r"^(\d{2,3}[A-Z]+)[-_]?(\d+)$"),
        transform=lambda m: [f"{m.group(1)}-{_strip_zeros(m.group(2))}"],
    ),
    # 4037-PPV2543 -> 4037-PPV2543, 4037PPV2543
    VariantRule(
        name="tmp_ppv",
        pattern=re.compile(r"^(\d+)[-_]?PPV(\d+)$"),
        transform=lambda m: [
            f"{m.group(1)}-PPV{m.group(2)}",
            f"{m.group(1)}PPV{m.group(2)}",
        ],
    ),
    # 112918_776 -> 112918_776, 112918-776, 112918776
    VariantRule(
        name="dti_serial",
        pattern=re.compile(r"^(\d+)[-_](\d+)$"),
        transform=lambda m: [
            f"{m.group(1)}_{m.group(2)}",
            f"{m.group(1)}-{m.group(2)}",
            f"{m.group(1)}{m.group(2)}",
        ],
    ),
)


def normalize_code_key(code: str) -> str:
    """Return the separator-free upper-case key used by the lookup cache.

    ``"gvh-802"``, ``"GVH_802"`` and ``"GVH802"`` all map to ``"GVH802"``.
    """
    if not code:
        return ""
    return _SEPARATORS.sub("", code.strip().upper())


def _hyphen_renderings(code: str) -> list[str]:
    """Return *code* followed by its hyphen-toggled rendering, if any."""
    if "-" in code:
        return [code, code.replace("-", "")]
    match = _LETTERS_DIGITS.match(code)
    if match:
        return [code, f"{match.group(1)}-{match.group(2)}"]
    return [code]


class CodeNormalizer:
    """Applies the prefix list and rule table to produce ordered variants.

    Instances are immutable and side-effect free; the module-level
    :func:`variants` uses a default instance.
    """

    def __init__(
        self,
        asp_prefixes: Iterable[str] = DEFAULT_ASP_PREFIXES,
        rules: Sequence[VariantRule] = DEFAULT_RULES,
    ) -> None:
        # Longest first so CARIBBEANCOMPR wins over CARIBBEAN.
        self._prefixes = tuple(
            sorted({p.strip().upper() for p in asp_prefixes if p.strip()}, key=len, reverse=True)
        )
        self._rules = tuple(rules)

    @property
    def rules(self) -> tuple[VariantRule, ...]:
        return self._rules

    def strip_prefix(self, code: str) -> str:
        """Remove one ASP wrapper prefix (``FANZA-``, ``H_1234``) from *code*."""
        stripped = _FANZA_H_PREFIX.sub("", code)
        if stripped != code:
            return stripped
        for prefix in self._prefixes:
            if code.startswith(prefix + "-"):
                remainder = code[len(prefix) + 1 :]
                if remainder and _LOOKS_LIKE_CODE.search(remainder):
                    return remainder
                return code
        return code

    def variants(self, asp_code: str | None) -> list[str]:
        """Return every plausible canonical rendering of *asp_code*.

        The result is an ordered set: the identity form comes first,
        followed by the prefix-stripped form, then rule outputs in table
        order, with each candidate immediately followed by its
        hyphen-present/hyphen-absent counterpart.  Never raises; an empty
        or non-string input yields an empty list.
        """
        if not isinstance(asp_code, str):
            return []
        identity = asp_code.strip().upper()
        if not identity:
            return []

        bases = [identity]
        stripped = self.strip_prefix(identity)
        if stripped != identity:
            bases.append(stripped)

        candidates: list[str] = list(bases)
        for rule in self._rules:
            for base in bases:
                candidates.extend(rule.apply(base))

        ordered: dict[str, None] = {}
        for candidate in candidates:
            for rendering in _hyphen_renderings(candidate):
                ordered.setdefault(rendering, None)
        return list(ordered)

    def product_variants(
        self,
        original_product_id: str | None,
        normalized_product_id: str | None = None,
    ) -> list[str]:
        """Variants for a product, original ASP code first, then the cross-ASP id."""
        ordered: dict[str, None] = {}
        for code in (original_product_id, normalized_product_id):
            for variant in self.variants(code):
                ordered.setdefault(variant, None)
        return list(ordered)


_DEFAULT_NORMALIZER = CodeNormalizer()


def variants(asp_code: str | None) -> list[str]:
    """Module-level shortcut for :meth:`CodeNormalizer.variants` with defaults."""
    return _DEFAULT_NORMALIZER.variants(asp_code)
