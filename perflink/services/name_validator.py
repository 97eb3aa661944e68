"""Performer-name validation and canonicalization.

Candidate names arrive from wiki crawls and free-text title scans and are
full of UI chrome ("ランキング", "next"), category words ("素人", "企画") and
spacing drift (half-width vs full-width spaces, half-width katakana).  This
module decides which candidates are plausible person names and renders
them in one canonical form.

Every rule is data carried by :class:`~perflink.config.pipeline_config.ValidationConfig`
and :class:`~perflink.config.pipeline_config.FullNameConfig`; nothing is
hard-coded per call site.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Iterable

from perflink.config.pipeline_config import FullNameConfig, ValidationConfig

# Hiragana, katakana (incl. prolonged sound mark), CJK ideographs, the
# iteration mark, Latin letters, the middle dot and plain spaces.
_ALLOWED_CHARS = re.compile(r"^[぀-ゟ゠-ヿ一-龯々A-Za-z・ ]+$")
_NAME_CHAR = re.compile(r"[぀-ゟ゠-ヿ一-龯々A-Za-z]")
_KANJI_ONLY = re.compile(r"^[一-龯々]+$")

_ZERO_WIDTH = re.compile(r"[\u200b-\u200d\u2060\ufeff]")
# NFKC already folds U+3000 to U+0020; the class also covers tabs and NBSP.
_WHITESPACE_RUN = re.compile(r"\s+")


class NameValidator:
    """Configured validator/normalizer for performer-name candidates.

    Parameters
    ----------
    validation:
        Length bounds, denylist tokens and candidate split pattern.
    full_name:
        Thresholds for :meth:`is_full_name`.
    """

    def __init__(
        self,
        validation: ValidationConfig | None = None,
        full_name: FullNameConfig | None = None,
    ) -> None:
        self._validation = validation or ValidationConfig()
        self._full_name = full_name or FullNameConfig()
        self._denylist = tuple(t for t in self._validation.denylist if t)
        self._split = re.compile(self._validation.split_pattern)

    # -- canonical form -----------------------------------------------------

    @staticmethod
    def canonicalize(candidate: str | None) -> str:
        """Unify width, spacing and invisible characters without validating.

        NFKC folds half-width katakana and full-width Latin letters into
        their standard forms and the ideographic space into U+0020.
        """
        if not candidate:
            return ""
        text = unicodedata.normalize("NFKC", candidate)
        text = _ZERO_WIDTH.sub("", text)
        return _WHITESPACE_RUN.sub(" ", text).strip()

    def normalize_name(self, candidate: str | None) -> str | None:
        """Return the canonical rendering of *candidate*, or ``None`` if invalid.

        Idempotent: a returned name canonicalizes to itself and is valid.
        """
        canonical = self.canonicalize(candidate)
        if not canonical or not self.is_valid_name(canonical):
            return None
        return canonical

    # -- predicates ---------------------------------------------------------

    def is_valid_name(self, candidate: str | None) -> bool:
        """Return ``True`` when *candidate* is a plausible performer name.

        The candidate is checked as given; callers that want spacing drift
        forgiven should go through :meth:`normalize_name`.
        """
        if not candidate:
            return False
        name = candidate.strip()
        if not (self._validation.min_length <= len(name) <= self._validation.max_length):
            return False
        if not _ALLOWED_CHARS.match(name):
            return False
        if not _NAME_CHAR.search(name):
            return False
        return not any(token in name for token in self._denylist)

    def is_full_name(self, name: str | None) -> bool:
        """Precision heuristic gating free-text title matches.

        A spaced name ("さくら ゆい") is trusted; otherwise an all-kanji
        name needs ``kanji_min_length`` characters and anything else needs
        ``other_min_length``.  The thresholds are tunable configuration.
        """
        canonical = self.canonicalize(name)
        if not canonical:
            return False
        if self._full_name.accept_spaced and " " in canonical:
            return True
        if _KANJI_ONLY.match(canonical):
            return len(canonical) >= self._full_name.kanji_min_length
        return len(canonical) >= self._full_name.other_min_length

    # -- candidate strings --------------------------------------------------

    def split_candidates(self, raw: str | None) -> list[str]:
        """Split a multi-name string ("さくら、ゆい") into trimmed parts."""
        if not raw:
            return []
        return [part.strip() for part in self._split.split(raw) if part.strip()]

    def clean_candidates(self, raw_names: Iterable[str]) -> tuple[list[str], int]:
        """Split, normalize and de-duplicate *raw_names*.

        Returns
        -------
        tuple[list[str], int]
            The valid canonical names in first-seen order, and the number
            of rejected candidates.
        """
        accepted: dict[str, None] = {}
        rejected = 0
        for raw in raw_names:
            for part in self.split_candidates(raw):
                name = self.normalize_name(part)
                if name is None:
                    rejected += 1
                    continue
                accepted.setdefault(name, None)
        return list(accepted), rejected


_DEFAULT_VALIDATOR = NameValidator()


def is_valid_name(candidate: str | None) -> bool:
    """Validate with the default configuration."""
    return _DEFAULT_VALIDATOR.is_valid_name(candidate)


def normalize_name(candidate: str | None) -> str | None:
    """Normalize with the default configuration."""
    return _DEFAULT_VALIDATOR.normalize_name(candidate)
