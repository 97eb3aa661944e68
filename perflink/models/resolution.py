"""Result values of a single product resolution.

"No match" is a normal outcome, so the resolver returns a :class:`NotFound`
value instead of raising; callers branch with ``isinstance`` or the
``found`` flag.
"""

from __future__ import annotations

from typing import Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Found(BaseModel):
    """Candidates recovered for a code.

    Attributes
    ----------
    names:
        Validated canonical names, in source order.
    source:
        The index that produced them.
    variant:
        The code rendering that matched.
    from_cache:
        ``True`` when served from the lookup cache, ``False`` for a live query.
    rejected:
        Number of raw candidates dropped by the name validator.
    """

    model_config = ConfigDict(frozen=True)

    found: Literal[True] = True
    names: list[str] = Field(min_length=1)
    source: str
    variant: str
    from_cache: bool = True
    rejected: int = 0


class NotFound(BaseModel):
    """No source yielded a valid candidate for any variant."""

    model_config = ConfigDict(frozen=True)

    found: Literal[False] = False
    variants_tried: list[str] = Field(default_factory=list)
    live_queries: int = 0
    rejected: int = 0


Resolution = Union[Found, NotFound]


class LinkResult(BaseModel):
    """Outcome of one product/performer link call."""

    model_config = ConfigDict(frozen=True)

    product_id: int
    performer_id: int
    created: bool


class TitleMatch(BaseModel):
    """A performer name recovered from a product title."""

    model_config = ConfigDict(frozen=True)

    name: str
    method: Literal["bracket", "cast_label", "known_name"]
