from __future__ import annotations

from dataclasses import dataclass, field

from querydesk.models.remote import ResultItem


@dataclass(frozen=True, slots=True)
class SearchState:
    """Latest search outcome kept by the session for the presentation layer."""

    primary: tuple[ResultItem, ...] = ()
    secondary: tuple[ResultItem, ...] = ()
    keywords: tuple[str, ...] = field(default_factory=tuple)

    @property
    def all_results(self) -> tuple[ResultItem, ...]:
        return merge_results(self.primary, self.secondary)

    def to_dict(self) -> dict:
        return {
            "results": [item.model_dump() for item in self.all_results],
            "primary_count": len(self.primary),
            "secondary_count": len(self.secondary),
            "keywords": list(self.keywords),
        }


def merge_results(*sources: tuple[ResultItem, ...] | list[ResultItem] | None) -> tuple[ResultItem, ...]:
    """Concatenate result lists in source order and sort by descending score.

    The sort is stable, so items with equal scores keep their relative
    position from the concatenated source lists.
    """
    merged: list[ResultItem] = []
    for source in sources:
        if source:
            merged.extend(source)
    return tuple(sorted(merged, key=lambda item: -item.score))
