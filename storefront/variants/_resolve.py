"""
Variant resolution — pure functions over a product's variant list.

The caller holds the current selection; nothing here keeps state.
A partial or contradictory selection resolves to None, which is a normal
state while the shopper is still choosing.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence

from storefront.catalog._types import Variant

type Selection = Mapping[str, str]


def attribute_keys(variants: Sequence[Variant]) -> list[str]:
    """Every attribute key appearing in at least one variant, first-seen order."""
    keys: dict[str, None] = {}
    for v in variants:
        for key in v.attributes:
            keys.setdefault(key)
    return list(keys)


def attribute_values(variants: Sequence[Variant]) -> dict[str, list[str]]:
    """Every key with its distinct values, first-seen order."""
    values: dict[str, dict[str, None]] = {}
    for v in variants:
        for key, value in v.attributes.items():
            values.setdefault(key, {}).setdefault(value)
    return {key: list(vals) for key, vals in values.items()}


def available_values(
    variants: Sequence[Variant],
    selection: Selection,
    key: str,
) -> Iterator[str]:
    """
    Lazily yield the values of `key` still selectable without contradiction.

    A value is available when some variant matches the selection with `key`
    fixed to it. A currently selected key yields only its own value, so the
    shopper can click it again to deselect.
    """
    if key in selection:
        yield selection[key]
        return

    seen: set[str] = set()
    for candidate in attribute_values(variants).get(key, []):
        if candidate in seen:
            continue
        trial = {**selection, key: candidate}
        if any(v.matches(trial) for v in variants):
            seen.add(candidate)
            yield candidate


def available_attributes(
    variants: Sequence[Variant],
    selection: Selection,
) -> dict[str, list[str]]:
    """available_values for every attribute key."""
    return {
        key: list(available_values(variants, selection, key))
        for key in attribute_keys(variants)
    }


def _matching(variants: Sequence[Variant], selection: Selection) -> list[Variant]:
    return [v for v in variants if v.matches(selection)]


def is_complete(variants: Sequence[Variant], selection: Selection) -> bool:
    """
    True iff every attribute key has a value and exactly one variant matches.

    A product without variants is trivially complete.
    """
    if not variants:
        return True
    if any(key not in selection for key in attribute_keys(variants)):
        return False
    return len(_matching(variants, selection)) == 1


def resolve(variants: Sequence[Variant], selection: Selection) -> Variant | None:
    """
    The unique variant for a complete selection, else None.

    With zero variants this is also None: base product pricing/stock applies.
    """
    if not variants or not is_complete(variants, selection):
        return None
    return _matching(variants, selection)[0]


def toggle(selection: Selection, key: str, value: str) -> dict[str, str]:
    """New selection with key=value set, or removed if it was already selected."""
    updated = dict(selection)
    if updated.get(key) == value:
        del updated[key]
    else:
        updated[key] = value
    return updated


def default_variant(variants: Sequence[Variant]) -> Variant | None:
    """The is_default variant, else the first one, else None."""
    for v in variants:
        if v.is_default:
            return v
    return variants[0] if variants else None


__all__ = (
    "Selection",
    "attribute_keys",
    "attribute_values",
    "available_values",
    "available_attributes",
    "is_complete",
    "resolve",
    "toggle",
    "default_variant",
)
