# backend/reservations/services/cascade.py
"""
Dependent ("cascading") selection menus.

A chain is an ordered list of CascadeLevel descriptors over a flat list of
base entities, e.g. dong → ho, or room → issue_category1 → issue_category2
→ issue_type. Options of a level are the distinct values visible once the
earlier levels are fixed; choosing a value at level k clears every level
after k.

Selections are immutable. `select()` returns a new Selection and never
touches the caller's one, so a render that reads a selection mid-update
always sees a consistent state.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence

from ..errors import CascadeInvalidSelection


def read_field(entity: Any, field: str) -> Any:
    """Read a field from a dict-like row or an object (ORM row, schema)."""
    if isinstance(entity, Mapping):
        return entity.get(field)
    return getattr(entity, field, None)


def _is_blank(value: Any) -> bool:
    return value is None or value == ""


@dataclass(frozen=True)
class CascadeLevel:
    """
    One level of a chain.

    `projection` overrides the default of reading `source_field`
    (or `key` when no source field is given) from each entity.
    """
    key: str
    source_field: str | None = None
    projection: Callable[[Any], Any] | None = None

    def project(self, entity: Any) -> Any:
        if self.projection is not None:
            return self.projection(entity)
        return read_field(entity, self.source_field or self.key)


@dataclass(frozen=True)
class Selection:
    """Chosen value per level, in chain order. None means unset."""
    keys: tuple[str, ...]
    values: tuple[Any, ...]

    def __post_init__(self):
        if len(self.keys) != len(self.values):
            raise CascadeInvalidSelection("Selection keys and values differ in length")

        seen_unset = None
        for key, value in zip(self.keys, self.values):
            if value is None:
                seen_unset = seen_unset or key
            elif seen_unset is not None:
                raise CascadeInvalidSelection(
                    f"Level '{key}' is set while '{seen_unset}' is not",
                    level=key,
                    missing=seen_unset,
                )

    def get(self, key: str) -> Any:
        try:
            return self.values[self.keys.index(key)]
        except ValueError:
            raise CascadeInvalidSelection(f"Unknown cascade level '{key}'", level=key) from None

    def __getitem__(self, key: str) -> Any:
        return self.get(key)

    @property
    def depth(self) -> int:
        """Number of levels currently set."""
        return sum(1 for v in self.values if v is not None)

    def as_dict(self) -> dict[str, Any]:
        return dict(zip(self.keys, self.values))


class CascadeResolver:
    """Resolver bound to one chain and its base entities. Instantiate per chain."""

    def __init__(self, levels: Sequence[CascadeLevel], entities: Iterable[Any] = ()):
        self.levels: tuple[CascadeLevel, ...] = tuple(levels)
        if not self.levels:
            raise ValueError("A cascade needs at least one level")

        self.keys: tuple[str, ...] = tuple(level.key for level in self.levels)
        if len(set(self.keys)) != len(self.keys):
            raise ValueError(f"Duplicate cascade level keys: {self.keys}")

        self.entities: tuple[Any, ...] = tuple(entities)

    # ── Selections ───────────────────────────────────────────────────────

    def empty(self) -> Selection:
        return Selection(self.keys, (None,) * len(self.keys))

    def selection(self, values: Mapping[str, Any] | None = None, **kwargs: Any) -> Selection:
        """
        Build a Selection from a mapping; blank values count as unset.

        Raises CascadeInvalidSelection for unknown keys or a gap in the chain.
        """
        merged = dict(values or {}, **kwargs)
        unknown = set(merged) - set(self.keys)
        if unknown:
            raise CascadeInvalidSelection(
                f"Unknown cascade levels: {sorted(unknown)}",
                levels=sorted(unknown),
            )
        return Selection(
            self.keys,
            tuple(None if _is_blank(merged.get(k)) else merged.get(k) for k in self.keys),
        )

    def level_index(self, level: int | str) -> int:
        if isinstance(level, int):
            if 0 <= level < len(self.levels):
                return level
            raise CascadeInvalidSelection(f"Cascade level {level} out of range", level=level)
        try:
            return self.keys.index(level)
        except ValueError:
            raise CascadeInvalidSelection(f"Unknown cascade level '{level}'", level=level) from None

    def _check(self, selection: Selection | None) -> Selection:
        if selection is None:
            return self.empty()
        if selection.keys != self.keys:
            raise CascadeInvalidSelection("Selection belongs to a different cascade chain")
        return selection

    # ── Resolution ───────────────────────────────────────────────────────

    def matching(
        self,
        selection: Selection | None = None,
        upto: int | None = None,
        entities: Iterable[Any] | None = None,
    ) -> list[Any]:
        """Entities agreeing with every selected value at levels < upto (default: all)."""
        selection = self._check(selection)
        stop = len(self.levels) if upto is None else upto
        rows = self.entities if entities is None else tuple(entities)

        constraints = [
            (self.levels[i], selection.values[i])
            for i in range(stop)
            if selection.values[i] is not None
        ]
        return [
            row for row in rows
            if all(level.project(row) == value for level, value in constraints)
        ]

    def options_for(self, level: int | str, selection: Selection | None = None) -> list[Any]:
        """
        Distinct non-blank values of `level` visible under the earlier choices.

        Sorted lexically by the value's text so the order is stable for display.
        """
        index = self.level_index(level)
        target = self.levels[index]

        values = {
            target.project(row)
            for row in self.matching(selection, upto=index)
        }
        return sorted((v for v in values if not _is_blank(v)), key=str)

    def select(self, level: int | str, value: Any, selection: Selection | None = None) -> Selection:
        """
        Set `level` to `value` and clear every later level.

        A blank value clears the level itself as well.
        """
        selection = self._check(selection)
        index = self.level_index(level)

        if not _is_blank(value):
            for i in range(index):
                if selection.values[i] is None:
                    raise CascadeInvalidSelection(
                        f"Cannot set '{self.keys[index]}' before '{self.keys[i]}'",
                        level=self.keys[index],
                        missing=self.keys[i],
                    )

        new_value = None if _is_blank(value) else value
        values = selection.values[:index] + (new_value,) + (None,) * (len(self.keys) - index - 1)
        return Selection(self.keys, values)

    def autofill_from(
        self,
        selection: Selection | None,
        field: str,
        entities: Iterable[Any] | None = None,
    ) -> Any | None:
        """
        Read-only field of the one entity the selection identifies.

        None until the selection narrows the entities down to exactly one.
        """
        selection = self._check(selection)
        if selection.depth == 0:
            return None

        rows = self.matching(selection, entities=entities)
        if len(rows) != 1:
            return None
        return read_field(rows[0], field)


# ── Chains used by the dashboard ─────────────────────────────────────────

LOCATION_CHAIN = (
    CascadeLevel("dong"),
    CascadeLevel("ho"),
)

DEFECT_CHAIN = (
    CascadeLevel("room"),
    CascadeLevel("issue_category1"),
    CascadeLevel("issue_category2"),
    CascadeLevel("issue_type"),
)

TRADE_CHAIN = (
    CascadeLevel("work_type1"),
    CascadeLevel("work_type2"),
    CascadeLevel("partner_id"),
)


def location_resolver(units: Iterable[Any]) -> CascadeResolver:
    """dong → ho resolver over unit rows."""
    return CascadeResolver(LOCATION_CHAIN, units)
