# storefront/domain/selection.py
from typing import Dict, Iterator, Mapping, Optional, Tuple

from storefront.domain.catalog import ProductCatalog
from storefront.domain.errors import ValidationError


def _as_int(value) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def coerce_pairs(raw: Optional[Mapping]) -> Iterator[Tuple[int, int]]:
    """Yield (group_id, parameter_id) pairs from a loosely typed mapping.

    Stored selections are JSON objects, so keys arrive as strings. Entries
    that are not integers on both sides are dropped.
    """
    if not raw:
        return
    for key, value in raw.items():
        group_id, parameter_id = _as_int(key), _as_int(value)
        if group_id is None or parameter_id is None:
            continue
        yield group_id, parameter_id


class ParameterSelection(Mapping):
    """Group id -> parameter id, checked against one product's catalog.

    Build it with `ParameterSelection.for_product`; a group the product
    does not have, or a parameter from another group, is a ValidationError
    at construction time.
    """

    __slots__ = ("product_id", "_choices")

    def __init__(self, product_id: int, choices: Dict[int, int]):
        self.product_id = product_id
        self._choices = dict(choices)

    @classmethod
    def for_product(cls, catalog: ProductCatalog, raw: Optional[Mapping]) -> "ParameterSelection":
        choices: Dict[int, int] = {}
        for key, value in (raw or {}).items():
            group_id, parameter_id = _as_int(key), _as_int(value)
            if group_id is None or parameter_id is None:
                raise ValidationError(f"Selection entry {key!r}: {value!r} is not a group id / parameter id pair")

            group = catalog.find_group(group_id)
            if group is None:
                raise ValidationError(
                    f"Product {catalog.product_id} has no parameter group {group_id}"
                )
            if group.find_parameter(parameter_id) is None:
                raise ValidationError(
                    f"Parameter {parameter_id} does not belong to group {group_id}"
                )
            choices[group_id] = parameter_id

        return cls(catalog.product_id, choices)

    @classmethod
    def defaults_for(cls, catalog: ProductCatalog) -> "ParameterSelection":
        return cls(catalog.product_id, catalog.default_selection())

    def to_json(self) -> Dict[str, int]:
        return {str(group_id): parameter_id for group_id, parameter_id in sorted(self._choices.items())}

    def __getitem__(self, group_id: int) -> int:
        return self._choices[group_id]

    def __iter__(self):
        return iter(self._choices)

    def __len__(self) -> int:
        return len(self._choices)

    def __repr__(self) -> str:
        return f"ParameterSelection(product_id={self.product_id}, {self._choices!r})"
