from __future__ import annotations

from typing import Dict, Iterator, List, Mapping, Sequence, Tuple

from budget_core.domain.models import Category, CategoryClass


class TaxonomyError(ValueError):
    """Raised when a taxonomy cannot be loaded; never recovered from at runtime."""


class UnknownCategoryError(KeyError):
    pass


class Taxonomy:
    """
    Immutable parent -> leaf category mapping with a class per parent.

    Names are resolved to integer indices once at construction; the
    parent/leaf relations are stored as index tuples.
    """

    __slots__ = (
        "_parents",
        "_leaves",
        "_parent_class",
        "_parent_leaves",
        "_leaf_parent",
        "_parent_index",
        "_leaf_index",
    )

    def __init__(self, entries: Sequence[Tuple[str, CategoryClass, Sequence[str]]]):
        parents: List[str] = []
        classes: List[CategoryClass] = []
        leaves: List[str] = []
        leaf_parent: List[int] = []
        parent_leaves: List[Tuple[int, ...]] = []
        parent_index: Dict[str, int] = {}
        leaf_index: Dict[str, int] = {}

        for parent, category_class, children in entries:
            parent = _clean_name(parent, "parent")
            if parent in parent_index:
                raise TaxonomyError(f"Duplicate parent category: {parent!r}")
            if not isinstance(category_class, CategoryClass):
                raise TaxonomyError(f"Parent {parent!r} has no valid category class")
            if not children:
                raise TaxonomyError(f"Parent {parent!r} has no leaf categories")
            p_idx = len(parents)
            parent_index[parent] = p_idx
            parents.append(parent)
            classes.append(category_class)

            own: List[int] = []
            for child in children:
                child = _clean_name(child, "leaf")
                if child in leaf_index:
                    other = parents[leaf_parent[leaf_index[child]]]
                    raise TaxonomyError(f"Leaf {child!r} listed under both {other!r} and {parent!r}")
                l_idx = len(leaves)
                leaf_index[child] = l_idx
                leaves.append(child)
                leaf_parent.append(p_idx)
                own.append(l_idx)
            parent_leaves.append(tuple(own))

        clash = set(parent_index) & set(leaf_index)
        if clash:
            raise TaxonomyError(f"Names used as both parent and leaf: {sorted(clash)}")
        if not parents:
            raise TaxonomyError("Taxonomy has no categories")

        self._parents = tuple(parents)
        self._leaves = tuple(leaves)
        self._parent_class = tuple(classes)
        self._parent_leaves = tuple(parent_leaves)
        self._leaf_parent = tuple(leaf_parent)
        self._parent_index = parent_index
        self._leaf_index = leaf_index

    @classmethod
    def from_mapping(
        cls,
        parent_to_children: Mapping[str, Sequence[str]],
        parent_classes: Mapping[str, CategoryClass | str],
    ) -> "Taxonomy":
        unknown = [p for p in parent_classes if p not in parent_to_children]
        if unknown:
            raise TaxonomyError(f"Class assigned to unknown parent(s): {unknown}")
        entries = []
        for parent, children in parent_to_children.items():
            if parent not in parent_classes:
                raise TaxonomyError(f"Parent {parent!r} has no category class")
            entries.append((parent, _coerce_class(parent, parent_classes[parent]), list(children)))
        return cls(entries)

    @classmethod
    def from_child_map(
        cls,
        child_to_parent: Mapping[str, str],
        parent_classes: Mapping[str, CategoryClass | str],
    ) -> "Taxonomy":
        grouped: Dict[str, List[str]] = {p: [] for p in parent_classes}
        for child, parent in child_to_parent.items():
            if parent not in grouped:
                raise TaxonomyError(f"Leaf {child!r} has no known parent (got {parent!r})")
            grouped[parent].append(child)
        return cls.from_mapping(grouped, parent_classes)

    @property
    def parents(self) -> Tuple[str, ...]:
        return self._parents

    @property
    def leaves(self) -> Tuple[str, ...]:
        return self._leaves

    def children_of(self, parent: str) -> Tuple[str, ...]:
        return tuple(self._leaves[i] for i in self._parent_leaves[self.parent_index(parent)])

    def parent_of(self, leaf: str) -> str:
        return self._parents[self._leaf_parent[self.leaf_index(leaf)]]

    def class_of(self, parent: str) -> CategoryClass:
        return self._parent_class[self.parent_index(parent)]

    def class_of_leaf(self, leaf: str) -> CategoryClass:
        return self._parent_class[self._leaf_parent[self.leaf_index(leaf)]]

    def parent_index(self, parent: str) -> int:
        try:
            return self._parent_index[parent]
        except KeyError:
            raise UnknownCategoryError(parent) from None

    def leaf_index(self, leaf: str) -> int:
        try:
            return self._leaf_index[leaf]
        except KeyError:
            raise UnknownCategoryError(leaf) from None

    def is_leaf(self, name: str) -> bool:
        return name in self._leaf_index

    def parents_of_class(self, category_class: CategoryClass) -> Tuple[str, ...]:
        return tuple(p for p, c in zip(self._parents, self._parent_class) if c is category_class)

    def categories(self) -> Iterator[Category]:
        for p_idx, parent in enumerate(self._parents):
            cls = self._parent_class[p_idx]
            yield Category(name=parent, category_class=cls)
            for l_idx in self._parent_leaves[p_idx]:
                yield Category(name=self._leaves[l_idx], category_class=cls, parent=parent)

    def __contains__(self, name: object) -> bool:
        return name in self._leaf_index or name in self._parent_index

    def __len__(self) -> int:
        return len(self._leaves)

    def __repr__(self) -> str:
        return f"Taxonomy(parents={len(self._parents)}, leaves={len(self._leaves)})"


def _clean_name(raw: object, kind: str) -> str:
    name = str(raw or "").strip()
    if not name:
        raise TaxonomyError(f"Blank {kind} category name")
    return name


def _coerce_class(parent: str, raw: CategoryClass | str) -> CategoryClass:
    if isinstance(raw, CategoryClass):
        return raw
    try:
        return CategoryClass.parse(raw)
    except ValueError as exc:
        raise TaxonomyError(f"Parent {parent!r}: {exc}") from exc


DEFAULT_TAXONOMY = Taxonomy.from_mapping(
    {
        "Daily Food & Drinks": [
            "Breakfast",
            "Lunch",
            "Dinner",
            "Coffee",
            "Milk tea",
            "Snacks",
            "Smoothie",
            "Fruit",
            "Convenience Store",
            "Food Delivery",
        ],
        "Entertainment": ["Movies", "Karaoke", "Netflix", "Ice Skating", "Pickleball", "Badminton"],
        "Essential": [
            "Rent",
            "Electricity",
            "Water",
            "Internet",
            "Laundry",
            "Dental Care",
            "Fashion",
            "Shoes",
            "Haircut",
            "Phones",
        ],
        "Transportation": ["Ride Hailing", "Shipping", "Motorbike", "Fuel", "Parking", "Parking (fixed)"],
        "Investment & Savings": ["Investments", "Gold"],
        "Personal Care": ["Personal Care (general)"],
        "Services": ["Services (general)"],
        "Transfers": ["Internal Transfer", "Lending", "Cash Withdrawal"],
        "Others": [
            "E-wallet",
            "Lost",
            "Occasional",
            "Miscellaneous",
            "Online Shopping",
            "Apple Store",
            "Apple Music",
            "AI",
            "Tools",
            "Credits",
        ],
    },
    {
        "Daily Food & Drinks": CategoryClass.FOOD_DINING,
        "Entertainment": CategoryClass.OTHER,
        "Essential": CategoryClass.FIXED_EXPENSE,
        "Transportation": CategoryClass.OTHER,
        "Investment & Savings": CategoryClass.INVESTMENT_SAVINGS,
        "Personal Care": CategoryClass.OTHER,
        "Services": CategoryClass.FIXED_EXPENSE,
        "Transfers": CategoryClass.CASHFLOW,
        "Others": CategoryClass.OTHER,
    },
)
