import pytest

from budget_core.domain.models import CategoryClass
from budget_core.domain.taxonomy import DEFAULT_TAXONOMY, Taxonomy, TaxonomyError, UnknownCategoryError


def test_lookups_follow_declared_order(taxonomy):
    assert taxonomy.parents[0] == "Dining"
    assert taxonomy.children_of("Dining") == ("Restaurants", "Coffee")
    assert taxonomy.parent_of("Rent") == "Housing"
    assert taxonomy.class_of("Transfers") is CategoryClass.CASHFLOW
    assert taxonomy.class_of_leaf("Gold") is CategoryClass.INVESTMENT_SAVINGS
    assert len(taxonomy) == 9
    assert "Coffee" in taxonomy and "Dining" in taxonomy
    assert taxonomy.is_leaf("Coffee") and not taxonomy.is_leaf("Dining")


def test_unknown_names_raise_key_error(taxonomy):
    with pytest.raises(UnknownCategoryError):
        taxonomy.parent_of("Yachts")
    with pytest.raises(KeyError):
        taxonomy.class_of("Restaurants")


def test_categories_yield_parents_then_leaves(taxonomy):
    cats = list(taxonomy.categories())
    assert cats[0].name == "Dining" and not cats[0].is_leaf
    assert cats[1].name == "Restaurants" and cats[1].parent == "Dining"
    assert cats[1].category_class is CategoryClass.FOOD_DINING


def test_parent_without_class_is_fatal():
    with pytest.raises(TaxonomyError):
        Taxonomy.from_mapping({"Dining": ["Coffee"], "Fun": ["Movies"]}, {"Dining": "FoodDining"})


def test_orphan_leaf_is_fatal():
    with pytest.raises(TaxonomyError):
        Taxonomy.from_child_map({"Coffee": "Dining", "Movies": "Fun"}, {"Dining": "FoodDining"})


@pytest.mark.parametrize(
    "mapping, classes",
    [
        ({"Dining": []}, {"Dining": "FoodDining"}),
        ({"Dining": ["Coffee"], "Fun": ["Coffee"]}, {"Dining": "FoodDining", "Fun": "Other"}),
        ({"Dining": ["Fun"], "Fun": ["Movies"]}, {"Dining": "FoodDining", "Fun": "Other"}),
        ({"Dining": ["Coffee"]}, {"Dining": "Luxury"}),
        ({"Dining": ["Coffee"]}, {"Dining": "FoodDining", "Ghost": "Other"}),
        ({"Dining": ["  "]}, {"Dining": "FoodDining"}),
        ({}, {}),
    ],
)
def test_misconfigured_taxonomies_are_rejected(mapping, classes):
    with pytest.raises(TaxonomyError):
        Taxonomy.from_mapping(mapping, classes)


def test_class_names_parse_loosely():
    assert CategoryClass.parse("fixed_expense") is CategoryClass.FIXED_EXPENSE
    assert CategoryClass.parse("Investment Savings") is CategoryClass.INVESTMENT_SAVINGS
    with pytest.raises(ValueError):
        CategoryClass.parse("Luxury")


def test_default_taxonomy_covers_every_class():
    classes = {DEFAULT_TAXONOMY.class_of(p) for p in DEFAULT_TAXONOMY.parents}
    assert classes == set(CategoryClass)
    for leaf in DEFAULT_TAXONOMY.leaves:
        assert leaf in DEFAULT_TAXONOMY.children_of(DEFAULT_TAXONOMY.parent_of(leaf))
