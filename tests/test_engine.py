"""Tests for the population engine through the blueprint API."""

import itertools
import logging
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import is_dataclass
from decimal import Decimal
from uuid import UUID

import pytest

import specimen
from specimen import Keys, gen, select, use_settings
from specimen.api import GenerationRun, record_seeds, seeded
from specimen.errors import (
    GenerationExhausted,
    SelectorError,
    SpecimenError,
    UnresolvableType,
    UnusedSelectorError,
)
from specimen.generators import as_spec
from specimen.metadata.reader import TypeMetadataReader

from sample_types import (
    Account,
    Address,
    Circle,
    Customer,
    Drawing,
    Item,
    Mixed,
    Money,
    Node,
    Order,
    Person,
    Phone,
    Plain,
    Point,
    Shape,
    Square,
    Status,
    StatusBoard,
    Strict,
    TreeNode,
)


def _chain_length(node) -> int:
    length = 0
    while node is not None:
        length += 1
        node = node.next
    return length


# =============================================================================
# Structural population
# =============================================================================


class TestCreate:
    def test_person_fully_populated(self):
        person = specimen.create(Person)
        assert isinstance(person.name, str) and person.name
        assert isinstance(person.age, int)
        assert isinstance(person.email, str)
        assert isinstance(person.address, Address)
        assert 2 <= len(person.phones) <= 6
        assert all(isinstance(p, Phone) for p in person.phones)
        assert 1 <= len(person.tags) <= 6
        assert isinstance(person.tags, set)

    def test_leaf_kinds(self):
        account = specimen.create(Account)
        assert isinstance(account.id, UUID)
        assert isinstance(account.status, Status)
        assert isinstance(account.balance, Decimal)
        assert account.kind in ("basic", "premium")
        assert all(isinstance(k, str) and isinstance(v, int) for k, v in account.scores.items())

    def test_pydantic_models(self):
        order = specimen.create(Order)
        assert isinstance(order.id, int)
        assert all(isinstance(i, Item) for i in order.items)
        assert isinstance(order.customer, Person)

    def test_tuples_unions_and_dict_shapes(self):
        mixed = specimen.create(Mixed)
        assert isinstance(mixed.choice, (int, str))
        assert isinstance(mixed.pair, tuple)
        assert isinstance(mixed.pair[0], int) and isinstance(mixed.pair[1], str)
        assert all(isinstance(x, float) for x in mixed.many)
        assert isinstance(mixed.user, int)
        assert isinstance(mixed.point, Point)
        assert set(mixed.meta) == {"source", "version"}

    def test_constructors_are_bypassed(self):
        strict = specimen.create(Strict)
        assert isinstance(strict.value, int)

    def test_frozen_and_plain_classes(self):
        money = specimen.create(Money)
        assert isinstance(money.amount, Decimal)
        plain = specimen.create(Plain)
        assert isinstance(plain.label, str)
        assert isinstance(plain.count, int)

    def test_leaf_root(self):
        assert isinstance(specimen.create(int), int)
        assert isinstance(specimen.create(list[str]), list)

    def test_abstract_type_needs_subtype(self):
        with pytest.raises(UnresolvableType, match="abstract"):
            specimen.create(Drawing)


class TestDepth:
    def test_max_depth_one(self):
        person = specimen.of(Person).with_max_depth(1).create()
        assert isinstance(person.name, str)
        assert person.address is None
        assert person.phones == []
        assert person.tags == set()

    def test_self_reference_depth_limit(self):
        assert _chain_length(specimen.create(Node[int])) == 8
        assert _chain_length(specimen.of(Node[int]).with_max_depth(3).create()) == 3

    def test_max_self_references(self):
        node = specimen.of(Node[int]).with_setting(Keys.MAX_SELF_REFERENCES, 1).create()
        assert _chain_length(node) == 2
        assert isinstance(node.value, int)

    def test_recursive_collection(self):
        tree = specimen.of(TreeNode).with_max_depth(3).create()
        assert tree.children
        assert all(child.children == [] for child in tree.children)

    def test_zero_depth_still_builds_root(self):
        person = specimen.of(Person).with_max_depth(0).create()
        assert isinstance(person, Person)
        assert person.address is None


# =============================================================================
# Customizations
# =============================================================================


class TestValueActions:
    def test_set_uses_value_as_is(self):
        address = Address("Main", "Wellington", "6011")
        person = specimen.of(Person).set(select.field(Person, "address"), address).create()
        assert person.address is address

    def test_set_applies_to_every_match(self):
        person = specimen.of(Person).set(select.all_of(Phone), None).create()
        assert person.phones and all(p is None for p in person.phones)

    def test_supply_with_and_without_random(self):
        person = (
            specimen.of(Person)
            .supply(select.field(Person, "age"), lambda r: r.int_range(5, 5))
            .supply(select.field(Person, "name"), lambda: "fixed")
            .create()
        )
        assert person.age == 5
        assert person.name == "fixed"

    def test_supply_called_per_position(self):
        counter = itertools.count()
        people = specimen.of_list(Person).size(3).supply(select.field(Person, "age"), lambda: next(counter)).create()
        assert [p.age for p in people] == [0, 1, 2]

    def test_generate_with_spec_or_callable(self):
        person = (
            specimen.of(Person)
            .generate(select.field(Person, "age"), gen.ints().range(30, 30))
            .generate(select.field(Address, "zip_code"), lambda g: g.string().digits().length(4))
            .create()
        )
        assert person.age == 30
        assert len(person.address.zip_code) == 4 and person.address.zip_code.isdigit()

    def test_generate_rejects_non_specs(self):
        with pytest.raises(TypeError):
            specimen.of(Person).generate(select.field(Person, "age"), 3)
        with pytest.raises(TypeError):
            specimen.of(Person).generate(select.field(Person, "age"), lambda g: 3)

    def test_generate_collection_size(self):
        person = specimen.of(Person).generate(select.field(Person, "phones"), gen.collection().size(4)).create()
        assert len(person.phones) == 4
        assert all(isinstance(p, Phone) for p in person.phones)

    def test_non_selector_rejected(self):
        with pytest.raises(TypeError, match="selector"):
            specimen.of(Person).set("name", "x")


class TestIgnore:
    def test_ignored_field_keeps_default(self):
        person = specimen.of(Person).ignore(select.field(Person, "nickname")).create()
        assert person.nickname == "none"

    def test_ignored_field_without_default_is_none(self):
        person = specimen.of(Person).ignore(select.field(Person, "address")).create()
        assert person.address is None

    def test_ignored_elements_are_skipped(self):
        person = specimen.of(Person).ignore(select.all_of(Phone)).create()
        assert person.phones == []


class TestSubtype:
    def test_abstract_field(self):
        drawing = specimen.of(Drawing).subtype(select.field(Drawing, "shape"), Circle).create()
        assert isinstance(drawing.shape, Circle)
        assert isinstance(drawing.shape.radius, float)

    def test_subtype_by_type_selector(self):
        drawing = specimen.of(Drawing).subtype(select.all_of(Shape), Square).create()
        assert isinstance(drawing.shape, Square)

    def test_customizations_see_the_subtype(self):
        drawing = (
            specimen.of(Drawing)
            .subtype(select.all_of(Shape), Circle)
            .set(select.field(Circle, "radius"), 2.0)
            .create()
        )
        assert drawing.shape.radius == 2.0

    def test_collection_subtype(self):
        person = specimen.of(Person).subtype(select.field(Person, "phones"), deque).create()
        assert isinstance(person.phones, deque)

    def test_unrelated_subtype_rejected(self):
        with pytest.raises(UnresolvableType, match="not a subclass"):
            specimen.of(Person).subtype(select.field(Person, "address"), Phone).create()


class TestBlankAndNullable:
    def test_blank_object(self):
        person = specimen.of(Person).set_blank(select.field(Person, "address")).create()
        assert person.address == Address(None, None, None)

    def test_blank_root(self):
        person = specimen.of(Person).set_blank(select.root()).create()
        assert person.name is None
        assert person.phones == []
        assert person.nickname == "none"

    def test_nullable(self):
        person = (
            specimen.of(Person)
            .with_nullable(select.field(Person, "email"))
            .with_setting(Keys.NULLABLE_PROBABILITY, 1.0)
            .create()
        )
        assert person.email is None
        assert person.name is not None


class TestUniqueAndFilter:
    def test_unique_across_batch(self):
        people = (
            specimen.of_list(Person)
            .size(20)
            .generate(select.field(Person, "age"), gen.ints().range(1, 20))
            .with_unique(select.field(Person, "age"))
            .create()
        )
        assert sorted(p.age for p in people) == list(range(1, 21))

    def test_unique_exhausted(self):
        blueprint = (
            specimen.of_list(Person)
            .size(5)
            .generate(select.field(Person, "age"), gen.ints().range(1, 3))
            .with_unique(select.field(Person, "age"))
            .with_setting(Keys.MAX_GENERATION_ATTEMPTS, 50)
            .with_seed(3)
        )
        with pytest.raises(GenerationExhausted) as exc_info:
            blueprint.create()
        assert exc_info.value.seed == 3
        assert exc_info.value.attempts == 50

    def test_filter(self):
        people = (
            specimen.of_list(Person)
            .size(10)
            .filter(select.field(Person, "age"), lambda age: age % 2 == 0)
            .create()
        )
        assert all(p.age % 2 == 0 for p in people)

    def test_filter_never_satisfied(self):
        blueprint = (
            specimen.of(Person)
            .filter(select.field(Person, "age"), lambda age: False)
            .with_setting(Keys.MAX_GENERATION_ATTEMPTS, 10)
        )
        with pytest.raises(GenerationExhausted, match="filter"):
            blueprint.create()

    def test_unique_over_stream(self):
        stream = specimen.of(int).generate(select.root(), gen.ints().range(1, 5)).with_unique(select.root()).stream()
        assert sorted(itertools.islice(stream, 5)) == [1, 2, 3, 4, 5]


class TestOnComplete:
    def test_children_complete_before_parents(self):
        calls = []
        (
            specimen.of(Person)
            .on_complete(select.root(), lambda p: calls.append("person"))
            .on_complete(select.field(Person, "address"), lambda a: calls.append("address"))
            .create()
        )
        assert calls == ["address", "person"]

    def test_callback_receives_final_value(self):
        seen = []
        person = (
            specimen.of(Person)
            .set(select.field(Person, "name"), "Ann")
            .on_complete(select.root(), seen.append)
            .create()
        )
        assert seen == [person]

    def test_not_called_for_none(self):
        calls = []
        (
            specimen.of(Person)
            .ignore(select.field(Person, "address"))
            .on_complete(select.all_of(Address), calls.append)
            .lenient()
            .create()
        )
        assert calls == []

    @pytest.mark.parametrize("seed", range(5))
    def test_discarded_set_and_map_duplicates_are_not_completed(self, seed):
        seen = []
        board = (
            specimen.of(StatusBoard)
            .with_setting(Keys.COLLECTION_MIN_SIZE, 3)
            .with_setting(Keys.COLLECTION_MAX_SIZE, 3)
            .with_setting(Keys.MAP_MIN_SIZE, 3)
            .with_setting(Keys.MAP_MAX_SIZE, 3)
            .on_complete(select.all_of(Status), seen.append)
            .with_seed(seed)
            .create()
        )
        assert len(board.statuses) == len(board.counts) == 3
        assert len(seen) == 6
        assert set(seen) == set(Status)


class TestAfterGenerate:
    def _blueprint(self):
        return specimen.of(Person).generate(
            select.field(Person, "address"),
            as_spec(lambda r: Address("Main", None, None)),
        )

    def test_populate_nulls(self):
        person = self._blueprint().create()
        assert person.address.street == "Main"
        assert isinstance(person.address.city, str)
        assert isinstance(person.address.zip_code, str)

    def test_do_not_modify(self):
        person = self._blueprint().with_setting(Keys.AFTER_GENERATE, "do_not_modify").create()
        assert person.address == Address("Main", None, None)


# =============================================================================
# Seeds and determinism
# =============================================================================


class TestSeeds:
    def test_same_seed_same_object(self):
        assert specimen.of(Person).with_seed(7).create() == specimen.of(Person).with_seed(7).create()

    def test_result_replays(self):
        result = specimen.of(Account).as_result()
        assert specimen.of(Account).with_seed(result.seed).create() == result.value

    def test_settings_seed(self):
        first = specimen.of(Person).with_setting(Keys.SEED, 99).create()
        assert first == specimen.of(Person).with_seed(99).create()

    def test_explicit_seed_beats_model_seed(self):
        model = specimen.of(Person).with_seed(1).to_model()
        assert GenerationRun(model, seed=2).seed == 2
        assert GenerationRun(model).seed == 1

    def test_seeded_block_is_reproducible(self):
        with seeded(5):
            a, b = specimen.create(Person), specimen.create(Person)
        with seeded(5):
            c, d = specimen.create(Person), specimen.create(Person)
        assert (a, b) == (c, d)
        assert a != b

    def test_record_seeds(self):
        with record_seeds() as seeds:
            result = specimen.of(Person).as_result()
            specimen.of(Person).with_seed(4).create()
        assert seeds == [result.seed, 4]

    def test_errors_carry_seed(self):
        with pytest.raises(SpecimenError) as exc_info:
            specimen.of(Drawing).with_seed(11).create()
        assert exc_info.value.seed == 11
        assert "seed=11" in str(exc_info.value)


# =============================================================================
# Settings
# =============================================================================


class TestSettings:
    def test_collection_sizes(self):
        person = specimen.of(Person).with_settings({Keys.COLLECTION_MIN_SIZE: 1, Keys.COLLECTION_MAX_SIZE: 1}).create()
        assert len(person.phones) == 1
        assert len(person.tags) == 1

    def test_injected_settings(self):
        with use_settings({Keys.MAX_DEPTH: 1}):
            assert specimen.create(Person).address is None

    def test_call_site_beats_injected(self):
        with use_settings({Keys.MAX_DEPTH: 1}):
            person = specimen.of(Person).with_max_depth(5).create()
        assert isinstance(person.address, Address)

    def test_string_field_prefix(self):
        person = specimen.of(Person).with_setting(Keys.STRING_FIELD_PREFIX_ENABLED, True).create()
        assert person.name.startswith("name_")


# =============================================================================
# Unused selectors
# =============================================================================


class TestUnusedSelectors:
    def test_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="specimen"):
            specimen.of(Person).set(select.all_of(Status), Status.ACTIVE).create()
        assert "Unused selector all_of(Status)" in caplog.text

    def test_strict_mode_raises(self):
        blueprint = (
            specimen.of(Person)
            .set(select.all_of(Status), Status.ACTIVE)
            .with_setting(Keys.FAIL_ON_UNUSED_SELECTORS, True)
        )
        with pytest.raises(UnusedSelectorError) as exc_info:
            blueprint.create()
        assert exc_info.value.selectors == [select.all_of(Status)]

    def test_lenient(self, caplog):
        with caplog.at_level(logging.WARNING, logger="specimen"):
            (
                specimen.of(Person)
                .set(select.all_of(Status), Status.ACTIVE)
                .with_setting(Keys.FAIL_ON_UNUSED_SELECTORS, True)
                .lenient()
                .create()
            )
        assert "Unused selector" not in caplog.text


# =============================================================================
# Collections, models and cartesian products
# =============================================================================


class TestCollections:
    def test_of_list(self):
        people = specimen.of_list(Person).size(3).create()
        assert len(people) == 3
        assert all(isinstance(p, Person) for p in people)

    def test_ownerless_field_binds_to_element(self):
        people = specimen.of_list(Person).size(2).set(select.field("name"), "Ann").create()
        assert [p.name for p in people] == ["Ann", "Ann"]

    def test_ownerless_field_validated(self):
        with pytest.raises(SelectorError):
            specimen.of_list(Person).set(select.field("nope"), 1)

    def test_ownerless_field_needs_object_root(self):
        with pytest.raises(SpecimenError, match="owner"):
            specimen.of_set(int).set(select.field("x"), 1)

    def test_of_set_and_of_map(self):
        assert len(specimen.of_set(int).size(5).create()) == 5
        mapping = specimen.of_map(str, int).size(2).create()
        assert len(mapping) == 2

    def test_min_max_size(self):
        people = specimen.of_list(Person).min_size(1).max_size(2).create()
        assert 1 <= len(people) <= 2


class TestModels:
    def test_model_is_reusable(self):
        model = specimen.of(Person).set(select.field(Person, "name"), "Ann").to_model()
        batch = specimen.instantiate(model, count=3, seed=7)
        assert [p.name for p in batch] == ["Ann"] * 3
        assert batch == specimen.instantiate(model, count=3, seed=7)

    def test_negative_count(self):
        model = specimen.of(Person).to_model()
        with pytest.raises(ValueError):
            specimen.instantiate(model, count=-1)

    def test_layer_does_not_change_base(self):
        model = specimen.of(Person).to_model()
        derived = specimen.of(model).set(select.field(Person, "age"), 1).to_model()
        assert len(model.customizations) == 0
        assert len(derived.customizations) == 1
        assert derived.layers == model.layers + 1

    def test_dataclass_result(self):
        result = specimen.of(Person).with_seed(1).as_result()
        assert is_dataclass(result.value)
        assert result.seed == 1


class TestCartesianProduct:
    def test_every_combination(self):
        customers = (
            specimen.of_cartesian_product(Customer)
            .with_values(select.field("country"), "NZ", "FR")
            .with_values(select.field(Customer, "age"), 1, 2)
            .create()
        )
        assert [(c.country, c.age) for c in customers] == [("NZ", 1), ("NZ", 2), ("FR", 1), ("FR", 2)]

    def test_base_customizations_apply(self):
        customers = (
            specimen.of_cartesian_product(Customer)
            .set(select.field(Customer, "nickname"), "x")
            .with_values(select.field(Customer, "age"), 1, 2, 3)
            .create()
        )
        assert [c.nickname for c in customers] == ["x", "x", "x"]

    def test_reproducible(self):
        def build():
            return (
                specimen.of_cartesian_product(Customer)
                .with_values(select.field(Customer, "age"), 1, 2)
                .with_seed(8)
                .as_result()
            )

        assert build().value == build().value

    def test_needs_values(self):
        with pytest.raises(ValueError):
            specimen.of_cartesian_product(Customer).with_values(select.field(Customer, "age"))


class TestConcurrency:
    def test_same_seed_replays_across_threads(self):
        blueprint = (
            specimen.of(Person)
            .generate(select.field(Person, "name"), gen.faker("first_name"))
            .generate(select.field(Person, "nickname"), gen.faker("last_name", locale="de_DE"))
            .with_seed(21)
        )
        expected = blueprint.create()
        with ThreadPoolExecutor(max_workers=8) as pool:
            results = list(pool.map(lambda _: blueprint.create(), range(32)))
        assert all(result == expected for result in results)

    def test_distinct_seeds_in_parallel_match_serial(self):
        def build(seed):
            return specimen.of(Account).with_seed(seed).create()

        serial = [build(seed) for seed in range(16)]
        with ThreadPoolExecutor(max_workers=8) as pool:
            assert list(pool.map(build, range(16))) == serial

    def test_metadata_cache_keeps_one_node_per_type(self):
        reader = TypeMetadataReader()
        with ThreadPoolExecutor(max_workers=8) as pool:
            nodes = list(pool.map(lambda _: reader.read(Account), range(32)))
        assert all(node is nodes[0] for node in nodes)
