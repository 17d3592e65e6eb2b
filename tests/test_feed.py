"""Tests for data sources, feeds and feed binding."""

import json
from pathlib import Path

import pytest

import specimen
from specimen import DataSource, Feed, Keys, assign, column, function, select, template
from specimen.errors import FeedError, FeedExhausted, FeedKeyNotFound
from specimen.feed.feed import coerce

from sample_types import Customer, Status

DATA_DIR = Path(__file__).parent / "data"


class CustomerFeed(Feed):
    source = DataSource.from_csv(DATA_DIR / "persons.csv")
    first_name = column("firstName")
    last_name = column("lastName")
    full_name = template("${firstName} ${lastName}")
    adult = function(lambda age: int(age) >= 21, params=["age"])


class TestDataSource:
    def test_csv_skips_comments(self, data_dir):
        source = DataSource.from_csv(data_dir / "persons.csv")
        assert len(source) == 3
        assert source.columns == ["firstName", "lastName", "age", "country"]
        assert source[0] == {"firstName": "Ann", "lastName": "Lee", "age": "34", "country": "NZ"}

    def test_csv_text(self):
        source = DataSource.from_csv("a, b\n1, 2\n", text=True)
        assert source.rows == [{"a": "1", "b": "2"}]

    def test_json_and_yaml(self, tmp_path):
        json_path = tmp_path / "rows.json"
        json_path.write_text(json.dumps([{"x": 1}, {"x": 2}]))
        yaml_path = tmp_path / "rows.yaml"
        yaml_path.write_text("- x: 1\n- x: 2\n")
        assert DataSource.from_path(json_path).rows == [{"x": 1}, {"x": 2}]
        assert DataSource.from_path(yaml_path).rows == [{"x": 1}, {"x": 2}]

    def test_unsupported_format(self, tmp_path):
        with pytest.raises(FeedError, match="Unsupported"):
            DataSource.from_path(tmp_path / "rows.txt")

    def test_rows_must_be_mappings(self, tmp_path):
        path = tmp_path / "rows.json"
        path.write_text(json.dumps({"x": 1}))
        with pytest.raises(FeedError, match="list of rows"):
            DataSource.from_json(path)
        with pytest.raises(FeedError, match="not a mapping"):
            DataSource.of_rows([{"x": 1}, 2])


class TestFeedRecords:
    def test_derived_columns(self):
        feed = CustomerFeed()
        row = feed.record(0)
        assert row["first_name"] == "Ann"
        assert row["full_name"] == "Ann Lee"
        assert row["adult"] is True
        assert feed.record(2)["adult"] is False
        assert row["firstName"] == "Ann"

    def test_names(self):
        names = CustomerFeed().names
        assert names[:4] == ["firstName", "lastName", "age", "country"]
        assert {"first_name", "full_name", "adult"} <= set(names)

    def test_constructor_declarations(self):
        feed = Feed(
            [{"a": "1", "b": "2"}],
            mapping={"first": "a"},
            templates={"joined": "${a}-${b}"},
            functions={"total": (lambda a, b: int(a) + int(b), ["a", "b"])},
        )
        assert feed.record(0) == {"a": "1", "b": "2", "first": "1", "joined": "1-2", "total": 3}

    def test_missing_source(self):
        with pytest.raises(FeedError, match="no data source"):
            Feed()

    def test_bad_mapping_and_template(self):
        with pytest.raises(FeedError, match="no column"):
            Feed([{"a": 1}], mapping={"b": "missing"}).record(0)
        with pytest.raises(FeedError, match="missing column"):
            Feed([{"a": 1}], templates={"t": "${missing}"}).record(0)

    def test_row_index_policies(self):
        feed = CustomerFeed()
        assert feed.row_index(4, "cycle") == 1
        with pytest.raises(FeedExhausted):
            feed.row_index(3, "fail")


class TestCoerce:
    def test_lax_conversion(self):
        assert coerce("34", int, "f", "age") == 34
        assert coerce(7, str, "f", "name") == "7"

    def test_enum_by_value_or_name(self):
        assert coerce("active", Status, "f", "status") is Status.ACTIVE
        assert coerce("BANNED", Status, "f", "status") is Status.BANNED

    def test_invalid_value(self):
        with pytest.raises(FeedError, match="not a valid int"):
            coerce("abc", int, "f", "age")


class TestBinding:
    def test_successive_rows(self):
        customers = specimen.of_list(Customer).size(3).apply_feed(select.all_of(Customer), CustomerFeed()).create()
        assert [(c.first_name, c.last_name, c.age, c.country) for c in customers] == [
            ("Ann", "Lee", 34, "NZ"),
            ("Bob", "Stone", 51, "FR"),
            ("Cid", "Moore", 19, "US"),
        ]

    def test_fields_without_column_stay_generated(self):
        customer = specimen.of(Customer).apply_feed(select.root(), CustomerFeed()).create()
        assert customer.first_name == "Ann"
        assert isinstance(customer.nickname, str) and customer.nickname

    def test_rows_span_the_batch(self):
        model = specimen.of(Customer).apply_feed(select.root(), CustomerFeed()).to_model()
        names = [c.first_name for c in specimen.instantiate(model, count=3)]
        assert names == ["Ann", "Bob", "Cid"]

    def test_exhausted(self):
        blueprint = specimen.of_list(Customer).size(4).apply_feed(select.all_of(Customer), CustomerFeed()).with_seed(12)
        with pytest.raises(FeedExhausted) as exc_info:
            blueprint.create()
        assert exc_info.value.seed == 12

    def test_cycle_setting(self):
        customers = (
            specimen.of_list(Customer)
            .size(4)
            .apply_feed(select.all_of(Customer), CustomerFeed())
            .with_setting(Keys.FEED_EXHAUSTION, "cycle")
            .create()
        )
        assert [c.first_name for c in customers] == ["Ann", "Bob", "Cid", "Ann"]

    def test_cycle_declared_on_feed(self):
        feed = Feed(CustomerFeed.source, mapping={"first_name": "firstName"}, exhaustion="cycle")
        customers = specimen.of_list(Customer).size(5).apply_feed(select.all_of(Customer), feed).create()
        assert [c.first_name for c in customers][3:] == ["Ann", "Bob"]

    def test_keyed_lookup(self):
        customer = (
            specimen.of(Customer)
            .set(select.field(Customer, "country"), "FR")
            .apply_feed(select.root(), CustomerFeed(), key="country")
            .create()
        )
        assert (customer.first_name, customer.age) == ("Bob", 51)

    def test_keyed_lookup_miss(self):
        blueprint = (
            specimen.of(Customer)
            .set(select.field(Customer, "country"), "XX")
            .apply_feed(select.root(), CustomerFeed(), key="country")
        )
        with pytest.raises(FeedKeyNotFound, match="country='XX'"):
            blueprint.create()

    def test_assignments_see_bound_values(self):
        customer = (
            specimen.of(Customer)
            .apply_feed(select.root(), CustomerFeed())
            .assign(assign.value_of(select.field(Customer, "first_name")).to(select.field(Customer, "nickname")))
            .create()
        )
        assert customer.nickname == "Ann"


class TestFeedSpec:
    def test_successive_values(self):
        feed = CustomerFeed()
        customers = (
            specimen.of_list(Customer)
            .size(3)
            .generate(select.field(Customer, "first_name"), feed.string_spec("firstName"))
            .generate(select.field(Customer, "age"), feed.spec("age"))
            .create()
        )
        assert [c.first_name for c in customers] == ["Ann", "Bob", "Cid"]
        assert [c.age for c in customers] == [34, 51, 19]

    def test_unknown_column(self):
        with pytest.raises(FeedError, match="no column"):
            CustomerFeed().spec("missing")

    def test_each_run_starts_at_first_row(self):
        spec = CustomerFeed().int_spec("age")
        blueprint = specimen.of(Customer).generate(select.field(Customer, "age"), spec)
        assert blueprint.create().age == 34
        assert blueprint.create().age == 34
