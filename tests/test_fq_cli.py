"""
Tests for filter expression parsing, configuration loading, and the CLI.
"""

import json
import tempfile
from pathlib import Path

import pytest

from fq_engine import FieldMap, FilterSyntaxError, evaluate
from fq_engine.config import ConfigError, EngineConfig, load_config
from fq_engine.parser import (
    Argument,
    OperatorKind,
    describe_operators,
    parse_filter,
    parse_filters,
    parse_scalar,
    split_arguments,
)
from run_filter import main, serialize_for_json

PRODUCTS = [
    {"id": 1, "name": "laptop", "price": 1200, "category": "electronics",
     "tags": ["work", "portable"], "location": [40.7128, -74.006]},
    {"id": 2, "name": "smartphone", "price": 800, "category": "electronics",
     "tags": ["mobile"], "location": [34.05, -118.24]},
    {"id": 3, "name": "headphones", "price": 150, "category": "electronics",
     "tags": ["audio"]},
    {"id": 4, "name": "book", "price": 20, "category": "books",
     "tags": ["reading"]},
    {"id": 5, "name": "desk", "price": 300, "category": "furniture",
     "tags": ["office", "work"]},
    {"id": 6, "name": "chair", "price": 120, "category": "furniture",
     "tags": ["office"]},
]


def write_temp(content: str, suffix: str) -> str:
    with tempfile.NamedTemporaryFile(mode='w', suffix=suffix, delete=False) as f:
        f.write(content)
        return f.name


@pytest.fixture
def data_file():
    """Create a temporary NDJSON file of products."""
    temp_path = write_temp("\n".join(json.dumps(p) for p in PRODUCTS) + "\n", '.jsonl')
    yield temp_path
    Path(temp_path).unlink(missing_ok=True)


@pytest.fixture
def broken_data_file():
    """Create an NDJSON file with one malformed line."""
    lines = [json.dumps(PRODUCTS[0]), '{"id": 2, "name": ', json.dumps(PRODUCTS[2])]
    temp_path = write_temp("\n".join(lines) + "\n", '.jsonl')
    yield temp_path
    Path(temp_path).unlink(missing_ok=True)


def output_ids(captured) -> list:
    return [json.loads(line)["id"] for line in captured.out.splitlines() if line]


class TestArgumentParsing:
    """Test cases for splitting and converting operator arguments."""

    def test_scalar_types(self):
        """Test unquoted values are typed."""
        assert parse_scalar(Argument("42")) == 42
        assert isinstance(parse_scalar(Argument("42")), int)
        assert parse_scalar(Argument("-3")) == -3
        assert parse_scalar(Argument("4.5")) == 4.5
        assert parse_scalar(Argument("1e3")) == 1000.0
        assert parse_scalar(Argument("true")) is True
        assert parse_scalar(Argument("false")) is False
        assert parse_scalar(Argument("null")) is None
        assert parse_scalar(Argument("abc")) == "abc"

    def test_quoted_values_stay_text(self):
        """Test quoted values are never converted."""
        assert parse_scalar(Argument("42", quoted=True)) == "42"
        assert parse_scalar(Argument("true", quoted=True)) == "true"

    def test_split_with_quotes(self):
        """Test quotes group text containing commas."""
        arguments = split_arguments('"a,b", c')
        assert arguments == [Argument("a,b", quoted=True), Argument("c")]

    def test_split_empty_slots(self):
        """Test empty slots between commas and trailing commas."""
        assert [a.text for a in split_arguments("a,,b")] == ["a", "", "b"]
        assert [a.text for a in split_arguments("a,")] == ["a"]
        assert split_arguments("") == []

    def test_split_missing_separator(self):
        """Test adjacent values without a comma are rejected."""
        with pytest.raises(FilterSyntaxError, match="expected ','"):
            split_arguments('"a" b')

    def test_unterminated_quote(self):
        """Test an unterminated quote is rejected."""
        with pytest.raises(FilterSyntaxError, match="unterminated quoted string"):
            split_arguments('"abc')

    def test_quote_inside_unquoted_text(self):
        """Test a quote after the start of a value is literal text."""
        assert split_arguments('O"Brien, x') == [Argument('O"Brien'), Argument("x")]

        query = parse_filters(['name:contains:O"Brien'])
        assert evaluate(query, {"name": 'Miles O"Brien'})
        assert not evaluate(query, {"name": "Miles OBrien"})

    def test_regex_only_when_allowed(self):
        """Test /regex/ is a single token only for pattern operators."""
        assert split_arguments("/a,b/", allow_regex=True) == [Argument("a,b", regex=True)]
        assert [a.text for a in split_arguments("/a,b/")] == ["/a", "b/"]


class TestFilterParser:
    """Test cases for field:operator:value expressions."""

    def test_parse_simple_filter(self):
        """Test parsing a single expression."""
        field_name, predicate = parse_filter("price:gt:100")
        assert field_name == "price"
        assert predicate.name == "gt(100)"
        assert predicate(150)
        assert not predicate(100)

    def test_parse_multiple_filters(self):
        """Test expressions combine into one field map."""
        query = parse_filters(["price:gt:100", "category:eq:books"])
        assert isinstance(query, FieldMap)
        assert set(query) == {"price", "category"}
        assert not evaluate(query, PRODUCTS[3])
        assert not evaluate(query, PRODUCTS[0])

    def test_no_filters(self):
        """Test no expressions means no query."""
        assert parse_filters([]) is None

    def test_duplicate_field_keeps_last(self):
        """Test a repeated field keeps its last expression."""
        query = parse_filters(["price:gt:10", "price:lt:5"])
        assert query["price"].name == "lt(5)"

    def test_operator_case_insensitive(self):
        """Test operator names ignore case."""
        _, predicate = parse_filter("status:EQ:active")
        assert predicate("active")
        assert OperatorKind.lookup("GeoWithin") is OperatorKind.GEOWITHIN

    def test_value_with_colons(self):
        """Test only the first two colons separate the expression."""
        _, predicate = parse_filter("url:contains:http://example.com")
        assert predicate("see http://example.com/page")

    def test_quoted_number_is_text(self):
        """Test quoted values compare as strings."""
        query = parse_filters(['code:eq:"42"'])
        assert evaluate(query, {"code": "42"})
        assert not evaluate(query, {"code": 42})

    def test_in_operator(self):
        """Test list operators take comma-separated values."""
        _, predicate = parse_filter('category:in:books,"home, garden"')
        assert predicate("books")
        assert predicate("home, garden")
        assert not predicate("toys")

    def test_array_operators(self):
        """Test array membership operators."""
        query = parse_filters(["tags:containsall:office,work"])
        assert [p["id"] for p in PRODUCTS if evaluate(query, p)] == [5]
        query = parse_filters(["tags:hasitem:office"])
        assert [p["id"] for p in PRODUCTS if evaluate(query, p)] == [5, 6]

    def test_logical_operators(self):
        """Test not/or operators over literal values."""
        _, not_books = parse_filter("category:not:books")
        assert not_books("furniture")
        assert not not_books("books")
        _, either = parse_filter("id:or:1,2")
        assert either(2)
        assert not either(3)

    def test_match_regex_and_text(self):
        """Test match accepts both /regex/ and plain text."""
        _, regex = parse_filter("name:match:/^(desk|chair)$/")
        assert regex("desk")
        assert not regex("desktop")
        _, text = parse_filter("name:match:PHONE")
        assert text("smartphone")

    def test_geowithin(self):
        """Test geowithin takes three floats."""
        _, predicate = parse_filter("location:geowithin:40.7,-74.0,10")
        assert predicate([40.7128, -74.006])
        assert not predicate([34.05, -118.24])

    def test_error_invalid_format(self):
        """Test expressions without three parts are rejected."""
        with pytest.raises(FilterSyntaxError, match="invalid filter format: price-gt-100"):
            parse_filter("price-gt-100")

    def test_error_unknown_operator(self):
        """Test unknown operators are rejected."""
        with pytest.raises(FilterSyntaxError, match="unknown operator: invalid"):
            parse_filter("price:invalid:100")

    def test_error_argument_count(self):
        """Test operators check their argument count."""
        with pytest.raises(FilterSyntaxError, match="expects 1 argument, got 0"):
            parse_filter("price:gt:")
        with pytest.raises(FilterSyntaxError, match="expects 1 argument, got 2"):
            parse_filter("price:gt:1,2")
        with pytest.raises(FilterSyntaxError, match="expects 3 arguments, got 2"):
            parse_filter("location:geowithin:40.7,-74.0")
        with pytest.raises(FilterSyntaxError, match="at least 1 argument"):
            parse_filter("category:in:")

    def test_error_geowithin_not_float(self):
        """Test geowithin arguments must be numbers."""
        with pytest.raises(FilterSyntaxError, match="argument 2: expected float, got: west"):
            parse_filter("location:geowithin:40.7,west,10")

    def test_error_invalid_regex(self):
        """Test a bad regular expression is rejected at parse time."""
        with pytest.raises(FilterSyntaxError, match="invalid regex pattern"):
            parse_filter("name:match:/[/")

    def test_syntax_error_subclass(self):
        """Test filter errors are SyntaxErrors."""
        with pytest.raises(SyntaxError):
            parse_filter("nope")

    def test_describe_operators(self):
        """Test every operator is listed."""
        names = [info["name"] for info in describe_operators()]
        assert names == [kind.value for kind in OperatorKind]
        assert len(names) == 15


class TestConfig:
    """Test cases for YAML configuration."""

    def test_defaults(self):
        """Test no path gives default settings."""
        config = load_config()
        assert config == EngineConfig()
        assert config.limit == 0
        assert config.log_level == 'WARNING'

    def test_load_yaml(self):
        """Test loading settings from YAML."""
        path = write_temp("limit: 5\nquiet: true\nlog_level: DEBUG\n", '.yaml')
        try:
            config = load_config(path)
            assert config.limit == 5
            assert config.quiet is True
            assert config.skip == 0
        finally:
            Path(path).unlink()

    def test_empty_file(self):
        """Test an empty file gives defaults."""
        path = write_temp("", '.yaml')
        try:
            assert load_config(path) == EngineConfig()
        finally:
            Path(path).unlink()

    @pytest.mark.parametrize("content,message", [
        ("colour: blue\n", "Unknown config keys"),
        ("limit: -1\n", "limit must be a non-negative integer"),
        ("stream_buffer: 0\n", "stream_buffer must be a positive integer"),
        ("log_level: LOUD\n", "log_level must be one of"),
        ("- a\n- b\n", "must contain a mapping"),
        ("limit: [1\n", "Invalid YAML"),
    ])
    def test_invalid_config(self, content, message):
        """Test invalid files are rejected with a clear message."""
        path = write_temp(content, '.yaml')
        try:
            with pytest.raises(ConfigError, match=message):
                load_config(path)
        finally:
            Path(path).unlink()

    def test_missing_file(self):
        """Test a missing config file is an error."""
        with pytest.raises(ConfigError, match="Failed to read config"):
            load_config("/nonexistent/fq.yaml")

    def test_merged_ignores_none(self):
        """Test overrides only replace values that are given."""
        config = EngineConfig(skip=2, limit=10).merged(skip=None, limit=3, quiet=None)
        assert config.skip == 2
        assert config.limit == 3
        assert config.quiet is False

    def test_config_error_is_value_error(self):
        """Test invalid settings raise ValueError subclasses."""
        with pytest.raises(ValueError):
            EngineConfig(skip=-5)


class TestCLI:
    """Test cases for the fq command line."""

    def test_filter_lt(self, data_file, capsys):
        """Test a simple numeric filter."""
        assert main([data_file, "price:lt:500"]) == 0
        assert output_ids(capsys.readouterr()) == [3, 4, 5, 6]

    def test_compact_json_output(self, data_file, capsys):
        """Test matches are printed as one compact JSON object per line."""
        assert main([data_file, "id:eq:4"]) == 0
        out = capsys.readouterr().out
        assert out == json.dumps(PRODUCTS[3], separators=(',', ':')) + "\n"

    def test_multiple_filters(self, data_file, capsys):
        """Test filters are combined with AND."""
        assert main([data_file, "price:gte:150", "category:eq:electronics"]) == 0
        assert output_ids(capsys.readouterr()) == [1, 2, 3]

    def test_in_filter(self, data_file, capsys):
        """Test the in operator from the command line."""
        assert main([data_file, "category:in:books,furniture"]) == 0
        assert output_ids(capsys.readouterr()) == [4, 5, 6]

    def test_containsany_filter(self, data_file, capsys):
        """Test array filters from the command line."""
        assert main([data_file, "tags:containsany:work,audio"]) == 0
        assert output_ids(capsys.readouterr()) == [1, 3, 5]

    def test_geowithin_filter(self, data_file, capsys):
        """Test geospatial filters from the command line."""
        assert main([data_file, "location:geowithin:40.7,-74.0,10"]) == 0
        assert output_ids(capsys.readouterr()) == [1]

    def test_regex_filter(self, data_file, capsys):
        """Test regex filters from the command line."""
        assert main([data_file, "name:match:/^(desk|chair)$/"]) == 0
        assert output_ids(capsys.readouterr()) == [5, 6]

    def test_no_filters_prints_everything(self, data_file, capsys):
        """Test a data file with no filters prints every record."""
        assert main([data_file]) == 0
        assert output_ids(capsys.readouterr()) == [1, 2, 3, 4, 5, 6]

    def test_limit(self, data_file, capsys):
        """Test --limit caps the output."""
        assert main(["--limit", "2", data_file, "price:gt:0"]) == 0
        assert output_ids(capsys.readouterr()) == [1, 2]

    def test_skip_and_limit(self, data_file, capsys):
        """Test --skip and --limit together."""
        assert main(["--skip", "1", "--limit", "2", data_file, "price:gt:0"]) == 0
        assert output_ids(capsys.readouterr()) == [2, 3]

    def test_skip_past_end(self, data_file, capsys):
        """Test skipping every match prints nothing and succeeds."""
        assert main(["--skip", "100", data_file]) == 0
        assert capsys.readouterr().out == ""

    def test_unknown_operator(self, data_file, capsys):
        """Test an invalid operator fails before reading the file."""
        assert main([data_file, "price:invalid:100"]) == 1
        captured = capsys.readouterr()
        assert "Error parsing filters: unknown operator: invalid" in captured.err
        assert captured.out == ""

    def test_invalid_format(self, data_file, capsys):
        """Test a malformed expression is reported."""
        assert main([data_file, "price>100"]) == 1
        assert "invalid filter format" in capsys.readouterr().err

    def test_missing_data_file(self, capsys):
        """Test an unreadable data file is reported as a source error."""
        assert main(["/nonexistent/data.jsonl", "price:gt:1"]) == 1
        err = capsys.readouterr().err
        assert "Source error: failed to open file" in err
        assert "No such file" in err

    def test_malformed_line(self, broken_data_file, capsys):
        """Test bad lines are reported while valid records still match."""
        assert main([broken_data_file, "price:gt:0"]) == 1
        captured = capsys.readouterr()
        assert output_ids(captured) == [1, 3]
        assert "Source error: line 2: error parsing JSON" in captured.err

    def test_quiet_suppresses_errors(self, broken_data_file, capsys):
        """Test --quiet hides error messages but keeps the exit code."""
        assert main(["--quiet", broken_data_file, "price:gt:0"]) == 1
        captured = capsys.readouterr()
        assert output_ids(captured) == [1, 3]
        assert "Source error" not in captured.err

    def test_no_arguments_prints_usage(self, capsys):
        """Test running without arguments shows usage and fails."""
        assert main([]) == 1
        assert "usage: fq" in capsys.readouterr().out

    def test_data_file_required(self, capsys):
        """Test options alone are not enough."""
        assert main(["--limit", "5"]) == 1
        assert "data file required" in capsys.readouterr().err

    def test_help(self, capsys):
        """Test --help lists the operators and exits cleanly."""
        with pytest.raises(SystemExit) as exc_info:
            main(["--help"])
        assert exc_info.value.code == 0
        out = capsys.readouterr().out
        assert "geowithin" in out
        assert "field:operator:value" in out

    def test_config_file_defaults(self, data_file, capsys):
        """Test settings from a config file, overridden by flags."""
        config_path = write_temp("limit: 1\n", '.yaml')
        try:
            assert main(["--config", config_path, data_file]) == 0
            assert output_ids(capsys.readouterr()) == [1]

            assert main(["--config", config_path, "--limit", "3", data_file]) == 0
            assert output_ids(capsys.readouterr()) == [1, 2, 3]
        finally:
            Path(config_path).unlink()

    def test_bad_config_file(self, data_file, capsys):
        """Test an invalid config file fails the run."""
        config_path = write_temp("limit: lots\n", '.yaml')
        try:
            assert main(["--config", config_path, data_file]) == 1
            assert "Error: limit must be a non-negative integer" in capsys.readouterr().err
        finally:
            Path(config_path).unlink()


class TestSerialization:
    """Test cases for JSON output serialization."""

    def test_serialize_nested_datetimes(self):
        """Test datetimes are converted to ISO strings at any depth."""
        from datetime import datetime

        record = {"at": datetime(2024, 1, 2, 3, 4, 5), "items": [(1, datetime(2024, 1, 1))]}
        assert serialize_for_json(record) == {
            "at": "2024-01-02T03:04:05",
            "items": [[1, "2024-01-01T00:00:00"]],
        }
