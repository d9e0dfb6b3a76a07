"""Tests for dotted names and their directory layout."""
from pathlib import PurePosixPath

import pytest

from grove.errors import InvalidNameError
from grove.naming import MAX_DEPTH, MAX_LENGTH, Name, from_path, parse, to_path, validate_alias


class TestParse:

    def test_valid_names(self):
        name = parse("prototypes.awesome-project")
        assert name.segments == ("prototypes", "awesome-project")
        assert str(name) == "prototypes.awesome-project"
        assert name.leaf == "awesome-project"
        assert name.depth == 2

    def test_parse_returns_existing_name(self):
        name = parse("a.b")
        assert parse(name) is name

    @pytest.mark.parametrize("raw", [
        "",
        ".a",
        "a.",
        "a..b",
        "a b",
        "a/b",
        "ä",
    ])
    def test_invalid_names(self, raw):
        with pytest.raises(InvalidNameError) as exc:
            parse(raw)
        assert exc.value.kind == "InvalidName"

    def test_depth_limit(self):
        parse(".".join(["s"] * MAX_DEPTH))
        with pytest.raises(InvalidNameError, match="deeper"):
            parse(".".join(["s"] * (MAX_DEPTH + 1)))

    def test_length_limit(self):
        parse("a" * MAX_LENGTH)
        with pytest.raises(InvalidNameError, match="longer"):
            parse("a" * (MAX_LENGTH + 1))

    def test_non_string_rejected(self):
        with pytest.raises(InvalidNameError):
            parse(42)


class TestNameRelations:

    def test_parent_and_child(self):
        name = parse("a.b.c")
        assert name.parent == parse("a.b")
        assert parse("a").parent is None
        assert parse("a.b").child("c") == name

    def test_descendants(self):
        assert parse("a.b").is_descendant_of(parse("a"))
        assert not parse("a").is_descendant_of(parse("a"))
        assert not parse("ab.c").is_descendant_of(parse("a"))
        assert list(parse("a.b.c").ancestors()) == [parse("a"), parse("a.b")]

    def test_ordering_follows_dotted_string(self):
        names = [parse(n) for n in ("ab", "a.c", "a", "a.b")]
        assert [str(n) for n in sorted(names)] == ["a", "a.b", "a.c", "ab"]


class TestPathMapping:

    def test_namespaces_get_prefix(self):
        assert to_path("prototypes.awesome-project") == PurePosixPath("_prototypes/awesome-project")
        assert to_path("solo") == PurePosixPath("solo")
        assert to_path("a.b.c") == PurePosixPath("_a/_b/c")

    def test_round_trip_and_injective(self):
        raw_names = ["a", "_a", "a.b", "a._b", "_a.b", "a.b.c", "a_b", "a-b.c", "x.a.b"]
        paths = [to_path(raw) for raw in raw_names]
        assert len(set(paths)) == len(raw_names)
        for raw, path in zip(raw_names, paths):
            assert from_path(path) == parse(raw)

    def test_from_path_requires_prefix(self):
        with pytest.raises(InvalidNameError, match="prefix"):
            from_path("prototypes/awesome-project")

    def test_from_path_accepts_strings(self):
        assert from_path("_a/_b/c") == Name(("a", "b", "c"))


class TestAlias:

    def test_valid_alias(self):
        assert validate_alias("core-lib_2") == "core-lib_2"

    @pytest.mark.parametrize("alias", ["", "a.b", "a/b", ".."])
    def test_invalid_alias(self, alias):
        with pytest.raises(InvalidNameError):
            validate_alias(alias)
