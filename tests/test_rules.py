"""Tests for the built-in rule catalogue."""

import pytest

from formrules.validation.rules import (
    CallableRule,
    Outcome,
    Rule,
    RuleContext,
    RuleRegistry,
    default_registry,
    is_url,
)
from formrules.validation.parser import parse_rule
from formrules.validation.sources import MappingValueSource
from formrules.validation.values import FieldKind, FileInfo, Scalar

IMPLICIT_RULES = {"required", "required_if", "required_with", "required_unless", "accepted"}


def pdf(name="cv.pdf", size=1000):
    return FileInfo(name=name, size=size, mime_type="application/pdf")


class TestBlankValues:
    """Nullable-by-default contract."""

    @pytest.mark.parametrize("name", sorted(set(default_registry.names()) - IMPLICIT_RULES))
    @pytest.mark.parametrize("raw", ["", None, []])
    def test_non_implicit_rules_pass_on_blank(self, check, name, raw):
        outcome = check(f"{name}:x", raw)
        assert outcome.valid and not outcome.is_pending

    @pytest.mark.parametrize("raw", ["", None, [], "   "])
    def test_required_fails_on_blank(self, passes, raw):
        assert not passes("required", raw)

    def test_accepted_fails_on_blank(self, passes):
        assert not passes("accepted", "")
        assert not passes("accepted", None)


class TestPresence:
    """required and its conditional variants."""

    def test_required(self, passes):
        assert passes("required", "0")
        assert passes("required", ["a"])
        assert passes("required", 0)

    def test_required_for_files(self, passes):
        assert not passes("required", [], kind=FieldKind.FILE)
        assert passes("required", [pdf()], kind=FieldKind.FILE)

    def test_required_if_equals(self, passes):
        others = {"type": "business"}
        assert not passes("required_if:type,=,business,partner", "", others=others)
        assert passes("required_if:type,==,personal", "", others=others)
        assert passes("required_if:type,=,business", "ACME", others=others)

    def test_required_if_not_equals(self, passes):
        others = {"type": "business"}
        assert passes("required_if:type,!=,business", "", others=others)
        assert not passes("required_if:type,!=,personal", "", others=others)

    def test_required_if_lenient_cases(self, passes):
        assert passes("required_if:type,=", "")
        assert passes("required_if:missing,=,x", "")
        assert passes("required_if:type,>,1", "", others={"type": "2"})

    def test_required_if_checkbox_target(self, passes):
        others = {"subscribe": True}
        assert not passes("required_if:subscribe,=,true", "", others=others)

    def test_required_with(self, passes):
        assert not passes("required_with:phone,email", "", others={"phone": "", "email": "a@b.co"})
        assert passes("required_with:phone,email", "", others={"phone": " "})
        assert passes("required_with:phone", "")

    def test_required_unless(self, passes):
        others = {"country": "US"}
        assert passes("required_unless:country,US,CA", "", others=others)
        assert not passes("required_unless:country,GB", "", others=others)
        assert not passes("required_unless:missing,GB", "")
        assert passes("required_unless:country", "")

    @pytest.mark.parametrize("raw", [True, "true", 1, 1.0, "1", "yes", "on"])
    def test_accepted_values(self, passes, raw):
        assert passes("accepted", raw)

    @pytest.mark.parametrize("raw", [False, "false", 0, "no", "Yes", "1.0", ["yes"]])
    def test_not_accepted(self, passes, raw):
        assert not passes("accepted", raw)

    def test_markers(self, passes):
        assert passes("nullable", "anything")
        assert passes("sometimes", 12)


class TestTypes:
    """Type rules."""

    def test_string(self, passes):
        assert passes("string", "abc")
        assert not passes("string", 12)
        assert not passes("string", ["a"])

    @pytest.mark.parametrize("raw", ["12.5", "12", " 7 ", "-3", 4, 2.5])
    def test_numeric(self, passes, raw):
        assert passes("numeric", raw)

    @pytest.mark.parametrize("raw", ["12e5", "1E3", "abc", "12abc", True, "Infinity", ["1"]])
    def test_not_numeric(self, passes, raw):
        assert not passes("numeric", raw)

    def test_float_and_double_alias_numeric(self, passes):
        assert passes("float", "1.5")
        assert not passes("double", "1e2")

    def test_integer(self, passes):
        assert passes("integer", "70")
        assert passes("integer", "5.0")
        assert passes("integer", 3)
        assert not passes("integer", "5.5")
        assert not passes("integer", "1e3")
        assert not passes("integer", "seven")

    @pytest.mark.parametrize("raw", ["true", "false", "1", "0", 1, 0, True, False])
    def test_boolean(self, passes, raw):
        assert passes("boolean", raw)

    @pytest.mark.parametrize("raw", ["yes", "on", 2, "TRUE"])
    def test_not_boolean(self, passes, raw):
        assert not passes("boolean", raw)

    def test_array(self, passes):
        assert passes("array", ["a", "b"])
        assert passes("array", "a,b")
        assert not passes("array", "ab")
        assert not passes("array", 5)

    def test_json(self, passes):
        assert passes("json", '{"a": [1, 2]}')
        assert passes("json", "12")
        assert not passes("json", "{a: 1}")

    def test_file(self, passes):
        assert passes("file", [pdf()], kind=FieldKind.FILE)
        assert not passes("file", "cv.pdf")


class TestStringFormats:
    """Format rules."""

    def test_email(self, passes):
        assert passes("email", "jane@example.com")
        assert not passes("email", "jane@example")
        assert not passes("email", "jane doe@example.com")

    @pytest.mark.parametrize("text", [
        "https://example.com",
        "http://localhost:8000/path?q=1",
        "ftp://files.example.org",
        "http://[::1]/",
        "mailto:jane@example.com",
        "file:///tmp/x",
    ])
    def test_valid_urls(self, text):
        assert is_url(text)

    @pytest.mark.parametrize("text", [
        "example.com",
        "//example.com",
        "http://",
        "http://exa mple.com",
        "http://example.com:99999",
        "1http://example.com",
    ])
    def test_invalid_urls(self, text):
        assert not is_url(text)

    def test_alpha_family(self, passes):
        assert passes("alpha", "abcXYZ")
        assert not passes("alpha", "abc1")
        assert passes("alpha_num", "abc123")
        assert not passes("alpha_num", "abc-123")
        assert passes("alpha_dash", "abc_12-3")
        assert not passes("alpha_dash", "abc 123")

    def test_case(self, passes):
        assert passes("lowercase", "abc 1")
        assert not passes("lowercase", "aBc")
        assert passes("uppercase", "ABC-1")
        assert not passes("uppercase", "ABc")

    def test_regex(self, passes):
        assert passes("regex:^[a-z]+$", "abc")
        assert passes("regex:/^[a-z]+$/", "abc")
        assert not passes("regex:^[a-z]+$", "abc1")
        assert passes("regex:^[0-9]{2,3}$", "123")

    def test_invalid_regex(self, check):
        outcome = check("regex:[a-", "abc")
        assert not outcome.valid
        assert outcome.message == "Invalid regex pattern"

    def test_not_regex(self, passes, check):
        assert passes("not_regex:^[0-9]+$", "abc")
        assert not passes("not_regex:^[0-9]+$", "123")
        assert check("not_regex:(", "abc").message == "Invalid regex pattern"

    def test_uuid(self, passes):
        assert passes("uuid", "123e4567-e89b-12d3-a456-426614174000")
        assert passes("uuid", "123E4567-E89B-42D3-A456-426614174000")
        assert not passes("uuid", "123e4567-e89b-62d3-a456-426614174000")
        assert not passes("uuid", "not-a-uuid")

    def test_ip(self, passes):
        assert passes("ip", "192.168.0.1")
        assert passes("ip", "2001:db8::1")
        assert not passes("ip", "300.1.1.1")
        assert passes("ipv4", "10.0.0.255")
        assert not passes("ipv4", "2001:db8::1")
        assert passes("ipv6", "::1")
        assert not passes("ipv6", "10.0.0.1")


class TestSizes:
    """min, max, between and friends."""

    def test_min_max_numeric(self, passes):
        assert passes("min:18", "18")
        assert not passes("min:18", "17.5")
        assert passes("max:10", 10)
        assert not passes("max:10", "11")

    def test_min_max_string_length(self, passes):
        assert passes("min:3", "abc")
        assert not passes("min:3", "ab")
        assert not passes("max:3", "abcd")

    def test_min_max_comma_string_counts_items(self, passes):
        assert passes("min:2", "a,b,c")
        assert not passes("max:2", "a,b,c")

    def test_min_max_multi(self, passes):
        assert passes("min:2", ["a", "b"])
        assert not passes("min:3", ["a", "b"])

    def test_min_max_files_count(self, passes):
        files = [pdf("a.pdf"), pdf("b.pdf")]
        assert passes("max:2", files, kind=FieldKind.FILE)
        assert not passes("max:1", files, kind=FieldKind.FILE)

    def test_min_without_parameter_fails(self, passes):
        assert not passes("min", "abc")

    @pytest.mark.parametrize("raw,valid", [("18", True), ("65", True), ("17", False), ("66", False), (40, True)])
    def test_between_numeric_inclusive(self, passes, raw, valid):
        assert passes("between:18,65", raw) is valid

    def test_between_string_length(self, passes):
        assert passes("between:3,5", "abcd")
        assert not passes("between:3,5", "abcdef")

    def test_between_list(self, passes):
        assert passes("between:1,2", ["a", "b"])
        assert not passes("between:1,2", "a,b,c")

    def test_between_time_field(self, passes):
        assert passes("between:09:00,17:30", "12:15", kind=FieldKind.TIME)
        assert passes("between:09:00,17:30", "17:30", kind=FieldKind.TIME)
        assert not passes("between:09:00,17:30", "08:59", kind=FieldKind.TIME)

    def test_size(self, passes):
        small = pdf(size=3 * 1024 * 1024)
        big = pdf(size=5 * 1024 * 1024)
        assert passes("size", [small], kind=FieldKind.FILE)
        assert not passes("size", [big], kind=FieldKind.FILE)
        assert passes("size:6", [big], kind=FieldKind.FILE)
        assert not passes("size:1", [small, big], kind=FieldKind.FILE)

    def test_size_ignores_non_files(self, passes):
        assert passes("size:1", "x" * 5000)

    def test_digits(self, passes):
        assert passes("digits:4", "1234")
        assert not passes("digits:4", "123")
        assert not passes("digits:4", "12a4")
        assert passes("digits:3", 123)

    def test_digits_between(self, passes):
        assert passes("digits_between:2,4", "123")
        assert not passes("digits_between:2,4", "12345")
        assert not passes("digits_between:2,4", "1.2")

    def test_decimal(self, passes):
        assert passes("decimal:2", "12.34")
        assert not passes("decimal:2", "12.3")
        assert passes("decimal:1,3", "1.234")
        assert not passes("decimal:1,3", "1.2345")
        assert passes("decimal", ".5")
        assert not passes("decimal", "12")
        assert passes("decimal:0", "12")
        assert not passes("decimal:2", "12.")

    def test_currency(self, passes):
        assert passes("currency", "1,234.56")
        assert passes("currency", ".50")
        assert not passes("currency", "1.2.3")
        assert not passes("currency", "12e3")
        assert not passes("currency", "$12")
        assert not passes("currency:4", "12345")
        assert not passes("currency", "1" * 17)

    def test_lengths_always_use_text(self, passes):
        assert passes("min_length:3", "123")
        assert not passes("min_length:3", 12)
        assert passes("max_length:5", ["ab", "c"])
        assert not passes("max_length:2", "abc")


class TestCrossField:
    """Rules that look at other fields."""

    def test_same(self, check):
        assert check("same:password", "secret", others={"password": "secret"}).valid
        mismatch = check("same:password", "secret", others={"password": "other"})
        assert not mismatch.valid and mismatch.message is None
        missing = check("same:password", "secret")
        assert not missing.valid
        assert missing.message == "Comparison field not found"

    def test_different(self, passes):
        assert passes("different:old", "new", others={"old": "old"})
        assert not passes("different:old", "same", others={"old": "same"})
        assert passes("different:missing", "anything")

    def test_confirmed(self, check):
        others = {"password_confirmation": "secret"}
        assert check("confirmed", "secret", others=others, field="password").valid
        mismatch = check("confirmed", "nope", others=others, field="password")
        assert not mismatch.valid and mismatch.message is None
        missing = check("confirmed", "secret", field="password")
        assert missing.message == "Confirmation field not found"

    def test_gt_lt_numeric(self, passes):
        assert passes("gt:10", "11")
        assert not passes("gt:10", "10")
        assert passes("lt:10", 9.5)
        assert passes("lte:10", "10")
        assert not passes("lte:10", "10.5")

    def test_gt_against_field(self, passes):
        assert passes("gt:min_price", "20", others={"min_price": "15"})
        assert not passes("gt:min_price", "10", others={"min_price": "15"})

    def test_non_numeric_comparison_uses_length(self, passes):
        # Length, not alphabetical order
        assert passes("gt:abc", "zz z")
        assert not passes("gt:abc", "zz")
        assert passes("lt:apple", "zzz")

    def test_comparison_without_parameter_fails(self, passes):
        assert not passes("gt", "5")


class TestDates:
    """Date rules."""

    def test_date(self, passes):
        assert passes("date", "2024-02-29")
        assert not passes("date", "2023-02-29")
        assert not passes("date", "someday")

    def test_date_format(self, passes):
        assert passes("date_format:Y-m-d", "2024-1-15")
        assert not passes("date_format:Y-m-d", "15-01-2024")
        assert passes("date_format:H:i", "09:30")

    def test_date_format_requires_known_format(self, passes):
        assert not passes("date_format", "2024-01-15")
        assert not passes("date_format:Ymd", "20240115")

    def test_after_before(self, passes):
        assert passes("after:2024-01-01", "2024-01-02")
        assert not passes("after:2024-01-01", "2024-01-01")
        assert passes("before:2024-01-01", "2023-12-31")
        assert not passes("before:garbage", "2023-12-31")

    def test_or_equal_against_field(self, passes):
        others = {"start": "2024-03-01"}
        assert passes("after_or_equal:start", "2024-03-01", others=others)
        assert not passes("after_or_equal:start", "2024-02-28", others=others)
        assert passes("before_or_equal:start", "2024-02-28", others=others)

    def test_or_equal_falls_back_to_literal(self, passes):
        assert passes("after_or_equal:2024-03-01", "2024-03-01")
        assert not passes("before_or_equal:2024-03-01", "2024-03-02")

    def test_weekend(self, passes):
        assert passes("weekend", "2024-06-15")
        assert passes("weekend", "2024-06-16")
        assert not passes("weekend", "2024-06-17")

    def test_time(self, passes):
        assert passes("time", "9:05")
        assert passes("time", "23:59")
        assert not passes("time", "24:00")
        assert not passes("time", "12:60")


class TestSelection:
    """Membership and substring rules."""

    def test_in(self, passes):
        assert passes("in:red,green", "red")
        assert not passes("in:red,green", "blue")
        assert passes("in:1,2,3", 2)

    def test_in_multi_checks_each_item(self, passes):
        assert passes("in:red,green,blue", ["red", "blue"])
        assert not passes("in:red,green", ["red", "blue"])

    def test_not_in(self, passes):
        assert passes("not_in:admin,root", "jane")
        assert not passes("not_in:admin,root", "root")
        assert not passes("not_in:admin,root", ["jane", "root"])

    def test_contains(self, passes):
        assert passes("contains:foo,bar", "foobar baz")
        assert not passes("contains:foo,qux", "foobar")

    def test_doesnt_contain(self, passes):
        assert passes("doesnt_contain:spam,eggs", "ham")
        assert not passes("doesnt_contain:spam,eggs", "spam and ham")

    def test_starts_and_ends_with(self, passes):
        assert passes("starts_with:http,ftp", "ftp://x")
        assert not passes("starts_with:http", "www")
        assert passes("ends_with:.com,.org", "example.org")
        assert not passes("ends_with:.com", "example.net")


class TestFiles:
    """File rules."""

    def test_mimes(self, passes):
        files = [pdf("a.PDF"), pdf("b.docx")]
        assert passes("mimes:pdf,docx", files, kind=FieldKind.FILE)
        assert not passes("mimes:pdf", files, kind=FieldKind.FILE)
        assert not passes("mimes:pdf", "a.pdf")

    def test_image(self, passes):
        photo = FileInfo(name="a.svg", mime_type="image/svg+xml")
        assert passes("image", [photo], kind=FieldKind.FILE)
        assert not passes("image", [pdf()], kind=FieldKind.FILE)
        assert not passes("image", "a.png")

    def test_image_checks_first_file_only(self, passes):
        photo = FileInfo(name="a.png", mime_type="image/png")
        assert passes("image", [photo, pdf()], kind=FieldKind.FILE)


class TestRegistry:
    """Registry behaviour."""

    def test_catalogue(self):
        names = set(default_registry.names())
        assert {"required", "between", "dimensions", "float", "double", "sometimes"} <= names
        assert len(names) >= 55

    def test_unknown_rule_passes(self, check):
        assert check("no_such_rule:1,2", "").valid

    def test_exceptions_become_failures(self, make_source):
        registry = RuleRegistry()

        @registry.register("boom")
        class Boom(Rule):
            def evaluate(self, value, params, ctx):
                raise RuntimeError("kaboom")

        ctx = RuleContext(field="x", kind=FieldKind.TEXT, source=make_source())
        outcome = registry.dispatch(parse_rule("boom"), Scalar("v"), ctx)
        assert not outcome.valid
        assert outcome.message == "Validation error for rule boom"

    def test_register_aliases_share_instance(self):
        registry = RuleRegistry()

        @registry.register("yes", "ok")
        class Yes(Rule):
            def evaluate(self, value, params, ctx):
                return Outcome.ok()

        assert registry.get("yes") is registry.get("ok")
        assert registry.get("yes").name == "yes"

    def test_extend_with_function(self, make_source):
        registry = default_registry.copy()
        registry.extend("even", lambda value, params, ctx: int(value.value) % 2 == 0, "Odd!")
        ctx = RuleContext(field="n", kind=FieldKind.TEXT, source=make_source())

        assert registry.dispatch(parse_rule("even"), Scalar("4"), ctx).valid
        assert not registry.dispatch(parse_rule("even"), Scalar("3"), ctx).valid
        assert registry.get("even").message == "Odd!"
        assert "even" not in default_registry

    async def test_async_function_defers(self, make_source):
        async def remote_check(value, params, ctx):
            return value.value == "free"

        rule = CallableRule("available", remote_check)
        ctx = RuleContext(field="n", kind=FieldKind.TEXT, source=make_source())
        outcome = rule.check(Scalar("free"), (), ctx)

        assert outcome.is_pending
        assert (await outcome.pending()).valid

    def test_context_resolve_uses_selector(self):
        source = MappingValueSource({"email": "a@b.co"}, ids={"email": "email-input"})
        ctx = RuleContext(field="x", kind=FieldKind.TEXT, source=source, selector="id")
        assert ctx.resolve("email-input").name == "email"
        assert ctx.resolve("email") is None
