"""ExecutionOptions tests.

Test coverage:
- Normalization (stdin_bytes, env, ok_codes)
- Validation of conflicting or malformed values
- update(), explicit_fields() and check_allowed()
- Chunking policy selection
- Hashing and the read-only environment
"""

from __future__ import annotations

import pytest

from shellrun.errors import InvalidArgument
from shellrun.options import (
    PIPELINE_OPTION_FIELDS,
    STAGE_OPTION_FIELDS,
    ExecutionOptions,
)


class TestNormalization:
    """Test value normalization."""

    def test_defaults(self):
        options = ExecutionOptions()
        assert options.ok_codes == frozenset({0})
        assert options.long_sep == "="
        assert options.long_prefix == "--"
        assert options.timeout is None
        assert options.background is False

    def test_text_input_is_encoded(self):
        assert ExecutionOptions(stdin_bytes="héllo").stdin_bytes == "héllo".encode()

    def test_bytearray_input(self):
        assert ExecutionOptions(stdin_bytes=bytearray(b"x")).stdin_bytes == b"x"

    def test_env_values_are_stringified(self):
        assert ExecutionOptions(env={"A": 1}).env == {"A": "1"}

    @pytest.mark.parametrize(
        "value,expected",
        [
            (1, {1}),
            ([0, 1], {0, 1}),
            (range(0, 3), {0, 1, 2}),
            ({2}, {2}),
        ],
    )
    def test_ok_codes(self, value, expected):
        assert ExecutionOptions(ok_codes=value).ok_codes == frozenset(expected)


class TestValidation:
    """Test rejection of bad values."""

    def test_stdin_and_literal_input(self):
        with pytest.raises(InvalidArgument, match="mutually exclusive"):
            ExecutionOptions(stdin="/dev/null", stdin_bytes=b"x")

    def test_stderr_and_merge(self):
        with pytest.raises(InvalidArgument, match="mutually exclusive"):
            ExecutionOptions(stderr="/dev/null", stderr_to_stdout=True)

    @pytest.mark.parametrize("timeout", [0, -1, "5", True])
    def test_bad_timeout(self, timeout):
        with pytest.raises(InvalidArgument):
            ExecutionOptions(timeout=timeout)

    @pytest.mark.parametrize("size", [-1, 1.5, True])
    def test_bad_bufsize(self, size):
        with pytest.raises(InvalidArgument):
            ExecutionOptions(stdout_bufsize=size)

    def test_sink_must_be_callable(self):
        with pytest.raises(InvalidArgument):
            ExecutionOptions(on_stdout="print")  # type: ignore[arg-type]

    @pytest.mark.parametrize("codes", [[], "0", ["0"], [True], None])
    def test_bad_ok_codes(self, codes):
        with pytest.raises(InvalidArgument):
            ExecutionOptions(ok_codes=codes)

    @pytest.mark.parametrize("target", [True, -1, 3.5])
    def test_bad_redirect(self, target):
        with pytest.raises(InvalidArgument):
            ExecutionOptions(stdout=target)

    def test_invalid_argument_is_value_error(self):
        with pytest.raises(ValueError):
            ExecutionOptions(timeout=-1)


class TestUpdate:
    """Test derived copies and allowed-field checks."""

    def test_update_returns_new_instance(self):
        base = ExecutionOptions()
        derived = base.update(timeout=2)
        assert derived.timeout == 2
        assert base.timeout is None

    def test_update_revalidates(self):
        with pytest.raises(InvalidArgument):
            ExecutionOptions(stdin="/dev/null").update(stdin_bytes=b"x")

    def test_update_unknown_option(self):
        with pytest.raises(InvalidArgument, match="unsupported options `bogus'"):
            ExecutionOptions().update(bogus=1)

    def test_explicit_fields(self):
        options = ExecutionOptions(timeout=1, env={"A": "1"})
        assert options.explicit_fields() == {"timeout", "env"}
        assert ExecutionOptions().explicit_fields() == set()

    def test_stage_subset(self):
        ExecutionOptions(env={}, cwd="/", long_sep=None).check_allowed(STAGE_OPTION_FIELDS, "a stage")
        with pytest.raises(InvalidArgument, match="timeout"):
            ExecutionOptions(timeout=1).check_allowed(STAGE_OPTION_FIELDS, "a stage")

    def test_pipeline_subset_excludes_argument_style(self):
        assert "long_sep" not in PIPELINE_OPTION_FIELDS
        with pytest.raises(InvalidArgument):
            ExecutionOptions(long_prefix="-").check_allowed(PIPELINE_OPTION_FIELDS, "a pipeline")


class TestEffectiveBufsize:
    """Test chunking policy selection."""

    def test_without_sink_is_best_effort(self):
        assert ExecutionOptions(stdout_bufsize=4).effective_bufsize("stdout") is None

    def test_with_sink_uses_configured_size(self):
        options = ExecutionOptions(on_stderr=lambda chunk: None, stderr_bufsize=4)
        assert options.effective_bufsize("stderr") == 4

    def test_line_mode_default(self):
        options = ExecutionOptions(on_stdout=lambda chunk: None)
        assert options.effective_bufsize("stdout") == 0


class TestHashing:
    """Test that options work as dictionary keys."""

    def test_hash_with_env(self):
        first = ExecutionOptions(env={"A": "1"}, timeout=2)
        second = ExecutionOptions(env={"A": 1}, timeout=2)
        assert first == second
        assert hash(first) == hash(second)
        assert {first: "cached"}[second] == "cached"

    def test_env_is_read_only(self):
        options = ExecutionOptions(env={"A": "1"})
        with pytest.raises(TypeError):
            options.env["B"] = "2"  # type: ignore[index]

    def test_update_keeps_env_read_only(self):
        options = ExecutionOptions(env={"A": "1"}).update(timeout=1)
        assert dict(options.env) == {"A": "1"}
        with pytest.raises(TypeError):
            options.env["A"] = "2"  # type: ignore[index]
