"""
Tests for matching caller arguments against contract signatures.

Uses property-based testing for arity and type checks.
"""

import pytest
from hypothesis import given, strategies as st

from dynaload.core.errors import ArgumentCountError, TypeMismatchError
from dynaload.loader.contracts import inspect_contract
from dynaload.loader.matcher import match_arguments
from tests.plugin_contracts import C1, Context, Greeter, SubContext, Untyped

_values = st.one_of(st.integers(), st.text(), st.booleans(), st.none(), st.floats(allow_nan=False))


class TestMatchArguments:

    def test_exact_match_binds_args(self):
        ctx = Context()
        assert match_arguments(inspect_contract(C1), [ctx]) == (ctx,)

    def test_type_mismatch_names_position_expected_actual(self):
        with pytest.raises(TypeMismatchError) as exc:
            match_arguments(inspect_contract(Greeter), ['bob', '3'])
        err = exc.value
        assert err.position == 1
        assert err.expected == 'int'
        assert err.actual == 'str'
        assert 'arg 1 is wrong type' in str(err)

    def test_bool_is_not_int(self):
        with pytest.raises(TypeMismatchError):
            match_arguments(inspect_contract(Greeter), ['bob', True])

    def test_subclass_is_not_accepted(self):
        with pytest.raises(TypeMismatchError) as exc:
            match_arguments(inspect_contract(C1), [SubContext()])
        assert exc.value.actual == 'tests.plugin_contracts.SubContext'

    def test_count_error_attributes(self):
        with pytest.raises(ArgumentCountError) as exc:
            match_arguments(inspect_contract(Greeter), ['bob'])
        assert (exc.value.expected, exc.value.actual) == (2, 1)

    @given(args=st.lists(_values, max_size=6).filter(lambda a: len(a) != 2))
    def test_wrong_arity_always_rejected(self, args):
        with pytest.raises(ArgumentCountError):
            match_arguments(inspect_contract(Untyped), args)

    @given(first=_values, second=_values)
    def test_any_parameters_accept_everything(self, first, second):
        assert match_arguments(inspect_contract(Untyped), (first, second)) == (first, second)

    @given(name=st.text(), times=st.one_of(st.text(), st.floats(allow_nan=False), st.none(), st.booleans()))
    def test_non_int_second_argument_always_rejected(self, name, times):
        with pytest.raises(TypeMismatchError) as exc:
            match_arguments(inspect_contract(Greeter), [name, times])
        assert exc.value.position == 1
