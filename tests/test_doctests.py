"""Run the doctests of the pure modules."""

import doctest

import pytest

from handmorph import display, morph, script_utils, shapes, smoothing, util


@pytest.mark.parametrize("module", [util, shapes, smoothing, morph, display, script_utils])
def test_doctests(module):
    results = doctest.testmod(module)
    assert results.failed == 0
