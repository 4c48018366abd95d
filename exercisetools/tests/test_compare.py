import pytest

from exercisetools.compare import NO_NEWLINE, compare
from exercisetools.errors import OutputMismatch


def test_exact_match():
    res = compare('["APPLE", "BANANA", "CHERRY"]\n', '["APPLE", "BANANA", "CHERRY"]\n')
    assert res.passed
    assert res.diff == ''
    res.check()


@pytest.mark.parametrize('actual', [
    '[2, 4, 6]\n[1, 3, 5]\n\n',
    '[2, 4, 6]\n[1, 3, 5]',
])
def test_trailing_newline_matters(actual):
    expected = '[2, 4, 6]\n[1, 3, 5]\n'
    assert compare(expected, expected).passed
    assert not compare(actual, expected).passed


def test_no_whitespace_normalisation():
    assert not compare('[2, 4, 6] \n', '[2, 4, 6]\n').passed
    assert not compare('[2,4,6]\n', '[2, 4, 6]\n').passed
    assert not compare("['APPLE']\n", '["APPLE"]\n').passed


def test_missing_line_shows_in_diff():
    res = compare('[2, 4, 6]\n', '[2, 4, 6]\n[1, 3, 5]\n')
    assert not res.passed
    assert res.actual == '[2, 4, 6]\n'
    assert res.expected == '[2, 4, 6]\n[1, 3, 5]\n'
    assert '-[1, 3, 5]\n' in res.diff
    with pytest.raises(OutputMismatch) as excinfo:
        res.check()
    assert excinfo.value.diff == res.diff


def test_missing_trailing_newline_is_marked():
    res = compare('[2, 4, 6]', '[2, 4, 6]\n')
    assert NO_NEWLINE in res.diff


def test_empty_output():
    res = compare('', 'hello\n')
    assert not res.passed
    assert '-hello\n' in res.diff
