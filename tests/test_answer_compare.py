import pytest

from quizdeck.core.answer_compare import check_math_answer, compare_math_answers, normalize_answer, parse_number


def test_normalize_strips_formatting():
    assert normalize_answer(" $0,5$. ") == "0.5"
    assert normalize_answer("X {}") == "x"


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("1/2", 0.5),
        ("\\frac{3}{4}", 0.75),
        ("2\\frac{1}{2}", 2.5),
        ("3 1/2", 3.5),
        ("-1 1/2", -1.5),
        ("0,25", 0.25),
        ("x+1", None),
        ("1/0", None),
    ],
)
def test_parse_number(text, expected):
    assert parse_number(text) == expected


def test_equivalent_forms_match():
    assert compare_math_answers("0.75", "3/4")
    assert compare_math_answers("$\\frac{1}{2}$", "0,5")
    assert not compare_math_answers("0.7", "3/4")


def test_check_against_several_answers_ignores_blanks():
    assert check_math_answer("0,75", ["", "3/4"])
    assert not check_math_answer("1", ["  ", ""])
    assert not check_math_answer("1", [])
