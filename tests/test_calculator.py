import pytest

from core.calculator import evaluate, format_number


@pytest.mark.parametrize(
    "expression, expected",
    [
        ("1+1", 2),
        ("(1200 + 800) * 2 / 4", 1000),
        ("7 // 2", 3),
        ("7 % 4", 3),
        ("-3 ** 2", -9),
        ("2 ** 10", 1024),
        ("1200×3", 3600),
        ("（100＋20）÷4", 30),
    ],
)
def test_arithmetic(expression, expected):
    assert evaluate(expression) == expected


@pytest.mark.parametrize(
    "expression",
    [
        "",
        "   ",
        "__import__('os').system('ls')",
        "x + 1",
        "abs(-1)",
        "1 / 0",
        "2 ** 1000",
        "1 +",
        "1" * 250,
    ],
)
def test_rejected_expressions(expression):
    with pytest.raises(ValueError):
        evaluate(expression)


def test_format_number():
    assert format_number(4.0) == "4"
    assert format_number(1 / 3) == "0.3333333333"
    assert format_number(12) == "12"
