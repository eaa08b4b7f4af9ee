"""
Tests for the draft_introduction command line.
"""
import pytest

from litdraft.errors import InvalidArgument
from litdraft.models import Theme
from scripts.draft_introduction import main, parse_theme_args


def test_parse_theme_args_with_and_without_importance():
    themes = parse_theme_args(["GLP-1 agonists:9", "Weight loss", "Ratio 1:2 dosing:4"])

    assert themes == [
        Theme("GLP-1 agonists", 9),
        Theme("Weight loss", 5),
        Theme("Ratio 1:2 dosing", 4),
    ]


def test_parse_theme_args_rejects_out_of_range_importance():
    with pytest.raises(InvalidArgument):
        parse_theme_args(["Obesity:11"])


def test_out_of_range_theme_is_a_usage_error(capsys):
    with pytest.raises(SystemExit) as exc_info:
        main(["--theme", "Obesity:11", "--no-draft"])

    assert exc_info.value.code == 2
    assert "--theme" in capsys.readouterr().err
