from __future__ import annotations

import sys

import pytest

from gnss_pw.config import Settings
from gnss_pw.errors import ModelUnavailable
from gnss_pw.scoring import SubprocessScorer, scorer_from_settings

FEATURES = {"query_mode": "observation", "zwd_mm": 120.0, "temperature_c": None}


def _python(code: str) -> list[str]:
    return [sys.executable, "-c", code]


def test_subprocess_scorer_reads_last_json_line() -> None:
    code = (
        "import json, sys\n"
        "features = json.load(sys.stdin)\n"
        "print('loading model...')\n"
        "print(json.dumps({'predicted_pw': features['zwd_mm'] * 0.15, 'uncertainty': 0.8}))\n"
    )
    output = SubprocessScorer(_python(code)).score(FEATURES)

    assert output.predicted_pw == pytest.approx(18.0)
    assert output.uncertainty == 0.8


def test_missing_values_reach_the_predictor_as_null() -> None:
    code = (
        "import json, sys\n"
        "features = json.load(sys.stdin)\n"
        "pw = -1 if features['temperature_c'] is None else 1\n"
        "print(json.dumps({'predicted_pw': abs(pw) * 7, 'uncertainty': 0 if pw < 0 else 1}))\n"
    )
    output = SubprocessScorer(_python(code)).score(FEATURES)

    assert output.uncertainty == 0


def test_timeout_is_model_unavailable() -> None:
    scorer = SubprocessScorer(_python("import time; time.sleep(5)"), timeout_s=0.5)
    with pytest.raises(ModelUnavailable, match="timed out"):
        scorer.score(FEATURES)


def test_unstartable_command_is_model_unavailable() -> None:
    with pytest.raises(ModelUnavailable, match="could not be started"):
        SubprocessScorer(["/nonexistent/pw-predictor"]).score(FEATURES)


def test_non_zero_exit_is_model_unavailable() -> None:
    code = "import sys; sys.stderr.write('model file missing'); sys.exit(3)"
    with pytest.raises(ModelUnavailable, match="status 3"):
        SubprocessScorer(_python(code)).score(FEATURES)


@pytest.mark.parametrize(
    "stdout",
    [
        "",
        "not json",
        '{"predicted_pw": "wet"}',
        '{"predicted_pw": 12.0, "uncertainty": -1}',
        '{"predicted_pw": NaN, "uncertainty": 1}',
    ],
)
def test_malformed_output_is_model_unavailable(stdout: str) -> None:
    code = f"print({stdout!r})"
    with pytest.raises(ModelUnavailable):
        SubprocessScorer(_python(code)).score(FEATURES)


def test_command_string_is_split() -> None:
    scorer = SubprocessScorer("python3 predict.py --mode pw", timeout_s=3)

    assert scorer.command == ["python3", "predict.py", "--mode", "pw"]
    assert scorer.timeout_s == 3


def test_no_command_configured_means_no_scorer() -> None:
    assert scorer_from_settings(Settings(model_command=None)) is None
    assert isinstance(scorer_from_settings(Settings(model_command="predict")), SubprocessScorer)
