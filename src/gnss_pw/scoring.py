"""Pluggable scoring functions for the PW model.

The estimator only depends on ``Scorer.score``; whether the model runs
in-process, as a subprocess or behind an RPC boundary is an implementation
detail of the scorer.
"""

from __future__ import annotations

import json
import logging
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from pydantic import ValidationError

from gnss_pw.config import Settings
from gnss_pw.errors import ModelUnavailable
from gnss_pw.models import ScoreOutput

logger = logging.getLogger(__name__)


class Scorer(Protocol):
    def score(self, features: Mapping[str, Any]) -> ScoreOutput: ...


class SubprocessScorer:
    """Run an external predictor once per request.

    The feature mapping is written to stdin as one JSON object; the last
    non-empty stdout line must be ``{"predicted_pw": ..., "uncertainty": ...}``.
    """

    def __init__(self, command: Sequence[str] | str, timeout_s: float = 10.0) -> None:
        self.command = shlex.split(command) if isinstance(command, str) else list(command)
        if not self.command:
            raise ValueError("Scorer command must not be empty")
        self.timeout_s = timeout_s

    def score(self, features: Mapping[str, Any]) -> ScoreOutput:
        try:
            completed = subprocess.run(
                self.command,
                input=json.dumps(dict(features)),
                capture_output=True,
                text=True,
                timeout=self.timeout_s,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise ModelUnavailable(f"Predictor timed out after {self.timeout_s}s") from exc
        except OSError as exc:
            raise ModelUnavailable(f"Predictor could not be started: {exc}") from exc

        if completed.returncode != 0:
            stderr_tail = completed.stderr.strip()[-300:]
            raise ModelUnavailable(f"Predictor exited with status {completed.returncode}: {stderr_tail}")

        lines = [line for line in completed.stdout.splitlines() if line.strip()]
        if not lines:
            raise ModelUnavailable("Predictor produced no output")
        try:
            payload = json.loads(lines[-1])
        except json.JSONDecodeError as exc:
            raise ModelUnavailable(f"Predictor response is not valid JSON: {lines[-1][:200]}") from exc
        try:
            return ScoreOutput.model_validate(payload)
        except ValidationError as exc:
            raise ModelUnavailable(f"Predictor response failed validation: {exc}") from exc


def scorer_from_settings(settings: Settings) -> SubprocessScorer | None:
    if not settings.model_command:
        logger.warning("PW_MODEL_COMMAND not set; all predictions will use the fallback path")
        return None
    return SubprocessScorer(settings.model_command, timeout_s=settings.model_timeout_s)
