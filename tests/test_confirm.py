"""!
@brief Close-applications prompt tests.
"""

from __future__ import annotations

import pathlib
import sys
import threading
from typing import Iterator, List

import pytest

PROJECT_ROOT = pathlib.Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from app_deploy import confirm  # noqa: E402

APPS = ["stats.exe"]


def _answers(*values: str):  # type: ignore[no-untyped-def]
    """!
    @brief Build an input function replaying ``values`` and recording prompts.
    """

    iterator: Iterator[str] = iter(values)
    prompts: List[str] = []

    def _input(prompt: str) -> str:
        prompts.append(prompt)
        try:
            return next(iterator)
        except StopIteration:
            raise EOFError from None

    _input.prompts = prompts  # type: ignore[attr-defined]
    return _input


def test_no_applications_accepts_without_prompting() -> None:
    reader = _answers()
    assert confirm.request_close_confirmation([], input_func=reader, interactive=True) is True
    assert reader.prompts == []  # type: ignore[attr-defined]


def test_non_interactive_accepts_without_prompting() -> None:
    reader = _answers("n")
    assert confirm.request_close_confirmation(APPS, input_func=reader, interactive=False) is True
    assert reader.prompts == []  # type: ignore[attr-defined]


@pytest.mark.parametrize(
    ("answer", "expected"),
    [("y", True), ("YES", True), ("n", False), (" defer ", False), ("", True), ("maybe", False)],
)
def test_single_prompt_answers(answer: str, expected: bool) -> None:
    reader = _answers(answer)

    result = confirm.request_close_confirmation(
        APPS, action="uninstallation", input_func=reader, interactive=True
    )

    assert result is expected
    prompt = reader.prompts[0]  # type: ignore[attr-defined]
    assert "uninstallation" in prompt
    assert "  - stats.exe" in prompt


def test_persistent_prompt_repeats_until_explicit_answer() -> None:
    reader = _answers("", "maybe", "y")

    assert confirm.request_close_confirmation(APPS, persist=True, input_func=reader, interactive=True)
    assert len(reader.prompts) == 3  # type: ignore[attr-defined]


def test_end_of_file_declines() -> None:
    assert confirm.request_close_confirmation(APPS, input_func=_answers(), interactive=True) is False


def test_countdown_answer_within_time() -> None:
    reader = _answers("n")

    result = confirm.request_close_confirmation(
        APPS, countdown_seconds=5, input_func=reader, interactive=True
    )

    assert result is False
    assert "5s" in reader.prompts[0]  # type: ignore[attr-defined]


def test_zero_countdown_closes_without_prompt() -> None:
    reader = _answers("n")

    result = confirm.request_close_confirmation(
        APPS, countdown_seconds=0, input_func=reader, interactive=True
    )

    assert result is True
    assert reader.prompts == []  # type: ignore[attr-defined]


def test_countdown_expiry_closes_applications() -> None:
    release = threading.Event()

    def _blocking_input(prompt: str) -> str:
        release.wait(5)
        return "n"

    try:
        result = confirm.request_close_confirmation(
            APPS, countdown_seconds=1, input_func=_blocking_input, interactive=True
        )
    finally:
        release.set()

    assert result is True
