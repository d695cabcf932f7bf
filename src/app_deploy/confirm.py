"""!
@brief Console prompt asking the user to close running applications.
@details Mirrors the welcome dialog of desktop deployment tools in plain
text: the running applications are listed and the user may close them now or
defer the deployment. A countdown closes them automatically when it expires,
and a persistent prompt keeps asking until it receives an explicit answer.
"""

from __future__ import annotations

import sys
import threading
from typing import Callable, Sequence

CLOSE_PROMPT = (
    "The following applications must be closed before {action} can continue:\n"
    "{applications}\n"
    "Close them now? (Y)es / (N)o, defer"
)

_ACCEPT = ("y", "yes")
_DECLINE = ("n", "no", "defer")

_NO_ANSWER = object()


def _read_with_timeout(
    prompt: str, input_func: Callable[[str], str], timeout: float
) -> object:
    """!
    @brief Read one answer, giving up after ``timeout`` seconds.
    @returns The answer, ``None`` on end-of-file, or :data:`_NO_ANSWER` when
    the countdown expired.
    """

    answer: list[str | None] = []
    done = threading.Event()

    def _reader() -> None:
        try:
            answer.append(input_func(prompt))
        except EOFError:
            answer.append(None)
        finally:
            done.set()

    threading.Thread(target=_reader, name="close-apps-prompt", daemon=True).start()
    if not done.wait(timeout):
        return _NO_ANSWER
    return answer[0] if answer else None


def request_close_confirmation(
    applications: Sequence[str],
    *,
    action: str = "installation",
    countdown_seconds: int | None = None,
    persist: bool = False,
    input_func: Callable[[str], str] | None = None,
    interactive: bool | None = None,
) -> bool:
    """!
    @brief Ask the user whether the running ``applications`` may be closed.
    @details Non-interactive contexts return ``True`` so unattended runs are
    never blocked. An expired countdown also returns ``True``. Without
    ``persist`` a blank answer accepts; with ``persist`` blank or unknown
    answers repeat the question. End-of-file declines.
    @param applications Image names currently running.
    @param action Word used in the prompt (``installation``/``uninstallation``).
    @param countdown_seconds Seconds before the applications are closed
    automatically; ``None`` waits indefinitely and zero closes them without
    asking.
    @param persist Whether to keep asking until an explicit answer arrives.
    @param input_func Optional input function override for tests and UIs.
    @param interactive Optional override to signal if the environment is
    interactive.
    @returns ``True`` to close the applications, ``False`` to defer.
    """

    if not applications:
        return True

    if interactive is None:
        stdin = getattr(sys, "stdin", None)
        isatty = getattr(stdin, "isatty", None)
        interactive = bool(isatty and isatty())

    if not interactive:
        return True

    if input_func is None:
        input_func = input

    if countdown_seconds is not None and countdown_seconds <= 0:
        return True

    listing = "\n".join(f"  - {name}" for name in applications)
    prompt = CLOSE_PROMPT.format(action=action, applications=listing)
    if countdown_seconds:
        prompt += f" [closing automatically in {countdown_seconds}s]"

    while True:
        if countdown_seconds:
            response = _read_with_timeout(f"{prompt} ", input_func, float(countdown_seconds))
            if response is _NO_ANSWER:
                return True
        else:
            try:
                response = input_func(f"{prompt} ")
            except EOFError:
                response = None

        if response is None:
            return False
        normalized = str(response).strip().lower()
        if normalized in _ACCEPT:
            return True
        if normalized in _DECLINE:
            return False
        if not persist and normalized == "":
            return True
        if not persist:
            return False


__all__ = ["CLOSE_PROMPT", "request_close_confirmation"]
