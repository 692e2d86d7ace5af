"""tqdm progress bar fed by the walker's ``(attempted, total)`` callbacks."""

from __future__ import annotations

from typing import Optional

from tqdm import tqdm


class TqdmProgress:
    def __init__(self, disable: bool = False, desc: str = "Epochs") -> None:
        self._disable = disable
        self._desc = desc
        self._bar: Optional[tqdm] = None

    def __call__(self, attempted: int, total: int) -> None:
        if self._bar is None:
            self._bar = tqdm(total=total, desc=self._desc, unit="epoch", disable=self._disable, leave=False)
        self._bar.update(attempted - self._bar.n)

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()
            self._bar = None

    def __enter__(self) -> "TqdmProgress":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
