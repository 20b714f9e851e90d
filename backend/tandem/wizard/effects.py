"""One-shot signals for the presentation shell.

Effects travel on their own queue, separate from state snapshots, so that a
shell re-rendering a snapshot never replays a navigation or a message.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class NavigateToStep:
    step: str
    index: int = 0


@dataclass(frozen=True)
class ShowError:
    message: str
    retryable: bool = False


@dataclass(frozen=True)
class ShowMessage:
    message: str


@dataclass(frozen=True)
class ExitFlow:
    reason: str


@dataclass(frozen=True)
class NavigateToPlanning:
    pass


WizardEffect = Union[NavigateToStep, ShowError, ShowMessage, ExitFlow, NavigateToPlanning]
