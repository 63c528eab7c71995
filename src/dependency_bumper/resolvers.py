"""
Parameter resolvers that supply the branch, library and version of an update run.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional

import click

from .error_handling import ParameterResolutionError
from .models import UpdateParameters

logger = logging.getLogger(__name__)

# Order in which missing values are asked for
PARAMETER_PROMPTS = [
    ("branch", "Enter the branch name to check"),
    ("library", "Enter the library to update"),
    ("version", "Enter the version"),
]


class ParameterResolver(ABC):
    """Supplies fully populated update parameters or raises ParameterResolutionError."""

    @abstractmethod
    def resolve(self) -> UpdateParameters:
        pass


class ArgumentParameterResolver(ParameterResolver):
    """Resolves parameters from values supplied on the command line only."""

    def __init__(self, branch: Optional[str] = None, library: Optional[str] = None,
                 version: Optional[str] = None):
        self.supplied = {"branch": branch, "library": library, "version": version}

    def missing(self) -> List[str]:
        return [name for name, _ in PARAMETER_PROMPTS if not _clean(self.supplied[name])]

    def resolve(self) -> UpdateParameters:
        missing = self.missing()
        if missing:
            raise ParameterResolutionError(
                f"Missing required parameters: {', '.join(missing)}",
                missing=missing
            )
        return UpdateParameters(
            branch=_clean(self.supplied["branch"]),
            library=_clean(self.supplied["library"]),
            version=_clean(self.supplied["version"])
        )


class PromptParameterResolver(ArgumentParameterResolver):
    """
    Resolves parameters from supplied values, asking a human for the rest.

    Args:
        prompt: Callable used to ask for a value; defaults to ``click.prompt``
    """

    def __init__(self, branch: Optional[str] = None, library: Optional[str] = None,
                 version: Optional[str] = None, prompt: Optional[Callable[..., str]] = None):
        super().__init__(branch, library, version)
        self.prompt = prompt or click.prompt

    def resolve(self) -> UpdateParameters:
        values: Dict[str, Optional[str]] = dict(self.supplied)

        for name, question in PARAMETER_PROMPTS:
            if _clean(values[name]):
                continue
            try:
                answer = self.prompt(question, type=str)
            except (click.Abort, EOFError) as e:
                raise ParameterResolutionError(f"No value given for {name}", missing=[name], cause=e)
            if not _clean(answer):
                raise ParameterResolutionError(f"Empty value given for {name}", missing=[name])
            values[name] = answer

        logger.debug(f"Resolved parameters: {values}")
        return ArgumentParameterResolver(**values).resolve()


def _clean(value: Optional[str]) -> str:
    return value.strip() if value else ""
