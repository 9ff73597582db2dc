"""Safebash - static safety gate for shell commands proposed by a coding agent."""

from safebash.core.classifier import Verdict
from safebash.core.policy import check_command_safety, evaluate

__version__ = "0.1.0"

__all__ = ["Verdict", "check_command_safety", "evaluate", "__version__"]
