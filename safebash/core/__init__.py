from .classifier import Verdict, classify
from .policy import check_command_safety, evaluate
from .tokenizer import Segment, segment

__all__ = ["Segment", "Verdict", "check_command_safety", "classify", "evaluate", "segment"]
