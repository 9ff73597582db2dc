from .exec_shell import run_guarded

__all__ = ["run_guarded"]
