"""
ikode CLI - interactive REPL and one-shot prompt mode.
"""

from ikode.cli.repl import Repl, main, prompt_confirm

__all__ = ["Repl", "main", "prompt_confirm"]
