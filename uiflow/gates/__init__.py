"""Phase gates: exit validation, post-generation gate, transitions."""

from .exit_gate import EXIT_RULES, ExitValidator, exit_rules
from .post_generation import PostGenerationGate
from .transition import DONE, NodeTransitionCoordinator

__all__ = [
    "DONE",
    "EXIT_RULES",
    "ExitValidator",
    "NodeTransitionCoordinator",
    "PostGenerationGate",
    "exit_rules",
]
