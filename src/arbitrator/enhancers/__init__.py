"""Prompt builders and response post-processors for the three tools."""

from .base import Enhancer, split_thinking
from .code import CodeEnhancer
from .prompt import PromptEnhancer
from .verification import VerificationEnhancer, infer_domain

__all__ = [
    "CodeEnhancer",
    "Enhancer",
    "PromptEnhancer",
    "VerificationEnhancer",
    "infer_domain",
    "split_thinking",
]
