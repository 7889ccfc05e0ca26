"""Prompt templates, loader and assembler."""

from sqlagent.prompts.assembler import AssembledPrompt, PromptAssembler, placeholder_style
from sqlagent.prompts.loader import PromptLoader

__all__ = ["AssembledPrompt", "PromptAssembler", "PromptLoader", "placeholder_style"]
