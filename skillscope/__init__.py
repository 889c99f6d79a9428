"""
skillscope: skill selection and progressive disclosure engine

This package loads a corpus of coding-assistant "skills" (SKILL.md
descriptors plus prioritized rule files) and decides, for a task
description, which skills apply, which of their rules are relevant and how
to deliver them incrementally under a size budget.
"""

__version__ = "0.1.0"
