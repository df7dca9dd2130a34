"""
PromptLab CLI - run prompt templates against a model endpoint from the terminal.

Provides:
- promptlab chat PROMPT    # Run a prompt and continue the conversation
- promptlab validate       # Check the configured endpoint
"""

__version__ = "0.1.0"
