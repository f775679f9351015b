"""
shell_autocompleter

Ranked shell command suggestions while you type, fused from several strategies
(history prefix, frequency, aliases, fuzzy match, embeddings, a local language model).
"""

__version__ = "0.1.0"
