"""
PASSERELLE - Passerelle HTTP vers le CLI Claude.

Expose l'assistant en ligne de commande via une API REST native et
les protocoles Ollama / OpenAI.
"""

__version__ = "0.1.0"
