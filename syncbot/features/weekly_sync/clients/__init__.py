"""
Chat and text generation adapters for the weekly sync feature.
"""

from .openai_synthesizer import OpenAISynthesizer
from .slack_messenger import MessagingError, SlackMessenger

__all__ = ["MessagingError", "OpenAISynthesizer", "SlackMessenger"]
