"""LLM-backed agents: business classification and comparable companies."""

from exitosx.agents.base import BaseAgent
from exitosx.agents.business_classifier import BusinessClassifier
from exitosx.agents.comparables import ComparablesAgent

__all__ = ["BaseAgent", "BusinessClassifier", "ComparablesAgent"]
