"""Conversational event planning engine."""
