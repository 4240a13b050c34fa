"""Jarvis Handoff: turn a long session into a focused continuation prompt."""
