"""Evaluator helpers split by concern; evaluator.py wires them into dispatch tables."""
