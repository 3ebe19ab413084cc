"""Tooling for building and installing the AI guardrail mediation policies."""
