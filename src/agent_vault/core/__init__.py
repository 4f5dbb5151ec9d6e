"""Onboarding state machine, transaction orchestrator and session wiring."""
