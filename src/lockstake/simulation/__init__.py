"""Randomized operation schedules against the staking engine."""
