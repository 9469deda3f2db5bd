"""Shared test jobs and helpers."""

from tests.fixtures.jobs import ConnectedJob, ScriptedJob, wait_for

__all__ = ["ConnectedJob", "ScriptedJob", "wait_for"]
