from abc import ABC, abstractmethod
from typing import Any, Dict


class HookContext(Dict[str, Any]):
    """
    Shared key/value scope handed to job hooks.

    The manager passes the same instance to every hook, so values set
    with Manager.set_hook_context() (feature flags, clients, the manager
    itself) are visible to jobs without extra wiring.
    """

    def set(self, key: str, value: Any) -> None:
        self[key] = value


class CreationHook(ABC):
    """Optional job hook called by the worker after loading a job."""

    @abstractmethod
    def on_creation(self, ctx: HookContext) -> None:
        """
        Prepare the freshly loaded job before start() runs.

        Collaborators taken from the context (clients, connections) must
        be stored on `_`-prefixed attributes. Public attributes are stored
        in the job document, and a job whose fields cannot be serialized
        fails without running.

        Args:
            ctx (HookContext): The manager's hook context.
        """
        pass


class CompletionHook(ABC):
    """Optional job hook called by the worker after a job finished."""

    @abstractmethod
    def on_completion(self, ctx: HookContext) -> None:
        """
        Post-process a finished job (cleanup, notifications, persisting
        results elsewhere). Runs for completed and failed jobs.

        Args:
            ctx (HookContext): The manager's hook context.
        """
        pass


def process_creation_hook(ctx: HookContext, job: Any) -> None:
    if isinstance(job, CreationHook):
        job.on_creation(ctx)


def process_completion_hook(ctx: HookContext, job: Any) -> None:
    if isinstance(job, CompletionHook):
        job.on_completion(ctx)
