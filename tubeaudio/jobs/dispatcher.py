"""Job dispatcher interface."""

from abc import ABC, abstractmethod


class JobDispatcher(ABC):
    """Abstract interface for launching conversion work (local or remote)."""

    @abstractmethod
    def launch(self, job_id: int) -> None:
        """Schedule a job's pipeline. Must not wait for it to finish."""
        ...

    @abstractmethod
    async def start(self) -> None:
        """Start the dispatcher."""
        ...

    @abstractmethod
    async def stop(self) -> None:
        """Stop the dispatcher, cancelling outstanding work."""
        ...

    @abstractmethod
    async def drain(self) -> None:
        """Wait until every launched job has finished."""
        ...
