from abc import ABC, abstractmethod


class BackupPort(ABC):
    @abstractmethod
    def upload(self) -> None:
        """Upload a full snapshot of the appointments database. Raises BackupError."""
        raise NotImplementedError

    @abstractmethod
    def download(self) -> bool:
        """
        Restore the appointments database from the remote snapshot.
        Returns False when no snapshot exists yet. Raises BackupError.
        """
        raise NotImplementedError
