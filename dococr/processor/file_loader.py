from pathlib import Path

from dococr.processor.exceptions import ArtifactNotFoundError


class FileLoader:
    """Resolves a document's artifact reference to a file under the files root."""

    FILES_ROOT = Path("/app/files")

    def __init__(self, files_root: Path | None = None) -> None:
        self._files_root = files_root if files_root is not None else self.FILES_ROOT

    def resolve(self, artifact_ref: str) -> Path:
        """Return the artifact's path.

        Raises:
            ArtifactNotFoundError: if the reference escapes the files root or the
                file does not exist.
        """
        root = self._files_root.resolve()
        path = (root / artifact_ref).resolve()
        if not path.is_relative_to(root):
            raise ArtifactNotFoundError(f"Artifact outside files root: {artifact_ref}")
        if not path.is_file():
            raise ArtifactNotFoundError(f"File not found: {path}")
        return path
