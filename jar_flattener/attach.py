"""Build-report registration of produced artifacts."""

from dataclasses import dataclass
import json
import pathlib

from jar_flattener.errors import AttachmentFailure


@dataclass(frozen=True, slots=True)
class JsonArtifactRegistry:
    """Record attached artifacts in a JSON list file.

    Each attachment appends ``{"file": ..., "classifier": ..., "type": ...}``.
    The file is created when missing.

    :ivar path: Registry file.
    """

    path: pathlib.Path

    def attach(self, path: pathlib.Path, *, classifier: str, artifact_type: str) -> None:
        """Register ``path`` under ``classifier``.

        :param path: Produced artifact.
        :param classifier: Classifier to record.
        :param artifact_type: Artifact type (e.g. ``jar``).
        :raises AttachmentFailure: If the registry cannot be read or written.
        """

        records: list[dict[str, str]] = self.records()
        records.append(
            {
                "file": str(path.resolve()),
                "classifier": classifier,
                "type": artifact_type,
            }
        )

        tmp: pathlib.Path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps(records, indent=2) + "\n", encoding="utf-8")
            tmp.replace(self.path)
        except OSError as e:
            raise AttachmentFailure(f"Failed to update artifact registry {self.path}: {e}") from e

    def records(self) -> list[dict[str, str]]:
        """Return the attachments recorded so far.

        :returns: Registry records, oldest first.
        :raises AttachmentFailure: If the registry exists but is unreadable.
        """

        if self.path.exists() is False:
            return []

        try:
            data: object = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise AttachmentFailure(f"Failed to read artifact registry {self.path}: {e}") from e

        if not isinstance(data, list):
            raise AttachmentFailure(f"Artifact registry {self.path} is not a JSON list")
        return data
