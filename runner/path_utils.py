from __future__ import annotations

from pathlib import Path
from dispatcher.config import ExecutorConfig


class PathTranslator:
    """
    Translate paths between sandbox view and host (docker) view.

    When the engine itself runs in a container that talks to the host's
    docker daemon, bind mount sources must be host paths.
    """

    def __init__(self, cfg: ExecutorConfig):
        self.staging_dir = Path(cfg.stagingDir).expanduser()
        self.sandbox_root = Path(
            cfg.sandboxRoot
            or self.staging_dir.resolve().parent).expanduser().resolve()
        self.host_root = Path(cfg.hostRoot or
                              self.sandbox_root).expanduser().resolve()

    def to_host(self, path: str | Path) -> Path:
        """
        Convert a sandbox path (or absolute path) to host path for Docker binds.
        """
        p = Path(path).expanduser()
        if not p.is_absolute():
            p = p.resolve()
        try:
            rel = p.relative_to(self.sandbox_root)
            return self.host_root / rel
        except ValueError:
            return p

    def read_only_binds(self, mounts: dict[str | Path, str]) -> dict:
        """
        Build docker binds mounting each staged file read-only at its target.
        """
        return {
            str(self.to_host(source)): {
                "bind": target,
                "mode": "ro",
            }
            for source, target in mounts.items()
        }
