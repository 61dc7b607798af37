"""Project fixture loading.

A fixture is the project data a simulation runs against: file contents
keyed by relative path plus a parsed manifest (package.json by default).
FixtureLoader accepts:
- a directory, walked recursively
- a JSON bundle file: ``{"name", "files": {path: content | {"content": ...}},
  "packageJson" | "manifest"}``
- an http(s) URL serving such a bundle (fetched with httpx)
- a bare name, resolved inside the configured fixtures directory as
  ``<name>/`` or ``<name>.json``
"""

from __future__ import annotations

import asyncio
import fnmatch
import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import httpx

from rulesim.config.schema import FixturesConfig
from rulesim.rules.context import ProjectData

logger = logging.getLogger(__name__)


class FixtureError(Exception):
    """Raised when a fixture cannot be loaded."""

    def __init__(self, message: str, location: str | None = None) -> None:
        """Initialize FixtureError.

        Args:
            message: Error description
            location: Fixture name, path or URL that failed
        """
        self.location = location
        super().__init__(message)


class FixtureNotFoundError(FixtureError):
    """Raised when a named fixture cannot be found."""


def _is_url(location: str) -> bool:
    return location.startswith(("http://", "https://"))


class FixtureLoader:
    """Loads and queries one project fixture at a time."""

    def __init__(self, config: FixturesConfig | None = None) -> None:
        self._config = config or FixturesConfig()
        self._project: ProjectData | None = None

    async def load(self, location: str | Path) -> ProjectData:
        """Load a fixture, replacing any previously loaded one.

        Args:
            location: Directory, bundle file, http(s) URL or fixture name

        Returns:
            The loaded project data

        Raises:
            FixtureNotFoundError: If the fixture cannot be located
            FixtureError: If the fixture cannot be read or parsed
        """
        location_str = str(location)

        if _is_url(location_str):
            project = await self._load_url(location_str)
        else:
            project = await asyncio.to_thread(self._load_local, location_str)

        self._project = project
        logger.info(
            "Loaded fixture '%s' with %d files", project.name, len(project.file_list)
        )
        return project

    def adopt(self, project: ProjectData) -> ProjectData:
        """Use already-built project data as the loaded fixture."""
        self._project = project
        logger.info("Using project '%s' with %d files", project.name, len(project.file_list))
        return project

    def _load_local(self, location: str) -> ProjectData:
        path = self._resolve_path(location)
        if path.is_dir():
            return self._load_directory(path)
        return self._load_bundle_file(path)

    def _resolve_path(self, location: str) -> Path:
        candidate = Path(location).expanduser()
        if candidate.exists():
            return candidate

        fixtures_dir = self._config.get_directory()
        for named in (fixtures_dir / location, fixtures_dir / f"{location}.json"):
            if named.exists():
                return named

        msg = f"Unknown fixture: {location} (searched {candidate} and {fixtures_dir})"
        raise FixtureNotFoundError(msg, location)

    def _load_directory(self, root: Path) -> ProjectData:
        files: dict[str, str] = {}
        ignore_dirs = set(self._config.ignore_dirs)

        for dirpath, dirnames, filenames in os.walk(root):
            dirnames[:] = sorted(d for d in dirnames if d not in ignore_dirs)
            for filename in sorted(filenames):
                file_path = Path(dirpath) / filename
                relative = file_path.relative_to(root).as_posix()
                try:
                    if file_path.stat().st_size > self._config.max_file_size:
                        logger.debug("Skipping large file: %s", relative)
                        continue
                    files[relative] = file_path.read_text(encoding="utf-8")
                except UnicodeDecodeError:
                    logger.debug("Skipping binary file: %s", relative)
                except OSError as e:
                    logger.warning("Cannot read %s: %s", relative, e)

        manifest = self._parse_manifest(files.get(self._config.manifest_file))
        return ProjectData.from_files(files, manifest, name=root.name)

    def _parse_manifest(self, content: str | None) -> dict[str, Any]:
        if not content:
            return {}
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning("Invalid manifest %s: %s", self._config.manifest_file, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _load_bundle_file(self, path: Path) -> ProjectData:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            msg = f"Cannot read fixture bundle: {e}"
            raise FixtureError(msg, str(path)) from e
        except json.JSONDecodeError as e:
            msg = f"Invalid fixture bundle JSON: {e}"
            raise FixtureError(msg, str(path)) from e
        return self._parse_bundle(data, default_name=path.stem, location=str(path))

    async def _load_url(self, url: str) -> ProjectData:
        try:
            async with httpx.AsyncClient(
                headers=self._config.headers,
                timeout=self._config.remote_timeout,
                follow_redirects=True,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            msg = f"Fixture download failed with HTTP {e.response.status_code}"
            raise FixtureError(msg, url) from e
        except httpx.RequestError as e:
            msg = f"Fixture download failed: {e}"
            raise FixtureError(msg, url) from e
        except ValueError as e:
            msg = f"Invalid fixture bundle JSON: {e}"
            raise FixtureError(msg, url) from e

        default_name = url.rstrip("/").rsplit("/", 1)[-1].removesuffix(".json") or "remote"
        return self._parse_bundle(data, default_name=default_name, location=url)

    def _parse_bundle(self, data: Any, *, default_name: str, location: str) -> ProjectData:
        if not isinstance(data, dict) or not isinstance(data.get("files"), dict):
            msg = "Fixture bundle must be an object with a 'files' mapping"
            raise FixtureError(msg, location)

        files: dict[str, str] = {}
        for path, entry in data["files"].items():
            if isinstance(entry, str):
                files[path] = entry
            elif isinstance(entry, dict) and isinstance(entry.get("content"), str):
                files[path] = entry["content"]
            else:
                logger.warning("Skipping bundle entry without content: %s", path)

        manifest = data.get("packageJson", data.get("manifest"))
        if not isinstance(manifest, dict):
            manifest = self._parse_manifest(files.get(self._config.manifest_file))

        name = data.get("name") if isinstance(data.get("name"), str) else default_name
        return ProjectData.from_files(files, manifest, name=name)

    def is_loaded(self) -> bool:
        """Check if a fixture is currently loaded."""
        return self._project is not None

    def get_project(self) -> ProjectData | None:
        """Get the loaded project data."""
        return self._project

    def get_name(self) -> str | None:
        """Get the name of the loaded fixture."""
        return self._project.name if self._project else None

    def get_file(self, path: str) -> str | None:
        """Get file content by relative path."""
        if self._project is None:
            return None
        return self._project.files.get(path)

    def list_files(
        self,
        *,
        exclude_patterns: list[str] | None = None,
        extensions: list[str] | None = None,
        path_pattern: str | None = None,
    ) -> list[str]:
        """List loaded file paths, optionally filtered.

        Args:
            exclude_patterns: Glob patterns matched against the path and
                the file name; matches are dropped
            extensions: Keep only these extensions (with or without dot)
            path_pattern: Keep only paths matching this glob

        Returns:
            Matching paths in load order
        """
        if self._project is None:
            return []

        paths = list(self._project.file_list)

        if extensions:
            wanted = {ext.lower().lstrip(".") for ext in extensions}
            paths = [p for p in paths if p.rsplit(".", 1)[-1].lower() in wanted and "." in p]

        if path_pattern:
            regex = re.compile(fnmatch.translate(path_pattern))
            paths = [p for p in paths if regex.match(p)]

        if exclude_patterns:
            paths = [
                p
                for p in paths
                if not any(
                    fnmatch.fnmatch(p, pattern)
                    or fnmatch.fnmatch(p.rsplit("/", 1)[-1], pattern)
                    for pattern in exclude_patterns
                )
            ]

        return paths

    def clear(self) -> None:
        """Forget the loaded fixture."""
        self._project = None
