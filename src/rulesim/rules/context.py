"""Per-run evaluation context (the almanac).

An EvaluationContext binds one simulation target (a file, or the GLOBAL
pseudo-target) to the loaded project data and holds the fact cache for
that run. A context is created for exactly one simulation and discarded
afterwards; it is never shared between runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, TypedDict

if TYPE_CHECKING:
    from rulesim.rules.results import SimulationOptions

logger = logging.getLogger(__name__)

GLOBAL_TARGET = "GLOBAL"
FILE_DATA_FACT = "fileData"


class FileData(TypedDict):
    """Descriptor of the current target, as returned by the ``fileData`` fact.

    Keys are camelCase because rule paths such as ``$.fileName`` address
    them directly.
    """

    fileName: str
    filePath: str
    fileContent: str
    content: str
    relativePath: str


def make_file_data(file_path: str, content: str) -> FileData:
    """Build the descriptor for a project-relative path and its content."""
    return FileData(
        fileName=file_path.rsplit("/", 1)[-1] or file_path,
        filePath=file_path,
        fileContent=content,
        content=content,
        relativePath=file_path,
    )


@dataclass(frozen=True)
class ProjectData:
    """Whole-project data shared read-only by every run.

    Attributes:
        name: Fixture or project name
        files: Mapping of relative path to file content
        manifest: Parsed package descriptor (e.g. package.json)
        file_list: Paths in load order
    """

    name: str
    files: dict[str, str]
    manifest: dict[str, Any] = field(default_factory=dict)
    file_list: list[str] = field(default_factory=list)

    @classmethod
    def from_files(
        cls,
        files: dict[str, str],
        manifest: dict[str, Any] | None = None,
        name: str = "custom",
    ) -> ProjectData:
        """Create project data from a plain path -> content mapping."""
        return cls(
            name=name,
            files=dict(files),
            manifest=dict(manifest or {}),
            file_list=list(files),
        )

    def with_files(self, extra_files: dict[str, str]) -> ProjectData:
        """Return a copy with ``extra_files`` overlaid on the loaded files."""
        merged = {**self.files, **extra_files}
        file_list = list(self.file_list)
        for path in extra_files:
            if path not in file_list:
                file_list.append(path)
        return ProjectData(
            name=self.name,
            files=merged,
            manifest=self.manifest,
            file_list=file_list,
        )

    def iter_file_data(self) -> list[FileData]:
        """Return a descriptor for every file, in load order."""
        return [make_file_data(path, self.files.get(path, "")) for path in self.file_list]


class EvaluationContext:
    """Binding of a target and project data plus the per-run fact cache.

    Facts receive the context as their second argument and may read
    ``current_file``, ``project`` and ``options``, ask for other facts
    through ``fact_value`` or publish derived values through
    ``add_runtime_fact``.
    """

    def __init__(
        self,
        project: ProjectData,
        current_file: FileData,
        options: SimulationOptions | None = None,
    ) -> None:
        self.project = project
        self.current_file = current_file
        self.options = options
        self.runtime_facts: dict[str, Any] = {}

    @classmethod
    def for_target(
        cls,
        project: ProjectData,
        file_path: str,
        options: SimulationOptions | None = None,
    ) -> EvaluationContext:
        """Create a fresh context bound to ``file_path`` within ``project``.

        Unknown paths (including GLOBAL) are bound with empty content.
        """
        content = project.files.get(file_path, "")
        return cls(project, make_file_data(file_path, content), options)

    @property
    def target(self) -> str:
        """Path of the bound target."""
        return self.current_file["filePath"]

    def has_runtime_fact(self, name: str) -> bool:
        """Check whether ``name`` has already been resolved in this run."""
        return name in self.runtime_facts

    def add_runtime_fact(self, name: str, value: Any) -> None:
        """Store a resolved fact value for the remainder of the run."""
        logger.debug("Caching runtime fact '%s' for %s", name, self.target)
        self.runtime_facts[name] = value

    async def fact_value(self, name: str) -> Any:
        """Return a cached fact value, the current file for ``fileData``, or None."""
        if name in self.runtime_facts:
            return self.runtime_facts[name]
        if name == FILE_DATA_FACT:
            return self.current_file
        logger.debug("Fact '%s' not available in context for %s", name, self.target)
        return None
