"""Per-job stage dependency graph."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

from dvmux.config import Settings
from dvmux.models.errors import ProcessingError
from dvmux.models.job import JobRequest
from dvmux.models.stage import StageKind, StageResult, ToolName
from dvmux.pipeline.stages import STAGE_DEFINITIONS, StageDefinition


@dataclass(frozen=True, slots=True)
class PlannedStage:
    """A stage definition bound to one job's temp directory."""

    definition: StageDefinition
    output_path: Path

    @property
    def kind(self) -> StageKind:
        return self.definition.kind

    @property
    def tool(self) -> ToolName:
        return self.definition.tool

    @property
    def depends_on(self) -> tuple[StageKind, ...]:
        return self.definition.depends_on


class PipelineGraph:
    """The stages of one job plus their dependency edges.

    Stages excluded by the job options are listed in ``skipped`` and count as
    satisfied dependencies. The graph must be acyclic with exactly one sink,
    the terminal stage whose output becomes the job's artifact.
    """

    def __init__(self, stages: Mapping[StageKind, PlannedStage], skipped: Iterable[StageKind] = ()):
        self.stages = dict(stages)
        self.skipped = tuple(skipped)
        for stage in self.stages.values():
            for dep in stage.depends_on:
                if dep not in self.stages and dep not in self.skipped:
                    raise ProcessingError(
                        f"Stage {stage.kind.value} depends on unknown stage {dep.value}"
                    )
        self.order = self._topological_order()
        self.terminal = self._find_terminal()

    @classmethod
    def build(
        cls,
        request: JobRequest,
        temp_dir: Path,
        settings: Settings,
        definitions: Mapping[StageKind, StageDefinition] = STAGE_DEFINITIONS,
    ) -> "PipelineGraph":
        """Build the graph for a request; subtitle stages only when requested."""
        stages: dict[StageKind, PlannedStage] = {}
        skipped: list[StageKind] = []
        for kind, definition in definitions.items():
            if definition.subtitles_only and not request.include_subtitles:
                skipped.append(kind)
                continue
            stages[kind] = PlannedStage(definition, definition.output_path(temp_dir, settings))
        return cls(stages, skipped)

    @property
    def kinds(self) -> list[StageKind]:
        return list(self.order)

    def weights(self) -> dict[StageKind, float]:
        """Progress weight per stage, normalized to sum to 1.0."""
        total = sum(s.definition.weight for s in self.stages.values())
        if total <= 0:
            return {kind: 1.0 / len(self.stages) for kind in self.stages}
        return {kind: s.definition.weight / total for kind, s in self.stages.items()}

    def ready(
        self, results: Mapping[StageKind, StageResult], dispatched: Iterable[StageKind]
    ) -> list[StageKind]:
        """Stages not yet dispatched whose dependencies are all satisfied."""
        dispatched = set(dispatched)
        eligible = []
        for kind in self.order:
            if kind in dispatched or kind in results:
                continue
            if all(self._satisfied(dep, results) for dep in self.stages[kind].depends_on):
                eligible.append(kind)
        return eligible

    def _satisfied(self, dep: StageKind, results: Mapping[StageKind, StageResult]) -> bool:
        if dep in self.skipped:
            return True
        result = results.get(dep)
        return result is not None and result.satisfied

    def _topological_order(self) -> list[StageKind]:
        remaining = {
            kind: {d for d in stage.depends_on if d in self.stages}
            for kind, stage in self.stages.items()
        }
        order: list[StageKind] = []
        while remaining:
            layer = [kind for kind, deps in remaining.items() if not deps]
            if not layer:
                raise ProcessingError(
                    "Stage graph contains a cycle",
                    details={"stages": [k.value for k in remaining]},
                )
            for kind in layer:
                order.append(kind)
                del remaining[kind]
            for deps in remaining.values():
                deps.difference_update(layer)
        return order

    def _find_terminal(self) -> StageKind:
        depended_on = {d for stage in self.stages.values() for d in stage.depends_on}
        sinks = [kind for kind in self.order if kind not in depended_on]
        if len(sinks) != 1:
            raise ProcessingError(
                "Stage graph must have exactly one terminal stage",
                details={"sinks": [k.value for k in sinks]},
            )
        return sinks[0]
