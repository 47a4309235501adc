"""Phase ordering between stages."""

from __future__ import annotations

from typing import Callable, Dict, Mapping, Optional

DEFAULT_PREDECESSORS: Mapping[str, Optional[str]] = {
    "convolution": None,
    "activation": "convolution",
    "pooling": "convolution",
    "flatten": "convolution",
    "dense": "flatten",
}


class PhaseGate:
    """Answer whether a stage's declared predecessor is complete.

    ``is_complete`` is looked up lazily so the gate always reflects the
    predecessor's current state.
    """

    def __init__(
        self,
        is_complete: Callable[[str], bool],
        predecessors: Mapping[str, Optional[str]] | None = None,
    ) -> None:
        self._is_complete = is_complete
        self.predecessors: Dict[str, Optional[str]] = dict(predecessors or DEFAULT_PREDECESSORS)

    def predecessor(self, stage: str) -> Optional[str]:
        if stage not in self.predecessors:
            raise KeyError(f"Unknown stage: {stage}")
        return self.predecessors[stage]

    def is_open(self, stage: str) -> bool:
        required = self.predecessor(stage)
        return required is None or self._is_complete(required)

    def blocked_by(self, stage: str) -> Optional[str]:
        """Name of the incomplete predecessor, or ``None`` when the gate is open."""

        required = self.predecessor(stage)
        if required is None or self._is_complete(required):
            return None
        return required


__all__ = ["DEFAULT_PREDECESSORS", "PhaseGate"]
