"""
CallStack models the chain of rule invocations that are open at a point of the
candidate search, like the stack of a pushdown automaton.

Each frame records the invoked rule, the token at which that invocation started
and the ATN state the caller resumes at once the rule completes. Stacks are
immutable: pushing returns a new stack, so sibling branches of the search never
observe each other's frames.
"""
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

from antlr4.atn.ATNState import ATNState


@dataclass(frozen=True)
class RuleFrame:
    """One open rule invocation"""
    rule_index: int
    start_token_index: int
    return_state: Optional[ATNState] = None     # None for the outermost rule

    @property
    def signature(self) -> Tuple[int, int, int]:
        return_state = self.return_state.stateNumber if self.return_state is not None else -1
        return (self.rule_index, self.start_token_index, return_state)

    def __str__(self) -> str:
        return f"{self.rule_index}@{self.start_token_index}"


class CallStack:
    def __init__(self, frames: Iterable[RuleFrame] = ()):
        self._frames: Tuple[RuleFrame, ...] = tuple(frames)

    @property
    def frames(self) -> Tuple[RuleFrame, ...]:
        return self._frames

    def push(self, frame: RuleFrame) -> "CallStack":
        return CallStack(self._frames + (frame,))

    def extended(self, frames: Iterable[RuleFrame]) -> "CallStack":
        return CallStack(self._frames + tuple(frames))

    def rule_list(self) -> List[int]:
        """Rule indexes from the outermost invocation to the innermost one."""
        return [frame.rule_index for frame in self._frames]

    def signature(self) -> Tuple[Tuple[int, int, int], ...]:
        """Hashable identity of the stack, used as part of memo keys."""
        return tuple(frame.signature for frame in self._frames)

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[RuleFrame]:
        return iter(self._frames)

    def __getitem__(self, index):
        return self._frames[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, CallStack):
            return NotImplemented
        return self.signature() == other.signature()

    def __hash__(self) -> int:
        return hash(self.signature())

    def __repr__(self) -> str:
        return "CallStack([" + ", ".join(str(frame) for frame in self._frames) + "])"
