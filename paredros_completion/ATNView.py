"""
ATNView is the read-only query surface the completion engine uses on a grammar's
ATN (Augmented Transition Network). It answers questions like:
- Which transitions leave state S?
- Where does rule R start and stop?
- Which rule does state S belong to?
- What kind of edge is transition T, and which token types does it consume?

Transition kinds are reported as a fixed tagged variant (TransitionKind) so the
traversal can dispatch on a single value instead of a chain of isinstance checks.
Nothing here mutates or caches the ATN.
"""
from enum import Enum
from typing import List

from antlr4.Token import Token
from antlr4.atn.ATN import ATN
from antlr4.atn.ATNState import ATNState, RuleStartState
from antlr4.atn.Transition import Transition


class TransitionKind(Enum):
    EPSILON = "epsilon"
    ATOM = "atom"
    RANGE = "range"
    SET = "set"
    NOT_SET = "not set"
    WILDCARD = "wildcard"
    RULE = "rule"
    PREDICATE = "predicate"
    PRECEDENCE = "precedence"
    ACTION = "action"


_KIND_BY_SERIALIZATION_TYPE = {
    Transition.EPSILON: TransitionKind.EPSILON,
    Transition.RANGE: TransitionKind.RANGE,
    Transition.RULE: TransitionKind.RULE,
    Transition.PREDICATE: TransitionKind.PREDICATE,
    Transition.ATOM: TransitionKind.ATOM,
    Transition.ACTION: TransitionKind.ACTION,
    Transition.SET: TransitionKind.SET,
    Transition.NOT_SET: TransitionKind.NOT_SET,
    Transition.WILDCARD: TransitionKind.WILDCARD,
    Transition.PRECEDENCE: TransitionKind.PRECEDENCE,
}

# Kinds that consume exactly one input token of a known set of types
CONSUMING_KINDS = (TransitionKind.ATOM, TransitionKind.RANGE, TransitionKind.SET, TransitionKind.NOT_SET)


class ATNView:
    """
    Read-only accessors over a parser ATN.

    Invalid rule indexes or state numbers are caller errors (ValueError). A grammar
    description that contradicts itself, e.g. a rule transition that does not lead
    to a rule start state, is reported as RuntimeError.
    """

    def __init__(self, atn: ATN):
        if atn is None:
            raise ValueError("An ATN is required")
        self.atn = atn

    @property
    def max_token_type(self) -> int:
        return self.atn.maxTokenType

    @property
    def rule_count(self) -> int:
        return len(self.atn.ruleToStartState)

    def state(self, state_number: int) -> ATNState:
        """
        Look up a state by its number.

        Args:
            state_number (int): The ATN state number.

        Returns:
            ATNState: The state object.
        """
        if not isinstance(state_number, int) or state_number < 0 or state_number >= len(self.atn.states):
            raise ValueError(f"State number {state_number} is outside the ATN (0..{len(self.atn.states) - 1})")
        state = self.atn.states[state_number]
        if state is None:
            raise ValueError(f"State number {state_number} was removed from the ATN")
        return state

    def transitions_of(self, state: ATNState) -> List[Transition]:
        return state.transitions

    def start_state_of(self, rule_index: int) -> RuleStartState:
        self._check_rule_index(rule_index)
        start_state = self.atn.ruleToStartState[rule_index]
        if start_state is None:
            raise RuntimeError(f"Rule {rule_index} has no start state")
        return start_state

    def stop_state_of(self, rule_index: int) -> ATNState:
        self._check_rule_index(rule_index)
        if self.atn.ruleToStopState is None or rule_index >= len(self.atn.ruleToStopState):
            raise RuntimeError(f"Rule {rule_index} has no stop state")
        stop_state = self.atn.ruleToStopState[rule_index]
        if stop_state is None:
            raise RuntimeError(f"Rule {rule_index} has no stop state")
        return stop_state

    def rule_of(self, state: ATNState) -> int:
        return state.ruleIndex

    def belongs_to(self, state: ATNState, rule_index: int) -> bool:
        self._check_rule_index(rule_index)
        return state.ruleIndex == rule_index

    def is_rule_stop(self, state: ATNState) -> bool:
        return state.stateType == ATNState.RULE_STOP

    def kind_of(self, transition: Transition) -> TransitionKind:
        kind = _KIND_BY_SERIALIZATION_TYPE.get(transition.serializationType)
        if kind is None:
            raise RuntimeError(f"Unknown transition type {transition.serializationType} in the ATN")
        return kind

    def token_types(self, transition: Transition) -> List[int]:
        """
        Return the token types a consuming transition matches, in ascending order.

        Not-set transitions are complemented against the user token range
        (1..maxTokenType). Non-consuming transitions yield an empty list.
        """
        kind = self.kind_of(transition)
        if kind not in CONSUMING_KINDS or transition.label is None:
            return []

        if kind == TransitionKind.NOT_SET:
            excluded = set(transition.label)
            return [t for t in range(Token.MIN_USER_TOKEN_TYPE, self.max_token_type + 1) if t not in excluded]

        return sorted(set(transition.label))

    def invoked_rule_start(self, transition: Transition) -> RuleStartState:
        """
        Return the start state of the rule a rule transition invokes.

        Raises:
            RuntimeError: If the transition does not point to the start state of
                the rule it claims to invoke.
        """
        target = transition.target
        if target is None or target.stateType != ATNState.RULE_START:
            raise RuntimeError(f"Rule transition to rule {transition.ruleIndex} does not target a rule start state")
        if transition.ruleIndex < 0 or transition.ruleIndex >= self.rule_count \
                or self.atn.ruleToStartState[transition.ruleIndex] is not target:
            raise RuntimeError(f"Rule transition to rule {transition.ruleIndex} has no matching rule start state")
        if transition.followState is None:
            raise RuntimeError(f"Rule transition to rule {transition.ruleIndex} has no return state")
        return target

    def _check_rule_index(self, rule_index: int):
        if not isinstance(rule_index, int) or rule_index < 0 or rule_index >= self.rule_count:
            raise ValueError(f"Rule index {rule_index} is outside the grammar (0..{self.rule_count - 1})")
