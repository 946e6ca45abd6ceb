"""
Follow-set analysis for the candidate search.

For a rule start state we determine every token that can be matched first inside
that rule, together with the path of sub-rules that leads to it. Splitting the
sets by path is what lets the collector translate tokens into preferred rules.
A combined set of all these tokens is kept as well, which allows a quick check
whether entering a rule can match the current input token at all.

The analysis also knows which rules can match nothing (nullable rules) and the
short, non-branching chains of tokens that must literally follow a matched token.
"""
from dataclasses import dataclass, field
from typing import Dict, List, Set

from antlr4.Parser import Parser
from antlr4.ParserRuleContext import ParserRuleContext
from antlr4.Token import Token
from antlr4.atn.ATNState import ATNState, RuleStartState
from antlr4.atn.Transition import Transition

from paredros_completion.ATNView import ATNView, TransitionKind, CONSUMING_KINDS


@dataclass
class FollowSetWithPath:
    """Tokens reachable first in a rule, the sub-rule path to them and the tokens known to follow"""
    intervals: List[int]
    path: List[int] = field(default_factory=list)
    following: List[int] = field(default_factory=list)


@dataclass
class FollowSetsHolder:
    sets: List[FollowSetWithPath] = field(default_factory=list)
    combined: Set[int] = field(default_factory=set)
    nullable: bool = False


class FollowSetCalculator:
    """
    Computes and caches follow sets for one candidate collection call.

    The caches only live as long as this object, which the collector creates
    per call.
    """

    def __init__(self, atn_view: ATNView, parser: Parser):
        self.atn_view = atn_view
        self.parser = parser
        self._holders: Dict[int, FollowSetsHolder] = {}
        self._nullable_rules: Set[int] = None

    def follow_sets_for(self, start_state: RuleStartState) -> FollowSetsHolder:
        """
        Return the follow sets of the rule starting at start_state.

        Args:
            start_state (RuleStartState): The start state of the rule.

        Returns:
            FollowSetsHolder: The per-path sets, their union and whether the rule
            can be passed without consuming input.
        """
        holder = self._holders.get(start_state.stateNumber)
        if holder is not None:
            return holder

        stop_state = self.atn_view.stop_state_of(start_state.ruleIndex)
        holder = FollowSetsHolder()
        self._collect_follow_sets(start_state, stop_state, holder.sets, set(), [])
        for follow_set in holder.sets:
            holder.combined.update(follow_set.intervals)
        holder.nullable = self.is_nullable(start_state.ruleIndex)

        self._holders[start_state.stateNumber] = holder
        return holder

    def is_nullable(self, rule_index: int) -> bool:
        if self._nullable_rules is None:
            self._nullable_rules = self._determine_nullable_rules()
        return rule_index in self._nullable_rules

    def following_tokens(self, transition: Transition) -> List[int]:
        """
        Collect the chain of tokens that must literally follow a consuming transition.

        The chain runs along states with exactly one outgoing edge and stops at the
        first branch, rule invocation, predicate, multi-token set or rule end.

        Args:
            transition (Transition): The transition that matched the candidate token.

        Returns:
            list: Token types in the order they must appear.
        """
        result = []
        seen = set()
        state = transition.target

        while state is not None and state.stateNumber not in seen and not self.atn_view.is_rule_stop(state):
            seen.add(state.stateNumber)
            transitions = self.atn_view.transitions_of(state)
            if len(transitions) != 1:
                break

            outgoing = transitions[0]
            kind = self.atn_view.kind_of(outgoing)
            if kind in (TransitionKind.EPSILON, TransitionKind.ACTION):
                state = outgoing.target
                continue
            if kind not in CONSUMING_KINDS:
                break

            token_types = self.atn_view.token_types(outgoing)
            if len(token_types) != 1:
                break
            result.append(token_types[0])
            state = outgoing.target

        return result

    def check_predicate(self, transition: Transition) -> bool:
        """Evaluate a semantic predicate transition against the parser."""
        return transition.getPredicate().eval(self.parser, ParserRuleContext())

    def _collect_follow_sets(self, state: ATNState, stop_state: ATNState, follow_sets: List[FollowSetWithPath],
                             seen: Set[int], rule_stack: List[int]):
        # seen only holds the states of the current path, a rule shared by two
        # paths is walked once per path
        if state.stateNumber in seen:
            return
        if state is stop_state or self.atn_view.is_rule_stop(state):
            return

        seen.add(state.stateNumber)
        self._follow_transitions(state, stop_state, follow_sets, seen, rule_stack)
        seen.discard(state.stateNumber)

    def _follow_transitions(self, state: ATNState, stop_state: ATNState, follow_sets: List[FollowSetWithPath],
                            seen: Set[int], rule_stack: List[int]):

        for transition in self.atn_view.transitions_of(state):
            kind = self.atn_view.kind_of(transition)

            if kind == TransitionKind.RULE:
                rule_start = self.atn_view.invoked_rule_start(transition)
                if rule_start.ruleIndex in rule_stack:
                    continue

                rule_stack.append(rule_start.ruleIndex)
                self._collect_follow_sets(rule_start, self.atn_view.stop_state_of(rule_start.ruleIndex),
                                          follow_sets, seen, rule_stack)
                rule_stack.pop()

                # A sub-rule that can match nothing lets the tokens after it count too
                if self.is_nullable(rule_start.ruleIndex):
                    self._collect_follow_sets(transition.followState, stop_state, follow_sets, seen, rule_stack)

            elif kind == TransitionKind.PREDICATE:
                if self.check_predicate(transition):
                    self._collect_follow_sets(transition.target, stop_state, follow_sets, seen, rule_stack)

            elif transition.isEpsilon:
                self._collect_follow_sets(transition.target, stop_state, follow_sets, seen, rule_stack)

            elif kind == TransitionKind.WILDCARD:
                follow_sets.append(FollowSetWithPath(
                    intervals=list(range(Token.MIN_USER_TOKEN_TYPE, self.atn_view.max_token_type + 1)),
                    path=list(rule_stack),
                ))

            else:
                token_types = self.atn_view.token_types(transition)
                if token_types:
                    follow_sets.append(FollowSetWithPath(
                        intervals=token_types,
                        path=list(rule_stack),
                        following=self.following_tokens(transition),
                    ))

    def _determine_nullable_rules(self) -> Set[int]:
        # Fixed point: a rule is nullable once its stop state is reachable through
        # epsilon edges and invocations of rules already known to be nullable.
        nullable = set()
        changed = True
        while changed:
            changed = False
            for rule_index in range(self.atn_view.rule_count):
                if rule_index not in nullable and self._reaches_stop_without_input(rule_index, nullable):
                    nullable.add(rule_index)
                    changed = True
        return nullable

    def _reaches_stop_without_input(self, rule_index: int, nullable: Set[int]) -> bool:
        stop_state = self.atn_view.stop_state_of(rule_index)
        seen = set()
        pipeline = [self.atn_view.start_state_of(rule_index)]

        while pipeline:
            state = pipeline.pop()
            if state.stateNumber in seen:
                continue
            seen.add(state.stateNumber)

            if state is stop_state:
                return True

            for transition in self.atn_view.transitions_of(state):
                kind = self.atn_view.kind_of(transition)
                if kind == TransitionKind.RULE:
                    if self.atn_view.invoked_rule_start(transition).ruleIndex in nullable:
                        pipeline.append(transition.followState)
                elif kind == TransitionKind.PREDICATE:
                    if self.check_predicate(transition):
                        pipeline.append(transition.target)
                elif transition.isEpsilon:
                    pipeline.append(transition.target)

        return False
