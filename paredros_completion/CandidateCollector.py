"""
CandidateCollector walks a grammar's ATN over the tokens in front of the caret and
collects everything that could come next at the caret. One collector serves exactly
one collection call and owns all mutable state of that call:
- the token window being replayed
- the rule shortcut memo and the re-entry guard
- the precedence stack of left-recursive rules
- the token and rule mappings that end up in the result

The walk has two modes per path:
- replay: before the caret, a path only continues over transitions matching the
  real input token at its position (paths that cannot match die)
- at caret: every transition is explored without consuming input, and reachable
  tokens or preferred rules are recorded

A path switches from replay to the caret mode once when its token position reaches
the caret, and never switches back.
"""
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple

from antlr4 import Token
from antlr4.Parser import Parser
from antlr4.atn.ATNState import ATNState, RuleStartState

from paredros_completion.ATNView import ATNView, TransitionKind
from paredros_completion.CallStack import CallStack, RuleFrame
from paredros_completion.CandidatesCollection import CandidateRule, CandidatesCollection
from paredros_completion.FollowSets import FollowSetCalculator
from paredros_completion.utils import rule_display_name, token_display_name


class CandidateCollector:
    def __init__(self, parser: Parser, atn_view: ATNView, settings, tokens: Sequence[Token]):
        """
        Prepare a collection run.

        Args:
            parser (Parser): The parser, used for names and semantic predicates.
            atn_view (ATNView): Accessors over the parser's ATN.
            settings (CompletionSettings): Frozen configuration of this call.
            tokens (Sequence[Token]): Default channel tokens from the start token up to the caret token.
        """
        self.parser = parser
        self.atn_view = atn_view
        self.settings = settings
        self.tokens: List[Token] = list(tokens)
        self.follow_sets = FollowSetCalculator(atn_view, parser)
        self.states_processed = 0

        self._candidate_tokens: Dict[int, List[int]] = {}
        self._candidate_rules: Dict[int, CandidateRule] = {}
        self._shortcut_map: Dict[tuple, FrozenSet[int]] = {}
        self._open_rules: Set[Tuple[int, int]] = set()
        self._precedence_stack: List[int] = []

    def collect(self, start_rule_index: int, call_stack: CallStack = None,
                return_state: Optional[ATNState] = None) -> CandidatesCollection:
        """
        Run the search from the start state of the given rule.

        Args:
            start_rule_index (int): The rule the token window begins in.
            call_stack (CallStack): Frames of rules already open around that rule.
            return_state (ATNState): Where the enclosing rule continues once that rule ends.

        Returns:
            CandidatesCollection: The collected tokens and rules.
        """
        if call_stack is None:
            call_stack = CallStack()

        if self.tokens:
            start_state = self.atn_view.start_state_of(start_rule_index)
            self._process_rule(start_state, 0, call_stack, 0, return_state, 0)

        return CandidatesCollection(tokens=dict(self._candidate_tokens), rules=dict(self._candidate_rules))

    def _at_caret(self, token_list_index: int) -> bool:
        return token_list_index >= len(self.tokens) - 1

    def _process_rule(self, start_state: RuleStartState, token_list_index: int, call_stack: CallStack,
                      precedence: int, return_state: Optional[ATNState], indentation: int) -> FrozenSet[int]:
        """
        Walk one rule invocation starting at token_list_index.

        Returns:
            frozenset: Token window positions at which this invocation can end. The
            caller continues at the return state for each of them.
        """
        rule_index = start_state.ruleIndex
        start_token_index = self.tokens[token_list_index].tokenIndex
        call_stack = call_stack.push(RuleFrame(rule_index, start_token_index, return_state))

        memo_key = (call_stack.signature(), token_list_index, precedence)
        if memo_key in self._shortcut_map:
            if self.settings.show_debug_output:
                print("=====> shortcut")
            return self._shortcut_map[memo_key]

        # Re-entering a rule at the same position without consuming anything adds nothing new
        reentry_key = (rule_index, token_list_index)
        if reentry_key in self._open_rules:
            return frozenset()

        follow_sets = self.follow_sets.follow_sets_for(start_state)

        if self._at_caret(token_list_index):
            if rule_index in self.settings.preferred_rules:
                # No need to go deeper, this rule is what the caller wants to see
                self._translate_stack_to_rule_index(call_stack.frames)
            else:
                for follow_set in follow_sets.sets:
                    # Rules in the follow set path start at the same token as this rule
                    full_path = call_stack.extended(RuleFrame(r, start_token_index) for r in follow_set.path)
                    if not self._translate_stack_to_rule_index(full_path.frames):
                        for symbol in follow_set.intervals:
                            if symbol not in self.settings.ignored_tokens:
                                self._add_token_candidate(symbol, follow_set.following)

            result = frozenset((token_list_index,)) if follow_sets.nullable else frozenset()
            self._shortcut_map[memo_key] = result
            return result

        # Enter the rule only if it can be passed without input or can match the current token
        current_symbol = self.tokens[token_list_index].type
        if not follow_sets.nullable and current_symbol not in follow_sets.combined:
            self._shortcut_map[memo_key] = frozenset()
            return frozenset()

        if start_state.isPrecedenceRule:
            self._precedence_stack.append(precedence)
        self._open_rules.add(reentry_key)

        result = self._walk_rule(start_state, token_list_index, call_stack, indentation)

        self._open_rules.discard(reentry_key)
        if start_state.isPrecedenceRule:
            self._precedence_stack.pop()

        self._shortcut_map[memo_key] = result
        return result

    def _walk_rule(self, start_state: RuleStartState, token_list_index: int, call_stack: CallStack,
                   indentation: int) -> FrozenSet[int]:
        result = set()

        # (state, token position) pairs already expanded in this invocation
        visited = set()
        pipeline = [(start_state, token_list_index)]

        while pipeline:
            state, index = pipeline.pop()
            if (state.stateNumber, index) in visited:
                continue
            visited.add((state.stateNumber, index))
            self.states_processed += 1

            current_symbol = self.tokens[index].type
            at_caret = self._at_caret(index)

            if self.settings.show_debug_output:
                self._print_description(indentation, state, index, at_caret)
                if self.settings.show_rule_stack:
                    self._print_rule_stack(call_stack)

            if self.atn_view.is_rule_stop(state):
                result.add(index)
                continue

            for transition in self.atn_view.transitions_of(state):
                kind = self.atn_view.kind_of(transition)

                if kind == TransitionKind.RULE:
                    rule_start = self.atn_view.invoked_rule_start(transition)
                    end_status = self._process_rule(rule_start, index, call_stack, transition.precedence,
                                                    transition.followState, indentation + 1)
                    for position in sorted(end_status):
                        pipeline.append((transition.followState, position))

                elif kind == TransitionKind.PREDICATE:
                    if self.follow_sets.check_predicate(transition):
                        pipeline.append((transition.target, index))

                elif kind == TransitionKind.PRECEDENCE:
                    current_precedence = self._precedence_stack[-1] if self._precedence_stack else 0
                    if transition.precedence >= current_precedence:
                        pipeline.append((transition.target, index))

                elif kind == TransitionKind.WILDCARD:
                    if at_caret:
                        if not self._translate_stack_to_rule_index(call_stack.frames):
                            for token_type in range(Token.MIN_USER_TOKEN_TYPE, self.atn_view.max_token_type + 1):
                                if token_type not in self.settings.ignored_tokens:
                                    self._add_token_candidate(token_type, [])
                    else:
                        pipeline.append((transition.target, index + 1))

                elif transition.isEpsilon:
                    pipeline.append((transition.target, index))

                else:
                    token_types = self.atn_view.token_types(transition)
                    if not token_types:
                        continue

                    if at_caret:
                        if not self._translate_stack_to_rule_index(call_stack.frames):
                            following = self.follow_sets.following_tokens(transition)
                            for symbol in token_types:
                                if symbol not in self.settings.ignored_tokens:
                                    if self.settings.show_debug_output:
                                        print("=====> collected: ", token_display_name(self.parser, symbol))
                                    self._add_token_candidate(symbol, following)
                    elif current_symbol in token_types:
                        if self.settings.show_debug_output:
                            print("=====> consumed: ", token_display_name(self.parser, current_symbol))
                        pipeline.append((transition.target, index + 1))

        return frozenset(result)

    def _add_token_candidate(self, token_type: int, following: List[int]):
        existing = self._candidate_tokens.get(token_type)
        if existing is None:
            self._candidate_tokens[token_type] = list(following)
        elif existing != following:
            # Different continuations for the same token, nothing certain follows it
            self._candidate_tokens[token_type] = []

    def _translate_stack_to_rule_index(self, frames: Sequence[RuleFrame]) -> bool:
        """
        Report the first preferred rule on the given stack as candidate.

        The stack is scanned from the outermost frame inward, or from the innermost
        frame outward when rules are translated top down.

        Returns:
            bool: True if a preferred rule was found (the caller then skips its tokens).
        """
        if not self.settings.preferred_rules:
            return False

        if self.settings.translate_rules_top_down:
            indexes = range(len(frames) - 1, -1, -1)
        else:
            indexes = range(len(frames))

        for i in indexes:
            if self._translate_to_rule_index(i, frames):
                return True
        return False

    def _translate_to_rule_index(self, i: int, frames: Sequence[RuleFrame]) -> bool:
        frame = frames[i]
        if frame.rule_index not in self.settings.preferred_rules:
            return False

        candidate = CandidateRule(
            start_token_index=frame.start_token_index,
            rule_list=[f.rule_index for f in frames[:i + 1]],
        )

        existing = self._candidate_rules.get(frame.rule_index)
        # Bottom up keeps the first occurrence found, top down the latest (most specific) one
        if existing is None or (self.settings.translate_rules_top_down and existing != candidate):
            self._candidate_rules[frame.rule_index] = candidate
            if self.settings.show_debug_output:
                print("=====> collected: ", rule_display_name(self.parser, frame.rule_index))

        return True

    ####################
    # Debug output
    ####################
    def _state_description(self, state: ATNState) -> str:
        type_names = ATNState.serializationNames
        type_name = type_names[state.stateType] if 0 <= state.stateType < len(type_names) else str(state.stateType)
        return f"[{state.stateNumber} {type_name}] in {rule_display_name(self.parser, state.ruleIndex)}"

    def _print_description(self, indentation: int, state: ATNState, index: int, at_caret: bool):
        indent = "  " * indentation
        output = f"{indent}Current state: {self._state_description(state)}"
        output += f", Token index: {self.tokens[index].tokenIndex}"
        output += " <<" if at_caret else ""

        if self.settings.debug_output_with_transitions:
            for transition in self.atn_view.transitions_of(state):
                kind = self.atn_view.kind_of(transition)
                labels = ", ".join(token_display_name(self.parser, t) for t in self.atn_view.token_types(transition))
                label = labels if labels else kind.value
                output += f"\n{indent}\t({label}) {self._state_description(transition.target)}"

        print(output)

    def _print_rule_stack(self, call_stack: CallStack):
        if len(call_stack) == 0:
            print("<empty stack>")
            return
        for frame in call_stack:
            print(f"{rule_display_name(self.parser, frame.rule_index)} @ {frame.start_token_index}")
