"""
Helper for the tests: builds parser ATNs by hand, in the shapes the ANTLR tool
emits for rules, blocks, star loops and left-recursive rules. This lets the tests
describe small grammars without a generated parser.

Every builder method creates states for one rule and returns a Handle (entry and
exit state of the fragment). define() connects a fragment to the rule's start and
stop state. BuiltParser wraps such an ATN together with an input given as token types.
"""
from collections import namedtuple

from antlr4 import CommonTokenStream, Token
from antlr4.IntervalSet import IntervalSet
from antlr4.ListTokenSource import ListTokenSource
from antlr4.Parser import Parser
from antlr4.Token import CommonToken
from antlr4.atn.ATN import ATN
from antlr4.atn.ATNState import (BasicState, BasicBlockStartState, BlockEndState, LoopEndState, RuleStartState,
                                 RuleStopState, StarBlockStartState, StarLoopbackState, StarLoopEntryState)
from antlr4.atn.ATNType import ATNType
from antlr4.atn.Transition import (ActionTransition, AtomTransition, EpsilonTransition, NotSetTransition,
                                   PrecedencePredicateTransition, PredicateTransition, RangeTransition,
                                   RuleTransition, SetTransition, WildcardTransition)

Handle = namedtuple("Handle", ["left", "right"])


class ATNBuilder:
    def __init__(self, max_token_type: int, rule_count: int, precedence_rules=()):
        self.atn = ATN(ATNType.PARSER, max_token_type)
        self.atn.ruleToStartState = []
        self.atn.ruleToStopState = []
        self.call_sites = {}    # (caller rule, invoked rule) -> state number of the invoking state

        for rule_index in range(rule_count):
            start = self._add(RuleStartState(), rule_index)
            start.isPrecedenceRule = rule_index in precedence_rules
            stop = self._add(RuleStopState(), rule_index)
            start.stopState = stop
            self.atn.ruleToStartState.append(start)
            self.atn.ruleToStopState.append(stop)

    def _add(self, state, rule_index: int):
        state.ruleIndex = rule_index
        self.atn.addState(state)
        return state

    def _basic_pair(self, rule_index: int):
        return self._add(BasicState(), rule_index), self._add(BasicState(), rule_index)

    ####################
    # Fragments
    ####################
    def token(self, rule_index: int, *token_types) -> Handle:
        """One token (atom transition) or a token set like (A | B) (set transition)."""
        left, right = self._basic_pair(rule_index)
        if len(token_types) == 1:
            left.addTransition(AtomTransition(right, token_types[0]))
        else:
            left.addTransition(SetTransition(right, _interval_set(token_types)))
        return Handle(left, right)

    def token_range(self, rule_index: int, first: int, last: int) -> Handle:
        left, right = self._basic_pair(rule_index)
        left.addTransition(RangeTransition(right, first, last))
        return Handle(left, right)

    def not_set(self, rule_index: int, *token_types) -> Handle:
        left, right = self._basic_pair(rule_index)
        left.addTransition(NotSetTransition(right, _interval_set(token_types)))
        return Handle(left, right)

    def wildcard(self, rule_index: int) -> Handle:
        left, right = self._basic_pair(rule_index)
        left.addTransition(WildcardTransition(right))
        return Handle(left, right)

    def call(self, rule_index: int, invoked_rule: int, precedence: int = 0) -> Handle:
        left, right = self._basic_pair(rule_index)
        rule_start = self.atn.ruleToStartState[invoked_rule]
        left.addTransition(RuleTransition(rule_start, invoked_rule, precedence, right))
        self.call_sites[(rule_index, invoked_rule)] = left.stateNumber
        return Handle(left, right)

    def precpred(self, rule_index: int, precedence: int) -> Handle:
        left, right = self._basic_pair(rule_index)
        left.addTransition(PrecedencePredicateTransition(right, precedence))
        return Handle(left, right)

    def predicate(self, rule_index: int, pred_index: int) -> Handle:
        left, right = self._basic_pair(rule_index)
        left.addTransition(PredicateTransition(right, rule_index, pred_index, False))
        return Handle(left, right)

    def action(self, rule_index: int, action_index: int = 0) -> Handle:
        left, right = self._basic_pair(rule_index)
        left.addTransition(ActionTransition(right, rule_index, action_index))
        return Handle(left, right)

    def empty(self, rule_index: int) -> Handle:
        left, right = self._basic_pair(rule_index)
        left.addTransition(EpsilonTransition(right))
        return Handle(left, right)

    ####################
    # Combinators
    ####################
    def seq(self, *handles) -> Handle:
        for current, following in zip(handles, handles[1:]):
            current.right.addTransition(EpsilonTransition(following.left))
        return Handle(handles[0].left, handles[-1].right)

    def block(self, rule_index: int, *alternatives) -> Handle:
        """(alt1 | alt2 | ...)"""
        start = self._add(BasicBlockStartState(), rule_index)
        end = self._add(BlockEndState(), rule_index)
        start.endState = end
        end.startState = start
        for alternative in alternatives:
            start.addTransition(EpsilonTransition(alternative.left))
            alternative.right.addTransition(EpsilonTransition(end))
        return Handle(start, end)

    def optional(self, rule_index: int, handle: Handle) -> Handle:
        return self.block(rule_index, handle, self.empty(rule_index))

    def star(self, rule_index: int, *alternatives, precedence_decision: bool = False) -> Handle:
        """(alt1 | alt2 | ...)*"""
        entry = self._add(StarLoopEntryState(), rule_index)
        block_start = self._add(StarBlockStartState(), rule_index)
        block_end = self._add(BlockEndState(), rule_index)
        loop_back = self._add(StarLoopbackState(), rule_index)
        loop_end = self._add(LoopEndState(), rule_index)

        entry.isPrecedenceDecision = precedence_decision
        entry.loopBackState = loop_back
        loop_end.loopBackState = loop_back
        block_start.endState = block_end
        block_end.startState = block_start

        entry.addTransition(EpsilonTransition(block_start))
        entry.addTransition(EpsilonTransition(loop_end))
        for alternative in alternatives:
            block_start.addTransition(EpsilonTransition(alternative.left))
            alternative.right.addTransition(EpsilonTransition(block_end))
        block_end.addTransition(EpsilonTransition(loop_back))
        loop_back.addTransition(EpsilonTransition(entry))
        return Handle(entry, loop_end)

    def define(self, rule_index: int, body: Handle):
        self.atn.ruleToStartState[rule_index].addTransition(EpsilonTransition(body.left))
        body.right.addTransition(EpsilonTransition(self.atn.ruleToStopState[rule_index]))


def _interval_set(token_types) -> IntervalSet:
    result = IntervalSet()
    for token_type in token_types:
        result.addOne(token_type)
    return result


class BuiltParser(Parser):
    """
    Parser over a hand-built ATN. The input is given as a list of token types,
    predicate outcomes as {(rule index, predicate index): bool} (default True).
    """

    def __init__(self, atn: ATN, rule_names, symbolic_names, token_types, predicates=None):
        super().__init__(CommonTokenStream(ListTokenSource(make_tokens(token_types, symbolic_names))))
        self.atn = atn
        self.ruleNames = rule_names
        self.symbolicNames = symbolic_names
        self.literalNames = []
        self.predicates = predicates or {}

    def sempred(self, localctx, ruleIndex, predIndex):
        return self.predicates.get((ruleIndex, predIndex), True)


def make_tokens(token_types, symbolic_names=()) -> list:
    """Default channel tokens of the given types, followed by EOF."""
    tokens = []
    for position, token_type in enumerate(token_types):
        token = CommonToken(type=token_type, start=position, stop=position)
        token.text = symbolic_names[token_type] if token_type < len(symbolic_names) else str(token_type)
        tokens.append(token)

    eof = CommonToken(type=Token.EOF, start=len(tokens), stop=len(tokens) - 1)
    eof.text = "<EOF>"
    tokens.append(eof)
    return tokens
