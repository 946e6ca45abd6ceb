"""
CodeCompletionCore computes, for an ANTLR4 parser and a caret position in its token
stream, which tokens could come next and which "interesting" rules are active there.
This is the engine behind IDE-style code completion.

Configuration (read once per call, never changed by the core):
- ignored_tokens: token types never reported as candidates
- preferred_rules: rules reported as candidates instead of being expanded into tokens
- translate_rules_top_down: report the innermost preferred rule of a rule stack
  (and let later occurrences win) instead of the outermost one
- start_rule_index: the rule a search without context starts in

Usage:
    parser = ExprParser(CommonTokenStream(lexer))
    core = CodeCompletionCore(parser, ignored_tokens={ExprParser.ID}, preferred_rules={ExprParser.RULE_variableRef})
    candidates = core.collect_candidates(caret_token_index)
"""
import warnings
from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional

from antlr4.Parser import Parser
from antlr4.ParserRuleContext import ParserRuleContext

from paredros_completion.ATNView import ATNView
from paredros_completion.CallStack import CallStack, RuleFrame
from paredros_completion.CandidateCollector import CandidateCollector
from paredros_completion.CandidatesCollection import CandidatesCollection
from paredros_completion.utils import default_channel_window, rule_display_name, token_display_name


@dataclass(frozen=True)
class CompletionSettings:
    """Snapshot of the core's configuration, taken when a collection call starts"""
    ignored_tokens: FrozenSet[int] = frozenset()
    preferred_rules: FrozenSet[int] = frozenset()
    translate_rules_top_down: bool = False
    show_debug_output: bool = False
    debug_output_with_transitions: bool = False
    show_rule_stack: bool = False


class CodeCompletionCore:
    def __init__(self, parser: Parser, ignored_tokens: Optional[Iterable[int]] = None,
                 preferred_rules: Optional[Iterable[int]] = None, translate_rules_top_down: bool = False):
        """
        Initializes the completion core for a parser.

        Args:
            parser (Parser): A generated ANTLR4 parser. Its token stream is the input
                candidates are collected for.
            ignored_tokens (Iterable[int]): Token types never reported as candidates.
            preferred_rules (Iterable[int]): Rule indexes reported instead of their tokens.
            translate_rules_top_down (bool): Prefer the innermost preferred rule.
        """
        self.parser = parser
        self.atn_view = ATNView(parser.atn)

        self.ignored_tokens = set(ignored_tokens) if ignored_tokens is not None else set()
        self.preferred_rules = set(preferred_rules) if preferred_rules is not None else set()
        self.translate_rules_top_down = translate_rules_top_down
        self.start_rule_index = 0

        # Diagnostics
        self.show_result = False
        self.show_debug_output = False
        self.debug_output_with_transitions = False
        self.show_rule_stack = False

    def collect_candidates(self, caret_token_index: int,
                           context: Optional[ParserRuleContext] = None) -> CandidatesCollection:
        """
        Collects the token and rule candidates at the caret.

        Args:
            caret_token_index (int): Index of the caret token in the parser's token
                stream, hidden tokens included.
            context (ParserRuleContext): Optional rule context to start the search in
                instead of the start rule. Its ancestors form the outer rule stack.

        Returns:
            CandidatesCollection: The candidates. Empty if the input before the caret
            cannot be matched by the grammar.

        Raises:
            ValueError: If the caret lies outside the token stream or the context's
                rule is not part of the grammar.
        """
        token_stream = self.parser.getTokenStream()
        token_stream.fill()
        all_tokens = list(token_stream.tokens)

        if not isinstance(caret_token_index, int) or caret_token_index < 0 or caret_token_index >= len(all_tokens):
            raise ValueError(
                f"Caret token index {caret_token_index} is outside the token stream (0..{len(all_tokens) - 1})")

        settings = self._snapshot_settings()

        if context is None:
            start_rule_index = self.start_rule_index
            start_token_index = 0
            call_stack = CallStack()
            return_state = None
        else:
            start_rule_index = context.getRuleIndex()
            start_token_index = self._context_start_token_index(context)
            call_stack = self._call_stack_for_context(context)
            return_state = self._return_state_of(context)

        window = default_channel_window(all_tokens, start_token_index, caret_token_index)
        collector = CandidateCollector(self.parser, self.atn_view, settings, window)
        candidates = collector.collect(start_rule_index, call_stack, return_state)

        if self.show_result:
            self._print_result(candidates, collector.states_processed)

        return candidates

    def _snapshot_settings(self) -> CompletionSettings:
        return CompletionSettings(
            ignored_tokens=frozenset(self.ignored_tokens),
            preferred_rules=frozenset(self.preferred_rules),
            translate_rules_top_down=bool(self.translate_rules_top_down),
            show_debug_output=self.show_debug_output,
            debug_output_with_transitions=self.debug_output_with_transitions,
            show_rule_stack=self.show_rule_stack,
        )

    def _context_start_token_index(self, context: ParserRuleContext) -> int:
        if context.start is None or context.start.tokenIndex < 0:
            warnings.warn(f"Context for rule '{rule_display_name(self.parser, context.getRuleIndex())}' "
                          "has no start token, starting at token 0.")
            return 0
        return context.start.tokenIndex

    def _call_stack_for_context(self, context: ParserRuleContext) -> CallStack:
        """
        Build the frames of the rules enclosing context, outermost first.
        """
        frames = []
        parent = context.parentCtx
        while parent is not None:
            frames.append(RuleFrame(
                rule_index=parent.getRuleIndex(),
                start_token_index=self._context_start_token_index(parent),
                return_state=self._return_state_of(parent),
            ))
            parent = parent.parentCtx

        frames.reverse()
        return CallStack(frames)

    def _return_state_of(self, context: ParserRuleContext):
        invoking_state = context.invokingState
        if invoking_state is None or invoking_state < 0:
            return None
        transitions = self.atn_view.transitions_of(self.atn_view.state(invoking_state))
        if not transitions or not hasattr(transitions[0], "followState"):
            raise RuntimeError(f"Invoking state {invoking_state} does not start a rule transition")
        return transitions[0].followState

    def _print_result(self, candidates: CandidatesCollection, states_processed: int):
        print("\n\nCollected rules:\n")
        for rule_index, candidate in candidates.rules.items():
            path = " ".join(rule_display_name(self.parser, r) for r in candidate.rule_list)
            print(f"{rule_display_name(self.parser, rule_index)}, path: {path}, "
                  f"start token index: {candidate.start_token_index}")

        print("\n\nCollected tokens:\n")
        for token_type, following in candidates.tokens.items():
            chain = " ".join(token_display_name(self.parser, t) for t in following)
            print(f"{token_display_name(self.parser, token_type)} {chain}".rstrip())

        print(f"\n\nStates processed: {states_processed}\n\n")
