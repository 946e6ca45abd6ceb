# paredros_completion/CandidatesCollection.py
import json
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from antlr4.Parser import Parser

from paredros_completion.utils import rule_display_name, token_display_name


@dataclass
class CandidateRule:
    """A preferred rule that is active at the caret"""
    start_token_index: int
    rule_list: List[int] = field(default_factory=list)  # rule stack from the outermost rule down to this rule


@dataclass(frozen=True)
class CandidatesCollection:
    """
    Result of one candidate collection call.

    - tokens maps each candidate token type to the chain of token types that must
      literally follow it (empty if the continuation branches).
    - rules maps each candidate rule index to the occurrence recorded for it.
    """
    tokens: Dict[int, List[int]] = field(default_factory=dict)
    rules: Dict[int, CandidateRule] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not self.tokens and not self.rules

    def to_dict(self, parser: Optional[Parser] = None) -> dict:
        return {
            "tokens": {
                token_display_name(parser, token_type): [token_display_name(parser, t) for t in following]
                for token_type, following in self.tokens.items()
            },
            "rules": {
                rule_display_name(parser, rule_index): {
                    "start_token_index": candidate.start_token_index,
                    "rule_list": [rule_display_name(parser, r) for r in candidate.rule_list],
                }
                for rule_index, candidate in self.rules.items()
            },
        }

    def to_json(self, indent: int = 2, parser: Optional[Parser] = None) -> str:
        return json.dumps(self.to_dict(parser), indent=indent)
