"""
This Module contains helper functions for the completion core and its result objects.
The functions render token and rule names for diagnostics and cut the token window
the candidate search replays.
"""

from typing import List, Optional, Sequence

from antlr4 import Token
from antlr4.Parser import Parser


def token_display_name(parser: Optional[Parser], token_type: int) -> str:
    """
    Returns a readable name for a token type.

    Args:
        parser (Parser): The parser providing symbolicNames/literalNames, or None.
        token_type (int): The token type.

    Returns:
        str: The symbolic name, the literal name, or the number as a string.
    """
    if token_type == Token.EOF:
        return "EOF"
    if token_type == Token.EPSILON:
        return "<EPSILON>"
    if parser is None:
        return str(token_type)

    symbolic_names = parser.symbolicNames or []
    if 0 < token_type < len(symbolic_names) and symbolic_names[token_type] not in (None, "<INVALID>"):
        return symbolic_names[token_type]

    literal_names = parser.literalNames or []
    if 0 < token_type < len(literal_names) and literal_names[token_type] not in (None, "<INVALID>"):
        return literal_names[token_type]

    return str(token_type)


def rule_display_name(parser: Optional[Parser], rule_index: int) -> str:
    if parser is not None and 0 <= rule_index < len(parser.ruleNames):
        return parser.ruleNames[rule_index]
    return str(rule_index)


def default_channel_window(tokens: Sequence[Token], start_index: int, caret_token_index: int) -> List[Token]:
    """
    Cuts the tokens the candidate search replays.

    Starting at start_index, every default channel token is taken up to and including
    the first one at or after the caret. A caret on a hidden token (e.g. whitespace)
    therefore ends the window at the next default channel token. EOF always ends it.

    Args:
        tokens (Sequence[Token]): All tokens of the stream, hidden ones included.
        start_index (int): Token index to start at.
        caret_token_index (int): Token index of the caret.

    Returns:
        list: The default channel tokens, the last one being the caret token.
    """
    window = []
    for token in tokens[start_index:]:
        if token.channel == Token.DEFAULT_CHANNEL:
            window.append(token)
            if token.tokenIndex >= caret_token_index:
                break
        if token.type == Token.EOF:
            break
    return window
