import unittest

from antlr4 import Token

from expr_grammar import ExprParser, expr_parser

from paredros_completion.utils import default_channel_window, rule_display_name, token_display_name


class DisplayNameTest(unittest.TestCase):

    def setUp(self):
        self.parser = expr_parser("a")

    def test_token_names(self):
        self.assertEqual("VAR", token_display_name(self.parser, ExprParser.VAR))
        self.assertEqual("EOF", token_display_name(self.parser, Token.EOF))
        self.assertEqual("42", token_display_name(self.parser, 42))
        self.assertEqual("3", token_display_name(None, 3))

    def test_rule_names(self):
        self.assertEqual("functionRef", rule_display_name(self.parser, ExprParser.RULE_functionRef))
        self.assertEqual("7", rule_display_name(self.parser, 7))


class TokenWindowTest(unittest.TestCase):
    """
    var(0) ws(1) c(2) ws(3) =(4) EOF(5)
    """

    def setUp(self):
        stream = expr_parser("var c =").getTokenStream()
        stream.fill()
        self.tokens = stream.tokens

    def indexes(self, start, caret):
        return [t.tokenIndex for t in default_channel_window(self.tokens, start, caret)]

    def test_caret_on_default_channel_token(self):
        self.assertEqual([0, 2], self.indexes(0, 2))

    def test_caret_on_hidden_token(self):
        self.assertEqual([0, 2], self.indexes(0, 1))
        self.assertEqual([0, 2, 4], self.indexes(0, 3))

    def test_window_from_later_start(self):
        self.assertEqual([2, 4, 5], self.indexes(2, 5))


if __name__ == "__main__":
    unittest.main()
