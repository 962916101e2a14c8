import unittest
import os
import sys

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from nxcheck.balance import check_balance
from nxcheck.diagnostics import SOURCE_BALANCE, Severity
from nxcheck.scrubber import scrub


class TestBalanceSoundness(unittest.TestCase):

    def test_nested_brackets_are_clean(self):
        sources = [
            "",
            "a(b[c]{d})",
            "task main() {\n  int a[3] = {1, 2, 3};\n  if (a[0]) { Wait(10); }\n}\n",
            "((([[[{{{}}}]]])))",
            "x = f(g(h[i]), {j});",
        ]
        for s in sources:
            with self.subTest(source=s):
                self.assertEqual(check_balance(s), [])

    def test_brackets_in_literals_ignored_after_scrub(self):
        s = 'TextOut(0, 0, "(((");  // }}}\nchar c = \'[\';'
        self.assertEqual(check_balance(scrub(s)), [])


class TestBalanceErrors(unittest.TestCase):

    def test_unclosed_paren_at_opener(self):
        diags = check_balance("func(a, b")
        self.assertEqual(len(diags), 1)
        d = diags[0]
        self.assertIn("Unclosed '('", d.message)
        self.assertEqual((d.line, d.column), (0, 4))
        self.assertEqual(d.severity, Severity.ERROR)
        self.assertEqual(d.source, SOURCE_BALANCE)

    def test_interleaving_is_a_mismatch(self):
        diags = check_balance("([)]")
        self.assertEqual(len(diags), 1)
        self.assertIn("Mismatched ')'", diags[0].message)
        self.assertEqual(diags[0].column, 2)

    def test_stray_closer(self):
        diags = check_balance("int x;\n}")
        self.assertEqual(len(diags), 1)
        self.assertIn("without matching opening '{'", diags[0].message)
        self.assertEqual((diags[0].line, diags[0].column), (1, 0))

    def test_first_mismatch_wins(self):
        diags = check_balance("(]\n{)\n[")
        self.assertEqual(len(diags), 1)
        self.assertEqual(diags[0].line, 0)

    def test_innermost_unclosed_reported(self):
        diags = check_balance("{\n  (\n    [")
        self.assertEqual(len(diags), 1)
        self.assertIn("Unclosed '['", diags[0].message)
        self.assertEqual((diags[0].line, diags[0].column), (2, 4))

    def test_missing_brace_after_task(self):
        diags = check_balance("task main() { OnFwd(OUT_A, 75);")
        self.assertEqual(len(diags), 1)
        self.assertIn("Unclosed '{'", diags[0].message)
        self.assertEqual(diags[0].column, 12)


if __name__ == "__main__":
    unittest.main()
