import unittest
import os
import sys

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from nxcheck.config import AnalyzerConfig
from nxcheck.diagnostics import SOURCE_STYLE, SOURCE_SYNTAX, Severity
from nxcheck.scrubber import scan
from nxcheck.syntax_checks import SyntaxChecker, needs_semicolon


def check(source: str, **config):
    return SyntaxChecker(AnalyzerConfig(**config)).check(source, scan(source))


class TestNeedsSemicolon(unittest.TestCase):

    def test_flagged(self):
        for line in ("int x = 5", "x = 3", "x += 2", "arr[2] = 1", "Wait(100)", "return x", "break"):
            with self.subTest(line=line):
                self.assertTrue(needs_semicolon(line))

    def test_not_flagged(self):
        lines = (
            "int x = 5;",
            "task main()",
            "void drive(int speed) {",
            "if (x > 3)",
            "while (true)",
            "repeat (4)",
            "} else {",
            "else",
            "case 1:",
            "default:",
            "#define X 1",
            "int total = a +",
            "OnFwd(OUT_A,",
            "x == 3",
            "{",
            "}",
        )
        for line in lines:
            with self.subTest(line=line):
                self.assertFalse(needs_semicolon(line))


class TestSyntaxChecker(unittest.TestCase):

    def test_clean_program(self):
        errors, warnings = check("task main() {\n  int x = 10;\n  OnFwd(OUT_A, 75);\n}\n")
        self.assertEqual(errors, [])
        self.assertEqual(warnings, [])

    def test_unterminated_string(self):
        errors, _ = check('task main() {\n  TextOut(0, 0, "oops);\n}\n')
        self.assertEqual([e.message for e in errors], ["Unterminated string literal"])
        self.assertEqual((errors[0].line, errors[0].column), (1, 16))
        self.assertEqual(errors[0].severity, Severity.ERROR)
        self.assertEqual(errors[0].source, SOURCE_SYNTAX)

    def test_unterminated_char(self):
        errors, _ = check("char c = 'a;\n")
        self.assertEqual([e.message for e in errors], ["Unterminated character literal"])

    def test_missing_semicolon_position(self):
        _, warnings = check("task main() {\n  int x = 5\n}\n")
        self.assertEqual([w.message for w in warnings], ["Missing semicolon"])
        self.assertEqual((warnings[0].line, warnings[0].column), (1, 11))

    def test_missing_semicolon_ignores_trailing_comment(self):
        _, warnings = check("task main() {\n  Wait(10)  // pause\n}\n")
        self.assertEqual([w.message for w in warnings], ["Missing semicolon"])
        self.assertEqual(warnings[0].column, 10)

    def test_semicolon_check_configurable(self):
        _, warnings = check("task main() {\n  int x = 5\n}\n", require_semicolons=False)
        self.assertEqual(warnings, [])

    def test_macro_continuation_lines_skipped(self):
        _, warnings = check("#define GO(p) \\\n  OnFwd(OUT_A, p)\ntask main() {\n}\n")
        self.assertEqual(warnings, [])

    def test_wrapped_parameter_list_not_flagged(self):
        source = (
            "int add(int a,\n"
            "        int b)\n"
            "{\n"
            "  return a + b;\n"
            "}\n"
            "task main() { int r = add(1, 2); }\n"
        )
        _, warnings = check(source)
        self.assertEqual(warnings, [])

    def test_wrapped_call_arguments_not_flagged(self):
        _, warnings = check("task main() {\n  OnFwd(OUT_A,\n        speed)\n    ;\n}\n")
        self.assertEqual(warnings, [])

    def test_checking_resumes_after_wrapped_parens(self):
        source = "int add(int a,\n        int b)\n{\n  int r = a + b\n  return r;\n}\n"
        _, warnings = check(source)
        self.assertEqual([(w.message, w.line) for w in warnings], [("Missing semicolon", 3)])

    def test_double_equals_typo(self):
        _, warnings = check("task main() {\n  if (x = = 3) {}\n}\n")
        self.assertEqual(len(warnings), 1)
        self.assertIn('"= ="', warnings[0].message)
        self.assertEqual(warnings[0].column, 8)

    def test_double_equals_inside_string_ignored(self):
        _, warnings = check('task main() {\n  TextOut(0, 0, "a = = b");\n}\n')
        self.assertEqual(warnings, [])


class TestStyleChecks(unittest.TestCase):

    def test_long_line(self):
        line = "int x = 1;" + " " * 5 + "// " + "y" * 120
        _, warnings = check(line + "\n")
        self.assertEqual([w.message for w in warnings], ["Line too long (>120 characters)"])
        self.assertEqual(warnings[0].column, 120)
        self.assertEqual(warnings[0].source, SOURCE_STYLE)

    def test_custom_line_limit(self):
        _, warnings = check("int abcdefghij = 1;\n", max_line_length=10)
        self.assertEqual([w.message for w in warnings], ["Line too long (>10 characters)"])

    def test_mixed_indentation(self):
        _, warnings = check("task main() {\n \tWait(1);\n}\n")
        self.assertEqual([w.message for w in warnings], ["Mixed tabs and spaces for indentation"])

    def test_style_can_be_disabled(self):
        _, warnings = check("task main() {\n \tWait(1);\n}\n", check_style=False)
        self.assertEqual(warnings, [])


if __name__ == "__main__":
    unittest.main()
