import unittest
import os
import sys

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from nxcheck.preprocessor import (
    ConditionalTracker, PreprocessorEngine, build_line_map,
    in_sibling_branches, parse_directive,
)


class TestDirectives(unittest.TestCase):

    def test_parse_directive(self):
        self.assertEqual(parse_directive("#define X 1"), ("define", "X 1"))
        self.assertEqual(parse_directive("  #  ifdef  DEBUG "), ("ifdef", "DEBUG"))
        self.assertEqual(parse_directive("#endif"), ("endif", ""))
        self.assertIsNone(parse_directive("int x;"))


class TestConditionalTracker(unittest.TestCase):

    def test_depth_and_path(self):
        t = ConditionalTracker()
        self.assertFalse(t.active)
        t.apply("ifdef")
        self.assertEqual(t.path, ((0, 0),))
        t.apply("if")
        self.assertEqual(t.depth, 2)
        t.apply("else")
        self.assertEqual(t.path, ((0, 0), (1, 1)))
        t.apply("endif")
        t.apply("elif")
        self.assertEqual(t.path, ((0, 1),))
        t.apply("endif")
        self.assertFalse(t.active)

    def test_stray_endif_floors_at_zero(self):
        t = ConditionalTracker()
        t.apply("endif")
        t.apply("endif")
        self.assertEqual(t.depth, 0)
        t.apply("ifndef")
        self.assertEqual(t.depth, 1)

    def test_non_conditionals_ignored(self):
        t = ConditionalTracker()
        self.assertFalse(t.apply("define"))
        self.assertFalse(t.apply("include"))
        self.assertEqual(t.depth, 0)


class TestSiblingBranches(unittest.TestCase):

    def test_sibling(self):
        self.assertTrue(in_sibling_branches(((0, 0),), ((0, 1),)))
        self.assertTrue(in_sibling_branches(((0, 0), (1, 0)), ((0, 1),)))

    def test_not_sibling(self):
        self.assertFalse(in_sibling_branches((), ()))
        self.assertFalse(in_sibling_branches(((0, 0),), ()))
        self.assertFalse(in_sibling_branches(((0, 0),), ((0, 0), (1, 0))))
        # separate #if groups can both be compiled
        self.assertFalse(in_sibling_branches(((0, 0),), ((1, 0),)))


class TestPreprocessorEngine(unittest.TestCase):

    def test_macro_expansion(self):
        engine = PreprocessorEngine()
        expanded, line_map = engine.preprocess("#define SPEED 75\nint s = SPEED;\n")
        self.assertIn("int s = 75;", expanded)
        self.assertNotIn("SPEED", expanded.replace("#define", ""))
        self.assertEqual(len(line_map), len(expanded.splitlines()))

    def test_defines_select_branch(self):
        src = "#ifdef FAST\nint speed = 100;\n#else\nint speed = 50;\n#endif\n"
        slow, _ = PreprocessorEngine().preprocess(src)
        fast, _ = PreprocessorEngine({"FAST": "1"}).preprocess(src)
        self.assertIn("50", slow)
        self.assertNotIn("100", slow)
        self.assertIn("100", fast)

    def test_add_define(self):
        engine = PreprocessorEngine()
        engine.add_define("LEVEL", "3")
        expanded, _ = engine.preprocess("int x = LEVEL;\n")
        self.assertIn("int x = 3;", expanded)

    def test_missing_include_passes_through(self):
        expanded, _ = PreprocessorEngine().preprocess('#include "NXCDefs.h"\ntask main() {}\n')
        self.assertIn("task main()", expanded)

    def test_build_line_map(self):
        lines = ['#line 1 "<nxc>"', "a", "b", '#line 7 "<nxc>"', "c"]
        self.assertEqual(build_line_map(lines), [1, 1, 2, 6, 7])


if __name__ == "__main__":
    unittest.main()
