import unittest
import os
import sys
import shutil
import tempfile
import threading
import time
from unittest import mock

# Add project root to path
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.insert(0, PROJECT_ROOT)

from nxcheck.analyzer import NXCAnalyzer
from nxcheck.catalog import CatalogCache
from nxcheck.config import AnalyzerConfig
from nxcheck.session import AnalysisSession

PROGRAM = "task main() {\n  Wait(100);\n}\n"


class TestSessionCache(unittest.TestCase):

    def setUp(self):
        self.session = AnalysisSession(AnalyzerConfig(debounce_seconds=0.05))

    def tearDown(self):
        self.session.close()

    def test_unchanged_text_hits_cache(self):
        first = self.session.analyze_document("a.nxc", PROGRAM)
        second = self.session.analyze_document("a.nxc", PROGRAM)
        self.assertIs(first, second)
        self.assertEqual(self.session.analyses_run, 1)

    def test_changed_text_reanalysed(self):
        self.session.analyze_document("a.nxc", PROGRAM)
        result = self.session.analyze_document("a.nxc", PROGRAM + "int y;\nint y;\n")
        self.assertFalse(result.is_valid)
        self.assertEqual(self.session.analyses_run, 2)

    def test_version_is_the_fingerprint(self):
        first = self.session.analyze_document("a.nxc", PROGRAM, version=3)
        # same version, different text: host says nothing changed
        second = self.session.analyze_document("a.nxc", PROGRAM + "\n", version=3)
        self.assertIs(first, second)
        self.session.analyze_document("a.nxc", PROGRAM, version=4)
        self.assertEqual(self.session.analyses_run, 2)

    def test_close_document_drops_cache(self):
        self.session.analyze_document("a.nxc", PROGRAM)
        self.session.close_document("a.nxc")
        self.assertIsNone(self.session.cached_result("a.nxc"))
        self.session.analyze_document("a.nxc", PROGRAM)
        self.assertEqual(self.session.analyses_run, 2)

    def test_config_update_drops_cache(self):
        self.session.analyze_document("a.nxc", PROGRAM)
        self.session.update_config(AnalyzerConfig(check_style=False))
        self.session.analyze_document("a.nxc", PROGRAM)
        self.assertEqual(self.session.analyses_run, 2)


class TestCatalogReload(unittest.TestCase):

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.path = os.path.join(self.tmp, "api.txt")
        with open(self.path, "w", encoding="utf-8") as f:
            f.write("Wait(unsigned long ms)\n")

    def tearDown(self):
        shutil.rmtree(self.tmp)

    def test_new_catalog_invalidates_results(self):
        session = AnalysisSession(catalog_cache=CatalogCache(self.path))
        session.analyze_document("a.nxc", PROGRAM)

        with open(self.path, "w", encoding="utf-8") as f:
            f.write("Wait(unsigned long ms)\nBeep()\n")
        later = time.time() + 5
        os.utime(self.path, (later, later))

        session.analyze_document("a.nxc", PROGRAM)
        self.assertEqual(session.analyses_run, 2)


class TestInFlight(unittest.TestCase):

    def test_concurrent_requests_share_one_analysis(self):
        session = AnalysisSession()
        started = threading.Event()
        release = threading.Event()
        real_analyze = NXCAnalyzer.analyze

        def slow_analyze(analyzer, text):
            started.set()
            release.wait(5)
            return real_analyze(analyzer, text)

        results = []
        with mock.patch.object(NXCAnalyzer, "analyze", slow_analyze):
            first = threading.Thread(target=lambda: results.append(session.analyze_document("a.nxc", PROGRAM)))
            first.start()
            self.assertTrue(started.wait(5))

            second = threading.Thread(target=lambda: results.append(session.analyze_document("a.nxc", PROGRAM)))
            second.start()
            time.sleep(0.05)
            release.set()
            first.join(5)
            second.join(5)

        self.assertEqual(len(results), 2)
        self.assertIs(results[0], results[1])
        self.assertEqual(session.analyses_run, 1)


class TestSchedule(unittest.TestCase):

    def test_debounce_runs_latest_once(self):
        session = AnalysisSession(AnalyzerConfig(debounce_seconds=0.1))
        done = threading.Event()
        calls = []

        def callback(document_id, result):
            calls.append((document_id, result))
            done.set()

        session.schedule("a.nxc", "int y;\nint y;\n", callback=callback)
        session.schedule("a.nxc", "int z;\nint z;\n", callback=callback)
        last = session.schedule("a.nxc", PROGRAM, callback=callback)

        self.assertTrue(done.wait(5))
        last.join(5)
        time.sleep(0.2)
        self.assertEqual(len(calls), 1)
        self.assertEqual(calls[0][0], "a.nxc")
        self.assertTrue(calls[0][1].is_valid)
        self.assertEqual(session.analyses_run, 1)

    def test_close_cancels_pending(self):
        session = AnalysisSession(AnalyzerConfig(debounce_seconds=0.2))
        calls = []
        timer = session.schedule("a.nxc", PROGRAM, callback=lambda d, r: calls.append(d))
        session.close_document("a.nxc")
        timer.join(1)
        self.assertEqual(calls, [])
        self.assertEqual(session.analyses_run, 0)


if __name__ == "__main__":
    unittest.main()
