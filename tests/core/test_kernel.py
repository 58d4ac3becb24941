import errno
import os
import re
import tempfile
import time
import unittest
from pathlib import Path

from mountwrap.core.errors import LaunchError, LogWriteError
from mountwrap.core.kernel import Kernel
from mountwrap.core.launcher import Launcher
from mountwrap.core.runtime_context import WrapperContext
from mountwrap.core.supervisor import KilledBySignal, NormalExit, Supervisor


SH = "/bin/sh"
_LINE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{6} runtimestamp (\d+\.\d{9}) (execute|completed) ")


def _read_lines(path: Path):
    return [l for l in path.read_text(encoding="ascii").splitlines() if l.strip()]


@unittest.skipUnless(os.path.exists(SH) and hasattr(os, "fork"), "requires POSIX fork and /bin/sh")
class TestKernelRuns(unittest.TestCase):
    def setUp(self) -> None:
        self._td = tempfile.TemporaryDirectory()
        self.root = Path(self._td.name)
        self.log_path = self.root / "logs" / "mountwrapper.log"
        self.wrapper_path = str(self.root / "mount")

    def tearDown(self) -> None:
        self._td.cleanup()

    def _kernel(self, binary: str = SH, **kwargs) -> Kernel:
        ctx = WrapperContext(log_path=self.log_path, target_binary=binary, progname="mount")
        return Kernel(ctx, **kwargs)

    def test_exit_codes_are_mirrored(self) -> None:
        for code in (0, 1, 42):
            rc = self._kernel().run([self.wrapper_path, "-c", f"exit {code}"], {b"PATH": b"/bin"})
            self.assertEqual(rc, code)

        lines = _read_lines(self.log_path)
        self.assertEqual(len(lines), 6)
        self.assertTrue(lines[3].endswith("exit with code 1"))
        self.assertTrue(lines[5].endswith("exit with code 42"))

    def test_start_and_completion_share_run_id(self) -> None:
        kernel = self._kernel()
        rc = kernel.run([self.wrapper_path, "-c", "exit 0"], {b"HOME": b"/root"})
        self.assertEqual(rc, 0)
        self.assertEqual(kernel.outcome, NormalExit(0))

        lines = _read_lines(self.log_path)
        self.assertEqual(len(lines), 2)
        m1, m2 = _LINE_RE.match(lines[0]), _LINE_RE.match(lines[1])
        self.assertIsNotNone(m1)
        self.assertIsNotNone(m2)
        self.assertEqual(m1.group(2), "execute")
        self.assertEqual(m2.group(2), "completed")
        self.assertEqual(m1.group(1), m2.group(1))
        self.assertEqual(m1.group(1), kernel.record.run_id)
        self.assertIn(f"execute '{SH}' argv:[\"{self.wrapper_path}\",\"-c\",\"exit 0\"]", lines[0])
        self.assertTrue(lines[0].endswith("environment:[HOME=/root]"))
        self.assertIn(f"completed '{SH}'", lines[1])

    def test_exec_failure_reports_sentinel(self) -> None:
        missing = str(self.root / "no-such-binary")
        kernel = self._kernel(binary=missing)
        rc = kernel.run([self.wrapper_path, "-a"], {})
        self.assertEqual(rc, 128)
        self.assertTrue(kernel.outcome.exec_failed)
        lines = _read_lines(self.log_path)
        self.assertTrue(lines[-1].endswith("failed to execv(2) (ec==128)"))

    def test_signal_death_is_generic_failure(self) -> None:
        kernel = self._kernel()
        rc = kernel.run([self.wrapper_path, "-c", "kill -9 $$"], {})
        self.assertEqual(rc, 1)
        self.assertEqual(kernel.outcome, KilledBySignal(9))
        self.assertTrue(_read_lines(self.log_path)[-1].endswith("exit with signal 9"))

    @unittest.skipUnless(os.path.exists("/proc/self/cmdline"), "requires /proc")
    def test_target_sees_wrapper_path_as_argv0(self) -> None:
        out = self.root / "cmdline"
        script = 'cp /proc/$$/cmdline "$1"; exit 0'
        rc = self._kernel().run([self.wrapper_path, "-c", script, "probe", str(out)], {})
        self.assertEqual(rc, 0)
        seen = out.read_bytes().split(b"\0")
        self.assertEqual(seen[0].decode(), self.wrapper_path)
        self.assertNotEqual(seen[0].decode(), SH)

    def test_log_untouched_until_child_reaped(self) -> None:
        release = self.root / "release"
        test = self
        real = Supervisor()

        class CheckingSupervisor(Supervisor):
            def wait(self, pid):
                time.sleep(0.2)
                test.assertFalse(test.log_path.exists())
                test.assertFalse(test.log_path.parent.exists())
                release.write_text("go", encoding="utf-8")
                return real.wait(pid)

        script = 'while [ ! -e "$1" ]; do sleep 0.05; done; exit 7'
        rc = self._kernel(supervisor=CheckingSupervisor()).run([self.wrapper_path, "-c", script, "x", str(release)], {})
        self.assertEqual(rc, 7)
        self.assertEqual(len(_read_lines(self.log_path)), 2)

    def test_appends_without_truncating(self) -> None:
        self.log_path.parent.mkdir(parents=True)
        self.log_path.write_text("previous line\n", encoding="ascii")
        self._kernel().run([self.wrapper_path, "-c", "exit 0"], {})
        lines = _read_lines(self.log_path)
        self.assertEqual(lines[0], "previous line")
        self.assertEqual(len(lines), 3)

    def test_fork_failure_leaves_log_untouched(self) -> None:
        def failing_fork():
            raise BlockingIOError(errno.EAGAIN, "Resource temporarily unavailable")

        ctx = WrapperContext(log_path=self.log_path, target_binary=SH)
        kernel = Kernel(ctx, launcher=Launcher(ctx, fork=failing_fork))
        with self.assertRaises(LaunchError):
            kernel.run([self.wrapper_path, "-c", "exit 0"], {})
        self.assertFalse(self.log_path.exists())
        self.assertEqual(len(kernel.buffer), 1)

    def test_log_failure_is_fatal_after_successful_child(self) -> None:
        ctx = WrapperContext(log_path=self.root, target_binary=SH)
        kernel = Kernel(ctx)
        with self.assertRaises(LogWriteError) as cm:
            kernel.run([self.wrapper_path, "-c", "exit 0"], {})
        self.assertEqual(cm.exception.code, "log.open_failed")
        self.assertEqual(kernel.outcome, NormalExit(0))


if __name__ == "__main__":
    unittest.main()
