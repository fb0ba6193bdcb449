"""
Execution engine for scheduled jobs.

Runs a single job, either a shell command in a subprocess or a registered
Python action on a worker thread, enforces the job's timeout, captures its
output and records the outcome in the job store. Job-level failures never
raise out of ``ExecutionEngine.run``; they come back as a failed
``RunResult``.
"""

import logging
import os
import signal
import subprocess
import threading
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, TextIO

from .cron_utils import utcnow
from .job_store import JobStore
from .models import ErrorKind, Job, RunResult

logger = logging.getLogger(__name__)

DEFAULT_OUTPUT_LIMIT = 1000
COMMAND_NOT_FOUND_EXIT = 127
READ_CHUNK_SIZE = 8192
OUTPUT_DRAIN_SECONDS = 5.0

# An action receives an event that is set when its run times out and
# returns the text to record as output.
Action = Callable[[threading.Event], Optional[str]]


@dataclass
class _Outcome:
    success: bool
    exit_code: Optional[int] = None
    output: str = ""
    error_kind: ErrorKind = ErrorKind.NONE
    error: Optional[str] = None


class ExecutionEngine:
    """Runs jobs and records their results."""

    def __init__(
        self,
        store: JobStore,
        output_limit: int = DEFAULT_OUTPUT_LIMIT,
        actions: Optional[Dict[str, Action]] = None
    ):
        self.store = store
        self.output_limit = output_limit
        self._actions: Dict[str, Action] = dict(actions or {})
        # action threads that outlived their timeout, by job id
        self._stragglers: Dict[str, threading.Thread] = {}
        self._stragglers_lock = threading.Lock()

    def register_action(self, name: str, action: Action) -> None:
        """Make a Python callable available to jobs declaring ``action: name``."""
        self._actions[name] = action
        logger.debug(f"Registered action {name}")

    def has_action(self, name: str) -> bool:
        return name in self._actions

    def pop_straggler(self, job_id: str) -> Optional[threading.Thread]:
        """Take the still-running action thread left behind by a timed-out run, if any."""
        with self._stragglers_lock:
            return self._stragglers.pop(job_id, None)

    def truncate(self, output: Optional[str]) -> str:
        if not output:
            return ""
        return output[:self.output_limit]

    def run(self, job: Job, forced: bool = False) -> RunResult:
        """
        Execute ``job`` once and record the result.

        Args:
            job: Job to run
            forced: True when the run was requested outside the schedule

        Returns:
            The RunResult, already applied to the job store
        """
        started_at = utcnow()
        logger.info(f"Running job {job.id}{' (forced)' if forced else ''}")

        try:
            if job.command:
                outcome = self._run_command(job)
            else:
                outcome = self._run_action(job)
        except Exception as e:
            logger.exception(f"Unexpected error while running job {job.id}")
            outcome = _Outcome(success=False, error_kind=ErrorKind.EXCEPTION, error=str(e))

        result = RunResult(
            job_id=job.id,
            started_at=started_at,
            finished_at=utcnow(),
            success=outcome.success,
            forced=forced,
            exit_code=outcome.exit_code,
            output=self.truncate(outcome.output),
            error_kind=outcome.error_kind,
            error=outcome.error,
        )
        self.store.record_run(result)

        if result.success:
            logger.info(f"Job {job.id} succeeded in {result.duration:.2f}s")
        else:
            logger.warning(f"Job {job.id} failed ({result.error_kind.value}): {result.error}")
        return result

    def _run_command(self, job: Job) -> _Outcome:
        env = None
        if job.env:
            env = dict(os.environ)
            env.update(job.env)

        try:
            process = subprocess.Popen(
                job.command,
                shell=True,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                stdin=subprocess.DEVNULL,
                cwd=job.working_dir,
                env=env,
                text=True,
                errors="replace",
                start_new_session=(os.name == "posix"),
            )
        except OSError as e:
            return _Outcome(success=False, error_kind=ErrorKind.NOT_FOUND, error=str(e))

        chunks: List[str] = []
        reader = threading.Thread(
            target=self._collect_output,
            args=(process.stdout, chunks),
            name=f"output-{job.id}",
            daemon=True,
        )
        reader.start()

        try:
            process.wait(timeout=job.timeout)
        except subprocess.TimeoutExpired:
            self._kill(process)
            process.wait()
            reader.join(OUTPUT_DRAIN_SECONDS)
            return _Outcome(
                success=False,
                exit_code=process.returncode,
                output="".join(chunks),
                error_kind=ErrorKind.TIMEOUT,
                error=f"Job timed out after {job.timeout}s",
            )

        reader.join(OUTPUT_DRAIN_SECONDS)
        output = "".join(chunks)

        if process.returncode == 0:
            return _Outcome(success=True, exit_code=0, output=output)
        if process.returncode == COMMAND_NOT_FOUND_EXIT:
            kind = ErrorKind.NOT_FOUND
        else:
            kind = ErrorKind.EXIT_CODE
        return _Outcome(
            success=False,
            exit_code=process.returncode,
            output=output,
            error_kind=kind,
            error=f"Command exited with status {process.returncode}",
        )

    def _collect_output(self, stream: TextIO, chunks: List[str]) -> None:
        """Drain ``stream`` to EOF, keeping at most ``output_limit`` characters."""
        kept = 0
        try:
            for chunk in iter(lambda: stream.read(READ_CHUNK_SIZE), ""):
                if kept < self.output_limit:
                    piece = chunk[:self.output_limit - kept]
                    chunks.append(piece)
                    kept += len(piece)
        except (OSError, ValueError) as e:
            logger.debug(f"Stopped reading command output: {e}")
        finally:
            stream.close()

    @staticmethod
    def _kill(process: subprocess.Popen) -> None:
        """Kill the command and anything it spawned."""
        if os.name == "posix":
            try:
                os.killpg(process.pid, signal.SIGKILL)
                return
            except ProcessLookupError:
                return
        process.kill()

    def _run_action(self, job: Job) -> _Outcome:
        action = self._actions.get(job.action)
        if action is None:
            return _Outcome(
                success=False,
                error_kind=ErrorKind.NOT_FOUND,
                error=f"Action not registered: {job.action}",
            )

        cancel_event = threading.Event()
        holder: Dict[str, object] = {}

        def target():
            try:
                holder["output"] = action(cancel_event)
            except Exception as e:
                holder["error"] = e

        worker = threading.Thread(target=target, name=f"job-{job.id}", daemon=True)
        worker.start()
        worker.join(job.timeout)

        if worker.is_alive():
            cancel_event.set()
            with self._stragglers_lock:
                self._stragglers[job.id] = worker
            return _Outcome(
                success=False,
                error_kind=ErrorKind.TIMEOUT,
                error=f"Job timed out after {job.timeout}s",
            )

        if "error" in holder:
            error = holder["error"]
            return _Outcome(
                success=False,
                output=str(error),
                error_kind=ErrorKind.EXCEPTION,
                error=f"{type(error).__name__}: {error}",
            )

        output = holder.get("output")
        return _Outcome(success=True, output="" if output is None else str(output))
