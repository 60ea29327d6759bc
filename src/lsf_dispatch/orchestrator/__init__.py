"""Job orchestration against an external LSF-style batch scheduler.

Why marker files instead of a database or a message broker?
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~
Jobs run on farm hosts that share nothing with the submitting process except
the workspace filesystem and the scheduler itself. The protocol is therefore
limited to what both sides can reach:

- The scheduler's command-line tools for submitting and for probing which
  jobs are pending or running.
- Four files per job id (captured output plus ``started``, ``passed`` and
  ``failed`` flags) written by the worker and read by the orchestrator.
- One registry file holding every job record, loaded at start and saved at
  exit by the single controlling process.

Shared filesystems propagate these files with a delay, so classification
keeps a grace window before calling a job lost, and the worker re-checks its
dependencies' markers before running even though the scheduler already gates
on them.
"""
