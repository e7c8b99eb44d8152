"""Module entrypoint for ``python -m taskspace``.

How it works
------------
Running ``python -m taskspace ...`` executes this module, a thin wrapper around
:func:`taskspace.cli.main`. It raises ``SystemExit(main())`` so that the CLI return code
becomes the process exit status.

This is equivalent to invoking the console-script entrypoint ``taskspace`` (configured as
``taskspace.cli:main`` in ``pyproject.toml``).

Inputs
------
- Command-line arguments (see ``python -m taskspace --help``): a subcommand (``init``,
  ``status``, ``next``, ``check``, ``start``, ``complete``, ``checkpoint``, ``validate``,
  ``projects``) plus the global ``--config`` flag.
- Environment variables:
  - ``TASKSPACE_CONFIG``: configuration file used when ``--config`` is not given.
  - ``TASKSPACE_WORKSPACE``: workspace directory used when ``--workspace`` is not given.
- On-disk state: ``<workspace>/.workspace-state.json``.
- External tools: ``git`` for worktrees and ``gh`` for issue/PR context (``init`` only,
  skipped with ``--dry-run``).

Outputs and side effects
------------------------
- Progress lines on stderr, prefixed with ``[taskspace]``.
- Summaries and step listings on stdout.
- ``init`` creates the workspace directory, worktrees, ``prompts/``, ``CONTEXT.md`` and the
  state file; step commands rewrite the state file and append checkpoints.

Failure modes and exit behavior
-------------------------------
- Argument parsing errors: ``argparse`` raises ``SystemExit(2)``.
- ``TaskspaceError`` subclasses (unknown workflow, unknown step, corrupt state, bad
  configuration, GitHub failures) are reported as ``[taskspace] error: ...`` with exit 1.
- A blocked gate (``check``/``complete``) or an incomplete plan (``validate``) exits 1.
- ``git`` failures surface as ``subprocess.CalledProcessError``.
"""

from __future__ import annotations

from .cli import main

if __name__ == "__main__":
    raise SystemExit(main())
