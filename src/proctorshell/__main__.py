"""Run a proctored console session: ``python -m proctorshell``."""

from proctorshell.cli import run

if __name__ == "__main__":
    raise SystemExit(run())
