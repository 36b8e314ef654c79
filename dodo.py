"""
Doit file to wrap development workflow commands.
"""

import os
import shutil
from pathlib import Path

from doit.task import Task
from doit.tools import create_folder
from dotenv import load_dotenv

PACKAGE = "docket_sync"

# artifact output
OUT_PATH = Path("__out__")

# test coverage results
TESTS_PATH = OUT_PATH / "test"
JUNIT_PATH = TESTS_PATH / "junit.xml"
COV_PATH = TESTS_PATH / "cov"
COV_HTML_PATH = COV_PATH / "html"
COV_XML_PATH = COV_PATH / "coverage.xml"

# static analysis results
MYPY_PATH = OUT_PATH / "analysis" / "mypy"

# sample config generated from environment
CONFIG_PATH = Path("docket-sync.yaml")


def cleanup_dir(output_dir: Path):
    if output_dir.exists():
        shutil.rmtree(output_dir)


def task_test() -> Task:
    """
    Run pytest and generate coverage reports.
    """

    args = [
        "pytest",
        f"--cov={PACKAGE}",
        f"--cov-report=html:{COV_HTML_PATH}",
        f"--cov-report=xml:{COV_XML_PATH}",
        f"--junitxml={JUNIT_PATH}",
    ]

    return Task(
        "test",
        actions=[
            (create_folder, [COV_PATH]),
            " ".join(args),
        ],
        targets=[
            f"{COV_HTML_PATH}/index.html",
            COV_XML_PATH,
            JUNIT_PATH,
        ],
        file_dep=[],
        clean=[(cleanup_dir, [TESTS_PATH])],
    )


def task_config() -> Task:
    """
    Write a single-instance config file from DOCKET_SYNC_* environment
    variables.
    """

    def _write_config():
        from docket_sync.tools.config import Config, InstanceConfig

        load_dotenv()

        url = os.environ.get("DOCKET_SYNC_URL")
        api_key = os.environ.get("DOCKET_SYNC_KEY")
        assert url, "Environment variable DOCKET_SYNC_URL not set"
        assert api_key, "Environment variable DOCKET_SYNC_KEY not set"

        Config(
            instances={
                "default": InstanceConfig(
                    url=url,
                    api_key=api_key,
                    owner_id=os.environ.get("DOCKET_SYNC_OWNER"),
                    data_dir=os.environ.get("DOCKET_SYNC_DATA_DIR"),
                )
            }
        ).dump_yaml(CONFIG_PATH)

        print(f"\nWrote: {CONFIG_PATH}")

    return Task(
        "config",
        actions=[(_write_config,)],
        targets=[CONFIG_PATH],
        file_dep=[],
        clean=True,
    )


def task_format() -> Task:
    """
    Run formatters.
    """

    return Task(
        "format",
        actions=[
            "autoflake --remove-all-unused-imports -i -r .",
            "isort .",
            "black .",
            "toml-sort -i pyproject.toml",
        ],
        targets=[],
        file_dep=[],
    )


def task_analysis() -> Task:
    """
    Run static analysis tools.
    """

    mypy_args = [
        "mypy",
        "--html-report",
        str(MYPY_PATH),
        PACKAGE,
    ]

    return Task(
        "analysis",
        actions=[
            (create_folder, [MYPY_PATH]),
            " ".join(mypy_args),
            f"pyright {PACKAGE}",
        ],
        targets=[],
        file_dep=[],
        clean=[(cleanup_dir, [MYPY_PATH])],
    )
