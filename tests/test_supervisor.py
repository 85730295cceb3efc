"""
Tests for the process supervisor — operation table, progress totals,
timeouts and the failure policy.
"""

import textwrap

import pytest

from stackup.core.context import EnvironmentContext, OperationFacts
from stackup.core.errors import OperationTimeout, ProcessFailure
from stackup.core.models.process import TIMEOUT, ProcessResult
from stackup.core.services.supervisor import (
    OPERATIONS,
    ProcessSupervisor,
    build_progress,
    purge_progress,
    raise_for_result,
    start_progress,
    stop_progress,
)


class TestMatchers:
    @pytest.mark.parametrize("line", [
        "Successfully tagged shop_php:latest",
        " => => naming to docker.io/library/php TAGGED",
        "mysql uses an image, skipping",
    ])
    def test_build_lines(self, line):
        assert build_progress(line)

    def test_build_ignores_noise(self):
        assert not build_progress("Step 3/12 : RUN apt-get update")

    @pytest.mark.parametrize("line,expected", [
        ("Creating network shop_default", True),
        ("Creating volume shop_db-data", True),
        ("Creating shop_php_1 ... done", True),
        ("Starting shop_mysql_1 ... done", True),
        ("Starting shop_mysql_1 ...", False),
        ("Pulling php", False),
    ])
    def test_start_lines(self, line, expected):
        assert start_progress(line) is expected

    def test_stop_lines(self):
        assert stop_progress("Stopping shop_php_1 ... done")
        assert not stop_progress("Stopping shop_php_1 ...")

    @pytest.mark.parametrize("line", [
        "Stopping shop_php_1 ... done",
        "Removing shop_php_1 ... done",
        "Removing network shop_default",
        "Removing volume shop_db-data",
    ])
    def test_purge_lines(self, line):
        assert purge_progress(line)


class TestOperationTable:
    facts = OperationFacts(containers=3, volumes=2)

    @pytest.mark.parametrize("key,total", [
        ("build", 3),
        ("start", 4),
        ("start-install", 7),
        ("stop", 4),
        ("purge", 10),
    ])
    def test_totals(self, key, total):
        assert OPERATIONS[key].target(self.facts).total == total

    @pytest.mark.parametrize("key,timeout", [
        ("build", 600),
        ("start", 60),
        ("start-install", 60),
        ("stop", 60),
        ("purge", 300),
    ])
    def test_timeouts(self, key, timeout):
        assert OPERATIONS[key].timeout(self.facts) == timeout

    def test_verbose_install_start_gets_longer_budget(self):
        verbose = OperationFacts(containers=3, volumes=2, verbose=True)
        assert OPERATIONS["start-install"].timeout(verbose) == 360

    def test_only_start_expects_timeout(self):
        expected = {k for k, spec in OPERATIONS.items() if spec.timeout_expected}
        assert expected == {"start", "start-install"}

    def test_total_is_at_least_one(self):
        assert OPERATIONS["build"].target(OperationFacts(containers=0, volumes=0)).total == 1


class TestRaiseForResult:
    def _result(self, exit_code, stderr=""):
        return ProcessResult(argv=["make", "x"], exit_code=exit_code, stderr=stderr)

    def test_success_passes_through(self):
        result = self._result(0)
        assert raise_for_result(OPERATIONS["build"], result) is result

    def test_build_timeout_is_fatal_with_hint(self):
        with pytest.raises(OperationTimeout) as exc:
            raise_for_result(OPERATIONS["build"], self._result(TIMEOUT))
        assert "--no-timeout" in exc.value.hint

    def test_start_timeout_is_expected(self):
        result = self._result(TIMEOUT)
        assert raise_for_result(OPERATIONS["start"], result).timed_out

    def test_failure_carries_output_and_code(self):
        with pytest.raises(ProcessFailure) as exc:
            raise_for_result(OPERATIONS["purge"], self._result(2, stderr="no such volume"))
        assert exc.value.message == "no such volume"
        assert exc.value.exit_code == 2
        assert "uninstalled" in exc.value.hint

    def test_failure_without_output_names_the_command(self):
        with pytest.raises(ProcessFailure) as exc:
            raise_for_result(OPERATIONS["stop"], self._result(1))
        assert "make x" in exc.value.message


class TestProcessSupervisor:
    def test_build_counts_tagged_lines(self, context, fake_runner):
        fake_runner.add("make", "build", lines=[
            "Step 1/3 : FROM php",
            "Successfully tagged shop_php:latest",
            "Successfully tagged shop_mysql:latest",
            "Successfully tagged shop_synchro:latest",
        ])
        supervisor = ProcessSupervisor(context, fake_runner)
        result = supervisor.build()

        assert result.succeeded
        assert supervisor.last_progress.total == 3
        assert supervisor.last_progress.completed == 3

    def test_purge_total_from_compose(self, tmp_path, fake_runner):
        (tmp_path / "docker-compose.yml").write_text(textwrap.dedent("""\
            services:
              web: {}
              db: {}
            volumes:
              data: {}
        """))
        context = EnvironmentContext(root=tmp_path)
        fake_runner.add("make", "purge", lines=[
            "Stopping a ... done", "Stopping b ... done",
            "Removing a ... done", "Removing b ... done",
            "Removing network x_default", "Removing volume x_data",
            "Removing network x_internal", "Removing network extra",
        ])
        supervisor = ProcessSupervisor(context, fake_runner)
        supervisor.purge()

        assert supervisor.last_progress.total == 7
        assert supervisor.last_progress.completed == 7

    def test_runner_receives_timeout_env_and_cwd(self, context, fake_runner):
        ProcessSupervisor(context, fake_runner).stop()
        call = fake_runner.calls[0]
        assert call["argv"] == ["make", "stop"]
        assert call["timeout"] == 60
        assert call["cwd"] == context.root
        assert call["env"]["COMPOSE_PROJECT_NAME"] == "stackup_shop"
        assert call["env"]["PROJECT_LOCATION"] == str(context.root)

    def test_no_timeout_passes_none(self, context, fake_runner):
        ProcessSupervisor(context, fake_runner, no_timeout=True).build()
        assert fake_runner.calls[0]["timeout"] is None

    def test_install_start_uses_install_target(self, context, fake_runner):
        fake_runner.add("make", "start", exit_code=TIMEOUT)
        supervisor = ProcessSupervisor(context, fake_runner)
        result = supervisor.start(install=True)
        assert result.timed_out
        assert supervisor.last_progress.total == 3 + 1 + 2

    def test_renderer_factory_gets_target(self, context, fake_runner):
        targets = []

        class Renderer:
            def __init__(self, target):
                targets.append(target)

            def render(self, state):
                pass

            def close(self):
                pass

        ProcessSupervisor(context, fake_runner, renderer_factory=Renderer).stop()
        assert targets[0].label == "stop"
        assert targets[0].total == 4
