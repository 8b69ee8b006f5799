"""Shell command execution on the local machine or inside a pod."""

import asyncio
import json
import logging
import sys

from yamltest.errors import TransportError
from yamltest.extraction import apply_set_vars
from yamltest.kubectl import KubectlClient, interpolate_context, scope_args
from yamltest.models.response import CommandResult
from yamltest.models.test_definition import CommandConfig, CommandTest, Source
from yamltest.validation import validate_command_expectations
from yamltest.variables import VariableStore

logger = logging.getLogger(__name__)


def shell_quote(value: str) -> str:
    """Single-quote a value for POSIX shells, escaping quotes as ``'\\''``."""
    return "'" + value.replace("'", "'\\''") + "'"


def build_pod_shell_command(config: CommandConfig) -> str:
    """Build the script run by ``sh -c`` inside the pod.

    The script changes into the working directory and exports the extra
    environment before running the command, e.g.
    ``cd '/app' && export MODE='fast'; ./check.sh``.
    """
    prefix = ""
    if config.working_dir:
        prefix = f"cd {shell_quote(config.working_dir)} && "
    if config.env:
        exports = "; ".join(
            f"export {name}={shell_quote(value)}" for name, value in config.env.items()
        )
        prefix = f"{prefix}{exports}; "
    return f"{prefix}{config.command}"


def build_result(
    stdout: str, stderr: str, exit_code: int, parse_json: bool
) -> CommandResult:
    """Assemble a command result, parsing stdout as JSON when requested.

    A parse failure is recorded on the result rather than raised.
    """
    result = CommandResult(
        stdout=stdout.strip(), stderr=stderr.strip(), exit_code=exit_code
    )
    if parse_json and result.stdout:
        try:
            result.json_data = json.loads(result.stdout)
            result.json_parsed = True
            logger.debug("Successfully parsed JSON output")
        except ValueError as e:
            logger.debug(f"Failed to parse JSON: {e}")
            result.json_parse_error = str(e)
    return result


async def run_local_command(
    config: CommandConfig, store: VariableStore
) -> CommandResult:
    """Run the command through the local shell.

    The child environment is the process environment, then every captured
    variable, then the command's own ``env``.

    Raises:
        TransportError: If the shell cannot be started

    """
    if sys.platform == "win32":
        argv = ["cmd", "/c", config.command]
    else:
        argv = ["sh", "-c", config.command]

    logger.debug(f"Executing shell command: {config.command}")
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=store.environment(config.env),
            cwd=config.working_dir,
        )
    except OSError as e:
        raise TransportError(f"Failed to execute command: {e}") from e

    stdout, stderr = await process.communicate()
    exit_code = process.returncode if process.returncode is not None else -1
    logger.debug(f"Command completed with exit code: {exit_code}")

    return build_result(
        stdout.decode(errors="replace"),
        stderr.decode(errors="replace"),
        exit_code,
        config.parse_json,
    )


async def run_pod_command(
    config: CommandConfig, source: Source, kubectl: KubectlClient
) -> CommandResult:
    """Run the command in the selected pod with ``kubectl exec``.

    A non-zero exit is returned as a result carrying the exit code and the
    captured output.

    Raises:
        TransportError: If the pod cannot be resolved or kubectl cannot start

    """
    if source.selector is None:
        raise TransportError("Kubernetes selector is required for pod-based commands")

    selector = source.selector
    pod = await kubectl.resolve_pod_name(selector)
    script = build_pod_shell_command(config)

    args = [*scope_args(selector), "exec", pod]
    if source.container:
        args.extend(["-c", source.container])
    args.extend(["--", "sh", "-c", script])

    logger.debug(f"Executing pod command in {pod}: {script}")
    result = await kubectl.run(args, check=False)
    if result.returncode != 0:
        logger.debug(f"Pod command exited with code {result.returncode}")

    return build_result(
        result.stdout, result.stderr, result.returncode, config.parse_json
    )


def describe_command_test(test: CommandTest) -> str:
    """Return a human-readable description of a command test."""
    description = f"Command: {test.command.command}"
    if test.source.type == "pod" and test.source.selector:
        metadata = test.source.selector.metadata
        description += (
            f" (via pod {metadata.namespace or 'default'}/"
            f"{metadata.name or '<selector>'})"
        )
    return description


async def execute_command_test(
    test: CommandTest,
    store: VariableStore,
    kubectl: KubectlClient,
) -> bool:
    """Run a command test, validate it and publish its setVars.

    Returns:
        True when every expectation holds

    Raises:
        ExpectationFailure: If the command fails its expectations
        ConfigurationError: If an expectation or extraction rule is invalid

    """
    command = test.command.model_copy(
        update={
            "env": {name: store.interpolate(v) for name, v in test.command.env.items()}
        }
    )
    description = describe_command_test(test)
    logger.debug(f"Executing command test: {description}")

    if test.source.type == "pod":
        source = interpolate_context(test.source, store)
        result = await run_pod_command(command, source, kubectl)
    else:
        result = await run_local_command(command, store)

    if test.expect is not None:
        validate_command_expectations(result, test.expect, description)

    apply_set_vars(test.set_vars, result, "command", store)
    logger.debug(f"✓ Command test passed: {description}")
    return True

