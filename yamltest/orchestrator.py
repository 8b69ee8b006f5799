"""Sequential, fail-fast execution of a batch of test definitions."""

import asyncio
import logging

from yamltest.config import RunnerConfig
from yamltest.dispatcher import execute_test
from yamltest.errors import ConfigurationError, YamlTestError
from yamltest.kubectl import KubectlClient
from yamltest.models.test_definition import TestDefinition
from yamltest.models.test_result import RunResult, TestOutcome
from yamltest.test_loader import parse_test_definitions
from yamltest.variables import VariableStore, default_store

logger = logging.getLogger(__name__)

SKIPPED_MESSAGE = "Skipped due to previous failure"


class TestOrchestrator:
    """Runs test definitions one after another, stopping at the first failure."""

    __test__ = False

    def __init__(
        self,
        store: VariableStore | None = None,
        kubectl: KubectlClient | None = None,
        config: RunnerConfig | None = None,
    ) -> None:
        """Initialize the orchestrator with the state shared by every step."""
        self.config = config if config is not None else RunnerConfig.from_env()
        self.store = store if store is not None else default_store()
        if kubectl is None:
            kubectl = KubectlClient(self.config.kubectl_binary)
        self.kubectl = kubectl

    async def run_tests(self, definitions: list[TestDefinition]) -> RunResult:
        """Run every definition in order.

        After the first test whose last attempt fails, the remaining
        definitions are recorded as skipped without being executed.

        Args:
            definitions: Validated definitions in execution order

        Returns:
            Aggregate counts and one outcome per definition

        """
        logger.info(f"Running {len(definitions)} tests")
        outcomes: list[TestOutcome] = []

        for index, test in enumerate(definitions):
            outcome = await self.run_single_test(test, index)
            outcomes.append(outcome)

            if not outcome.passed:
                remaining = definitions[index + 1 :]
                if remaining:
                    logger.info(
                        f"Skipping {len(remaining)} remaining tests after failure"
                    )
                outcomes.extend(
                    TestOutcome(
                        name=skipped.display_name(index + 1 + offset),
                        passed=False,
                        error=SKIPPED_MESSAGE,
                        duration_ms=0,
                        attempts=0,
                        skipped=True,
                    )
                    for offset, skipped in enumerate(remaining)
                )
                break

        result = RunResult.from_outcomes(outcomes)
        logger.info(
            f"Run completed: {result.passed} passed, {result.failed} failed, "
            f"{result.skipped} skipped, {result.total} total"
        )
        return result

    async def run_tests_from_yaml(self, yaml_text: str) -> RunResult:
        """Parse a YAML batch and run it.

        Raises:
            ConfigurationError: If the document or any definition is invalid

        """
        return await self.run_tests(parse_test_definitions(yaml_text))

    async def run_single_test(self, test: TestDefinition, index: int) -> TestOutcome:
        """Run one definition, retrying failed attempts up to ``test.retries``.

        Configuration errors end the test immediately since retrying cannot
        change their outcome.
        """
        name = test.display_name(index)
        loop = asyncio.get_event_loop()
        start = loop.time()
        error: str | None = None
        attempts = 0

        logger.info(f"Running test: {name}")
        for attempt in range(test.retries + 1):
            attempts = attempt + 1
            try:
                await execute_test(
                    test, self.store, kubectl=self.kubectl, config=self.config
                )
            except ConfigurationError as e:
                error = str(e)
                logger.error(f"✗ {name}: {error}")
                break
            except YamlTestError as e:
                error = str(e)
            except Exception as e:
                logger.error(
                    f"Test execution error: {type(e).__name__}: {e}", exc_info=e
                )
                error = f"{type(e).__name__}: {e}"
            else:
                duration_ms = int((loop.time() - start) * 1000)
                logger.info(f"✓ {name} ({duration_ms}ms, {attempts} attempts)")
                return TestOutcome(
                    name=name,
                    passed=True,
                    duration_ms=duration_ms,
                    attempts=attempts,
                )

            if attempt < test.retries:
                logger.info(
                    f"Attempt {attempts}/{test.retries + 1} of {name} failed: {error}"
                )
                await asyncio.sleep(self.config.retry_delay_seconds)
            else:
                logger.error(f"✗ {name}: {error}")

        return TestOutcome(
            name=name,
            passed=False,
            error=error or "Unknown error",
            duration_ms=int((loop.time() - start) * 1000),
            attempts=attempts,
        )
