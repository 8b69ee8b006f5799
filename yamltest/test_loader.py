"""Load and parse test definitions from YAML documents."""

from pathlib import Path

import yaml

from yamltest.errors import ConfigurationError
from yamltest.models.test_definition import TestDefinition, parse_test_definition


def load_raw_definitions(yaml_text: str) -> list[object]:
    """Parse a YAML document holding one definition or a list of them.

    Raises:
        ConfigurationError: If the document is not valid YAML, or holds neither
            a mapping nor a non-empty list

    """
    try:
        data = yaml.safe_load(yaml_text)
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML: {e}") from e

    if isinstance(data, list):
        definitions = data
    elif isinstance(data, dict) and data:
        definitions = [data]
    else:
        raise ConfigurationError(
            "Invalid YAML: expected an object or array of test definitions"
        )

    if not definitions:
        raise ConfigurationError("No test definitions found in YAML")
    return definitions


def parse_test_definitions(yaml_text: str) -> list[TestDefinition]:
    """Parse and validate every definition of a YAML document.

    The whole batch is validated before anything runs.

    Raises:
        ConfigurationError: If the document or any definition is invalid

    """
    definitions: list[TestDefinition] = []
    for index, raw in enumerate(load_raw_definitions(yaml_text)):
        try:
            definitions.append(parse_test_definition(raw))
        except ConfigurationError as e:
            raise type(e)(
                f"Test #{index + 1}: {e.message}", details={"index": index}
            ) from e
    return definitions


def load_test_file(path: Path) -> list[TestDefinition]:
    """Read and validate the definitions stored in a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist
        ConfigurationError: If the file content is invalid

    """
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path.resolve()}")

    with path.open(encoding="utf-8") as f:
        content = f.read()

    if not content.strip():
        raise ConfigurationError(f"Empty test file: {path}")

    return parse_test_definitions(content)
