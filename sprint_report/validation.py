"""
Input validation and WIQL query sanitization.

Sprint names and iteration paths end up inside WIQL string literals, so they
are checked and escaped before a query is built.
"""

from typing import Optional


class ValidationError(Exception):
    """Raised when input validation fails."""
    pass


class WiqlValidator:
    """Validator for WIQL (Work Item Query Language) queries."""

    MAX_QUERY_LENGTH = 32000  # 32KB limit per Azure DevOps documentation

    @staticmethod
    def validate(query: str) -> str:
        """
        Validate WIQL query syntax and structure.

        Args:
            query: The WIQL query to validate

        Returns:
            The validated query (unchanged)

        Raises:
            ValidationError: If query is invalid
        """
        if not query:
            raise ValidationError("WIQL query cannot be empty")

        if len(query) > WiqlValidator.MAX_QUERY_LENGTH:
            raise ValidationError(
                f"WIQL query exceeds maximum length of {WiqlValidator.MAX_QUERY_LENGTH} characters "
                f"(current length: {len(query)})"
            )

        query_upper = query.upper()

        if 'SELECT' not in query_upper:
            raise ValidationError("WIQL query must contain SELECT clause")

        if 'FROM WORKITEMS' not in query_upper:
            raise ValidationError("WIQL query FROM clause must specify 'WorkItems'")

        if not WiqlValidator._check_balanced_brackets(query):
            raise ValidationError("WIQL query has unbalanced square brackets")

        return query

    @staticmethod
    def _check_balanced_brackets(query: str) -> bool:
        """Check if square brackets are balanced in the query."""
        count = 0
        for char in query:
            if char == '[':
                count += 1
            elif char == ']':
                count -= 1
            if count < 0:
                return False
        return count == 0

    @staticmethod
    def sanitize_string_literal(value: Optional[str]) -> Optional[str]:
        """
        Escape a string value for use inside a single-quoted WIQL literal.

        Args:
            value: The string value to sanitize

        Returns:
            The value with single quotes doubled
        """
        if value is None:
            return None

        return value.replace("'", "''")


class IterationPathValidator:
    """Validator for iteration paths."""

    @staticmethod
    def validate(iteration_path: str) -> str:
        """
        Validate an iteration path taken from configuration or the API.

        Args:
            iteration_path: The iteration path to validate (e.g. "Project\\Sprint 9")

        Returns:
            The path with surrounding whitespace removed

        Raises:
            ValidationError: If the path is empty or contains traversal sequences
        """
        if not iteration_path or not iteration_path.strip():
            raise ValidationError("Iteration path cannot be empty")

        if '..' in iteration_path or '//' in iteration_path:
            raise ValidationError(
                f"Invalid iteration path: '{iteration_path}'. "
                "Path traversal characters not allowed."
            )

        if any(ord(char) < 32 for char in iteration_path):
            raise ValidationError(
                f"Invalid iteration path: '{iteration_path}'. Control characters not allowed."
            )

        return iteration_path.strip()


def validate_wiql(query: str) -> str:
    """Validate WIQL query."""
    return WiqlValidator.validate(query)


def validate_iteration_path(iteration_path: str) -> str:
    """Validate and normalize iteration path."""
    return IterationPathValidator.validate(iteration_path)


def sanitize_wiql_string(value: str) -> str:
    """Sanitize a string value for use in WIQL queries."""
    return WiqlValidator.sanitize_string_literal(value)


def validate_sprint_name(sprint_name: Optional[str]) -> str:
    """
    Validate a sprint name supplied by the operator.

    Raises:
        ValidationError: If the name is missing or blank
    """
    if sprint_name is None or not sprint_name.strip():
        raise ValidationError("Sprint name cannot be empty")
    return sprint_name.strip()
