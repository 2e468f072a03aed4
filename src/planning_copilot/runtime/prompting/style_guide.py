"""Render a project style guide into a prompt section."""

from __future__ import annotations

from ..domain.models import StyleGuide

_CASE_EXAMPLES = {
    "camelCase": "myVariableName",
    "PascalCase": "MyClassName",
    "snake_case": "my_variable_name",
    "UPPER_SNAKE": "MY_CONSTANT_VALUE",
    "kebab-case": "my-file-name",
}


def _example(case_style: str) -> str:
    return _CASE_EXAMPLES.get(case_style, case_style)


def format_style_guide(guide: StyleGuide) -> str:
    frameworks = ", ".join(guide.frameworks) if guide.frameworks else "none specified"
    return "\n".join(
        [
            "## Project Style Guide",
            "",
            "### Naming Conventions",
            f"- Variables: {guide.variable_case} (e.g., {_example(guide.variable_case)})",
            f"- Functions: {guide.function_case} (e.g., {_example(guide.function_case)})",
            f"- Classes: {guide.class_case} (e.g., {_example(guide.class_case)})",
            f"- Constants: {guide.constant_case} (e.g., {_example(guide.constant_case)})",
            f"- Files: {guide.file_case} (e.g., {_example(guide.file_case)})",
            f"- Components: {guide.component_case} (e.g., {_example(guide.component_case)})",
            "",
            "### Formatting",
            f"- Indentation: {guide.indent_size} {guide.indent_style}",
            f"- Max line length: {guide.max_line_length} characters",
            f"- Semicolons: {'required' if guide.semicolons else 'not used'}",
            f"- Quotes: {'single quotes' if guide.single_quotes else 'double quotes'}",
            f"- Trailing commas: {guide.trailing_commas}",
            "",
            "### Data Formats",
            f"- Dates: {guide.date_format} format",
            f"- Currency: {guide.currency_format}",
            f"- Phone numbers: {guide.phone_format}",
            f"- ZIP codes: {guide.zip_code_format}",
            f"- Numbers: {guide.number_format}",
            "",
            "### Code Standards",
            f"- Max function length: {guide.max_function_length} lines",
            f"- Max file length: {guide.max_file_length} lines",
            f"- Docstrings: {'required' if guide.require_docstrings else 'optional'}",
            f"- Test naming: {guide.test_naming_pattern}",
            "",
            "### Language & Frameworks",
            f"- Primary language: {guide.primary_language}",
            f"- Frameworks: {frameworks}",
        ]
    )
