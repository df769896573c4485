import jsonschema

from parley.tools.base import ToolDeclaration, normalize_schema


class ToolValidator:
    @staticmethod
    def validate(declaration: ToolDeclaration, arguments: dict) -> tuple[bool, str | None]:
        try:
            jsonschema.validate(
                instance=arguments,
                schema=normalize_schema(declaration.parameters),
            )
            return True, None
        except jsonschema.ValidationError as e:
            return False, str(e.message)
