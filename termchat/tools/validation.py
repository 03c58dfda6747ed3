import jsonschema

from termchat.tools.base import Tool, normalize_schema


class ToolValidator:
    @staticmethod
    def validate(tool: Tool, arguments: dict) -> tuple[bool, str | None]:
        try:
            jsonschema.validate(
                instance=arguments,
                schema=normalize_schema(tool.parameters),
            )
            return True, None
        except jsonschema.ValidationError as e:
            path = ".".join(str(p) for p in e.absolute_path)
            return False, f"{path}: {e.message}" if path else str(e.message)
