"""
Path resolution against a program's entity catalog.

Shared by the semantic validator, the inline checks in the action
interpreter, and the static conflict check.
"""

from rulelang.core.errors import PathReferenceError
from rulelang.domain.program import Entity, EntityField, Program

# Reserved fact-store slot written by route actions
ROUTE_SLOT = "route"


def split_path(path: str) -> tuple[str, str]:
    """
    Split a dotted ``entity.field`` path into its two segments.

    Raises:
        PathReferenceError: If the path does not have exactly two non-empty segments
    """
    segments = path.split(".")
    if len(segments) != 2 or not all(segments):
        raise PathReferenceError(
            f'Path "{path}" must have the form entity.field',
            details={"path": path, "segment": path},
        )
    return segments[0], segments[1]


class EntityCatalog:
    """
    Lookup table of declared entities and their fields.

    Built once per program and passed to every check that needs it.
    Duplicate names keep their first declaration; the validator reports the
    duplicates separately.
    """

    def __init__(self, entities: list[Entity]):
        self._fields: dict[str, dict[str, EntityField]] = {}
        for entity in entities:
            fields = self._fields.setdefault(entity.name, {})
            for field in entity.fields:
                fields.setdefault(field.name, field)

    @classmethod
    def from_program(cls, program: Program) -> "EntityCatalog":
        return cls(program.entities)

    def has_entity(self, name: str) -> bool:
        return name in self._fields

    def resolve(self, path: str) -> EntityField:
        """
        Resolve a dotted path to its declared field.

        Args:
            path: Dotted path such as ``"order.total"``

        Returns:
            The declared EntityField

        Raises:
            PathReferenceError: Naming the segment that failed to resolve

        Example:
            >>> catalog.resolve("order.total").type
            <ScalarType.NUMBER: 'number'>
        """
        entity_name, field_name = split_path(path)

        fields = self._fields.get(entity_name)
        if fields is None:
            raise PathReferenceError(
                f'Unknown entity "{entity_name}" in path "{path}"',
                details={"path": path, "segment": entity_name},
            )

        field = fields.get(field_name)
        if field is None:
            raise PathReferenceError(
                f'Unknown field "{field_name}" on entity "{entity_name}" in path "{path}"',
                details={"path": path, "segment": field_name},
            )

        return field
