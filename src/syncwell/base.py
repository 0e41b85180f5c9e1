from string import Formatter


class SyncedField:
    """
    Marks a model field as backed by a key in the remote store.

    Use it inside ``typing.Annotated`` or as the field's default value:

        name: Annotated[str | None, SyncedField()]
        age: int | None = SyncedField(key="person:{person_id}:age")
    """

    def __init__(self, key: str | None = None):
        """
        Initialize synchronized field metadata.

        Args:
            key: Store key for the field. Defaults to the field name. May
                reference ordinary model fields as ``{field}`` placeholders,
                filled in from each instance.
        """
        self.key = key
        self.name: str | None = None

    def bind(self, name: str) -> "SyncedField":
        """Return a copy attached to field ``name``."""
        bound = SyncedField(key=self.key if self.key is not None else name)
        bound.name = name
        return bound

    @property
    def placeholders(self) -> list[str]:
        """Model fields referenced by the key template."""
        if self.key is None:
            return []
        return [
            field_name
            for _, field_name, _, _ in Formatter().parse(self.key)
            if field_name is not None
        ]

    def resolve_key(self, instance) -> str:
        """Return the concrete store key for ``instance``."""
        names = self.placeholders
        if not names:
            return self.key
        return self.key.format_map({n: getattr(instance, n) for n in names})

    def __repr__(self) -> str:
        return f"SyncedField(key={self.key!r})"
