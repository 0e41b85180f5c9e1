from typing import (
    Annotated,
    Any,
    ClassVar,
    get_args,
    get_origin,
)

from pydantic import BaseModel

from .base import SyncedField
from .properties import SyncedDescriptor


class SyncedModelMetaclass(type(BaseModel)):
    """
    Metaclass that turns SyncedField declarations into store-backed descriptors.
    """

    def __new__(mcs, name, bases, namespace, **kwargs):
        # Phase 1: Annotation Processing
        annotations = mcs._resolve_deferred_annotations(namespace)
        namespace["__annotations__"] = annotations

        local_synced = mcs._scan_synced_annotations(annotations, namespace)
        mcs._prepare_namespace_for_pydantic(namespace, annotations, local_synced)

        # Phase 2: Class Creation
        cls = super().__new__(mcs, name, bases, namespace, **kwargs)

        # Phase 3: Post-Creation Setup
        synced_fields = mcs._collect_inherited_synced_fields(bases)
        synced_fields.update(local_synced)
        mcs._validate_key_templates(cls, name, synced_fields)
        cls.synced_fields = synced_fields
        mcs._inject_synced_descriptors(cls, local_synced)

        return cls

    @staticmethod
    def _resolve_deferred_annotations(namespace: dict) -> dict[str, Any]:
        """
        Resolve deferred annotations (PEP 649) if present.

        Returns:
            Dictionary of resolved annotations
        """
        # Handle Python 3.14+ deferred annotations
        # We need a complete __annotations__ dict so we can safely modify it.
        annotate = namespace.get("__annotate__") or namespace.get("__annotate_func__")
        if annotate is not None and "__annotations__" not in namespace:
            try:
                # Format 1: Value (evaluated)
                return dict(annotate(1))
            except Exception:
                try:
                    # Format 2: ForwardRef (non-evaluated objects)
                    return dict(annotate(2))
                except Exception:
                    pass

        return namespace.get("__annotations__", {})

    @staticmethod
    def _synced_metadata(field_name: str, hint: Any, namespace: dict) -> SyncedField | None:
        """
        Find the SyncedField declared for a field, if any.

        Raises:
            TypeError: If the field declares SyncedField both ways
        """
        annotated = None
        if get_origin(hint) is Annotated:
            for metadata in get_args(hint)[1:]:
                if isinstance(metadata, SyncedField):
                    annotated = metadata
                    break

        default = namespace.get(field_name)
        from_default = default if isinstance(default, SyncedField) else None

        if annotated and from_default:
            raise TypeError(
                f"Field '{field_name}' cannot declare SyncedField twice "
                "(Annotated[...] + default value)."
            )
        return annotated or from_default

    @staticmethod
    def _scan_synced_annotations(annotations: dict, namespace: dict) -> dict[str, SyncedField]:
        """
        Scan annotations for synchronized fields.

        Returns:
            Mapping of field name to SyncedField bound to that field
        """
        local_synced = {}
        for field_name, hint in annotations.items():
            metadata = SyncedModelMetaclass._synced_metadata(field_name, hint, namespace)
            if metadata is not None:
                local_synced[field_name] = metadata.bind(field_name)
        return local_synced

    @staticmethod
    def _prepare_namespace_for_pydantic(
        namespace: dict, annotations: dict, local_synced: dict
    ) -> None:
        """
        Hide synchronized fields from Pydantic by converting them to ClassVars.

        Mutates namespace and annotations in place.
        """
        for field_name in local_synced:
            annotations[field_name] = ClassVar[Any]
            if isinstance(namespace.get(field_name), SyncedField):
                del namespace[field_name]

        # FOR PYTHON 3.14+: If we evaluated annotations, we MUST remove the func
        # so Pydantic doesn't use it and ignore our modified __annotations__.
        for key in ("__annotate__", "__annotate_func__"):
            namespace.pop(key, None)

    @staticmethod
    def _collect_inherited_synced_fields(bases: tuple) -> dict[str, SyncedField]:
        synced_fields = {}
        for base in reversed(bases):
            synced_fields.update(getattr(base, "synced_fields", {}))
        return synced_fields

    @staticmethod
    def _validate_key_templates(cls, name: str, synced_fields: dict) -> None:
        """
        Check that key templates only reference ordinary model fields.

        Raises:
            TypeError: If a key references an unknown field
        """
        for field_name, metadata in synced_fields.items():
            for placeholder in metadata.placeholders:
                if placeholder not in cls.model_fields:
                    raise TypeError(
                        f"Synchronized field '{name}.{field_name}' has key "
                        f"'{metadata.key}' referencing unknown field '{placeholder}'."
                    )

    @staticmethod
    def _inject_synced_descriptors(cls, local_synced: dict) -> None:
        """
        Inject a SyncedDescriptor for every synchronized field.

        Mutates cls in place.
        """
        for field_name, metadata in local_synced.items():
            setattr(cls, field_name, SyncedDescriptor(field_name, metadata))
