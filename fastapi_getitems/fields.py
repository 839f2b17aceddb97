"""Field registry and property path resolution."""

from dataclasses import dataclass, field
from enum import Enum
from types import UnionType
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
    get_args,
    get_origin,
)
from uuid import UUID

from sqlalchemy import inspect
from sqlalchemy.exc import NoInspectionAvailable
from sqlalchemy.ext.hybrid import HybridExtensionType
from sqlmodel.sql import sqltypes

from fastapi_getitems.errors import ConfigurationError

# Older SQLModel releases map uuid.UUID to their own GUID type
_GUID = getattr(sqltypes, "GUID", None)

# Maps a field key to its path of attribute names. None means "use the key's own name".
FieldMapper = Callable[[Any], Optional[Sequence[str]]]


@dataclass(frozen=True)
class FieldAccessor:
    """
    How to read one attribute of an entity.

    Attributes:
        name: Attribute name on the owner
        python_type: Python type of the value (related class for relationships)
        nullable: Whether the value may be None
        is_collection: True for to-many relationships
        target: Related class for relationships
        transform: Named-transform callable replacing plain attribute access
        length: Declared string length, if any
    """

    name: str
    python_type: Optional[type] = None
    nullable: bool = True
    is_collection: bool = False
    target: Optional[type] = None
    transform: Optional[Callable[[Any], Any]] = field(default=None, compare=False)
    length: Optional[int] = None

    @property
    def is_relationship(self) -> bool:
        return self.target is not None

    def read(self, owner: Any) -> Any:
        """Read this field from an owner (mapped class or instance)."""
        if self.transform is not None:
            return self.transform(owner)
        return getattr(owner, self.name)

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class TransformedField:
    """
    Declares a model attribute whose value comes from a named transform.

    Example:
        class Author(SQLModel, table=True):
            __query_transforms__: ClassVar = {
                "full_name": TransformedField("full_name", str),
            }
    """

    transform: str
    python_type: Optional[type] = str
    nullable: bool = False


@dataclass(frozen=True)
class Scope:
    """A relationship step of a resolved path."""

    accessor: FieldAccessor

    @property
    def is_collection(self) -> bool:
        return self.accessor.is_collection


@dataclass(frozen=True)
class ResolvedPath:
    """A field path: relationship scopes walked from the root, then the leaf field."""

    scopes: Tuple[Scope, ...]
    leaf: FieldAccessor

    @property
    def collection_scope(self) -> Optional[Scope]:
        return next((s for s in self.scopes if s.is_collection), None)

    def __str__(self) -> str:
        return ".".join([s.accessor.name for s in self.scopes] + [self.leaf.name])


_REGISTRY: Dict[type, Dict[str, FieldAccessor]] = {}
_MAPPER_CACHE: Dict[type, Dict[str, FieldAccessor]] = {}


def register_fields(model: type, accessors: Sequence[FieldAccessor]) -> None:
    """
    Register field accessors for a class explicitly.

    Registered accessors take precedence over mapper inspection, which makes
    plain (non-mapped) classes usable with the in-memory source.

    Args:
        model: Entity class
        accessors: Accessors describing its attributes
    """
    _REGISTRY[model] = {a.name: a for a in accessors}


def unregister_fields(model: type) -> None:
    _REGISTRY.pop(model, None)


def _annotation_type(model: type, key: str) -> Optional[type]:
    """Python type declared on a SQLModel field, with Optional unwrapped."""
    info = (getattr(model, "model_fields", None) or {}).get(key)
    if info is None:
        return None
    annotation = info.annotation
    if get_origin(annotation) in (Union, UnionType):
        members = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(members) != 1:
            return None
        annotation = members[0]
    return annotation if isinstance(annotation, type) else None


def _column_python_type(column: Any) -> Optional[type]:
    col_type = getattr(column, "type", None)
    if col_type is None:
        return None
    enum_class = getattr(col_type, "enum_class", None)
    if enum_class is not None:
        return enum_class
    # GUID stores UUIDs as CHAR(32) and reports no python type
    if _GUID is not None and isinstance(col_type, _GUID):
        return UUID
    for candidate in (col_type, getattr(col_type, "impl_instance", None)):
        if candidate is None:
            continue
        try:
            return candidate.python_type
        except NotImplementedError:
            continue
    return None


def _inspect_model(model: type) -> Dict[str, FieldAccessor]:
    try:
        mapper = inspect(model)
    except NoInspectionAvailable as e:
        raise ConfigurationError(
            f"'{model.__name__}' is neither a mapped class nor registered with register_fields()."
        ) from e

    fields: Dict[str, FieldAccessor] = {}
    for prop in mapper.column_attrs:
        column = prop.columns[0]
        fields[prop.key] = FieldAccessor(
            name=prop.key,
            python_type=_annotation_type(model, prop.key) or _column_python_type(column),
            nullable=bool(getattr(column, "nullable", True)),
            length=getattr(column.type, "length", None),
        )
    for rel in mapper.relationships:
        fields[rel.key] = FieldAccessor(
            name=rel.key,
            python_type=rel.mapper.class_,
            nullable=not rel.uselist,
            is_collection=bool(rel.uselist),
            target=rel.mapper.class_,
        )
    for key, descriptor in mapper.all_orm_descriptors.items():
        if getattr(descriptor, "extension_type", None) is not HybridExtensionType.HYBRID_PROPERTY:
            continue
        python_type = _column_python_type(getattr(model, key))
        fields[key] = FieldAccessor(name=key, python_type=python_type, nullable=True)
    return fields


def describe(model: type) -> Dict[str, FieldAccessor]:
    """
    Get the field accessors of a class.

    Args:
        model: Registered or mapped entity class

    Returns:
        Dict[str, FieldAccessor]: Accessors by attribute name

    Raises:
        ConfigurationError: If the class is neither registered nor mapped
    """
    registered = _REGISTRY.get(model)
    if registered is not None:
        return registered
    if model not in _MAPPER_CACHE:
        _MAPPER_CACHE[model] = _inspect_model(model)
    return _MAPPER_CACHE[model]


def id_accessor(model: type, id_field: Any) -> Optional[FieldAccessor]:
    """
    Resolve the identifier field of a class.

    Args:
        model: Entity class
        id_field: Attribute name, or a mapped attribute such as ``Hero.id``

    Returns:
        Optional[FieldAccessor]: Identifier accessor, or None without an id field

    Raises:
        ConfigurationError: If the class has no such field
    """
    if id_field is None:
        return None
    name = getattr(id_field, "key", id_field)
    accessor = describe(model).get(name)
    if accessor is None or accessor.is_relationship:
        raise ConfigurationError(f"Id field '{name}' not found on '{model.__name__}'.")
    return accessor


def default_path(key: Any) -> List[str]:
    """Path used when the mapper has no entry for a key: the key's own name."""
    if isinstance(key, Enum):
        return [key.value if isinstance(key.value, str) else key.name]
    return [str(key)]


class PropertyPathResolver:
    """
    Resolves field keys to paths of accessors.

    A path may cross at most one collection boundary. Segments declared in the
    owner's ``__query_transforms__`` are redirected through the transform of the
    same name in ``transforms``.
    """

    def __init__(
        self,
        model: type,
        mapper: Optional[FieldMapper],
        transforms: Mapping[str, Callable[[Any], Any]],
    ):
        self.model = model
        self.mapper = mapper
        self.transforms = transforms
        self._cache: Dict[Any, Optional[ResolvedPath]] = {}

    def segments(self, key: Any) -> List[str]:
        if self.mapper is None:
            raise ConfigurationError(
                "A field mapper must be provided when using filters or sort. "
                "Provide a function that maps field keys to attribute paths."
            )
        mapped = self.mapper(key)
        if mapped is None:
            return default_path(key)
        return list(mapped)

    def resolve(self, key: Any) -> Optional[ResolvedPath]:
        """
        Resolve a field key.

        Args:
            key: Field key from a filter or sorter

        Returns:
            Optional[ResolvedPath]: Resolved path, or None when the mapper maps
            the key to an empty path

        Raises:
            ConfigurationError: On unknown segments, a second collection
            boundary, an unregistered transform or a path ending on a relationship
        """
        if key not in self._cache:
            self._cache[key] = self._resolve(key, self.segments(key))
        return self._cache[key]

    def _resolve(self, key: Any, segments: List[str]) -> Optional[ResolvedPath]:
        if not segments:
            return None

        scopes: List[Scope] = []
        owner = self.model
        leaf: Optional[FieldAccessor] = None
        for i, segment in enumerate(segments):
            if leaf is not None:
                raise ConfigurationError(
                    f"Path for '{key}' continues after transformed field '{leaf.name}'."
                )
            accessor = self._accessor(owner, segment)
            if accessor.is_relationship:
                if accessor.is_collection and any(s.is_collection for s in scopes):
                    raise ConfigurationError(
                        f"Nested collections are not supported: the path for '{key}' "
                        f"({'.'.join(segments)}) crosses more than one collection."
                    )
                scopes.append(Scope(accessor))
                owner = accessor.target
                continue
            if accessor.transform is not None or i == len(segments) - 1:
                leaf = accessor
                continue
            raise ConfigurationError(
                f"'{segment}' on '{owner.__name__}' is not a relationship; "
                f"cannot continue the path for '{key}'."
            )

        if leaf is None:
            raise ConfigurationError(
                f"Path for '{key}' ({'.'.join(segments)}) ends on a relationship, not a field."
            )
        return ResolvedPath(scopes=tuple(scopes), leaf=leaf)

    def _accessor(self, owner: type, segment: str) -> FieldAccessor:
        declared = getattr(owner, "__query_transforms__", None) or {}
        transformed = declared.get(segment)
        if transformed is not None:
            transform = self.transforms.get(transformed.transform)
            if transform is None:
                raise ConfigurationError(
                    f"Transform '{transformed.transform}' for '{owner.__name__}.{segment}' "
                    f"is not registered in GetItemsOptions.transforms."
                )
            return FieldAccessor(
                name=segment,
                python_type=transformed.python_type,
                nullable=transformed.nullable,
                transform=transform,
            )

        accessor = describe(owner).get(segment)
        if accessor is None:
            raise ConfigurationError(f"Property '{segment}' not found on '{owner.__name__}'.")
        return accessor
