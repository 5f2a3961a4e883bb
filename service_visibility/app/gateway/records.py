"""
Validated record shapes for data coming back from a feature store.

Stores return loosely shaped documents. Everything passes through these
pydantic models before reaching the graph, so a bad shape fails the load
instead of leaking into validation.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, AliasChoices
from pydantic import ValidationError as PydanticValidationError

from shared.errors import ValidationError
from ..graph.models import Category, Feature, Role


class FeatureRecord(BaseModel):
    """Feature as stored."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str
    description: Optional[str] = None
    dependencies: List[str] = Field(default_factory=list)
    dependents: List[str] = Field(default_factory=list)
    is_core: bool = Field(False, validation_alias=AliasChoices("is_core", "isCore"))
    admin_only: bool = Field(False, validation_alias=AliasChoices("admin_only", "adminOnly"))


class CategoryRecord(BaseModel):
    """Category as stored."""
    model_config = ConfigDict(extra="ignore")

    id: str = Field(..., min_length=1)
    name: str
    description: Optional[str] = None
    features: List[FeatureRecord] = Field(default_factory=list)


class RoleRecord(BaseModel):
    """Role as stored."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str = Field(validation_alias=AliasChoices("name", "roleName"))
    display_name: Optional[str] = Field(
        None, validation_alias=AliasChoices("display_name", "displayName", "roleDisplayName")
    )
    permissions: List[str] = Field(default_factory=list)


def _to_category(record: CategoryRecord) -> Category:
    features = tuple(
        Feature(
            id=f.id,
            name=f.name,
            category_id=record.id,
            description=f.description,
            dependencies=frozenset(f.dependencies),
            dependents=frozenset(f.dependents),
            is_core=f.is_core,
            admin_only=f.admin_only,
        )
        for f in record.features
    )
    return Category(id=record.id, name=record.name, description=record.description, features=features)


def parse_categories(raw: Iterable[Any]) -> List[Category]:
    """Validate raw category documents into Category objects."""
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("Feature categories must be a list", {"type": type(raw).__name__})

    categories: List[Category] = []
    seen_features: Dict[str, str] = {}
    for item in raw:
        if isinstance(item, Category):
            category = item
        else:
            try:
                category = _to_category(CategoryRecord.model_validate(item))
            except PydanticValidationError as e:
                raise ValidationError("Malformed feature category", {"errors": e.errors()}) from e

        for feature in category.features:
            if feature.id in seen_features:
                raise ValidationError(
                    "Duplicate feature id",
                    {"feature_id": feature.id, "categories": [seen_features[feature.id], category.id]}
                )
            seen_features[feature.id] = category.id
        categories.append(category)

    return categories


def parse_roles(raw: Iterable[Any]) -> List[Role]:
    """Validate raw role documents into Role objects."""
    if not isinstance(raw, (list, tuple)):
        raise ValidationError("Roles must be a list", {"type": type(raw).__name__})

    roles: List[Role] = []
    for item in raw:
        if isinstance(item, Role):
            roles.append(item)
            continue
        try:
            record = RoleRecord.model_validate(item)
        except PydanticValidationError as e:
            raise ValidationError("Malformed role", {"errors": e.errors()}) from e
        roles.append(Role(
            id=record.id,
            name=record.name,
            display_name=record.display_name,
            permissions=frozenset(record.permissions),
        ))
    return roles


def parse_role_features(raw: Any) -> Dict[str, List[str]]:
    """Validate the stored role -> enabled feature ids mapping."""
    if not isinstance(raw, Mapping):
        raise ValidationError("Role features must be a mapping", {"type": type(raw).__name__})

    matrix: Dict[str, List[str]] = {}
    for role_id, feature_ids in raw.items():
        if not isinstance(role_id, str) or isinstance(feature_ids, (str, bytes)):
            raise ValidationError("Malformed role feature entry", {"role_id": str(role_id)})
        try:
            matrix[role_id] = [str(f) for f in feature_ids]
        except TypeError as e:
            raise ValidationError("Malformed role feature entry", {"role_id": role_id}) from e
    return matrix
