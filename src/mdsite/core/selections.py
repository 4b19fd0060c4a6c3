"""Classifier dimensions and the cartesian set of specialized build variants"""

import itertools
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from mdsite.core.errors import ConfigurationError
from mdsite.core.models import BlockSequence, Choices, Document, DocumentTree, transform
from mdsite.core.tree_config import TreeConfig


SELECTIONS_KEY = "selections"


class ClassifierDimension(BaseModel):
    """A named axis of variation with an ordered, non-empty set of labels."""
    name:    str = Field(..., min_length=1)
    choices: list[str] = Field(..., min_length=1)

    @field_validator("choices")
    @classmethod
    def _unique_labels(cls, choices: list[str]) -> list[str]:
        if any(not c for c in choices):
            raise ValueError("choice labels must be non-empty")
        if len(set(choices)) != len(choices):
            raise ValueError(f"duplicate choice labels: {choices}")
        return choices


@dataclass(frozen=True)
class Variant:
    """One combination: chosen labels (dimension order) and its specialized tree."""
    classifiers: tuple[str, ...]
    tree:        DocumentTree

    @property
    def key(self) -> str:
        return "-".join(self.classifiers)


def artifact_name(base: str, classifiers, suffix: str) -> str:
    """'<base>[-<labels joined by ->].<suffix>'; no classifier part when labels are empty."""
    classifier = "-" + "-".join(classifiers) if classifiers else ""
    return f"{base}{classifier}.{suffix}"


def dimensions_from_config(config: TreeConfig) -> list[ClassifierDimension]:
    """Parse the 'selections' key (list of {name, choices}); absent means no dimensions."""
    raw = config.get(SELECTIONS_KEY, [])
    try:
        dimensions = [ClassifierDimension.model_validate(d) for d in raw or []]
    except (ValidationError, TypeError) as e:
        raise ConfigurationError(f"Invalid '{SELECTIONS_KEY}' configuration: {e}") from e
    names = [d.name for d in dimensions]
    if len(set(names)) != len(names):
        raise ConfigurationError(f"Duplicate classifier dimension names: {names}")
    return dimensions


def combination_labels(dimensions: list[ClassifierDimension]) -> list[tuple[str, ...]]:
    """Cartesian product of labels in dimension order; one empty combination for no dimensions.

    Raises ConfigurationError when two combinations derive the same artifact name.
    """
    combos = list(itertools.product(*(d.choices for d in dimensions)))
    seen: dict[str, tuple[str, ...]] = {}
    for combo in combos:
        name = "-".join(combo)
        if name in seen:
            raise ConfigurationError(
                f"Classifier combinations {list(seen[name])} and {list(combo)} "
                f"both derive the artifact name suffix '{name}'"
            )
        seen[name] = combo
    return combos


def _matches(doc: Document, chosen: dict[str, str]) -> bool:
    """A document's 'select' config restricts it to specific labels per dimension."""
    wanted = doc.config.get("select") or {}
    if not isinstance(wanted, dict):
        raise ConfigurationError(f"{doc.path}: 'select' must be a mapping of dimension to label")
    return all(chosen.get(dim, label) == label for dim, label in wanted.items())


def specialize(tree: DocumentTree, chosen: dict[str, str]) -> DocumentTree:
    """Tree for one combination: choice groups collapsed, non-matching documents dropped."""

    def _pick(node):
        if isinstance(node, Choices) and node.name in chosen:
            for option in node.options:
                if option.label == chosen[node.name]:
                    return BlockSequence(option.content)
            return BlockSequence()
        return node

    def _specialize_doc(doc: Document) -> Optional[Document]:
        if not _matches(doc, chosen):
            return None
        return Document(doc.path, transform(doc.content, _pick), doc.config)

    specialized = tree.map_documents(_specialize_doc)
    return specialized.with_config(
        classifiers=list(chosen.values()),
        selections_chosen=dict(chosen),
    )


def create_combinations(
    tree: DocumentTree,
    dimensions: Optional[list[ClassifierDimension]] = None,
    ) -> list[Variant]:
    """One specialized, structurally independent tree per classifier combination.

    Dimensions default to the tree's 'selections' config. Without dimensions
    the result is a single variant with empty classifiers and the tree as-is.
    """
    if dimensions is None:
        dimensions = dimensions_from_config(TreeConfig(tree.config))
    combos = combination_labels(dimensions)
    if not dimensions:
        return [Variant((), tree)]
    names = [d.name for d in dimensions]
    return [Variant(combo, specialize(tree, dict(zip(names, combo)))) for combo in combos]
