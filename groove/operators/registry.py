"""Ordered operator registry."""

import logging
from typing import Dict, List, Optional

from engine.exceptions import RegistryError
from groove.operators.base import IOperator, OperatorFamily

logger = logging.getLogger(__name__)


class OperatorRegistry:
    """Holds operators in registration order.

    Registration order is the execution order; freeze() makes the registry
    read-only so it can be shared across concurrent selection calls.
    """

    def __init__(self) -> None:
        self._operators: List[IOperator] = []
        self._by_id: Dict[str, IOperator] = {}
        self._frozen = False

    def register(self, operator: IOperator) -> None:
        """Add an operator.

        Args:
            operator: Operator with a non-empty, unique id

        Raises:
            RegistryError: If frozen, id empty, or id already registered
        """
        if self._frozen:
            raise RegistryError("Registry is frozen; cannot register operators")
        if not operator.operator_id:
            raise RegistryError(f"Operator {operator!r} has an empty operator_id")
        if operator.operator_id in self._by_id:
            raise RegistryError(f"Duplicate operator id: {operator.operator_id}")

        self._operators.append(operator)
        self._by_id[operator.operator_id] = operator
        logger.debug(f"Registered operator {operator.operator_id} ({operator.family_tag})")

    def freeze(self) -> None:
        self._frozen = True

    @property
    def is_frozen(self) -> bool:
        return self._frozen

    def operators(self) -> List[IOperator]:
        return list(self._operators)

    def get(self, operator_id: str) -> Optional[IOperator]:
        return self._by_id.get(operator_id)

    def by_family(self, family: OperatorFamily) -> List[IOperator]:
        return [op for op in self._operators if op.family == family]

    def __len__(self) -> int:
        return len(self._operators)

    def __iter__(self):
        return iter(list(self._operators))


def build_default_registry() -> OperatorRegistry:
    """Register the built-in operators in family order and freeze.

    Returns:
        Frozen registry
    """
    from groove.operators.micro_addition import GhostNoteOperator, KickPickupOperator
    from groove.operators.pattern_substitution import HalfTimeFeelOperator
    from groove.operators.phrase_punctuation import (
        CrashOnSectionStartOperator,
        SectionEndFillOperator,
    )
    from groove.operators.style_idiom import VerseSimplifyOperator
    from groove.operators.subdivision_transform import HatSixteenthDriveOperator

    registry = OperatorRegistry()
    for operator in (
        GhostNoteOperator(),
        KickPickupOperator(),
        HatSixteenthDriveOperator(),
        SectionEndFillOperator(),
        CrashOnSectionStartOperator(),
        HalfTimeFeelOperator(),
        VerseSimplifyOperator(),
    ):
        registry.register(operator)

    registry.freeze()
    logger.info(f"Default operator registry built with {len(registry)} operators")
    return registry
