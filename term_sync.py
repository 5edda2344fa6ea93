#!/usr/bin/env python3
"""
Term reconciliation

A remote term belongs to a synchronization context when it carries that
context's tags. Terms still present in the local strings file get the tags
(re)applied; terms that disappeared locally lose them, and a term left without
any tag is deleted from the project.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from poeditor_api import Term

logger = logging.getLogger(__name__)


@dataclass
class TermSyncPlan:
    """Updated remote terms split by whether they keep at least one tag."""

    to_upsert: List[Term] = field(default_factory=list)
    to_delete: List[Term] = field(default_factory=list)


def add_tags(current: Sequence[str], tags: Sequence[str]) -> List[str]:
    """Return current followed by the tags it is missing, without duplicates."""
    result: List[str] = []
    for tag in list(current) + list(tags):
        if tag not in result:
            result.append(tag)
    return result


def remove_tags(current: Sequence[str], tags: Sequence[str]) -> List[str]:
    """Return current without any of tags, without duplicates."""
    removed = set(tags)
    result: List[str] = []
    for tag in current:
        if tag not in removed and tag not in result:
            result.append(tag)
    return result


def reconcile_terms(
    local_terms: Dict[str, Term],
    remote_terms: Dict[str, Term],
    tags: Sequence[str],
) -> TermSyncPlan:
    """
    Compute the tag updates for the remote terms.

    Args:
        local_terms: Terms found in the local strings file, keyed by name
        remote_terms: Terms of the PoEditor project, keyed by name
        tags: Tags identifying this synchronization context

    Returns:
        A TermSyncPlan whose lists together contain every remote term exactly
        once, with updated tags. Terms only present locally are not included.
    """
    orphaned = remote_terms.keys() - local_terms.keys()
    plan = TermSyncPlan()

    for name, remote in remote_terms.items():
        if name in orphaned:
            new_tags = remove_tags(remote.tags, tags)
        else:
            new_tags = add_tags(remote.tags, tags)

        updated = Term(term=remote.term, context=remote.context, tags=new_tags)
        if updated.tags:
            plan.to_upsert.append(updated)
        else:
            plan.to_delete.append(updated)

    logger.debug(
        f"Reconciled {len(remote_terms)} remote terms against {len(local_terms)} local terms: "
        f"{len(orphaned)} orphaned, {len(plan.to_upsert)} to update, {len(plan.to_delete)} to delete"
    )
    return plan
