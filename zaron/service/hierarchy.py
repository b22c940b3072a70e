"""
Builds the two-level group tree from the backend's flat group list.
"""

from collections.abc import Iterable

from structlog import get_logger
from structlog.typing import FilteringBoundLogger

from zaron.core.group import GroupData, GroupNode


class ParentGroupNotFound(Exception):
    pass


class HierarchyDepthError(Exception):
    pass


def build_hierarchy(
    groups: Iterable[GroupData], log: FilteringBoundLogger | None = None
) -> list[GroupNode]:
    """
    Attach every sub-group to its root.

    Groups whose parent does not exist, or whose parent is itself a
    sub-group, are dropped: they appear neither as roots nor as sub-groups.
    Duplicate ids overwrite each other (last one wins). The input is not
    modified.

    Parameters
    ----------
    groups: Iterable[GroupData]
        The flat list, in any order.
    log: FilteringBoundLogger | None, optional
        Receives one event per dropped group.

    Returns
    -------
    list[GroupNode]
        Root groups in input order, each with `sub_groups` in input order.
    """
    log = log if log is not None else get_logger()

    by_id: dict[str, GroupData] = {}
    roots: list[GroupData] = []
    parented: list[GroupData] = []

    for group in groups:
        by_id[group.id] = group
        if group.parent_group_id is None:
            roots.append(group)
        else:
            parented.append(group)

    # Only keep the last record for a duplicated id.
    roots = [g for g in roots if by_id[g.id] is g]
    parented = [g for g in parented if by_id[g.id] is g]

    buckets: dict[str, list[GroupData]] = {}

    for group in parented:
        parent = by_id.get(group.parent_group_id)

        if parent is None:
            log.warning(
                "hierarchy.orphan_dropped",
                group_id=group.id,
                parent_group_id=group.parent_group_id,
            )
            continue

        if parent.parent_group_id is not None:
            log.warning(
                "hierarchy.too_deep_dropped",
                group_id=group.id,
                parent_group_id=group.parent_group_id,
            )
            continue

        buckets.setdefault(parent.id, []).append(group)

    return [
        GroupNode(
            **root.model_dump(),
            sub_groups=[g.model_copy(deep=True) for g in buckets.get(root.id, [])],
        )
        for root in roots
    ]


def flatten(roots: Iterable[GroupNode]) -> list[GroupData]:
    """
    Every group in the tree: each root followed by its sub-groups.
    """
    result: list[GroupData] = []
    for root in roots:
        result.append(root)
        result.extend(root.sub_groups)
    return result


def find_group(group_id: str, roots: Iterable[GroupNode]) -> GroupData | None:
    for group in flatten(roots):
        if group.id == group_id:
            return group
    return None


def check_parent(parent_group_id: str, groups: Iterable[GroupData]) -> GroupData:
    """
    Validate a parent for a new sub-group.

    Raises
    ------
    ParentGroupNotFound
        If no group has this id.
    HierarchyDepthError
        If the parent is itself a sub-group; nesting stops at two levels.
    """
    for group in groups:
        if group.id != parent_group_id:
            continue

        if group.parent_group_id is not None:
            raise HierarchyDepthError(
                f"Group {group.display_name} is already a sub-group and cannot "
                "have sub-groups of its own"
            )

        return group

    raise ParentGroupNotFound(f"Group with id {parent_group_id} not found")


def filter_groups(
    groups: Iterable[GroupData],
    search: str = "",
    department: str | None = None,
) -> list[GroupData]:
    """
    Case-insensitive search over display name, name and description, with an
    optional department filter.
    """
    search = search.strip().lower()
    result = []

    for group in groups:
        haystack = " ".join(
            x for x in (group.display_name, group.name, group.description) if x
        ).lower()

        if search and search not in haystack:
            continue
        if department is not None and group.department != department:
            continue

        result.append(group)

    return result


def group_by_department(groups: Iterable[GroupData]) -> dict[str, list[GroupData]]:
    """
    Bucket groups by department; groups without one fall under "other".
    """
    result: dict[str, list[GroupData]] = {}
    for group in groups:
        result.setdefault(group.department or "other", []).append(group)
    return result
