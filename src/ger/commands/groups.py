# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation
"""Project and group listings: projects, groups, groups-show, groups-members."""

from __future__ import annotations

import logging
from typing import Any

from ger.commands import CommandResult
from ger.gerrit.client import GerritNotFoundError
from ger.gerrit.models import AccountInfo, GroupInfo
from ger.gerrit.service import GerritService, GroupQuery
from ger.output import OutputFormat, XmlDocument, to_json

log = logging.getLogger("ger.commands.groups")


class GroupNotFoundError(GerritNotFoundError):
    """Raised when a group lookup returns 404."""

    def __init__(self, group_id: str) -> None:
        super().__init__(f'Group "{group_id}" not found', status_code=404)
        self.group_id = group_id


def run_projects(
    service: GerritService, pattern: str | None, fmt: OutputFormat
) -> CommandResult:
    """List projects, optionally filtered by prefix."""
    projects = service.list_projects(pattern)

    if fmt == OutputFormat.JSON:
        return CommandResult(
            to_json(
                {
                    "status": "success",
                    "count": len(projects),
                    "projects": [
                        {"id": p.id, "name": p.name, "parent": p.parent, "state": p.state}
                        for p in projects
                    ],
                }
            )
        )
    if fmt == OutputFormat.XML:
        doc = XmlDocument("projects_result")
        doc.element("status", "success")
        doc.element("count", len(projects))
        with doc.section("projects"):
            for p in projects:
                with doc.section("project"):
                    doc.text("id", p.id)
                    doc.text("name", p.name)
                    if p.parent:
                        doc.text("parent", p.parent)
                    doc.element("state", p.state)
        return CommandResult(doc.render())

    if not projects:
        return CommandResult("No projects found")
    return CommandResult("\n".join(p.name for p in projects))


def _group_dict(group: GroupInfo) -> dict[str, Any]:
    return {
        "id": group.id,
        "name": group.name,
        "description": group.description,
        "owner": group.owner,
        "owner_id": group.owner_id,
        "group_id": group.group_id,
        "visible_to_all": group.options.visible_to_all if group.options else None,
        "created_on": group.created_on,
        "url": group.url,
    }


def _xml_group_fields(doc: XmlDocument, group: GroupInfo) -> None:
    for key, value in _group_dict(group).items():
        if value is None:
            continue
        if isinstance(value, (bool, int)):
            doc.element(key, value)
        else:
            doc.text(key, value)


def _member_dict(member: AccountInfo) -> dict[str, Any]:
    return {
        "account_id": member.account_id,
        "name": member.name,
        "email": member.email,
        "username": member.username,
    }


def _xml_member(doc: XmlDocument, member: AccountInfo) -> None:
    with doc.section("member"):
        doc.element("account_id", member.account_id)
        for key in ("name", "email", "username"):
            value = getattr(member, key)
            if value:
                doc.text(key, value)


def run_groups(service: GerritService, query: GroupQuery, fmt: OutputFormat) -> CommandResult:
    """List groups visible to the caller."""
    groups = service.list_groups(query)

    if fmt == OutputFormat.JSON:
        return CommandResult(
            to_json(
                {
                    "status": "success",
                    "count": len(groups),
                    "groups": [_group_dict(g) for g in groups],
                }
            )
        )
    if fmt == OutputFormat.XML:
        doc = XmlDocument("groups_result")
        doc.element("status", "success")
        doc.element("count", len(groups))
        if not groups:
            doc.empty("groups")
        else:
            with doc.section("groups"):
                for group in groups:
                    with doc.section("group"):
                        _xml_group_fields(doc, group)
        return CommandResult(doc.render())

    if not groups:
        return CommandResult("No groups found")
    lines = [f"Available groups ({len(groups)}):", ""]
    for group in groups:
        lines.append(group.name or group.id)
        if group.description:
            lines.append(f"  Description: {group.description}")
        if group.owner:
            lines.append(f"  Owner: {group.owner}")
        lines.append("")
    return CommandResult("\n".join(lines).rstrip("\n"))


def run_group_show(service: GerritService, group_id: str, fmt: OutputFormat) -> CommandResult:
    """Show a group's details, members and subgroups."""
    try:
        group = service.get_group_detail(group_id)
    except GerritNotFoundError as exc:
        raise GroupNotFoundError(group_id) from exc

    members = group.members or []
    subgroups = group.includes or []

    if fmt == OutputFormat.JSON:
        payload = _group_dict(group)
        payload["members"] = [_member_dict(m) for m in members]
        payload["subgroups"] = [{"id": s.id, "name": s.name} for s in subgroups]
        return CommandResult(to_json({"status": "success", "group": payload}))
    if fmt == OutputFormat.XML:
        doc = XmlDocument("group_detail_result")
        doc.element("status", "success")
        with doc.section("group"):
            _xml_group_fields(doc, group)
            if members:
                with doc.section("members"):
                    for member in members:
                        _xml_member(doc, member)
            if subgroups:
                with doc.section("subgroups"):
                    for sub in subgroups:
                        with doc.section("subgroup"):
                            doc.text("id", sub.id)
                            if sub.name:
                                doc.text("name", sub.name)
        return CommandResult(doc.render())

    lines = [f"Group: {group.name or group.id}", f"ID: {group.id}"]
    if group.group_id is not None:
        lines.append(f"Numeric ID: {group.group_id}")
    if group.owner:
        lines.append(f"Owner: {group.owner}")
    if group.description:
        lines.append(f"Description: {group.description}")
    if group.options is not None and group.options.visible_to_all is not None:
        lines.append(f"Visible to all: {'Yes' if group.options.visible_to_all else 'No'}")
    if group.created_on:
        lines.append(f"Created: {group.created_on}")

    if members:
        lines.extend(["", f"Members ({len(members)}):"])
        for member in members:
            name = member.name or member.username or f"Account {member.account_id}"
            lines.append(f"  • {name}")
            if member.email:
                lines.append(f"    Email: {member.email}")
            if member.username and member.username != name:
                lines.append(f"    Username: {member.username}")
    else:
        lines.extend(["", "Members: None"])

    if subgroups:
        lines.extend(["", f"Subgroups ({len(subgroups)}):"])
        lines.extend(f"  • {sub.name or sub.id}" for sub in subgroups)
    else:
        lines.extend(["", "Subgroups: None"])
    return CommandResult("\n".join(lines))


def run_group_members(
    service: GerritService, group_id: str, fmt: OutputFormat
) -> CommandResult:
    """List the direct members of a group."""
    try:
        members = service.get_group_members(group_id)
    except GerritNotFoundError as exc:
        raise GroupNotFoundError(group_id) from exc

    if fmt == OutputFormat.JSON:
        return CommandResult(
            to_json(
                {
                    "status": "success",
                    "group_id": group_id,
                    "count": len(members),
                    "members": [_member_dict(m) for m in members],
                }
            )
        )
    if fmt == OutputFormat.XML:
        doc = XmlDocument("group_members_result")
        doc.element("status", "success")
        doc.text("group_id", group_id)
        doc.element("count", len(members))
        with doc.section("members"):
            for member in members:
                _xml_member(doc, member)
        return CommandResult(doc.render())

    if not members:
        return CommandResult(f'Group "{group_id}" has no members')
    lines = [f'Members of "{group_id}" ({len(members)}):', ""]
    for member in members:
        name = member.name or member.username or f"Account {member.account_id}"
        lines.append(f"  • {name}")
        if member.email:
            lines.append(f"    Email: {member.email}")
    return CommandResult("\n".join(lines))


__all__ = [
    "GroupNotFoundError",
    "run_group_members",
    "run_group_show",
    "run_groups",
    "run_projects",
]
