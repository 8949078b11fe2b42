"""Tests for port assignment -- one port per relationship end, on the side
facing the related entity, ordered and evenly spaced along that side.
"""
from __future__ import annotations

import pytest

from schema_diagram.ports import PortAssignmentEngine, recompute_all_ports, recompute_ports
from schema_diagram.types import Entity, ForeignKey, ManyToMany, PortKey, PortKind


def box(name: str, x: float, y: float, w: float = 250, h: float = 100) -> Entity:
    return Entity(id=name, table_name=name, x=x, y=y, width=w, height=h)


users = box("users", 0, 0)
posts = box("posts", 400, 0)
tags = box("tags", 400, 300)

author_fk = ForeignKey(
    source_table="posts", source_column="author_id", target_table="users", target_join_column="id"
)
editor_fk = ForeignKey(
    source_table="posts", source_column="editor_id", target_table="users", target_join_column="id"
)
post_tags = ManyToMany(junction_table="post_tags", source_table="posts", target_table="tags")


class TestPortIds:
    def test_outgoing_foreign_key_port_id(self):
        ports = recompute_ports(posts, [author_fk], [users, posts])
        assert [p.id for p in ports.left] == ["left_out_users_id_author_id"]

    def test_incoming_foreign_key_port_id(self):
        ports = recompute_ports(users, [author_fk], [users, posts])
        assert [p.id for p in ports.right] == ["right_in_id_posts_author_id"]

    def test_many_to_many_port_ids(self):
        source_ports = recompute_ports(posts, [post_tags], [posts, tags])
        target_ports = recompute_ports(tags, [post_tags], [posts, tags])
        assert [p.id for p in source_ports.bottom] == ["bottom_m2m_out_post_tags"]
        assert [p.id for p in target_ports.top] == ["top_m2m_in_post_tags"]

    def test_port_keys_are_structural(self):
        ports = recompute_ports(posts, [author_fk], [users, posts])
        assert ports.left[0].key == PortKey(
            kind=PortKind.FK_OUT, related_table="users", join_column="id", own_column="author_id"
        )
        assert ports.find(PortKey.for_source(author_fk)) is ports.left[0]

    def test_two_foreign_keys_to_same_table_get_distinct_ports(self):
        ports = recompute_ports(posts, [author_fk, editor_fk], [users, posts])
        ids = [p.id for p in ports.left]
        assert len(ids) == 2
        assert len(set(ids)) == 2


class TestSideAssignment:
    def test_related_entity_directly_right(self):
        ports = recompute_ports(users, [author_fk], [users, posts])
        assert len(ports.right) == 1
        assert ports.top == ports.bottom == ports.left == []

    def test_related_entity_below(self):
        below = box("posts", 0, 400)
        ports = recompute_ports(users, [author_fk], [users, below])
        assert [p.side for p in ports.all_ports()] == ["bottom"]

    def test_related_entity_above(self):
        above = box("posts", 0, -400)
        ports = recompute_ports(users, [author_fk], [users, above])
        assert [p.side for p in ports.all_ports()] == ["top"]

    def test_entity_without_relationships_has_four_empty_sides(self):
        ports = recompute_ports(tags, [author_fk], [users, posts, tags])
        assert ports.is_empty()
        assert ports.to_dict() == {"top": [], "right": [], "bottom": [], "left": []}

    def test_relationship_to_absent_table_yields_no_port(self):
        ports = recompute_ports(posts, [author_fk], [posts])
        assert ports.is_empty()

    def test_self_reference_gets_two_ports_with_default_angle(self):
        parent_fk = ForeignKey(
            source_table="users", source_column="parent_id", target_table="users", target_join_column="id"
        )
        ports = recompute_ports(users, [parent_fk], [users])
        assert len(ports.right) == 2
        assert all(p.angle == 0.0 for p in ports.right)
        assert {p.key.kind for p in ports.right} == {PortKind.FK_OUT, PortKind.FK_IN}


class TestOrderingAndOffsets:
    def test_ports_on_right_run_top_to_bottom(self):
        hub = box("hub", 0, 300)
        upper = box("upper", 600, 200)
        lower = box("lower", 600, 420)
        rels = [
            ForeignKey("lower", "hub_id", "hub", "id"),
            ForeignKey("upper", "hub_id", "hub", "id"),
        ]
        ports = recompute_ports(hub, rels, [hub, upper, lower])
        assert [p.related_table for p in ports.right] == ["upper", "lower"]

    def test_ports_on_bottom_run_left_to_right(self):
        hub = box("hub", 300, 0)
        left_child = box("left_child", 0, 400)
        right_child = box("right_child", 600, 400)
        rels = [
            ForeignKey("right_child", "hub_id", "hub", "id"),
            ForeignKey("left_child", "hub_id", "hub", "id"),
        ]
        ports = recompute_ports(hub, rels, [hub, left_child, right_child])
        assert [p.related_table for p in ports.bottom] == ["left_child", "right_child"]

    def test_ports_on_left_run_top_to_bottom_across_the_seam(self):
        hub = box("hub", 600, 300)
        upper = box("upper", 0, 280)
        lower = box("lower", 0, 320)
        rels = [
            ForeignKey("lower", "hub_id", "hub", "id"),
            ForeignKey("upper", "hub_id", "hub", "id"),
        ]
        ports = recompute_ports(hub, rels, [hub, upper, lower])
        assert [p.related_table for p in ports.left] == ["upper", "lower"]

    def test_offsets_are_evenly_distributed(self):
        ports = recompute_ports(posts, [author_fk, editor_fk], [users, posts])
        assert [p.offset_fraction for p in ports.left] == pytest.approx([1 / 3, 2 / 3])

    def test_recompute_is_idempotent(self):
        entities = [users, posts, tags]
        rels = [author_fk, editor_fk, post_tags]
        first = recompute_all_ports(entities, rels)
        second = recompute_all_ports(entities, rels)
        assert first == second

    def test_order_does_not_depend_on_relationship_order(self):
        entities = [users, posts]
        forward = recompute_all_ports(entities, [author_fk, editor_fk])
        backward = recompute_all_ports(entities, [editor_fk, author_fk])
        assert [p.id for p in forward["users"].right] == [p.id for p in backward["users"].right]


class TestPortAssignmentEngine:
    def test_rebuild_replaces_previous_port_sets(self):
        engine = PortAssignmentEngine()
        engine.rebuild([users, posts], [author_fk])
        assert engine.port_set("users").right

        engine.rebuild([users, posts], [])
        assert engine.port_set("users").is_empty()

    def test_unknown_entity_returns_empty_port_set(self):
        engine = PortAssignmentEngine()
        assert engine.port_set("missing").is_empty()

    def test_ports_follow_moved_entities(self):
        engine = PortAssignmentEngine()
        engine.rebuild([users, posts], [author_fk])
        assert engine.port_set("posts").left

        engine.rebuild([users, posts.moved_to(0, 400)], [author_fk])
        assert engine.port_set("posts").top
        assert not engine.port_set("posts").left


class TestPortIdCollisions:
    accounts = box("accounts", 0, 0)
    user_roles = box("user_roles", 400, 0)
    user = box("user", 400, 150)
    to_user_roles = ForeignKey("accounts", "x", "user_roles", "id")
    to_user = ForeignKey("accounts", "x", "user", "roles_id")

    def test_underscored_names_that_serialize_alike_get_distinct_ids(self):
        ports = recompute_ports(
            self.accounts, [self.to_user_roles, self.to_user], [self.accounts, self.user_roles, self.user]
        )
        assert [p.id for p in ports.right] == [
            "right_out_user_roles_id_x",
            "right_out_user_roles_id_x~2",
        ]
        assert [p.related_table for p in ports.right] == ["user_roles", "user"]

    def test_suffixed_ports_are_still_found_by_key(self):
        ports = recompute_ports(
            self.accounts, [self.to_user_roles, self.to_user], [self.accounts, self.user_roles, self.user]
        )
        assert ports.find(PortKey.for_source(self.to_user)).id == "right_out_user_roles_id_x~2"

    def test_ids_without_collisions_are_unchanged(self):
        ports = recompute_ports(posts, [author_fk, editor_fk], [users, posts])
        assert all("~" not in p.id for p in ports.all_ports())
