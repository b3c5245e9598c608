"""
Tests for capacity aggregation and allocation management.
"""

import pytest

from sprint_planner.services.capacity_service import (
    AllocationInput,
    CapacityAggregator,
    normalize_allocations,
)
from sprint_planner.services.exceptions import NotFoundError, PlanningValidationError


@pytest.fixture
def aggregator(store) -> CapacityAggregator:
    return CapacityAggregator(store)


@pytest.fixture
async def members(make_member):
    return [
        await make_member("Alice", "Backend"),
        await make_member("Bob", "Frontend"),
        await make_member("Carol", "QA"),
    ]


def entries(*pairs):
    return [AllocationInput(team_member_id=m, capacity=c) for m, c in pairs]


class TestNormalizeAllocations:

    def test_non_positive_entries_dropped(self):
        result = normalize_allocations(entries((1, 5), (2, 0), (3, -2)))
        assert [(e.team_member_id, e.capacity) for e in result] == [(1, 5)]

    def test_repeated_member_keeps_last_entry(self):
        result = normalize_allocations(entries((1, 5), (2, 3), (1, 8)))
        assert sorted((e.team_member_id, e.capacity) for e in result) == [(1, 8), (2, 3)]


class TestRecomputeCapacity:

    @pytest.mark.asyncio
    async def test_sum_of_allocations(self, aggregator, make_sprint, members, store):
        sprint = await make_sprint()
        await aggregator.replace_allocations(
            sprint.id,
            entries((members[0].id, 10), (members[1].id, 8), (members[2].id, 6))
        )

        assert await aggregator.recompute_capacity(sprint.id) == 24
        assert (await store.get_sprint(sprint.id)).capacity == 24

    @pytest.mark.asyncio
    async def test_stale_capacity_is_corrected(self, aggregator, make_sprint, members, store):
        sprint = await make_sprint(capacity=99)
        await aggregator.upsert_allocation(sprint.id, members[0].id, 7)

        sprint.capacity = 99
        await store.db.commit()

        assert await aggregator.recompute_capacity(sprint.id) == 7

    @pytest.mark.asyncio
    async def test_sprint_without_allocations(self, aggregator, make_sprint):
        sprint = await make_sprint(capacity=12)
        assert await aggregator.recompute_capacity(sprint.id) == 0

    @pytest.mark.asyncio
    async def test_missing_sprint(self, aggregator):
        with pytest.raises(NotFoundError):
            await aggregator.recompute_capacity(404)


class TestReplaceAllocations:

    @pytest.mark.asyncio
    async def test_non_positive_capacities_silently_dropped(self, aggregator, make_sprint, members, store):
        sprint = await make_sprint()

        updated = await aggregator.replace_allocations(
            sprint.id,
            entries((members[0].id, 5), (members[1].id, 0), (members[2].id, -3))
        )

        allocations = await store.list_allocations(sprint.id)
        assert updated.capacity == 5
        assert [(a.team_member_id, a.capacity) for a in allocations] == [(members[0].id, 5)]

    @pytest.mark.asyncio
    async def test_replace_removes_previous_allocations(self, aggregator, make_sprint, members, store):
        sprint = await make_sprint()
        await aggregator.replace_allocations(sprint.id, entries((members[0].id, 5), (members[1].id, 5)))

        updated = await aggregator.replace_allocations(sprint.id, entries((members[2].id, 3)))

        allocations = await store.list_allocations(sprint.id)
        assert updated.capacity == 3
        assert [a.team_member_id for a in allocations] == [members[2].id]

    @pytest.mark.asyncio
    async def test_idempotent(self, aggregator, make_sprint, members, store):
        sprint = await make_sprint()
        allocation_list = entries((members[0].id, 10), (members[1].id, 8))

        first = (await aggregator.replace_allocations(sprint.id, allocation_list)).capacity
        second = (await aggregator.replace_allocations(sprint.id, allocation_list)).capacity

        assert first == second == 18
        assert len(await store.list_allocations(sprint.id)) == 2

    @pytest.mark.asyncio
    async def test_order_independent(self, aggregator, make_sprint, members):
        sprint_a = await make_sprint(name="A")
        sprint_b = await make_sprint(name="B")
        pairs = [(members[0].id, 10), (members[1].id, 8), (members[2].id, 6)]

        forward = await aggregator.replace_allocations(sprint_a.id, entries(*pairs))
        backward = await aggregator.replace_allocations(sprint_b.id, entries(*reversed(pairs)))

        assert forward.capacity == backward.capacity == 24

    @pytest.mark.asyncio
    async def test_empty_list_clears_allocations(self, aggregator, make_sprint, members, store):
        sprint = await make_sprint()
        await aggregator.replace_allocations(sprint.id, entries((members[0].id, 4)))

        updated = await aggregator.replace_allocations(sprint.id, [])

        assert updated.capacity == 0
        assert await store.list_allocations(sprint.id) == []

    @pytest.mark.asyncio
    async def test_unknown_member_leaves_allocations_untouched(self, aggregator, make_sprint, members, store):
        sprint = await make_sprint()
        sprint_id, alice_id, bob_id = sprint.id, members[0].id, members[1].id
        await aggregator.replace_allocations(sprint_id, entries((alice_id, 4)))

        with pytest.raises(NotFoundError):
            await aggregator.replace_allocations(sprint_id, entries((bob_id, 2), (999, 3)))

        allocations = await store.list_allocations(sprint_id)
        assert [(a.team_member_id, a.capacity) for a in allocations] == [(alice_id, 4)]
        assert (await store.get_sprint(sprint_id)).capacity == 4

    @pytest.mark.asyncio
    async def test_missing_sprint(self, aggregator, members):
        with pytest.raises(NotFoundError):
            await aggregator.replace_allocations(404, entries((members[0].id, 4)))


class TestUpsertAllocation:

    @pytest.mark.asyncio
    async def test_create_then_update(self, aggregator, make_sprint, members, store):
        sprint = await make_sprint()

        created = await aggregator.upsert_allocation(sprint.id, members[0].id, 5)
        updated = await aggregator.upsert_allocation(sprint.id, members[0].id, 9)

        allocations = await store.list_allocations(sprint.id)
        assert created.id == updated.id
        assert updated.capacity == 9
        assert len(allocations) == 1
        assert (await store.get_sprint(sprint.id)).capacity == 9

    @pytest.mark.asyncio
    async def test_non_positive_capacity_rejected(self, aggregator, make_sprint, members, store):
        sprint = await make_sprint()

        with pytest.raises(PlanningValidationError):
            await aggregator.upsert_allocation(sprint.id, members[0].id, 0)

        assert await store.list_allocations(sprint.id) == []

    @pytest.mark.asyncio
    async def test_unknown_sprint_or_member(self, aggregator, make_sprint, members):
        sprint = await make_sprint()
        sprint_id, member_id = sprint.id, members[0].id

        with pytest.raises(NotFoundError):
            await aggregator.upsert_allocation(404, member_id, 5)
        with pytest.raises(NotFoundError):
            await aggregator.upsert_allocation(sprint_id, 404, 5)


class TestRemoveAllocation:

    @pytest.mark.asyncio
    async def test_remove_existing(self, aggregator, make_sprint, members, store):
        sprint = await make_sprint()
        await aggregator.replace_allocations(sprint.id, entries((members[0].id, 5), (members[1].id, 3)))

        await aggregator.remove_allocation(sprint.id, members[0].id)

        allocations = await store.list_allocations(sprint.id)
        assert [a.team_member_id for a in allocations] == [members[1].id]
        assert (await store.get_sprint(sprint.id)).capacity == 3

    @pytest.mark.asyncio
    async def test_remove_is_idempotent(self, aggregator, make_sprint, members):
        sprint = await make_sprint()

        await aggregator.remove_allocation(sprint.id, members[0].id)
        await aggregator.remove_allocation(sprint.id, members[0].id)
        await aggregator.remove_allocation(404, members[0].id)


class TestSprintTeamMembers:

    @pytest.mark.asyncio
    async def test_members_with_capacity(self, aggregator, make_sprint, members):
        sprint = await make_sprint()
        await aggregator.replace_allocations(sprint.id, entries((members[1].id, 3), (members[0].id, 5)))

        allocated = await aggregator.get_sprint_team_members(sprint.id)

        assert [(m.name, m.skill, m.capacity) for m in allocated] == [
            ("Alice", "Backend", 5),
            ("Bob", "Frontend", 3),
        ]
